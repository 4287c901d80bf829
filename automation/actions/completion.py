"""Completion action backed by the OpenAI chat completions API."""

from typing import Any, Dict, Optional

from openai import OpenAI
from pydantic import BaseModel, ConfigDict, Field

from ..core.exceptions import ActionExecutionError, ConfigurationError
from ..core.logging import get_logger

logger = get_logger(__name__)


class CompletionParams(BaseModel):
    """Declared parameters of an ``ai_completion`` action."""
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    prompt: str = Field(..., min_length=1, description="Prompt text (may contain templates)")
    model: Optional[str] = Field(default=None, description="Model name; defaults to the configured model")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, alias="maxTokens")


class CompletionHandler:
    """Runs a single-turn chat completion and returns its text and usage."""

    description = "Generate text with a chat completion model"

    def __init__(self, client: Any = None, api_key: Optional[str] = None,
                 default_model: str = "gpt-4o", default_temperature: float = 0.7,
                 default_max_tokens: int = 1000):
        """Initialize the handler.

        Args:
            client: Pre-built OpenAI-compatible client; created lazily from
                ``api_key`` when omitted
            api_key: API key used to build the client
            default_model: Model used when the action names none
            default_temperature: Temperature used when the action sets none
            default_max_tokens: Token limit used when the action sets none
        """
        self._client = client
        self._api_key = api_key
        self.default_model = default_model
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @property
    def client(self):
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError(
                    "OpenAI API key is required for ai_completion actions",
                    config_key="openai_api_key"
                )
            self._client = OpenAI(api_key=self._api_key)
            logger.info("OpenAI client initialized")
        return self._client

    def __call__(self, params: Dict[str, Any]) -> Dict[str, Any]:
        request = CompletionParams.model_validate(params)
        model = request.model or self.default_model
        temperature = request.temperature if request.temperature is not None else self.default_temperature
        max_tokens = request.max_tokens or self.default_max_tokens

        logger.debug(f"Generating completion with {model} for prompt: {request.prompt[:100]}...")

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": request.prompt}],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except ConfigurationError as e:
            raise ActionExecutionError(e.message, action_type="ai_completion", recoverable=False) from e

        content = response.choices[0].message.content if response.choices else None
        usage = getattr(response, "usage", None)
        tokens_used = getattr(usage, "total_tokens", None) if usage is not None else None

        logger.debug(f"Completion returned {len(content or '')} characters")
        return {
            "content": content,
            "tokens_used": tokens_used,
            "model": getattr(response, "model", None) or model,
        }
