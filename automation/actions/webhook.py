"""Webhook action: outbound HTTP call with a JSON body."""

from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel, Field, field_validator

from ..core.exceptions import ActionExecutionError
from ..core.logging import get_logger

logger = get_logger(__name__)

ALLOWED_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}


class WebhookParams(BaseModel):
    """Declared parameters of a ``webhook`` action."""
    url: str = Field(..., min_length=1, description="Target URL (may contain templates)")
    method: str = Field(default="POST", description="HTTP method")
    headers: Dict[str, str] = Field(default_factory=dict, description="Extra request headers")
    payload: Any = Field(default=None, description="JSON body (may contain templates)")

    @field_validator('method')
    @classmethod
    def validate_method(cls, method):
        method = method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        return method


class WebhookHandler:
    """Sends the interpolated payload to the interpolated URL.

    Non-2xx responses are returned as results; only transport failures
    (connection errors, timeouts, invalid URLs) are raised.
    """

    description = "Send an HTTP request with a JSON payload to an external URL"

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = 10.0):
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, params: Dict[str, Any]) -> Dict[str, Any]:
        request = WebhookParams.model_validate(params)
        headers = {"Content-Type": "application/json", **request.headers}

        logger.info(f"Calling webhook {request.method} {request.url}")
        try:
            response = self.session.request(
                request.method,
                request.url,
                headers=headers,
                json=request.payload,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Webhook {request.method} {request.url} failed: {e}")
            raise ActionExecutionError(
                f"Webhook request to {request.url} failed: {e}",
                action_type="webhook",
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = None

        logger.info(f"Webhook {request.url} responded {response.status_code}")
        return {
            "status": response.status_code,
            "statusText": response.reason,
            "data": data,
        }
