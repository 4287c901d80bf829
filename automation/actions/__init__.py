"""Built-in action handlers."""

from typing import Dict, Optional

import requests

from ..config import AppConfig
from ..core.action_registry import ActionRegistry
from ..core.logging import get_logger
from .completion import CompletionHandler, CompletionParams
from .integrations import (
    INTEGRATION_HANDLERS,
    Deliverer,
    DocumentHandler,
    EmailHandler,
    GitHubHandler,
    NotificationHandler,
    SlackHandler,
    log_delivery,
)
from .webhook import WebhookHandler, WebhookParams

logger = get_logger(__name__)


def register_default_actions(registry: ActionRegistry, config: Optional[AppConfig] = None,
                             deliverers: Optional[Dict[str, Deliverer]] = None,
                             session: Optional[requests.Session] = None,
                             completion_client=None) -> ActionRegistry:
    """
    Register every built-in action kind on a registry.

    Args:
        registry: Registry to populate
        config: Settings for timeouts and completion defaults
        deliverers: Optional delivery callables keyed by action kind
        session: Shared HTTP session for webhook and Slack calls
        completion_client: Pre-built OpenAI-compatible client

    Returns:
        The same registry, for chaining
    """
    config = config or AppConfig()
    deliverers = deliverers or {}
    session = session or requests.Session()

    completion = CompletionHandler(
        client=completion_client,
        api_key=config.openai_api_key,
        default_model=config.completion_model,
        default_temperature=config.completion_temperature,
        default_max_tokens=config.completion_max_tokens,
    )
    registry.register("ai_completion", completion, CompletionHandler.description, CompletionParams)

    registry.register(
        "webhook",
        WebhookHandler(session=session, timeout=config.webhook_timeout),
        WebhookHandler.description,
        WebhookParams,
    )

    for handler_cls in INTEGRATION_HANDLERS:
        deliver = deliverers.get(handler_cls.action_type)
        if handler_cls is SlackHandler:
            handler = SlackHandler(deliver, session=session, timeout=config.webhook_timeout)
        else:
            handler = handler_cls(deliver)
        registry.register(handler_cls.action_type, handler, handler_cls.description, handler_cls.params_model)

    logger.info(f"Registered {len(registry.list_actions())} built-in action handlers")
    return registry


__all__ = [
    "register_default_actions",
    "CompletionHandler",
    "WebhookHandler",
    "NotificationHandler",
    "DocumentHandler",
    "EmailHandler",
    "SlackHandler",
    "GitHubHandler",
    "log_delivery",
]
