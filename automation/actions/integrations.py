"""Integration actions: notifications, documents, email, Slack and GitHub.

Each handler validates its parameters, builds a delivery payload and hands it
to a ``deliver`` callable. The default deliverer only logs and acknowledges,
so a host wires real transports by passing its own callable per kind.
"""

import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

import requests
from pydantic import BaseModel, Field, field_validator

from ..core.exceptions import ActionExecutionError
from ..core.logging import get_logger

logger = get_logger(__name__)

Deliverer = Callable[[str, Dict[str, Any]], Optional[Dict[str, Any]]]


def log_delivery(action_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Default deliverer: record the payload and acknowledge it."""
    logger.info(f"Delivered {action_type} action", extra={"extra_fields": {
        "action_type": action_type,
        "payload_keys": sorted(payload),
    }})
    return {"delivered": True}


class NotificationParams(BaseModel):
    message: str = Field(..., min_length=1)
    title: Optional[str] = None
    recipients: List[str] = Field(default_factory=list)
    channel: str = Field(default="in_app")


class DocumentParams(BaseModel):
    title: str = Field(..., min_length=1)
    content: str = Field(default="")
    workspace_id: Optional[Any] = None
    tags: List[str] = Field(default_factory=list)


class EmailParams(BaseModel):
    to: List[str] = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    body: str = Field(default="")
    cc: List[str] = Field(default_factory=list)

    @field_validator('to', 'cc', mode='before')
    @classmethod
    def split_addresses(cls, value):
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class SlackParams(BaseModel):
    message: str = Field(..., min_length=1)
    channel: Optional[str] = None
    webhook_url: Optional[str] = Field(default=None, description="Incoming-webhook URL to post to")


class GitHubParams(BaseModel):
    repository: str = Field(..., description="owner/name")
    operation: str = Field(..., description="e.g. create_issue, comment, create_pull_request")
    title: Optional[str] = None
    body: Optional[str] = None
    issue_number: Optional[Any] = None
    labels: List[str] = Field(default_factory=list)

    @field_validator('repository')
    @classmethod
    def validate_repository(cls, repository):
        if "{{" not in repository and repository.count("/") != 1:
            raise ValueError("Repository must be in owner/name form")
        return repository


class IntegrationHandler:
    """Validates parameters and delivers them through an injectable callable."""

    action_type: str = ""
    description: str = ""
    params_model: Type[BaseModel] = BaseModel
    confirmation: str = "Action completed successfully"

    def __init__(self, deliver: Optional[Deliverer] = None):
        self.deliver = deliver or log_delivery

    def build_payload(self, params: BaseModel) -> Dict[str, Any]:
        return params.model_dump(mode="json", exclude_none=True)

    def result_fields(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def __call__(self, params: Dict[str, Any]) -> Dict[str, Any]:
        request = self.params_model.model_validate(params)
        payload = self.build_payload(request)
        receipt = self.deliver(self.action_type, payload) or {}
        return {
            "message": self.confirmation,
            "delivered_at": datetime.utcnow().isoformat(),
            **self.result_fields(payload),
            **receipt,
        }


class NotificationHandler(IntegrationHandler):
    action_type = "send_notification"
    description = "Send an in-app or channel notification"
    params_model = NotificationParams
    confirmation = "Notification sent successfully"


class DocumentHandler(IntegrationHandler):
    action_type = "create_document"
    description = "Create a document in a workspace"
    params_model = DocumentParams
    confirmation = "Document created successfully"

    def build_payload(self, params: BaseModel) -> Dict[str, Any]:
        payload = super().build_payload(params)
        payload["document_id"] = str(uuid.uuid4())
        return payload

    def result_fields(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {"document_id": payload["document_id"], "title": payload["title"]}


class EmailHandler(IntegrationHandler):
    action_type = "email"
    description = "Send an email"
    params_model = EmailParams
    confirmation = "Email sent successfully"


class SlackHandler(IntegrationHandler):
    """Posts to a Slack incoming webhook when ``webhook_url`` is given.

    Without a URL the message goes through the deliverer like the other
    integrations.
    """

    action_type = "slack"
    description = "Post a message to Slack"
    params_model = SlackParams
    confirmation = "Slack message sent successfully"

    def __init__(self, deliver: Optional[Deliverer] = None,
                 session: Optional[requests.Session] = None, timeout: float = 10.0):
        super().__init__(deliver)
        self.session = session or requests.Session()
        self.timeout = timeout

    def __call__(self, params: Dict[str, Any]) -> Dict[str, Any]:
        request = SlackParams.model_validate(params)
        if not request.webhook_url:
            return super().__call__(params)

        body: Dict[str, Any] = {"text": request.message}
        if request.channel:
            body["channel"] = request.channel

        try:
            response = self.session.post(request.webhook_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ActionExecutionError(f"Slack post failed: {e}", action_type=self.action_type) from e

        if response.status_code >= 400:
            raise ActionExecutionError(
                f"Slack rejected the message: {response.status_code} {response.text}",
                action_type=self.action_type
            )

        return {
            "message": self.confirmation,
            "delivered_at": datetime.utcnow().isoformat(),
            "status": response.status_code,
        }


class GitHubHandler(IntegrationHandler):
    action_type = "github"
    description = "Perform a GitHub repository operation"
    params_model = GitHubParams
    confirmation = "GitHub action completed successfully"


INTEGRATION_HANDLERS = [NotificationHandler, DocumentHandler, EmailHandler, SlackHandler, GitHubHandler]
