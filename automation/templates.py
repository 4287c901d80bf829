"""Built-in workflow templates offered to users as starting points."""

import copy
from typing import List

from .models.core import WorkflowTemplate

_TEMPLATES = [
    {
        "id": "content_generation",
        "name": "Content Generation Workflow",
        "description": "Automatically generate content based on triggers",
        "template": {
            "triggers": [{"type": "schedule", "cron": "0 9 * * 1"}],
            "conditions": [],
            "actions": [
                {
                    "type": "ai_completion",
                    "prompt": "Generate a weekly blog post about {{topic}}",
                    "model": "gpt-4o",
                    "temperature": 0.7,
                },
                {
                    "type": "create_document",
                    "title": "Weekly Blog Post - {{date}}",
                    "content": "{{previous.result.content}}",
                },
            ],
        },
    },
    {
        "id": "code_review",
        "name": "Automated Code Review",
        "description": "Review code changes and provide feedback",
        "template": {
            "triggers": [{"type": "github_pr", "repository": "{{repo}}"}],
            "conditions": [],
            "actions": [
                {
                    "type": "ai_completion",
                    "prompt": "Review this code change and provide feedback:\n{{diff}}",
                    "model": "gpt-4o",
                    "temperature": 0.2,
                },
                {
                    "type": "github",
                    "repository": "{{repo}}",
                    "operation": "create_review_comment",
                    "body": "{{previous.result.content}}",
                },
            ],
        },
    },
    {
        "id": "sentiment_monitoring",
        "name": "Sentiment Monitoring",
        "description": "Monitor sentiment and alert on negative feedback",
        "template": {
            "triggers": [{"type": "new_message", "source": "support"}],
            "conditions": [
                {"field": "sentiment_score", "operator": "less_than", "value": -0.5},
            ],
            "actions": [
                {
                    "type": "send_notification",
                    "title": "Negative Sentiment Alert",
                    "message": "Customer feedback has negative sentiment: {{message}}",
                },
                {
                    "type": "slack",
                    "channel": "#customer-support",
                    "message": "Negative feedback detected: {{message}}",
                },
            ],
        },
    },
]


def get_workflow_templates() -> List[WorkflowTemplate]:
    """Fresh copies of the built-in templates."""
    return [WorkflowTemplate.model_validate(copy.deepcopy(template)) for template in _TEMPLATES]
