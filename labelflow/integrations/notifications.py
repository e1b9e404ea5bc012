"""Task notifications for labelflow.

Recipients are resolved from the task's assigned roles; delivery goes through a
dispatcher. The default dispatcher only logs. Set NOTIFICATION_WEBHOOK_URL to
POST notifications to an external service instead.
"""

import logging
import os
from typing import List, Optional, Protocol

import requests
from dotenv import load_dotenv
from pydantic import BaseModel, Field

from labelflow.database.case_repository import CaseRepository
from labelflow.database.entity_repository import EntityRepository
from labelflow.models.task import Role, Task
from labelflow.models.task_types import get_task_type_definition

load_dotenv()

logger = logging.getLogger(__name__)

# Authority has no per-case assignee; notifications go to a shared inbox
AUTHORITY_RECIPIENT_ID = os.getenv("LABELFLOW_AUTHORITY_RECIPIENT_ID", "authority")


class Recipient(BaseModel):
    """Someone to notify about a task."""
    role: Role = Field(..., description="Role through which the recipient is reached")
    actor_id: str = Field(..., description="Actor (user, organization or inbox) identifier")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class NotificationDispatcher(Protocol):
    def notify_task_created(self, task: Task, recipients: List[Recipient]) -> None:
        ...


def resolve_recipients(
    cases: CaseRepository,
    entities: EntityRepository,
    task: Task,
) -> List[Recipient]:
    """Resolve the task's assigned roles to concrete recipients.

    Roles that cannot be resolved (no evaluator chosen yet, no auditor) are
    skipped.
    """
    case = cases.get(task.case_id) if task.case_id else None
    entity = entities.get(task.entity_id)

    recipients: List[Recipient] = []
    for role in task.assigned_roles:
        role = Role(role)
        actor_id: Optional[str] = None
        if role == Role.AUTHORITY:
            actor_id = AUTHORITY_RECIPIENT_ID
        elif role == Role.ENTITY:
            actor_id = task.entity_id
        elif role == Role.EVALUATOR:
            actor_id = (case.evaluator_id if case else None) or (entity.evaluator_id if entity else None)
        elif role == Role.AUDITOR:
            actor_id = case.auditor_id if case else None

        if actor_id:
            recipients.append(Recipient(role=role, actor_id=actor_id))
        else:
            logger.debug(f"No recipient for role {role.value} on task {task.id}")
    return recipients


class LoggingNotificationDispatcher:
    """Dispatcher that records notifications in the application log."""

    def notify_task_created(self, task: Task, recipients: List[Recipient]) -> None:
        title = get_task_type_definition(task.type).title
        for recipient in recipients:
            logger.info(
                f"Notify {recipient.role}:{recipient.actor_id} - new task '{title}' "
                f"(task={task.id}, case={task.case_id}, due={task.deadline.date().isoformat()})"
            )


class WebhookNotificationDispatcher:
    """Dispatcher that POSTs one JSON payload per task to a webhook."""

    def __init__(self, url: Optional[str] = None, timeout: int = 10):
        """Initialize the webhook dispatcher.

        Args:
            url: Webhook URL. If None, reads from NOTIFICATION_WEBHOOK_URL env var.
            timeout: Request timeout in seconds
        """
        self.url = url or os.getenv("NOTIFICATION_WEBHOOK_URL")
        if not self.url:
            raise ValueError("Webhook URL is required. Set NOTIFICATION_WEBHOOK_URL env var.")
        self.timeout = timeout

    def notify_task_created(self, task: Task, recipients: List[Recipient]) -> None:
        """Send the notification.

        Raises:
            requests.RequestException: If the webhook call fails
        """
        if not recipients:
            return
        payload = {
            "event": "task_created",
            "task": task.model_dump(mode="json"),
            "title": get_task_type_definition(task.type).title,
            "recipients": [r.model_dump(mode="json") for r in recipients],
        }
        response = requests.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()


def default_dispatcher() -> NotificationDispatcher:
    """Webhook dispatcher when configured, logging dispatcher otherwise."""
    if os.getenv("NOTIFICATION_WEBHOOK_URL"):
        return WebhookNotificationDispatcher()
    return LoggingNotificationDispatcher()
