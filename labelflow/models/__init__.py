"""Data models for labelflow."""

from labelflow.models.case import Case, CaseStatus, CaseType, CorrectivePlanRequirement, TERMINAL_STATUSES
from labelflow.models.entity import Entity
from labelflow.models.task import Task, TaskStatus, TaskType, Role
from labelflow.models.event import Event, EventType, EventCategory
from labelflow.models.document import Document, DocumentCategory

__all__ = [
    "Case",
    "CaseStatus",
    "CaseType",
    "CorrectivePlanRequirement",
    "TERMINAL_STATUSES",
    "Entity",
    "Task",
    "TaskStatus",
    "TaskType",
    "Role",
    "Event",
    "EventType",
    "EventCategory",
    "Document",
    "DocumentCategory",
]
