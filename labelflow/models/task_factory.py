"""Task creation factory for labelflow.

This module centralizes task construction so deadlines and defaults are
computed the same way everywhere.
"""

import uuid
from datetime import datetime, time, timedelta
from typing import Any, Dict, Optional

from labelflow.models.task import Task, TaskStatus, TaskType
from labelflow.models.task_types import get_task_type_definition


def end_of_day(value: datetime) -> datetime:
    """Return the last representable instant of the given day."""
    return datetime.combine(value.date(), time.max)


def compute_deadline(now: datetime, duration_days: int) -> datetime:
    """Deadline = now + duration, normalized to end of day.

    Args:
        now: Reference timestamp
        duration_days: Number of days granted

    Returns:
        End-of-day datetime `duration_days` after `now`
    """
    return end_of_day(now + timedelta(days=duration_days))


def create_task_base(
    task_type: TaskType,
    entity_id: str,
    case_id: Optional[str] = None,
    custom_duration_days: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    created_by: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Task:
    """Create a PENDING Task for a registered task type.

    Assigned roles and default duration come from the task type registry;
    `custom_duration_days` overrides the default.

    Raises:
        ValueError: If the task type is unknown
    """
    definition = get_task_type_definition(task_type)
    now = now or datetime.utcnow()
    duration_days = (
        custom_duration_days if custom_duration_days is not None else definition.default_duration_days
    )

    return Task(
        id=str(uuid.uuid4()),
        type=definition.type,
        status=TaskStatus.PENDING,
        entity_id=entity_id,
        case_id=case_id,
        assigned_roles=list(definition.assigned_roles),
        duration_days=duration_days,
        deadline=compute_deadline(now, duration_days),
        metadata=metadata or {},
        created_at=now,
        updated_at=now,
        created_by=created_by,
    )
