"""Repository layer for task database operations."""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy import and_, desc, or_
from sqlalchemy.orm import Session

from labelflow.models.task import Task, TaskStatus
from labelflow.database.models import TaskDB, enum_to_value

logger = logging.getLogger(__name__)


class TaskRepository:
    """Repository for Task database operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, task: Task) -> Task:
        """Create a new task.

        Raises:
            sqlalchemy.exc.IntegrityError: If a PENDING task with the same
                (type, entity_id, case_id) already exists
        """
        try:
            task_db = TaskDB.from_pydantic(task)
            self.db.add(task_db)
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Created task {task.id}: {task.type} (case={task.case_id}, entity={task.entity_id})")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create task {task.id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, task_id: str) -> Optional[Task]:
        """Get task by ID."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        return task_db.to_pydantic() if task_db else None

    def find_pending(self, task_type, entity_id: str, case_id: Optional[str]) -> Optional[Task]:
        """Find the PENDING task for a (type, entity, case) triple, if any."""
        case_filter = TaskDB.case_id.is_(None) if case_id is None else TaskDB.case_id == case_id
        task_db = self.db.query(TaskDB).filter(
            TaskDB.type == enum_to_value(task_type),
            TaskDB.entity_id == entity_id,
            case_filter,
            TaskDB.status == TaskStatus.PENDING.value,
        ).first()
        return task_db.to_pydantic() if task_db else None

    def list_pending_for_case(self, case_id: str, entity_id: str) -> List[Task]:
        """PENDING tasks of a case plus the case-less tasks of its entity, oldest first."""
        tasks_db = self.db.query(TaskDB).filter(
            TaskDB.status == TaskStatus.PENDING.value,
            or_(
                TaskDB.case_id == case_id,
                and_(TaskDB.case_id.is_(None), TaskDB.entity_id == entity_id),
            ),
        ).order_by(TaskDB.created_at, TaskDB.id).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def list(
        self,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        statuses: Optional[Sequence[TaskStatus]] = None,
    ) -> List[Task]:
        """List tasks filtered by case, entity and status (newest first)."""
        query = self.db.query(TaskDB)
        if case_id is not None:
            query = query.filter(TaskDB.case_id == case_id)
        if entity_id is not None:
            query = query.filter(TaskDB.entity_id == entity_id)
        if statuses:
            query = query.filter(TaskDB.status.in_([enum_to_value(s) for s in statuses]))
        tasks_db = query.order_by(desc(TaskDB.created_at)).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def list_overdue(self, now: datetime) -> List[Task]:
        """PENDING tasks whose deadline is before `now`."""
        tasks_db = self.db.query(TaskDB).filter(
            TaskDB.status == TaskStatus.PENDING.value,
            TaskDB.deadline < now,
        ).order_by(TaskDB.deadline).all()
        return [task_db.to_pydantic() for task_db in tasks_db]

    def mark_completed(self, task_id: str, actor_id: str, now: datetime) -> Task:
        """Set a PENDING task to COMPLETED. Non-pending tasks are returned unchanged."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        if not task_db:
            raise ValueError(f"Task {task_id} not found")
        if task_db.status != TaskStatus.PENDING.value:
            return task_db.to_pydantic()

        task_db.status = TaskStatus.COMPLETED.value
        task_db.completed_at = now
        task_db.completed_by = actor_id
        task_db.updated_at = now
        try:
            self.db.commit()
            self.db.refresh(task_db)
            logger.debug(f"Completed task {task_id} by {actor_id}")
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to complete task {task_id}: {type(e).__name__}: {str(e)}")
            raise

    def cancel_pending_for_case(self, case_id: str, now: datetime) -> int:
        """Cancel every PENDING task of a case. Returns the number cancelled."""
        try:
            count = self.db.query(TaskDB).filter(
                TaskDB.case_id == case_id,
                TaskDB.status == TaskStatus.PENDING.value,
            ).update(
                {TaskDB.status: TaskStatus.CANCELLED.value, TaskDB.updated_at: now},
                synchronize_session=False,
            )
            self.db.commit()
            logger.debug(f"Cancelled {count} pending tasks for case {case_id}")
            return count
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to cancel tasks for case {case_id}: {type(e).__name__}: {str(e)}")
            raise

    def update_deadline(self, task_id: str, deadline: datetime, duration_days: int) -> Task:
        """Recompute the deadline of a PENDING task."""
        task_db = self.db.query(TaskDB).filter(TaskDB.id == task_id).first()
        if not task_db:
            raise ValueError(f"Task {task_id} not found")
        if task_db.status != TaskStatus.PENDING.value:
            raise ValueError(f"Task {task_id} is {task_db.status}; only pending tasks can be rescheduled")

        task_db.deadline = deadline
        task_db.duration_days = duration_days
        task_db.updated_at = datetime.utcnow()
        try:
            self.db.commit()
            self.db.refresh(task_db)
            return task_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update deadline of task {task_id}: {type(e).__name__}: {str(e)}")
            raise
