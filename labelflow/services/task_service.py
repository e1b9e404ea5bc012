"""Task service: deduplicated task creation, completion and the recheck loop."""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from labelflow.database.case_repository import CaseRepository
from labelflow.database.entity_repository import EntityRepository
from labelflow.database.repository import TaskRepository
from labelflow.engine.completion import is_task_satisfied
from labelflow.integrations.notifications import (
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    resolve_recipients,
)
from labelflow.models.case import TERMINAL_STATUSES, CaseStatus
from labelflow.models.constants import MAX_CASCADE_PASSES
from labelflow.models.task import Task, TaskStatus
from labelflow.models.task_factory import create_task_base
from labelflow.services.event_log import EventLog

if TYPE_CHECKING:
    from labelflow.engine.state_machine import CaseStateMachine

logger = logging.getLogger(__name__)


class RecheckResult(BaseModel):
    """Outcome of a recheck of a case's pending tasks."""
    case_id: str
    passes: int = 0
    completed_task_ids: List[str] = Field(default_factory=list)
    transitions: int = 0
    final_status: Optional[CaseStatus] = None
    limit_reached: bool = False

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class TaskService:
    """Creates, completes and rechecks tasks.

    The state machine is attached after construction (see `build_workflow`):
    the machine creates entry tasks through this service, and the recheck loop
    asks the machine for automatic transitions.
    """

    def __init__(
        self,
        db: Session,
        events: EventLog,
        notifier: Optional[NotificationDispatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.events = events
        self.repository = TaskRepository(db)
        self.cases = CaseRepository(db)
        self.entities = EntityRepository(db)
        self.notifier = notifier or LoggingNotificationDispatcher()
        self.clock = clock or datetime.utcnow
        self.machine: Optional["CaseStateMachine"] = None

    def attach_state_machine(self, machine: "CaseStateMachine") -> None:
        self.machine = machine

    def _require_machine(self) -> "CaseStateMachine":
        if self.machine is None:
            raise RuntimeError("TaskService has no state machine attached")
        return self.machine

    # Creation

    def create_task(
        self,
        task_type,
        entity_id: str,
        case_id: Optional[str] = None,
        custom_duration_days: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
    ) -> Optional[Task]:
        """Create a PENDING task unless one already exists for the same triple.

        Returns:
            The new task, or None if a PENDING (type, entity, case) task exists

        Raises:
            ValueError: If the task type is unknown
        """
        existing = self.repository.find_pending(task_type, entity_id, case_id)
        if existing is not None:
            logger.debug(f"Task {existing.type} already pending for entity {entity_id} case {case_id}")
            return None

        task = create_task_base(
            task_type,
            entity_id,
            case_id=case_id,
            custom_duration_days=custom_duration_days,
            metadata=metadata,
            created_by=actor_id,
            now=self.clock(),
        )
        try:
            task = self.repository.create(task)
        except IntegrityError:
            # Lost a race against a concurrent creator of the same triple.
            logger.info(f"Task {task.type} for entity {entity_id} case {case_id} created concurrently")
            return None

        logger.info(f"Created task {task.id} ({task.type}) due {task.deadline.isoformat()}")
        self._notify(task)
        return task

    def _notify(self, task: Task) -> None:
        try:
            recipients = resolve_recipients(self.cases, self.entities, task)
            self.notifier.notify_task_created(task, recipients)
        except Exception as e:
            logger.error(f"Failed to notify for task {task.id}: {type(e).__name__}: {str(e)}")

    # Completion

    def complete_task(self, task_id: str, actor_id: str) -> Task:
        """Mark a task COMPLETED. Completed and cancelled tasks are left as they are.

        Raises:
            ValueError: If the task does not exist
        """
        task = self.repository.get(task_id)
        if task is None:
            raise ValueError(f"Task {task_id} not found")
        if task.status != TaskStatus.PENDING:
            return task

        task = self.repository.mark_completed(task_id, actor_id, self.clock())
        logger.info(f"Task {task_id} ({task.type}) completed by {actor_id}")
        return task

    def complete_and_advance(self, task_id: str, actor_id: str) -> Task:
        """Complete a task, then recheck its case so the workflow can move on."""
        task = self.complete_task(task_id, actor_id)
        if task.case_id:
            self.recheck_pending_tasks(task.case_id, actor_id)
        return self.repository.get(task_id)

    def recheck_pending_tasks(self, case_id: str, actor_id: str) -> RecheckResult:
        """Complete every pending task whose criterion now holds, cascading transitions.

        Each pass walks the pending tasks of the case (and the case-less tasks
        of its entity). A satisfied task is completed and may fire an automatic
        transition; a final scan without task type picks up transitions driven
        by plain field edits. Passes repeat until nothing changes, at most
        MAX_CASCADE_PASSES times.

        Raises:
            ValueError: If the case does not exist
        """
        machine = self._require_machine()
        case = self.cases.get_or_raise(case_id)
        result = RecheckResult(case_id=case_id)

        while result.passes < MAX_CASCADE_PASSES:
            result.passes += 1
            progressed = False

            for pending in self.repository.list_pending_for_case(case.id, case.entity_id):
                case = self.cases.get_or_raise(case_id)
                task = self.repository.get(pending.id)
                if task is None or task.status != TaskStatus.PENDING:
                    continue
                if not is_task_satisfied(machine.ctx, task, case):
                    continue

                self.complete_task(task.id, actor_id)
                result.completed_task_ids.append(task.id)
                progressed = True
                if machine.check_auto_transition(case, task.type, actor_id):
                    result.transitions += 1

            case = self.cases.get_or_raise(case_id)
            if CaseStatus(case.status) not in TERMINAL_STATUSES:
                if machine.check_auto_transition(case, None, actor_id):
                    result.transitions += 1
                    progressed = True

            if not progressed:
                break
        else:
            result.limit_reached = True
            logger.warning(
                f"Recheck of case {case_id} stopped after {MAX_CASCADE_PASSES} passes; "
                f"the workflow may have an unbounded cascade"
            )

        result.final_status = self.cases.get_or_raise(case_id).status
        if result.completed_task_ids or result.transitions:
            logger.info(
                f"Recheck of case {case_id}: {len(result.completed_task_ids)} tasks completed, "
                f"{result.transitions} transitions, now {result.final_status}"
            )
        return result

    # Cancellation and reads

    def cancel_tasks_for_case(self, case_id: str, actor_id: str) -> int:
        count = self.repository.cancel_pending_for_case(case_id, self.clock())
        if count:
            logger.info(f"Cancelled {count} open tasks of case {case_id} (actor={actor_id})")
        return count

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.repository.get(task_id)

    def list_tasks(
        self,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        status: Optional[TaskStatus] = None,
    ) -> List[Task]:
        return self.repository.list(case_id=case_id, entity_id=entity_id, statuses=[status] if status else None)

    def list_overdue_tasks(self, now: Optional[datetime] = None) -> List[Task]:
        """PENDING tasks past their deadline. Their status is not changed."""
        return self.repository.list_overdue(now or self.clock())
