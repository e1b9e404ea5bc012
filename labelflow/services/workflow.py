"""Per-session wiring of the event log, task service and state machine."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from labelflow.engine.context import WorkflowContext
from labelflow.engine.state_machine import CaseStateMachine
from labelflow.integrations.notifications import NotificationDispatcher, default_dispatcher
from labelflow.services.event_log import EventLog
from labelflow.services.task_service import TaskService


@dataclass
class Workflow:
    ctx: WorkflowContext
    events: EventLog
    tasks: TaskService
    machine: CaseStateMachine

    @property
    def db(self) -> Session:
        return self.ctx.db


def build_workflow(
    db: Session,
    notifier: Optional[NotificationDispatcher] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> Workflow:
    """Build the workflow services bound to one database session.

    Args:
        db: Session used by every repository of this unit of work
        notifier: Task notification dispatcher (defaults from the environment)
        clock: Time source shared by events, tasks and guards (defaults to utcnow)
    """
    clock = clock or datetime.utcnow
    events = EventLog(db, clock=clock)
    ctx = WorkflowContext(db=db, events=events, clock=clock)
    tasks = TaskService(db, events, notifier=notifier or default_dispatcher(), clock=clock)
    machine = CaseStateMachine(ctx, tasks)
    tasks.attach_state_machine(machine)
    return Workflow(ctx=ctx, events=events, tasks=tasks, machine=machine)
