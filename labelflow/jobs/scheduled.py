"""Scheduled jobs: time-driven transitions, overdue report and label expiration.

Run with `python -m labelflow.jobs.scheduled <job>`.
"""

import argparse
import logging
import os
import sys
from datetime import timedelta
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from labelflow.database.database import init_db, session_scope
from labelflow.engine.config import TriggerKind
from labelflow.integrations.notifications import NotificationDispatcher
from labelflow.models.constants import LABEL_EXPIRATION_WARNING_DAYS, SYSTEM_ACTOR_ID
from labelflow.models.task import LabelRenewalTaskMetadata, Task, TaskType
from labelflow.services.workflow import build_workflow

logger = logging.getLogger(__name__)


def _scheduled_statuses(config) -> List:
    return [
        status for status, state in config.states.items()
        if any(t.trigger == TriggerKind.AUTO_ON_SCHEDULE for t in state.transitions.values())
    ]


def run_case_status_update(
    db: Session,
    notifier: Optional[NotificationDispatcher] = None,
    clock=None,
) -> int:
    """Fire schedule-driven transitions (audit end date reached).

    Returns:
        Number of cases that changed status
    """
    wf = build_workflow(db, notifier=notifier, clock=clock)
    changed = 0
    for case in wf.ctx.cases.list_by_statuses(_scheduled_statuses(wf.machine.config)):
        try:
            if wf.machine.check_auto_transition(case, None, SYSTEM_ACTOR_ID, trigger=TriggerKind.AUTO_ON_SCHEDULE):
                changed += 1
                wf.tasks.recheck_pending_tasks(case.id, SYSTEM_ACTOR_ID)
        except Exception as e:
            db.rollback()
            logger.error(f"Status update failed for case {case.id}: {type(e).__name__}: {str(e)}")
    logger.info(f"Case status update: {changed} cases advanced")
    return changed


def report_overdue_tasks(db: Session, clock=None) -> List[Task]:
    """Log PENDING tasks past their deadline. Their status is left unchanged."""
    wf = build_workflow(db, clock=clock)
    overdue = wf.tasks.list_overdue_tasks()
    for task in overdue:
        logger.warning(
            f"Overdue task {task.id} ({task.type}) for case {task.case_id} entity {task.entity_id}, "
            f"due {task.deadline.isoformat()}"
        )
    logger.info(f"Overdue report: {len(overdue)} tasks")
    return overdue


def run_label_expiration_check(
    db: Session,
    within_days: int = LABEL_EXPIRATION_WARNING_DAYS,
    notifier: Optional[NotificationDispatcher] = None,
    clock=None,
) -> List[Task]:
    """Ask entities whose label expires soon to submit a renewal case.

    One entity-level ENTITY_SUBMIT_CASE task per entity; existing pending
    tasks are not duplicated.

    Returns:
        The tasks created by this run
    """
    wf = build_workflow(db, notifier=notifier, clock=clock)
    horizon = wf.ctx.today() + timedelta(days=within_days)
    created: List[Task] = []
    for case in wf.ctx.cases.list_labels_expiring_before(horizon):
        latest = wf.ctx.cases.list_for_entity(case.entity_id)[0]
        if latest.id != case.id:
            # A newer case (renewal or monitoring) already exists.
            continue
        metadata = LabelRenewalTaskMetadata(
            label_expiration_date=case.label_expiration_date,
            previous_case_id=case.id,
        )
        task = wf.tasks.create_task(
            TaskType.ENTITY_SUBMIT_CASE,
            case.entity_id,
            metadata=metadata.model_dump(mode="json"),
            actor_id=SYSTEM_ACTOR_ID,
        )
        if task is not None:
            created.append(task)
    logger.info(f"Label expiration check: {len(created)} renewal tasks created")
    return created


JOBS: Dict[str, Callable[[Session], object]] = {
    "case-status-update": run_case_status_update,
    "overdue-tasks": report_overdue_tasks,
    "label-expiration": run_label_expiration_check,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run a labelflow scheduled job")
    parser.add_argument("job", choices=sorted(JOBS) + ["all"], help="Job to run")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    init_db()
    names = sorted(JOBS) if args.job == "all" else [args.job]
    with session_scope() as db:
        for name in names:
            logger.info(f"Running job {name}")
            JOBS[name](db)
    return 0


if __name__ == "__main__":
    sys.exit(main())
