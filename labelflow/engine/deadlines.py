"""Per-task-type deadline and metadata overrides for tasks spawned on state entry."""

from typing import Any, Callable, Dict

from labelflow.engine.context import WorkflowContext
from labelflow.models.case import Case
from labelflow.models.constants import DOCUMENTARY_REVIEW_LEAD_DAYS, MIN_TASK_DURATION_DAYS
from labelflow.models.event import AUTHORITY_DECISION_EVENTS
from labelflow.models.task import (
    AuthorityDecisionTaskMetadata,
    CorrectivePlanTaskMetadata,
    DocumentaryReviewTaskMetadata,
    TaskType,
)

TaskOptions = Dict[str, Any]


def _documentary_review_options(ctx: WorkflowContext, case: Case) -> TaskOptions:
    # Due a week before the audit starts, but never sooner than tomorrow.
    if case.actual_start_date is None:
        return {}
    days = (case.actual_start_date - ctx.today()).days - DOCUMENTARY_REVIEW_LEAD_DAYS
    return {
        "custom_duration_days": max(days, MIN_TASK_DURATION_DAYS),
        "metadata": DocumentaryReviewTaskMetadata(audit_start_date=case.actual_start_date).model_dump(mode="json"),
    }


def _corrective_plan_options(ctx: WorkflowContext, case: Case) -> TaskOptions:
    if case.corrective_plan_deadline is None:
        return {}
    days = (case.corrective_plan_deadline - ctx.today()).days
    return {
        "custom_duration_days": max(days, MIN_TASK_DURATION_DAYS),
        "metadata": CorrectivePlanTaskMetadata(
            original_deadline=case.corrective_plan_deadline
        ).model_dump(mode="json"),
    }


def _authority_decision_options(ctx: WorkflowContext, case: Case) -> TaskOptions:
    # A reissued decision task only closes on a decision newer than those on file.
    seen = ctx.events.count_events(AUTHORITY_DECISION_EVENTS, case.id, audit_round=case.audit_round)
    if not seen:
        return {}
    return {"metadata": AuthorityDecisionTaskMetadata(decisions_seen=seen).model_dump(mode="json")}


ENTRY_TASK_OPTIONS: Dict[TaskType, Callable[[WorkflowContext, Case], TaskOptions]] = {
    TaskType.ENTITY_MARK_DOCUMENTARY_REVIEW_READY: _documentary_review_options,
    TaskType.ENTITY_UPLOAD_CORRECTIVE_PLAN: _corrective_plan_options,
    TaskType.AUTHORITY_VALIDATE_LABELING_DECISION: _authority_decision_options,
}


def entry_task_options(ctx: WorkflowContext, case: Case, task_type) -> TaskOptions:
    """Keyword arguments for TaskService.create_task (duration override, metadata)."""
    builder = ENTRY_TASK_OPTIONS.get(TaskType(task_type))
    return builder(ctx, case) if builder else {}
