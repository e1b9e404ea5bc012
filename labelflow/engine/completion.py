"""Task completion criteria evaluation."""

from typing import Callable, Dict, Optional

from labelflow.engine.context import WorkflowContext
from labelflow.models.case import Case, CaseStatus
from labelflow.models.event import AUTHORITY_DECISION_EVENTS, EventType
from labelflow.models.task import AuthorityDecisionTaskMetadata, Task
from labelflow.models.task_types import CompletionCheck, CompletionKind, get_task_type_definition

CheckFn = Callable[[WorkflowContext, Task, Optional[Case]], bool]


def _case_event_check(*event_types: EventType) -> CheckFn:
    def check(ctx: WorkflowContext, task: Task, case: Optional[Case]) -> bool:
        if case is None:
            return False
        return ctx.events.has_event_occurred(event_types, case_id=case.id, audit_round=case.audit_round)
    return check


def _audit_dates_set(ctx: WorkflowContext, task: Task, case: Optional[Case]) -> bool:
    return bool(case and case.actual_start_date and case.actual_end_date)


def _authority_decision_recorded(ctx: WorkflowContext, task: Task, case: Optional[Case]) -> bool:
    """A decision was recorded since the task was issued.

    A decision task reissued after a rejection carries the number of decisions
    already on file and waits for one more.
    """
    if case is None:
        return False
    seen = AuthorityDecisionTaskMetadata(**task.metadata).decisions_seen
    recorded = ctx.events.count_events(AUTHORITY_DECISION_EVENTS, case.id, audit_round=case.audit_round)
    return recorded > seen


def _case_submitted(ctx: WorkflowContext, task: Task, case: Optional[Case]) -> bool:
    """A new case was submitted by the entity after the task was issued."""
    event = ctx.events.get_latest_event(EventType.CASE_SUBMITTED, entity_id=task.entity_id)
    return event is not None and event.performed_at >= task.created_at


COMPLETION_CHECKS: Dict[CompletionCheck, CheckFn] = {
    CompletionCheck.CASE_APPROVED: _case_event_check(EventType.CASE_APPROVED),
    CompletionCheck.CASE_SUBMITTED: _case_submitted,
    CompletionCheck.AUTHORITY_DECISION_RECORDED: _authority_decision_recorded,
    CompletionCheck.EVALUATOR_RESPONDED: _case_event_check(
        EventType.EVALUATOR_ACCEPTED, EventType.EVALUATOR_REFUSED
    ),
    CompletionCheck.AUDIT_DATES_SET: _audit_dates_set,
    CompletionCheck.CORRECTIVE_PLAN_REVIEWED: _case_event_check(
        EventType.CORRECTIVE_PLAN_VALIDATED,
        EventType.CORRECTIVE_PLAN_REFUSED,
        EventType.COMPLEMENTARY_AUDIT_REQUESTED,
    ),
    CompletionCheck.EVALUATOR_OPINION_TRANSMITTED: _case_event_check(EventType.EVALUATOR_OPINION_TRANSMITTED),
}


def is_task_satisfied(ctx: WorkflowContext, task: Task, case: Optional[Case]) -> bool:
    """Evaluate a task's completion criterion against current case/entity data.

    Args:
        ctx: Workflow context bound to the current session
        task: The pending task
        case: Freshly loaded case the task belongs to (None for entity-level tasks
            evaluated outside a case)

    Returns:
        True if the criterion is met
    """
    criterion = get_task_type_definition(task.type).completion

    if criterion.kind == CompletionKind.FIELD:
        if case is not None and getattr(case, criterion.field_name, None) is not None:
            return True
        entity = ctx.entities.get(task.entity_id)
        return entity is not None and getattr(entity, criterion.field_name, None) is not None

    if criterion.kind == CompletionKind.STATUS:
        return case is not None and CaseStatus(case.status) in criterion.statuses

    if criterion.kind == CompletionKind.DOCUMENT:
        if task.case_id:
            return ctx.documents.exists_finalized(
                criterion.document_category,
                case_id=task.case_id,
                audit_round=case.audit_round if case is not None else None,
            )
        return ctx.documents.exists_finalized(criterion.document_category, entity_id=task.entity_id)

    return COMPLETION_CHECKS[criterion.check](ctx, task, case)
