"""Guard predicates gating workflow transitions.

A guard is `(ctx, case) -> bool`. Guards only read: the auto-transition scan
evaluates them speculatively for transitions that may never be taken.
"""

from enum import Enum
from typing import Callable, Dict

from labelflow.engine.context import WorkflowContext
from labelflow.models.case import Case, CaseType, CorrectivePlanRequirement
from labelflow.models.document import DocumentCategory
from labelflow.models.event import EventType


class GuardName(str, Enum):
    """Closed set of guard identifiers used by the workflow graph."""
    HAS_EVALUATOR_ASSIGNED = "has_evaluator_assigned"
    NO_EVALUATOR_ASSIGNED = "no_evaluator_assigned"
    REQUIRES_EVALUATOR_ACCEPTANCE = "requires_evaluator_acceptance"
    IS_MONITORING_CASE = "is_monitoring_case"
    HAS_PLAN_DOCUMENT = "has_plan_document"
    HAS_REPORT_DOCUMENT = "has_report_document"
    HAS_CORRECTIVE_PLAN_DOCUMENT = "has_corrective_plan_document"
    NO_CORRECTIVE_PLAN_UPLOADED = "no_corrective_plan_uploaded"
    HAS_ACTUAL_DATES = "has_actual_dates"
    END_DATE_IS_FUTURE = "end_date_is_future"
    END_DATE_PASSED = "end_date_passed"
    HAS_GLOBAL_SCORE = "has_global_score"
    NEEDS_CORRECTIVE_PLAN = "needs_corrective_plan"
    CASE_APPROVED = "case_approved"
    EVALUATOR_HAS_ACCEPTED = "evaluator_has_accepted"
    EVALUATOR_HAS_REFUSED = "evaluator_has_refused"
    CORRECTIVE_PLAN_VALIDATED = "corrective_plan_validated"
    CORRECTIVE_PLAN_REFUSED = "corrective_plan_refused"
    COMPLEMENTARY_AUDIT_REQUESTED = "complementary_audit_requested"
    HAS_EVALUATOR_OPINION = "has_evaluator_opinion"
    AUTHORITY_DECISION_ACCEPTED = "authority_decision_accepted"


Guard = Callable[[WorkflowContext, Case], bool]


# Reference presence

def has_evaluator_assigned(ctx: WorkflowContext, case: Case) -> bool:
    """Evaluator on the case, or inherited from the owning entity."""
    if case.evaluator_id:
        return True
    entity = ctx.entity_for(case)
    return bool(entity and entity.evaluator_id)


def no_evaluator_assigned(ctx: WorkflowContext, case: Case) -> bool:
    return not has_evaluator_assigned(ctx, case)


# Case type

def requires_evaluator_acceptance(ctx: WorkflowContext, case: Case) -> bool:
    return case.case_type in (CaseType.INITIAL, CaseType.RENEWAL)


def is_monitoring_case(ctx: WorkflowContext, case: Case) -> bool:
    return case.case_type == CaseType.MONITORING


# Document presence

def _has_document(ctx: WorkflowContext, case: Case, category: DocumentCategory) -> bool:
    # Only the current audit round counts; a complementary audit needs fresh documents.
    return ctx.documents.exists_finalized(category, case_id=case.id, audit_round=case.audit_round)


def has_plan_document(ctx: WorkflowContext, case: Case) -> bool:
    return _has_document(ctx, case, DocumentCategory.PLAN)


def has_report_document(ctx: WorkflowContext, case: Case) -> bool:
    return _has_document(ctx, case, DocumentCategory.REPORT)


def has_corrective_plan_document(ctx: WorkflowContext, case: Case) -> bool:
    return _has_document(ctx, case, DocumentCategory.CORRECTIVE_PLAN)


def no_corrective_plan_uploaded(ctx: WorkflowContext, case: Case) -> bool:
    return not has_corrective_plan_document(ctx, case)


# Dates (compared against today, time of day dropped)

def has_actual_dates(ctx: WorkflowContext, case: Case) -> bool:
    return case.actual_start_date is not None and case.actual_end_date is not None


def end_date_is_future(ctx: WorkflowContext, case: Case) -> bool:
    return case.actual_end_date is not None and case.actual_end_date > ctx.today()


def end_date_passed(ctx: WorkflowContext, case: Case) -> bool:
    return case.actual_end_date is not None and case.actual_end_date <= ctx.today()


# Scalars

def has_global_score(ctx: WorkflowContext, case: Case) -> bool:
    return case.global_score is not None


def needs_corrective_plan(ctx: WorkflowContext, case: Case) -> bool:
    return case.corrective_plan_requirement == CorrectivePlanRequirement.REQUIRED


# Event occurrence (current audit round)

def _event_guard(*event_types: EventType) -> Guard:
    def guard(ctx: WorkflowContext, case: Case) -> bool:
        return ctx.events.has_event_occurred(event_types, case_id=case.id, audit_round=case.audit_round)
    return guard


GUARDS: Dict[GuardName, Guard] = {
    GuardName.HAS_EVALUATOR_ASSIGNED: has_evaluator_assigned,
    GuardName.NO_EVALUATOR_ASSIGNED: no_evaluator_assigned,
    GuardName.REQUIRES_EVALUATOR_ACCEPTANCE: requires_evaluator_acceptance,
    GuardName.IS_MONITORING_CASE: is_monitoring_case,
    GuardName.HAS_PLAN_DOCUMENT: has_plan_document,
    GuardName.HAS_REPORT_DOCUMENT: has_report_document,
    GuardName.HAS_CORRECTIVE_PLAN_DOCUMENT: has_corrective_plan_document,
    GuardName.NO_CORRECTIVE_PLAN_UPLOADED: no_corrective_plan_uploaded,
    GuardName.HAS_ACTUAL_DATES: has_actual_dates,
    GuardName.END_DATE_IS_FUTURE: end_date_is_future,
    GuardName.END_DATE_PASSED: end_date_passed,
    GuardName.HAS_GLOBAL_SCORE: has_global_score,
    GuardName.NEEDS_CORRECTIVE_PLAN: needs_corrective_plan,
    GuardName.CASE_APPROVED: _event_guard(EventType.CASE_APPROVED),
    GuardName.EVALUATOR_HAS_ACCEPTED: _event_guard(EventType.EVALUATOR_ACCEPTED),
    GuardName.EVALUATOR_HAS_REFUSED: _event_guard(EventType.EVALUATOR_REFUSED),
    GuardName.CORRECTIVE_PLAN_VALIDATED: _event_guard(EventType.CORRECTIVE_PLAN_VALIDATED),
    GuardName.CORRECTIVE_PLAN_REFUSED: _event_guard(EventType.CORRECTIVE_PLAN_REFUSED),
    GuardName.COMPLEMENTARY_AUDIT_REQUESTED: _event_guard(EventType.COMPLEMENTARY_AUDIT_REQUESTED),
    GuardName.HAS_EVALUATOR_OPINION: _event_guard(EventType.EVALUATOR_OPINION_TRANSMITTED),
    GuardName.AUTHORITY_DECISION_ACCEPTED: _event_guard(EventType.AUTHORITY_DECISION_ACCEPTED),
}
