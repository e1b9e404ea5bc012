"""Domain commands issued by the authority, entities and evaluators.

Every command records the facts it establishes (fields, documents, events) and
then rechecks the case's pending tasks, which is what advances the workflow.
Commands never write `case.status` themselves.
"""

import logging
import uuid
from datetime import date
from enum import Enum
from typing import Iterable, List, Optional

from labelflow.engine.config import TriggerKind
from labelflow.engine.deadlines import entry_task_options
from labelflow.engine.errors import CaseStateError
from labelflow.engine.state_machine import TransitionResult
from labelflow.models.case import TERMINAL_STATUSES, Case, CaseStatus, CaseType
from labelflow.models.case_factory import create_case_base
from labelflow.models.document import Document, DocumentCategory
from labelflow.models.event import DecisionMetadata, EventType
from labelflow.models.task import TaskType
from labelflow.models.task_factory import compute_deadline
from labelflow.services.workflow import Workflow

logger = logging.getLogger(__name__)


class CorrectivePlanOutcome(str, Enum):
    """Evaluator verdict on an uploaded corrective plan."""
    VALIDATED = "VALIDATED"
    REFUSED = "REFUSED"
    COMPLEMENTARY_AUDIT = "COMPLEMENTARY_AUDIT"


_PLAN_OUTCOMES = {
    CorrectivePlanOutcome.VALIDATED: (EventType.CORRECTIVE_PLAN_VALIDATED, "plan_validated"),
    CorrectivePlanOutcome.REFUSED: (EventType.CORRECTIVE_PLAN_REFUSED, "plan_refused"),
    CorrectivePlanOutcome.COMPLEMENTARY_AUDIT: (EventType.COMPLEMENTARY_AUDIT_REQUESTED, "complementary_audit"),
}

_UPLOAD_EVENTS = {
    DocumentCategory.PLAN: EventType.PLAN_UPLOADED,
    DocumentCategory.REPORT: EventType.REPORT_UPLOADED,
    DocumentCategory.CORRECTIVE_PLAN: EventType.CORRECTIVE_PLAN_UPLOADED,
}


def _load_case(wf: Workflow, case_id: str, expected: Optional[Iterable[CaseStatus]] = None) -> Case:
    case = wf.ctx.cases.get_or_raise(case_id)
    if expected is not None:
        expected = tuple(expected)
        if CaseStatus(case.status) not in expected:
            raise CaseStateError(case_id, case.status, expected)
    return case


def _refreshed(wf: Workflow, case_id: str, actor_id: str) -> Case:
    wf.tasks.recheck_pending_tasks(case_id, actor_id)
    return wf.ctx.cases.get_or_raise(case_id)


def advance_manually(wf: Workflow, case_id: str, actor_id: str) -> Optional[TransitionResult]:
    """Take the first manual transition of the current state whose guards pass."""
    case = wf.ctx.cases.get_or_raise(case_id)
    state = wf.machine.state_of(case)
    for name, definition in state.transitions.items():
        if definition.trigger != TriggerKind.MANUAL:
            continue
        if wf.machine.first_failing_guard(case, definition) is None:
            return wf.machine.transition(case, definition.target, actor_id, transition_name=name)
    logger.debug(f"No manual transition available for case {case_id} in {case.status}")
    return None


# Case lifecycle

def submit_case(
    wf: Workflow,
    entity_id: str,
    case_type: CaseType,
    actor_id: str,
    previous_case_id: Optional[str] = None,
) -> Case:
    """Open a new case for an entity; it inherits the entity's evaluator."""
    entity = wf.ctx.entities.get(entity_id)
    if entity is None:
        raise ValueError(f"Entity {entity_id} not found")

    case = wf.ctx.cases.create(create_case_base(
        entity_id=entity_id,
        case_type=CaseType(case_type),
        status=wf.machine.config.initial_status,
        evaluator_id=entity.evaluator_id,
        previous_case_id=previous_case_id,
        created_by=actor_id,
    ))
    wf.events.record_event(EventType.CASE_SUBMITTED, actor_id, case_id=case.id, entity_id=entity_id)
    logger.info(f"Case {case.id} ({case.case_type}) submitted for entity {entity_id}")

    wf.machine.enter_initial_state(case, actor_id)
    # The recheck also closes the entity-level renewal task this submission answers.
    return _refreshed(wf, case.id, actor_id)


def approve_case(wf: Workflow, case_id: str, actor_id: str) -> Case:
    case = _load_case(wf, case_id, [CaseStatus.PENDING_CASE_APPROVAL])
    wf.events.record_event(EventType.CASE_APPROVED, actor_id, case_id=case_id, entity_id=case.entity_id)
    advance_manually(wf, case_id, actor_id)
    return _refreshed(wf, case_id, actor_id)


def assign_evaluator(wf: Workflow, case_id: str, evaluator_id: str, actor_id: str) -> Case:
    """Record the entity's choice of evaluation organization.

    The choice is stored on both the case and the entity (later cases inherit it).
    """
    case = _load_case(wf, case_id, [CaseStatus.PENDING_CASE_APPROVAL, CaseStatus.PENDING_EVALUATOR_CHOICE])
    wf.ctx.cases.update_fields(case_id, actor_id, evaluator_id=evaluator_id)
    wf.ctx.entities.update_fields(case.entity_id, evaluator_id=evaluator_id)
    wf.events.record_event(
        EventType.EVALUATOR_ASSIGNED,
        actor_id,
        case_id=case_id,
        entity_id=case.entity_id,
        metadata={"evaluator_id": evaluator_id},
    )
    wf.events.record_event(
        EventType.ENTITY_EVALUATOR_ASSIGNED,
        actor_id,
        entity_id=case.entity_id,
        metadata={"evaluator_id": evaluator_id},
    )
    if CaseStatus(case.status) == CaseStatus.PENDING_EVALUATOR_CHOICE:
        advance_manually(wf, case_id, actor_id)
    return _refreshed(wf, case_id, actor_id)


def record_evaluator_response(
    wf: Workflow,
    case_id: str,
    accepted: bool,
    actor_id: str,
    reason: Optional[str] = None,
) -> Case:
    """Record the evaluator's answer to the assignment.

    Raises:
        ValueError: If a refusal comes without a reason
    """
    if not accepted and not (reason or "").strip():
        raise ValueError("A reason is required when refusing a case")
    case = _load_case(wf, case_id, [CaseStatus.PENDING_EVALUATOR_ACCEPTANCE])
    wf.events.record_event(
        EventType.EVALUATOR_ACCEPTED if accepted else EventType.EVALUATOR_REFUSED,
        actor_id,
        case_id=case_id,
        entity_id=case.entity_id,
        metadata=DecisionMetadata(reason=reason),
    )
    return _refreshed(wf, case_id, actor_id)


# Audit

def set_audit_dates(wf: Workflow, case_id: str, start: date, end: date, actor_id: str) -> Case:
    """Set (or move) the audit dates.

    Raises:
        ValueError: If the end date precedes the start date
    """
    if end < start:
        raise ValueError("Audit end date must not precede the start date")
    _load_case(wf, case_id, [CaseStatus.PLANNING, CaseStatus.SCHEDULED])

    case = wf.ctx.cases.update_fields(case_id, actor_id, actual_start_date=start, actual_end_date=end)
    wf.events.record_event(
        EventType.AUDIT_DATES_SET,
        actor_id,
        case_id=case_id,
        entity_id=case.entity_id,
        metadata={"start": start.isoformat(), "end": end.isoformat()},
    )
    _reschedule_documentary_review(wf, case)
    return _refreshed(wf, case_id, actor_id)


def _reschedule_documentary_review(wf: Workflow, case: Case) -> None:
    task = wf.ctx.tasks.find_pending(TaskType.ENTITY_MARK_DOCUMENTARY_REVIEW_READY, case.entity_id, case.id)
    if task is None:
        return
    days = entry_task_options(wf.ctx, case, task.type).get("custom_duration_days")
    if days is None:
        return
    wf.ctx.tasks.update_deadline(task.id, compute_deadline(wf.ctx.now(), days), days)
    logger.info(f"Rescheduled documentary review task {task.id} of case {case.id} ({days} days)")


def upload_document(
    wf: Workflow,
    case_id: str,
    category: DocumentCategory,
    storage_key: str,
    actor_id: str,
    file_name: Optional[str] = None,
) -> Document:
    """Attach an uploaded document to a case.

    Raises:
        ValueError: For attestations, which are only generated on completion
    """
    category = DocumentCategory(category)
    if category == DocumentCategory.ATTESTATION:
        raise ValueError("Attestations are generated on completion and cannot be uploaded")
    case = _load_case(wf, case_id)
    if CaseStatus(case.status) in TERMINAL_STATUSES:
        raise CaseStateError(case_id, case.status, set(CaseStatus) - TERMINAL_STATUSES)

    document = wf.ctx.documents.create(Document(
        id=str(uuid.uuid4()),
        category=category,
        entity_id=case.entity_id,
        case_id=case_id,
        storage_key=storage_key,
        file_name=file_name,
        uploaded_by=actor_id,
        audit_round=case.audit_round,
        created_at=wf.ctx.now(),
    ))
    event_type = _UPLOAD_EVENTS.get(category)
    if event_type is not None:
        wf.events.record_event(
            event_type,
            actor_id,
            case_id=case_id,
            entity_id=case.entity_id,
            metadata={"document_id": document.id},
        )
    wf.tasks.recheck_pending_tasks(case_id, actor_id)
    return document


def record_global_score(wf: Workflow, case_id: str, score: float, actor_id: str) -> Case:
    if not 0 <= score <= 100:
        raise ValueError("Global score must be between 0 and 100")
    _load_case(wf, case_id, [CaseStatus.PENDING_REPORT, CaseStatus.PENDING_EVALUATOR_OPINION])
    wf.ctx.cases.update_fields(case_id, actor_id, global_score=score)
    return _refreshed(wf, case_id, actor_id)


def transmit_evaluator_opinion(wf: Workflow, case_id: str, actor_id: str, comment: Optional[str] = None) -> Case:
    case = _load_case(wf, case_id, [CaseStatus.PENDING_EVALUATOR_OPINION])
    wf.events.record_event(
        EventType.EVALUATOR_OPINION_TRANSMITTED,
        actor_id,
        case_id=case_id,
        entity_id=case.entity_id,
        metadata=DecisionMetadata(comment=comment),
    )
    return _refreshed(wf, case_id, actor_id)


def review_corrective_plan(
    wf: Workflow,
    case_id: str,
    outcome: CorrectivePlanOutcome,
    actor_id: str,
    comment: Optional[str] = None,
) -> Case:
    """Record the evaluator's verdict on the corrective plan and follow it."""
    case = _load_case(wf, case_id, [CaseStatus.PENDING_CORRECTIVE_PLAN_VALIDATION])
    event_type, transition_name = _PLAN_OUTCOMES[CorrectivePlanOutcome(outcome)]
    wf.events.record_event(
        event_type,
        actor_id,
        case_id=case_id,
        entity_id=case.entity_id,
        metadata=DecisionMetadata(comment=comment),
    )
    wf.tasks.recheck_pending_tasks(case_id, actor_id)

    definition = wf.machine.state_of(case).transitions[transition_name]
    wf.machine.transition(case, definition.target, actor_id, transition_name=transition_name)
    return _refreshed(wf, case_id, actor_id)


def record_authority_decision(
    wf: Workflow,
    case_id: str,
    accepted: bool,
    actor_id: str,
    reason: Optional[str] = None,
) -> Case:
    """Record the labeling decision.

    Acceptance completes the case. A rejection is kept in the log and closes the
    decision task; the case waits in PENDING_AUTHORITY_DECISION with a fresh
    decision task, which only a later decision closes.
    """
    case = _load_case(wf, case_id, [CaseStatus.PENDING_AUTHORITY_DECISION])
    wf.events.record_event(
        EventType.AUTHORITY_DECISION_ACCEPTED if accepted else EventType.AUTHORITY_DECISION_REJECTED,
        actor_id,
        case_id=case_id,
        entity_id=case.entity_id,
        metadata=DecisionMetadata(reason=reason),
    )
    # Close the decision task before completion cancels whatever is still open.
    wf.tasks.recheck_pending_tasks(case_id, actor_id)
    if accepted:
        wf.machine.transition(case, CaseStatus.COMPLETED, actor_id, transition_name="to_completed")
    else:
        wf.machine.spawn_entry_tasks(wf.ctx.cases.get_or_raise(case_id), actor_id)
    return wf.ctx.cases.get_or_raise(case_id)


def transition_case(
    wf: Workflow,
    case_id: str,
    target: CaseStatus,
    actor_id: str,
    transition_name: Optional[str] = None,
) -> TransitionResult:
    """Explicit transition requested by an operator."""
    target = CaseStatus(target)
    if target in TERMINAL_STATUSES:
        wf.tasks.recheck_pending_tasks(case_id, actor_id)
    case = wf.ctx.cases.get_or_raise(case_id)
    result = wf.machine.transition(case, target, actor_id, transition_name=transition_name)
    if result.changed and target not in TERMINAL_STATUSES:
        wf.tasks.recheck_pending_tasks(case_id, actor_id)
    return result


# Entity

def mark_documentary_review_ready(wf: Workflow, entity_id: str, actor_id: str) -> List[Case]:
    """Declare the entity's documents ready; returns its open cases after recheck."""
    if wf.ctx.entities.get(entity_id) is None:
        raise ValueError(f"Entity {entity_id} not found")
    wf.ctx.entities.update_fields(
        entity_id,
        documentary_review_ready_at=wf.ctx.now(),
        documentary_review_ready_by=actor_id,
    )
    wf.events.record_event(EventType.ENTITY_DOCUMENTARY_REVIEW_READY, actor_id, entity_id=entity_id)

    open_cases = [
        c for c in wf.ctx.cases.list_for_entity(entity_id)
        if CaseStatus(c.status) not in TERMINAL_STATUSES
    ]
    return [_refreshed(wf, c.id, actor_id) for c in open_cases]
