"""Side effects run around transitions.

Effects enrich the case (expiration date, corrective plan requirement), touch
related rows and generate documents. They never change `case.status`, and a
failing effect does not undo the transition that ran it.
"""

import logging
import uuid
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict

from labelflow.models.case import Case, CaseStatus, CorrectivePlanRequirement
from labelflow.models.case_factory import create_case_base
from labelflow.models.constants import (
    ATTESTATION_STORAGE_PREFIX,
    CORRECTIVE_PLAN_DEADLINE_DAYS,
    CORRECTIVE_PLAN_SCORE_THRESHOLD,
    LABEL_VALIDITY_DAYS,
)
from labelflow.models.document import Document, DocumentCategory
from labelflow.models.event import EventType

if TYPE_CHECKING:
    from labelflow.engine.state_machine import CaseStateMachine

logger = logging.getLogger(__name__)


class EffectName(str, Enum):
    """Closed set of side effect identifiers used by the workflow graph."""
    EVALUATE_CORRECTIVE_PLAN_REQUIREMENT = "evaluate_corrective_plan_requirement"
    CALCULATE_LABEL_EXPIRATION = "calculate_label_expiration"
    RESET_ENTITY_WORKFLOW = "reset_entity_workflow"
    GENERATE_ATTESTATION = "generate_attestation"
    CANCEL_OPEN_TASKS = "cancel_open_tasks"
    OPEN_FOLLOW_UP_CASE = "open_follow_up_case"
    RESET_AUDIT_SCHEDULE = "reset_audit_schedule"


Effect = Callable[["CaseStateMachine", Case, str], None]


def evaluate_corrective_plan_requirement(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    """Derive the corrective plan requirement from the global score.

    Without a score the requirement stays UNKNOWN.
    """
    if case.global_score is None:
        logger.warning(f"Case {case.id} entered the opinion phase without a global score")
        return

    if case.global_score < CORRECTIVE_PLAN_SCORE_THRESHOLD:
        # Keep an existing deadline when the case comes back from plan validation.
        deadline = case.corrective_plan_deadline or (
            machine.ctx.today() + timedelta(days=CORRECTIVE_PLAN_DEADLINE_DAYS)
        )
        machine.ctx.cases.update_fields(
            case.id,
            actor_id,
            corrective_plan_requirement=CorrectivePlanRequirement.REQUIRED,
            corrective_plan_deadline=deadline,
        )
    else:
        machine.ctx.cases.update_fields(
            case.id,
            actor_id,
            corrective_plan_requirement=CorrectivePlanRequirement.NOT_REQUIRED,
        )


def calculate_label_expiration(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    expiration = machine.ctx.today() + timedelta(days=LABEL_VALIDITY_DAYS)
    machine.ctx.cases.update_fields(case.id, actor_id, label_expiration_date=expiration)
    logger.info(f"Label for case {case.id} expires on {expiration.isoformat()}")


def reset_entity_workflow(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    """Clear per-cycle markers on the entity so the next case starts fresh."""
    machine.ctx.entities.update_fields(
        case.entity_id,
        documentary_review_ready_at=None,
        documentary_review_ready_by=None,
    )


def generate_attestation(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    """Register the labeling attestation for a completed case.

    Rendering happens outside this service; only the document reference is stored.
    """
    if case.global_score is None or case.label_expiration_date is None:
        raise ValueError(
            f"Cannot generate attestation for case {case.id}: score or label expiration date missing"
        )

    document = Document(
        id=str(uuid.uuid4()),
        category=DocumentCategory.ATTESTATION,
        entity_id=case.entity_id,
        case_id=case.id,
        storage_key=f"{ATTESTATION_STORAGE_PREFIX}/{case.id}.pdf",
        file_name=f"attestation-{case.id}.pdf",
        uploaded_by=actor_id,
        audit_round=case.audit_round,
        created_at=machine.ctx.now(),
    )
    machine.ctx.documents.create(document)
    machine.ctx.events.record_event(
        EventType.ATTESTATION_GENERATED,
        actor_id,
        case_id=case.id,
        entity_id=case.entity_id,
        metadata={
            "document_id": document.id,
            "label_expiration_date": case.label_expiration_date.isoformat(),
        },
    )


def cancel_open_tasks(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    machine.tasks.cancel_tasks_for_case(case.id, actor_id)


def open_follow_up_case(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    """After an evaluator refusal, release the evaluator and open a new case.

    The new case starts at the evaluator choice step and links back to the
    refused one.
    """
    machine.ctx.entities.update_fields(case.entity_id, evaluator_id=None)
    follow_up = create_case_base(
        entity_id=case.entity_id,
        case_type=case.case_type,
        status=CaseStatus.PENDING_EVALUATOR_CHOICE,
        previous_case_id=case.id,
        created_by=actor_id,
    )
    follow_up = machine.ctx.cases.create(follow_up)
    machine.enter_initial_state(follow_up, actor_id)
    logger.info(f"Opened follow-up case {follow_up.id} after refusal of case {case.id}")


def reset_audit_schedule(machine: "CaseStateMachine", case: Case, actor_id: str) -> None:
    """Start the complementary audit as a new round.

    The previous round's results are cleared and its open tasks cancelled.
    The entity has to declare its documentary readiness again.
    """
    case = machine.ctx.cases.start_next_audit_round(case.id, actor_id)
    machine.tasks.cancel_tasks_for_case(case.id, actor_id)
    reset_entity_workflow(machine, case, actor_id)
    logger.info(f"Case {case.id} starts audit round {case.audit_round}")


EFFECTS: Dict[EffectName, Effect] = {
    EffectName.EVALUATE_CORRECTIVE_PLAN_REQUIREMENT: evaluate_corrective_plan_requirement,
    EffectName.CALCULATE_LABEL_EXPIRATION: calculate_label_expiration,
    EffectName.RESET_ENTITY_WORKFLOW: reset_entity_workflow,
    EffectName.GENERATE_ATTESTATION: generate_attestation,
    EffectName.CANCEL_OPEN_TASKS: cancel_open_tasks,
    EffectName.OPEN_FOLLOW_UP_CASE: open_follow_up_case,
    EffectName.RESET_AUDIT_SCHEDULE: reset_audit_schedule,
}
