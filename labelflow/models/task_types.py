"""Static registry of task types.

Each task type declares who performs it, how long it gets by default, and the
criterion that marks it complete when pending tasks are rechecked.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

from labelflow.models.case import CaseStatus
from labelflow.models.document import DocumentCategory
from labelflow.models.task import Role, TaskType


class CompletionKind(str, Enum):
    """How a task's completion is detected."""
    FIELD = "FIELD"
    STATUS = "STATUS"
    DOCUMENT = "DOCUMENT"
    CUSTOM = "CUSTOM"


class CompletionCheck(str, Enum):
    """Named custom completion predicates."""
    CASE_APPROVED = "CASE_APPROVED"
    CASE_SUBMITTED = "CASE_SUBMITTED"
    AUTHORITY_DECISION_RECORDED = "AUTHORITY_DECISION_RECORDED"
    EVALUATOR_RESPONDED = "EVALUATOR_RESPONDED"
    AUDIT_DATES_SET = "AUDIT_DATES_SET"
    CORRECTIVE_PLAN_REVIEWED = "CORRECTIVE_PLAN_REVIEWED"
    EVALUATOR_OPINION_TRANSMITTED = "EVALUATOR_OPINION_TRANSMITTED"


@dataclass(frozen=True)
class CompletionCriterion:
    kind: CompletionKind
    field_name: Optional[str] = None
    statuses: FrozenSet[CaseStatus] = frozenset()
    document_category: Optional[DocumentCategory] = None
    check: Optional[CompletionCheck] = None


@dataclass(frozen=True)
class TaskTypeDefinition:
    type: TaskType
    title: str
    assigned_roles: Tuple[Role, ...]
    default_duration_days: int
    completion: CompletionCriterion
    description: str = ""


def _custom(check: CompletionCheck) -> CompletionCriterion:
    return CompletionCriterion(kind=CompletionKind.CUSTOM, check=check)


def _document(category: DocumentCategory) -> CompletionCriterion:
    return CompletionCriterion(kind=CompletionKind.DOCUMENT, document_category=category)


def _status(*statuses: CaseStatus) -> CompletionCriterion:
    return CompletionCriterion(kind=CompletionKind.STATUS, statuses=frozenset(statuses))


_EVALUATOR_OR_AUDITOR = (Role.EVALUATOR, Role.AUDITOR)

TASK_TYPES: Dict[TaskType, TaskTypeDefinition] = {
    TaskType.AUTHORITY_VALIDATE_CASE_SUBMISSION: TaskTypeDefinition(
        type=TaskType.AUTHORITY_VALIDATE_CASE_SUBMISSION,
        title="Validate case submission",
        assigned_roles=(Role.AUTHORITY,),
        default_duration_days=7,
        completion=_custom(CompletionCheck.CASE_APPROVED),
        description="Review the submitted case and approve it.",
    ),
    TaskType.AUTHORITY_VALIDATE_LABELING_DECISION: TaskTypeDefinition(
        type=TaskType.AUTHORITY_VALIDATE_LABELING_DECISION,
        title="Record the labeling decision",
        assigned_roles=(Role.AUTHORITY,),
        default_duration_days=10,
        completion=_custom(CompletionCheck.AUTHORITY_DECISION_RECORDED),
        description="Accept or reject the label based on the evaluator's opinion.",
    ),
    TaskType.ENTITY_SUBMIT_CASE: TaskTypeDefinition(
        type=TaskType.ENTITY_SUBMIT_CASE,
        title="Submit a new case",
        assigned_roles=(Role.ENTITY,),
        default_duration_days=30,
        completion=_custom(CompletionCheck.CASE_SUBMITTED),
        description="Submit a renewal case before the label expires.",
    ),
    TaskType.ENTITY_MARK_DOCUMENTARY_REVIEW_READY: TaskTypeDefinition(
        type=TaskType.ENTITY_MARK_DOCUMENTARY_REVIEW_READY,
        title="Declare documents ready for review",
        assigned_roles=(Role.ENTITY,),
        default_duration_days=14,
        completion=CompletionCriterion(kind=CompletionKind.FIELD, field_name="documentary_review_ready_at"),
        description="Confirm that all documents are available before the audit starts.",
    ),
    TaskType.ENTITY_CHOOSE_EVALUATOR: TaskTypeDefinition(
        type=TaskType.ENTITY_CHOOSE_EVALUATOR,
        title="Choose an evaluation organization",
        assigned_roles=(Role.ENTITY,),
        default_duration_days=15,
        completion=_status(CaseStatus.PENDING_EVALUATOR_ACCEPTANCE, CaseStatus.PLANNING),
    ),
    TaskType.ENTITY_UPLOAD_CORRECTIVE_PLAN: TaskTypeDefinition(
        type=TaskType.ENTITY_UPLOAD_CORRECTIVE_PLAN,
        title="Upload the corrective plan",
        assigned_roles=(Role.ENTITY,),
        default_duration_days=30,
        completion=_status(CaseStatus.PENDING_CORRECTIVE_PLAN_VALIDATION),
    ),
    TaskType.EVALUATOR_ACCEPT_OR_REFUSE_CASE: TaskTypeDefinition(
        type=TaskType.EVALUATOR_ACCEPT_OR_REFUSE_CASE,
        title="Accept or refuse the case",
        assigned_roles=(Role.EVALUATOR,),
        default_duration_days=7,
        completion=_custom(CompletionCheck.EVALUATOR_RESPONDED),
    ),
    TaskType.SET_AUDIT_DATES: TaskTypeDefinition(
        type=TaskType.SET_AUDIT_DATES,
        title="Set the audit dates",
        assigned_roles=_EVALUATOR_OR_AUDITOR,
        default_duration_days=10,
        completion=_custom(CompletionCheck.AUDIT_DATES_SET),
    ),
    TaskType.UPLOAD_AUDIT_PLAN: TaskTypeDefinition(
        type=TaskType.UPLOAD_AUDIT_PLAN,
        title="Upload the audit plan",
        assigned_roles=_EVALUATOR_OR_AUDITOR,
        default_duration_days=15,
        completion=_document(DocumentCategory.PLAN),
    ),
    TaskType.UPLOAD_AUDIT_REPORT: TaskTypeDefinition(
        type=TaskType.UPLOAD_AUDIT_REPORT,
        title="Upload the audit report",
        assigned_roles=_EVALUATOR_OR_AUDITOR,
        default_duration_days=20,
        completion=_document(DocumentCategory.REPORT),
    ),
    TaskType.VALIDATE_CORRECTIVE_PLAN: TaskTypeDefinition(
        type=TaskType.VALIDATE_CORRECTIVE_PLAN,
        title="Review the corrective plan",
        assigned_roles=_EVALUATOR_OR_AUDITOR,
        default_duration_days=10,
        completion=_custom(CompletionCheck.CORRECTIVE_PLAN_REVIEWED),
    ),
    TaskType.UPLOAD_LABELING_OPINION: TaskTypeDefinition(
        type=TaskType.UPLOAD_LABELING_OPINION,
        title="Transmit the labeling opinion",
        assigned_roles=_EVALUATOR_OR_AUDITOR,
        default_duration_days=15,
        completion=_custom(CompletionCheck.EVALUATOR_OPINION_TRANSMITTED),
    ),
}


def get_task_type_definition(task_type) -> TaskTypeDefinition:
    """Look up a task type definition (accepts enum or string value).

    Raises:
        ValueError: If the task type is unknown
    """
    try:
        return TASK_TYPES[TaskType(task_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown task type: {task_type}")
