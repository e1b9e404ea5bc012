"""Case data model for labelflow."""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class CaseStatus(str, Enum):
    """Case status enumeration (one state of the workflow graph)."""
    PENDING_CASE_APPROVAL = "PENDING_CASE_APPROVAL"
    PENDING_EVALUATOR_CHOICE = "PENDING_EVALUATOR_CHOICE"
    PENDING_EVALUATOR_ACCEPTANCE = "PENDING_EVALUATOR_ACCEPTANCE"
    PLANNING = "PLANNING"
    SCHEDULED = "SCHEDULED"
    PENDING_REPORT = "PENDING_REPORT"
    PENDING_EVALUATOR_OPINION = "PENDING_EVALUATOR_OPINION"
    PENDING_CORRECTIVE_PLAN = "PENDING_CORRECTIVE_PLAN"
    PENDING_CORRECTIVE_PLAN_VALIDATION = "PENDING_CORRECTIVE_PLAN_VALIDATION"
    PENDING_COMPLEMENTARY_AUDIT = "PENDING_COMPLEMENTARY_AUDIT"
    PENDING_AUTHORITY_DECISION = "PENDING_AUTHORITY_DECISION"
    COMPLETED = "COMPLETED"
    REFUSED_BY_EVALUATOR = "REFUSED_BY_EVALUATOR"
    REFUSED_PLAN = "REFUSED_PLAN"


TERMINAL_STATUSES = frozenset({
    CaseStatus.COMPLETED,
    CaseStatus.REFUSED_BY_EVALUATOR,
    CaseStatus.REFUSED_PLAN,
})


class CaseType(str, Enum):
    """Case type enumeration.

    MONITORING cases are periodic checks of an already-labeled entity and skip
    the evaluator acceptance step.
    """
    INITIAL = "INITIAL"
    RENEWAL = "RENEWAL"
    MONITORING = "MONITORING"


class CorrectivePlanRequirement(str, Enum):
    """Whether the audit outcome requires a corrective plan."""
    UNKNOWN = "UNKNOWN"
    REQUIRED = "REQUIRED"
    NOT_REQUIRED = "NOT_REQUIRED"


class Case(BaseModel):
    """A certification case tracked through the workflow."""

    id: str = Field(..., description="Unique case identifier (UUID v4)")
    entity_id: str = Field(..., description="Audited entity that owns this case")
    case_type: CaseType = Field(..., description="Case type (immutable after creation)")
    status: CaseStatus = Field(CaseStatus.PENDING_CASE_APPROVAL, description="Current workflow state")
    evaluator_id: Optional[str] = Field(None, description="Assigned evaluation organization")
    auditor_id: Optional[str] = Field(None, description="Assigned individual auditor")
    previous_case_id: Optional[str] = Field(None, description="Case this one follows up on (after a refusal)")
    actual_start_date: Optional[date] = Field(None, description="Audit start date set by the evaluator")
    actual_end_date: Optional[date] = Field(None, description="Audit end date set by the evaluator")
    global_score: Optional[float] = Field(None, ge=0.0, le=100.0, description="Global audit score (0-100)")
    corrective_plan_requirement: CorrectivePlanRequirement = Field(
        CorrectivePlanRequirement.UNKNOWN,
        description="Derived from the audit score when entering the opinion phase",
    )
    corrective_plan_deadline: Optional[date] = Field(None, description="Due date for the corrective plan")
    label_expiration_date: Optional[date] = Field(None, description="Label expiry, set on completion")
    audit_round: int = Field(1, ge=1, description="Audit round (incremented by a complementary audit)")
    created_at: datetime = Field(..., description="Case creation timestamp")
    updated_at: datetime = Field(..., description="Case last update timestamp")
    updated_by: Optional[str] = Field(None, description="Actor of the last update")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
