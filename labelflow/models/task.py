"""Task data model for labelflow."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Task status enumeration."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Role(str, Enum):
    """Actor roles a task can be assigned to."""
    AUTHORITY = "AUTHORITY"
    EVALUATOR = "EVALUATOR"
    AUDITOR = "AUDITOR"
    ENTITY = "ENTITY"


class TaskType(str, Enum):
    """Task type enumeration (key into the task type registry)."""
    AUTHORITY_VALIDATE_CASE_SUBMISSION = "AUTHORITY_VALIDATE_CASE_SUBMISSION"
    AUTHORITY_VALIDATE_LABELING_DECISION = "AUTHORITY_VALIDATE_LABELING_DECISION"
    ENTITY_SUBMIT_CASE = "ENTITY_SUBMIT_CASE"
    ENTITY_MARK_DOCUMENTARY_REVIEW_READY = "ENTITY_MARK_DOCUMENTARY_REVIEW_READY"
    ENTITY_CHOOSE_EVALUATOR = "ENTITY_CHOOSE_EVALUATOR"
    ENTITY_UPLOAD_CORRECTIVE_PLAN = "ENTITY_UPLOAD_CORRECTIVE_PLAN"
    EVALUATOR_ACCEPT_OR_REFUSE_CASE = "EVALUATOR_ACCEPT_OR_REFUSE_CASE"
    SET_AUDIT_DATES = "SET_AUDIT_DATES"
    UPLOAD_AUDIT_PLAN = "UPLOAD_AUDIT_PLAN"
    UPLOAD_AUDIT_REPORT = "UPLOAD_AUDIT_REPORT"
    VALIDATE_CORRECTIVE_PLAN = "VALIDATE_CORRECTIVE_PLAN"
    UPLOAD_LABELING_OPINION = "UPLOAD_LABELING_OPINION"


class CorrectivePlanTaskMetadata(BaseModel):
    """Metadata attached to ENTITY_UPLOAD_CORRECTIVE_PLAN tasks."""
    original_deadline: Optional[date] = None


class DocumentaryReviewTaskMetadata(BaseModel):
    """Metadata attached to ENTITY_MARK_DOCUMENTARY_REVIEW_READY tasks."""
    audit_start_date: Optional[date] = None


class AuthorityDecisionTaskMetadata(BaseModel):
    """Metadata attached to AUTHORITY_VALIDATE_LABELING_DECISION tasks."""
    decisions_seen: int = 0


class LabelRenewalTaskMetadata(BaseModel):
    """Metadata attached to ENTITY_SUBMIT_CASE tasks created by the expiration check."""
    label_expiration_date: date
    previous_case_id: Optional[str] = None


class Task(BaseModel):
    """A role-assigned obligation with a deadline and a completion criterion."""

    id: str = Field(..., description="Unique task identifier (UUID v4)")
    type: TaskType = Field(..., description="Task type")
    status: TaskStatus = Field(TaskStatus.PENDING, description="Task status")
    entity_id: str = Field(..., description="Entity the task belongs to")
    case_id: Optional[str] = Field(None, description="Case the task belongs to (null for entity-level tasks)")
    assigned_roles: List[Role] = Field(default_factory=list, description="Roles that may perform the task")
    duration_days: int = Field(..., ge=0, description="Duration used to compute the deadline")
    deadline: datetime = Field(..., description="End-of-day deadline")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Task-type specific details")
    created_at: datetime = Field(..., description="Task creation timestamp")
    updated_at: datetime = Field(..., description="Task last update timestamp")
    created_by: Optional[str] = Field(None, description="Actor who caused the task to be created")
    completed_at: Optional[datetime] = Field(None, description="Completion timestamp")
    completed_by: Optional[str] = Field(None, description="Actor who completed the task")

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Overdue tasks stay PENDING; this is only a display flag."""
        if self.status != TaskStatus.PENDING:
            return False
        return self.deadline < (now or datetime.utcnow())

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
