"""Event data model for labelflow.

Events are immutable facts. Guards and derived values (decision dates, who
approved a case) are computed from them instead of from timestamp columns.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from pydantic import BaseModel, Field


class EventCategory(str, Enum):
    """Event category enumeration."""
    CASE = "CASE"
    ENTITY = "ENTITY"
    CONTRACT = "CONTRACT"
    SYSTEM = "SYSTEM"


class EventType(str, Enum):
    """Event type enumeration."""
    CASE_SUBMITTED = "CASE_SUBMITTED"
    CASE_APPROVED = "CASE_APPROVED"
    EVALUATOR_ASSIGNED = "EVALUATOR_ASSIGNED"
    EVALUATOR_ACCEPTED = "EVALUATOR_ACCEPTED"
    EVALUATOR_REFUSED = "EVALUATOR_REFUSED"
    AUDIT_DATES_SET = "AUDIT_DATES_SET"
    PLAN_UPLOADED = "PLAN_UPLOADED"
    REPORT_UPLOADED = "REPORT_UPLOADED"
    CORRECTIVE_PLAN_UPLOADED = "CORRECTIVE_PLAN_UPLOADED"
    CORRECTIVE_PLAN_VALIDATED = "CORRECTIVE_PLAN_VALIDATED"
    CORRECTIVE_PLAN_REFUSED = "CORRECTIVE_PLAN_REFUSED"
    COMPLEMENTARY_AUDIT_REQUESTED = "COMPLEMENTARY_AUDIT_REQUESTED"
    EVALUATOR_OPINION_TRANSMITTED = "EVALUATOR_OPINION_TRANSMITTED"
    AUTHORITY_DECISION_ACCEPTED = "AUTHORITY_DECISION_ACCEPTED"
    AUTHORITY_DECISION_REJECTED = "AUTHORITY_DECISION_REJECTED"
    ATTESTATION_GENERATED = "ATTESTATION_GENERATED"
    CASE_STATUS_CHANGED = "CASE_STATUS_CHANGED"
    ENTITY_DOCUMENTARY_REVIEW_READY = "ENTITY_DOCUMENTARY_REVIEW_READY"
    ENTITY_EVALUATOR_ASSIGNED = "ENTITY_EVALUATOR_ASSIGNED"
    CONTRACT_ENTITY_SIGNED = "CONTRACT_ENTITY_SIGNED"
    CONTRACT_AUTHORITY_SIGNED = "CONTRACT_AUTHORITY_SIGNED"


@dataclass(frozen=True)
class EventTypeDefinition:
    category: EventCategory
    required_refs: FrozenSet[str]


_CASE_AND_ENTITY = frozenset({"case_id", "entity_id"})
_CASE_ONLY = frozenset({"case_id"})
_ENTITY_ONLY = frozenset({"entity_id"})
_CONTRACT_AND_ENTITY = frozenset({"contract_id", "entity_id"})

EVENT_TYPES: Dict[EventType, EventTypeDefinition] = {
    EventType.CASE_SUBMITTED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.CASE_APPROVED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.EVALUATOR_ASSIGNED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.EVALUATOR_ACCEPTED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.EVALUATOR_REFUSED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.AUDIT_DATES_SET: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.PLAN_UPLOADED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.REPORT_UPLOADED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.CORRECTIVE_PLAN_UPLOADED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.CORRECTIVE_PLAN_VALIDATED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.CORRECTIVE_PLAN_REFUSED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.COMPLEMENTARY_AUDIT_REQUESTED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.EVALUATOR_OPINION_TRANSMITTED: EventTypeDefinition(EventCategory.CASE, _CASE_ONLY),
    EventType.AUTHORITY_DECISION_ACCEPTED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.AUTHORITY_DECISION_REJECTED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.ATTESTATION_GENERATED: EventTypeDefinition(EventCategory.CASE, _CASE_AND_ENTITY),
    EventType.CASE_STATUS_CHANGED: EventTypeDefinition(EventCategory.SYSTEM, _CASE_ONLY),
    EventType.ENTITY_DOCUMENTARY_REVIEW_READY: EventTypeDefinition(EventCategory.ENTITY, _ENTITY_ONLY),
    EventType.ENTITY_EVALUATOR_ASSIGNED: EventTypeDefinition(EventCategory.ENTITY, _ENTITY_ONLY),
    EventType.CONTRACT_ENTITY_SIGNED: EventTypeDefinition(EventCategory.CONTRACT, _CONTRACT_AND_ENTITY),
    EventType.CONTRACT_AUTHORITY_SIGNED: EventTypeDefinition(EventCategory.CONTRACT, _CONTRACT_AND_ENTITY),
}

AUTHORITY_DECISION_EVENTS = (EventType.AUTHORITY_DECISION_ACCEPTED, EventType.AUTHORITY_DECISION_REJECTED)


class StatusChangeMetadata(BaseModel):
    """Metadata of CASE_STATUS_CHANGED events."""
    from_status: str
    to_status: str
    transition: Optional[str] = None


class DecisionMetadata(BaseModel):
    """Metadata of accept/refuse style events (evaluator response, plan review, authority decision)."""
    reason: Optional[str] = None
    comment: Optional[str] = None


class Event(BaseModel):
    """Immutable record of something that happened."""

    id: str = Field(..., description="Unique event identifier")
    type: EventType = Field(..., description="Event type")
    category: EventCategory = Field(..., description="Event category")
    case_id: Optional[str] = Field(None, description="Related case")
    entity_id: Optional[str] = Field(None, description="Related entity")
    contract_id: Optional[str] = Field(None, description="Related contract")
    performed_by: str = Field(..., description="Actor who performed the action")
    performed_at: datetime = Field(default_factory=datetime.utcnow, description="Event timestamp")
    audit_round: Optional[int] = Field(None, description="Audit round of the related case when recorded")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional event details")

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
