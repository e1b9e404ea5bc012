"""Case and entity construction helpers for labelflow."""

import uuid
from datetime import datetime
from typing import Optional

from labelflow.models.case import Case, CaseStatus, CaseType, CorrectivePlanRequirement
from labelflow.models.entity import Entity


def create_case_base(
    entity_id: str,
    case_type: CaseType,
    status: CaseStatus = CaseStatus.PENDING_CASE_APPROVAL,
    evaluator_id: Optional[str] = None,
    auditor_id: Optional[str] = None,
    previous_case_id: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Case:
    """Create a new Case in its initial state."""
    now = datetime.utcnow()
    return Case(
        id=str(uuid.uuid4()),
        entity_id=entity_id,
        case_type=case_type,
        status=status,
        evaluator_id=evaluator_id,
        auditor_id=auditor_id,
        previous_case_id=previous_case_id,
        corrective_plan_requirement=CorrectivePlanRequirement.UNKNOWN,
        created_at=now,
        updated_at=now,
        updated_by=created_by,
    )


def create_entity_base(name: str, evaluator_id: Optional[str] = None, entity_id: Optional[str] = None) -> Entity:
    """Create a new Entity."""
    now = datetime.utcnow()
    return Entity(
        id=entity_id or str(uuid.uuid4()),
        name=name,
        evaluator_id=evaluator_id,
        created_at=now,
        updated_at=now,
    )
