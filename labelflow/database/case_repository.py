"""Repository for Case database operations."""

import logging
from datetime import date, datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from labelflow.models.case import Case, CaseStatus, CorrectivePlanRequirement
from labelflow.database.models import CaseDB, enum_to_value

logger = logging.getLogger(__name__)

# Fields that may be edited directly; status goes through update_status only.
EDITABLE_FIELDS = frozenset({
    "evaluator_id",
    "auditor_id",
    "actual_start_date",
    "actual_end_date",
    "global_score",
    "corrective_plan_requirement",
    "corrective_plan_deadline",
    "label_expiration_date",
})


class CaseRepository:
    """Repository for Case database operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, case: Case) -> Case:
        """Create a new case."""
        try:
            case_db = CaseDB.from_pydantic(case)
            self.db.add(case_db)
            self.db.commit()
            self.db.refresh(case_db)
            logger.debug(f"Created case {case.id} ({case.case_type}) for entity {case.entity_id}")
            return case_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create case {case.id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, case_id: str) -> Optional[Case]:
        """Get case by ID."""
        case_db = self.db.query(CaseDB).filter(CaseDB.id == case_id).first()
        return case_db.to_pydantic() if case_db else None

    def get_or_raise(self, case_id: str) -> Case:
        case = self.get(case_id)
        if case is None:
            raise ValueError(f"Case {case_id} not found")
        return case

    def list_for_entity(self, entity_id: str) -> List[Case]:
        """All cases of an entity, newest first."""
        cases_db = self.db.query(CaseDB).filter(
            CaseDB.entity_id == entity_id,
        ).order_by(desc(CaseDB.created_at)).all()
        return [case_db.to_pydantic() for case_db in cases_db]

    def list_by_statuses(self, statuses: Iterable[CaseStatus]) -> List[Case]:
        """Cases currently in any of the given statuses."""
        values = [enum_to_value(s) for s in statuses]
        if not values:
            return []
        cases_db = self.db.query(CaseDB).filter(CaseDB.status.in_(values)).order_by(CaseDB.created_at).all()
        return [case_db.to_pydantic() for case_db in cases_db]

    def list_labels_expiring_before(self, before: date) -> List[Case]:
        """COMPLETED cases whose label expires on or before `before`."""
        cases_db = self.db.query(CaseDB).filter(
            CaseDB.status == CaseStatus.COMPLETED.value,
            CaseDB.label_expiration_date.isnot(None),
            CaseDB.label_expiration_date <= before,
        ).order_by(CaseDB.label_expiration_date).all()
        return [case_db.to_pydantic() for case_db in cases_db]

    def update_status(self, case_id: str, status: CaseStatus, actor_id: str) -> Case:
        """Persist a new status as a single-row update.

        No lock is taken: concurrent writers on the same case race and the last
        write wins. Only the state machine calls this.
        """
        now = datetime.utcnow()
        try:
            updated = self.db.query(CaseDB).filter(CaseDB.id == case_id).update(
                {
                    CaseDB.status: enum_to_value(status),
                    CaseDB.updated_at: now,
                    CaseDB.updated_by: actor_id,
                },
                synchronize_session=False,
            )
            if not updated:
                raise ValueError(f"Case {case_id} not found")
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update status of case {case_id}: {type(e).__name__}: {str(e)}")
            raise
        self.db.expire_all()
        return self.get_or_raise(case_id)

    def start_next_audit_round(self, case_id: str, actor_id: str) -> Case:
        """Open a new audit round: bump the counter and clear the previous round's results.

        Documents and case events are stamped with the round they belong to, so
        nothing recorded in an earlier round satisfies a guard of the new one.
        """
        try:
            updated = self.db.query(CaseDB).filter(CaseDB.id == case_id).update(
                {
                    CaseDB.audit_round: CaseDB.audit_round + 1,
                    CaseDB.actual_start_date: None,
                    CaseDB.actual_end_date: None,
                    CaseDB.global_score: None,
                    CaseDB.corrective_plan_requirement: CorrectivePlanRequirement.UNKNOWN.value,
                    CaseDB.corrective_plan_deadline: None,
                    CaseDB.updated_at: datetime.utcnow(),
                    CaseDB.updated_by: actor_id,
                },
                synchronize_session=False,
            )
            if not updated:
                raise ValueError(f"Case {case_id} not found")
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to start a new audit round for case {case_id}: {type(e).__name__}: {str(e)}")
            raise
        self.db.expire_all()
        return self.get_or_raise(case_id)

    def update_fields(self, case_id: str, actor_id: str, **fields: Any) -> Case:
        """Update editable domain fields of a case.

        Raises:
            ValueError: If the case is unknown or a field is not editable
                (status, case_type and ownership are never edited here)
        """
        forbidden = set(fields) - EDITABLE_FIELDS
        if forbidden:
            raise ValueError(f"Fields not editable on a case: {', '.join(sorted(forbidden))}")

        case_db = self.db.query(CaseDB).filter(CaseDB.id == case_id).first()
        if not case_db:
            raise ValueError(f"Case {case_id} not found")

        for name, value in fields.items():
            if name == "corrective_plan_requirement":
                value = enum_to_value(value)
            setattr(case_db, name, value)
        case_db.updated_at = datetime.utcnow()
        case_db.updated_by = actor_id

        try:
            self.db.commit()
            self.db.refresh(case_db)
            logger.debug(f"Updated case {case_id}: {', '.join(sorted(fields))}")
            return case_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update case {case_id}: {type(e).__name__}: {str(e)}")
            raise
