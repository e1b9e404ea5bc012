"""Repository for the append-only event table."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from labelflow.models.event import Event
from labelflow.database.models import EventDB, enum_to_value

logger = logging.getLogger(__name__)


class EventRepository:
    """Repository for Event database operations.

    There is deliberately no update or delete: events are immutable.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(self, event: Event) -> Event:
        """Insert a new event."""
        try:
            event_db = EventDB.from_pydantic(event)
            self.db.add(event_db)
            self.db.commit()
            self.db.refresh(event_db)
            logger.debug(f"Recorded event {event.type} (case={event.case_id}, entity={event.entity_id})")
            return event_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to record event {event.type}: {type(e).__name__}: {str(e)}")
            raise

    def _filtered(
        self,
        types: Optional[Iterable] = None,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ):
        query = self.db.query(EventDB)
        if types is not None:
            query = query.filter(EventDB.type.in_([enum_to_value(t) for t in types]))
        if case_id is not None:
            query = query.filter(EventDB.case_id == case_id)
        if entity_id is not None:
            query = query.filter(EventDB.entity_id == entity_id)
        if contract_id is not None:
            query = query.filter(EventDB.contract_id == contract_id)
        if audit_round is not None:
            query = query.filter(EventDB.audit_round == audit_round)
        return query

    def latest(
        self,
        types: Iterable,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ) -> Optional[Event]:
        """Most recent event of any of `types` matching the supplied references."""
        event_db = self._filtered(list(types), case_id, entity_id, contract_id, audit_round).order_by(
            desc(EventDB.performed_at), desc(EventDB.id)
        ).first()
        return event_db.to_pydantic() if event_db else None

    def exists(
        self,
        types: Iterable,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ) -> bool:
        return self._filtered(list(types), case_id, entity_id, contract_id, audit_round).first() is not None

    def count(
        self,
        types: Iterable,
        case_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ) -> int:
        return self._filtered(list(types), case_id=case_id, audit_round=audit_round).count()

    def list(
        self,
        types: Optional[Iterable] = None,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        newest_first: bool = True,
    ) -> List[Event]:
        """List events matching the supplied filters."""
        order = desc(EventDB.performed_at) if newest_first else EventDB.performed_at
        events_db = self._filtered(
            list(types) if types is not None else None, case_id, entity_id, contract_id
        ).order_by(order).all()
        return [event_db.to_pydantic() for event_db in events_db]
