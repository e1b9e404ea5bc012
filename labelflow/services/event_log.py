"""Event log: the append-only record queried for "has X happened" checks."""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel
from sqlalchemy.orm import Session

from labelflow.database.case_repository import CaseRepository
from labelflow.database.event_repository import EventRepository
from labelflow.models.event import EVENT_TYPES, Event, EventType

logger = logging.getLogger(__name__)

EventTypes = Union[EventType, str, Iterable[Union[EventType, str]]]


class EventValidationError(ValueError):
    """Raised when an event is missing a reference its type requires."""


def _as_type_list(types: EventTypes) -> List[EventType]:
    if isinstance(types, (EventType, str)):
        return [EventType(types)]
    return [EventType(t) for t in types]


class EventLog:
    """Records and queries domain events."""

    def __init__(self, db: Session, clock: Optional[Callable[[], datetime]] = None):
        self.repository = EventRepository(db)
        self.cases = CaseRepository(db)
        self.clock = clock or datetime.utcnow

    def record_event(
        self,
        event_type: Union[EventType, str],
        actor_id: str,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        metadata: Optional[Union[Dict[str, Any], BaseModel]] = None,
    ) -> Event:
        """Append an event after checking its required references.

        Raises:
            EventValidationError: If the type is unknown or a required reference is missing
        """
        try:
            event_type = EventType(event_type)
        except ValueError:
            raise EventValidationError(f"Unknown event type: {event_type}")

        definition = EVENT_TYPES[event_type]
        refs = {"case_id": case_id, "entity_id": entity_id, "contract_id": contract_id}
        missing = sorted(name for name in definition.required_refs if not refs[name])
        if missing:
            raise EventValidationError(
                f"Event {event_type.value} requires {', '.join(missing)}"
            )
        if not actor_id:
            raise EventValidationError(f"Event {event_type.value} requires an actor")

        if isinstance(metadata, BaseModel):
            metadata = metadata.model_dump(mode="json")

        audit_round = None
        if case_id:
            case = self.cases.get(case_id)
            audit_round = case.audit_round if case else None

        event = Event(
            id=str(uuid.uuid4()),
            type=event_type,
            category=definition.category,
            case_id=case_id,
            entity_id=entity_id,
            contract_id=contract_id,
            performed_by=actor_id,
            performed_at=self.clock(),
            audit_round=audit_round,
            metadata=metadata or {},
        )
        return self.repository.append(event)

    def get_latest_event(
        self,
        event_types: EventTypes,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ) -> Optional[Event]:
        """Latest matching event by performed_at, or None."""
        return self.repository.latest(_as_type_list(event_types), case_id, entity_id, contract_id, audit_round)

    def has_event_occurred(
        self,
        event_types: EventTypes,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        contract_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ) -> bool:
        """Whether any event of the given type(s) exists for the references (OR over types).

        `audit_round` narrows case events to those recorded during that round.
        """
        return self.repository.exists(_as_type_list(event_types), case_id, entity_id, contract_id, audit_round)

    def count_events(self, event_types: EventTypes, case_id: str, audit_round: Optional[int] = None) -> int:
        return self.repository.count(_as_type_list(event_types), case_id=case_id, audit_round=audit_round)

    def get_event_timestamp(
        self,
        event_types: EventTypes,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Optional[datetime]:
        event = self.get_latest_event(event_types, case_id=case_id, entity_id=entity_id)
        return event.performed_at if event else None

    def get_event_performer(
        self,
        event_types: EventTypes,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
    ) -> Optional[str]:
        event = self.get_latest_event(event_types, case_id=case_id, entity_id=entity_id)
        return event.performed_by if event else None

    def get_case_events(self, case_id: str, event_types: Optional[EventTypes] = None) -> List[Event]:
        """Events of a case, newest first."""
        types = _as_type_list(event_types) if event_types is not None else None
        return self.repository.list(types=types, case_id=case_id)

    def get_entity_timeline(self, entity_id: str) -> List[Event]:
        """Every event referencing an entity, oldest first."""
        return self.repository.list(entity_id=entity_id, newest_first=False)
