"""Session-bound data access shared by guards, effects and completion checks."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from labelflow.database.case_repository import CaseRepository
from labelflow.database.document_repository import DocumentRepository
from labelflow.database.entity_repository import EntityRepository
from labelflow.database.repository import TaskRepository
from labelflow.models.case import Case
from labelflow.models.entity import Entity
from labelflow.services.event_log import EventLog


@dataclass
class WorkflowContext:
    db: Session
    events: EventLog
    clock: Callable[[], datetime] = datetime.utcnow
    cases: CaseRepository = field(init=False)
    entities: EntityRepository = field(init=False)
    documents: DocumentRepository = field(init=False)
    tasks: TaskRepository = field(init=False)

    def __post_init__(self):
        self.cases = CaseRepository(self.db)
        self.entities = EntityRepository(self.db)
        self.documents = DocumentRepository(self.db)
        self.tasks = TaskRepository(self.db)

    def now(self) -> datetime:
        return self.clock()

    def today(self) -> date:
        """Current date (time of day dropped, i.e. normalized to midnight)."""
        return self.clock().date()

    def entity_for(self, case: Case) -> Optional[Entity]:
        return self.entities.get(case.entity_id)
