"""SQLAlchemy database models for labelflow."""

from datetime import datetime
from typing import Type, TypeVar, Union
import uuid
from sqlalchemy import Column, String, Integer, Float, Date, DateTime, JSON, ForeignKey, Index, text

from labelflow.database.database import Base
from labelflow.models.case import CaseStatus, CaseType, CorrectivePlanRequirement
from labelflow.models.document import DocumentCategory
from labelflow.models.event import EventCategory, EventType
from labelflow.models.task import TaskStatus, TaskType

T = TypeVar('T')


def enum_to_value(enum_obj: Union[str, T]) -> str:
    """Convert enum to string value (handles both enum and string).

    Args:
        enum_obj: Enum instance or string value

    Returns:
        String value of the enum, or the string itself if already a string
    """
    if hasattr(enum_obj, 'value'):
        return enum_obj.value
    return str(enum_obj)


def value_to_enum(value: str, enum_class: Type[T], default: T) -> T:
    """Convert string to enum with fallback to default.

    Args:
        value: String value to convert
        enum_class: Enum class to convert to
        default: Default enum value if conversion fails

    Returns:
        Enum instance, or default if conversion fails
    """
    if not value:
        return default
    try:
        return enum_class(value.upper())
    except (ValueError, AttributeError):
        return default


class EntityDB(Base):
    """Database model for Entity."""

    __tablename__ = "entities"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    evaluator_id = Column(String, nullable=True, index=True)
    documentary_review_ready_at = Column(DateTime, nullable=True)
    documentary_review_ready_by = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from labelflow.models.entity import Entity

        return Entity(
            id=self.id,
            name=self.name,
            evaluator_id=self.evaluator_id,
            documentary_review_ready_at=self.documentary_review_ready_at,
            documentary_review_ready_by=self.documentary_review_ready_by,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_pydantic(cls, entity):
        """Create database model from Pydantic model."""
        return cls(
            id=entity.id,
            name=entity.name,
            evaluator_id=entity.evaluator_id,
            documentary_review_ready_at=entity.documentary_review_ready_at,
            documentary_review_ready_by=entity.documentary_review_ready_by,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )


class CaseDB(Base):
    """Database model for Case."""

    __tablename__ = "cases"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_id = Column(String, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True)
    case_type = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    evaluator_id = Column(String, nullable=True, index=True)
    auditor_id = Column(String, nullable=True)
    previous_case_id = Column(String, ForeignKey("cases.id", ondelete="SET NULL"), nullable=True)
    actual_start_date = Column(Date, nullable=True)
    actual_end_date = Column(Date, nullable=True)
    global_score = Column(Float, nullable=True)
    corrective_plan_requirement = Column(String, nullable=False, default=CorrectivePlanRequirement.UNKNOWN.value)
    corrective_plan_deadline = Column(Date, nullable=True)
    label_expiration_date = Column(Date, nullable=True, index=True)
    audit_round = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_by = Column(String, nullable=True)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from labelflow.models.case import Case

        return Case(
            id=self.id,
            entity_id=self.entity_id,
            case_type=value_to_enum(self.case_type, CaseType, CaseType.INITIAL),
            # Status is stored verbatim; an unknown value is a data error, not a default.
            status=CaseStatus(self.status),
            evaluator_id=self.evaluator_id,
            auditor_id=self.auditor_id,
            previous_case_id=self.previous_case_id,
            actual_start_date=self.actual_start_date,
            actual_end_date=self.actual_end_date,
            global_score=self.global_score,
            corrective_plan_requirement=value_to_enum(
                self.corrective_plan_requirement,
                CorrectivePlanRequirement,
                CorrectivePlanRequirement.UNKNOWN,
            ),
            corrective_plan_deadline=self.corrective_plan_deadline,
            label_expiration_date=self.label_expiration_date,
            audit_round=self.audit_round or 1,
            created_at=self.created_at,
            updated_at=self.updated_at,
            updated_by=self.updated_by,
        )

    @classmethod
    def from_pydantic(cls, case):
        """Create database model from Pydantic model."""
        return cls(
            id=case.id,
            entity_id=case.entity_id,
            case_type=enum_to_value(case.case_type),
            status=enum_to_value(case.status),
            evaluator_id=case.evaluator_id,
            auditor_id=case.auditor_id,
            previous_case_id=case.previous_case_id,
            actual_start_date=case.actual_start_date,
            actual_end_date=case.actual_end_date,
            global_score=case.global_score,
            corrective_plan_requirement=enum_to_value(case.corrective_plan_requirement),
            corrective_plan_deadline=case.corrective_plan_deadline,
            label_expiration_date=case.label_expiration_date,
            audit_round=case.audit_round,
            created_at=case.created_at,
            updated_at=case.updated_at,
            updated_by=case.updated_by,
        )


class TaskDB(Base):
    """Database model for Task."""

    __tablename__ = "tasks"
    __table_args__ = (
        # At most one PENDING task per (type, entity, case). NULLs are distinct in a
        # unique index, so entity-level tasks get their own index.
        Index(
            "uq_tasks_pending_triple",
            "type",
            "entity_id",
            "case_id",
            unique=True,
            sqlite_where=text("status = 'PENDING'"),
            postgresql_where=text("status = 'PENDING'"),
        ),
        Index(
            "uq_tasks_pending_entity_level",
            "type",
            "entity_id",
            unique=True,
            sqlite_where=text("status = 'PENDING' AND case_id IS NULL"),
            postgresql_where=text("status = 'PENDING' AND case_id IS NULL"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default=TaskStatus.PENDING.value, index=True)
    entity_id = Column(String, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(String, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True, index=True)
    assigned_roles = Column(JSON, nullable=False, default=list)
    duration_days = Column(Integer, nullable=False)
    deadline = Column(DateTime, nullable=False, index=True)
    # "metadata" is reserved on declarative classes
    details = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    created_by = Column(String, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String, nullable=True)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from labelflow.models.task import Task

        return Task(
            id=self.id,
            type=TaskType(self.type),
            status=value_to_enum(self.status, TaskStatus, TaskStatus.PENDING),
            entity_id=self.entity_id,
            case_id=self.case_id,
            assigned_roles=self.assigned_roles or [],
            duration_days=self.duration_days,
            deadline=self.deadline,
            metadata=self.details or {},
            created_at=self.created_at,
            updated_at=self.updated_at,
            created_by=self.created_by,
            completed_at=self.completed_at,
            completed_by=self.completed_by,
        )

    @classmethod
    def from_pydantic(cls, task):
        """Create database model from Pydantic model."""
        return cls(
            id=task.id,
            type=enum_to_value(task.type),
            status=enum_to_value(task.status),
            entity_id=task.entity_id,
            case_id=task.case_id,
            assigned_roles=[enum_to_value(r) for r in task.assigned_roles],
            duration_days=task.duration_days,
            deadline=task.deadline,
            details=task.metadata,
            created_at=task.created_at,
            updated_at=task.updated_at,
            created_by=task.created_by,
            completed_at=task.completed_at,
            completed_by=task.completed_by,
        )


class EventDB(Base):
    """Database model for Event (append-only)."""

    __tablename__ = "events"
    __table_args__ = (
        Index("ix_events_type_case_performed_at", "type", "case_id", "performed_at"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    type = Column(String, nullable=False)
    category = Column(String, nullable=False)
    case_id = Column(String, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True, index=True)
    entity_id = Column(String, ForeignKey("entities.id", ondelete="CASCADE"), nullable=True, index=True)
    contract_id = Column(String, nullable=True, index=True)
    performed_by = Column(String, nullable=False)
    performed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    audit_round = Column(Integer, nullable=True)
    details = Column("metadata", JSON, nullable=False, default=dict)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from labelflow.models.event import Event

        return Event(
            id=self.id,
            type=EventType(self.type),
            category=value_to_enum(self.category, EventCategory, EventCategory.SYSTEM),
            case_id=self.case_id,
            entity_id=self.entity_id,
            contract_id=self.contract_id,
            performed_by=self.performed_by,
            performed_at=self.performed_at,
            audit_round=self.audit_round,
            metadata=self.details or {},
        )

    @classmethod
    def from_pydantic(cls, event):
        """Create database model from Pydantic model."""
        return cls(
            id=event.id,
            type=enum_to_value(event.type),
            category=enum_to_value(event.category),
            case_id=event.case_id,
            entity_id=event.entity_id,
            contract_id=event.contract_id,
            performed_by=event.performed_by,
            performed_at=event.performed_at,
            audit_round=event.audit_round,
            details=event.metadata,
        )


class DocumentDB(Base):
    """Database model for Document references."""

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_case_category", "case_id", "category"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    category = Column(String, nullable=False)
    entity_id = Column(String, ForeignKey("entities.id", ondelete="CASCADE"), nullable=False, index=True)
    case_id = Column(String, ForeignKey("cases.id", ondelete="CASCADE"), nullable=True)
    storage_key = Column(String, nullable=True)
    file_name = Column(String, nullable=True)
    uploaded_by = Column(String, nullable=True)
    audit_round = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_pydantic(self):
        """Convert database model to Pydantic model."""
        from labelflow.models.document import Document

        return Document(
            id=self.id,
            category=value_to_enum(self.category, DocumentCategory, DocumentCategory.OTHER),
            entity_id=self.entity_id,
            case_id=self.case_id,
            storage_key=self.storage_key,
            file_name=self.file_name,
            uploaded_by=self.uploaded_by,
            audit_round=self.audit_round or 1,
            created_at=self.created_at,
        )

    @classmethod
    def from_pydantic(cls, document):
        """Create database model from Pydantic model."""
        return cls(
            id=document.id,
            category=enum_to_value(document.category),
            entity_id=document.entity_id,
            case_id=document.case_id,
            storage_key=document.storage_key,
            file_name=document.file_name,
            uploaded_by=document.uploaded_by,
            audit_round=document.audit_round,
            created_at=document.created_at,
        )
