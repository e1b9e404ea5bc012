"""Repository for Entity database operations."""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from labelflow.models.entity import Entity
from labelflow.database.models import EntityDB

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({
    "name",
    "evaluator_id",
    "documentary_review_ready_at",
    "documentary_review_ready_by",
})


class EntityRepository:
    """Repository for Entity database operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, entity: Entity) -> Entity:
        """Create a new entity."""
        try:
            entity_db = EntityDB.from_pydantic(entity)
            self.db.add(entity_db)
            self.db.commit()
            self.db.refresh(entity_db)
            logger.debug(f"Created entity {entity.id}: {entity.name[:50]}")
            return entity_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create entity {entity.id}: {type(e).__name__}: {str(e)}")
            raise

    def get(self, entity_id: str) -> Optional[Entity]:
        """Get entity by ID."""
        entity_db = self.db.query(EntityDB).filter(EntityDB.id == entity_id).first()
        return entity_db.to_pydantic() if entity_db else None

    def update_fields(self, entity_id: str, **fields: Any) -> Entity:
        """Update editable entity fields."""
        forbidden = set(fields) - EDITABLE_FIELDS
        if forbidden:
            raise ValueError(f"Fields not editable on an entity: {', '.join(sorted(forbidden))}")

        entity_db = self.db.query(EntityDB).filter(EntityDB.id == entity_id).first()
        if not entity_db:
            raise ValueError(f"Entity {entity_id} not found")

        for name, value in fields.items():
            setattr(entity_db, name, value)
        entity_db.updated_at = datetime.utcnow()

        try:
            self.db.commit()
            self.db.refresh(entity_db)
            return entity_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to update entity {entity_id}: {type(e).__name__}: {str(e)}")
            raise
