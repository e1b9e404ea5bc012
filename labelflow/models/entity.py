"""Entity data model for labelflow."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class Entity(BaseModel):
    """Audited entity (the organization seeking the label)."""

    id: str = Field(..., description="Unique entity identifier")
    name: str = Field(..., description="Entity display name")
    evaluator_id: Optional[str] = Field(
        None, description="Evaluation organization chosen by the entity (inherited by its cases)"
    )
    documentary_review_ready_at: Optional[datetime] = Field(
        None, description="When the entity declared its documents ready for review"
    )
    documentary_review_ready_by: Optional[str] = Field(None, description="Actor who declared readiness")
    created_at: datetime = Field(..., description="Entity creation timestamp")
    updated_at: datetime = Field(..., description="Entity last update timestamp")
