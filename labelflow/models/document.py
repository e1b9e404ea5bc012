"""Document reference model for labelflow.

Only metadata is tracked here; document bytes live in external storage and are
addressed by `storage_key`.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class DocumentCategory(str, Enum):
    """Document category enumeration."""
    PLAN = "PLAN"
    REPORT = "REPORT"
    CORRECTIVE_PLAN = "CORRECTIVE_PLAN"
    OPINION = "OPINION"
    ATTESTATION = "ATTESTATION"
    OTHER = "OTHER"


class Document(BaseModel):
    """A document attached to a case or an entity."""

    id: str = Field(..., description="Unique document identifier")
    category: DocumentCategory = Field(..., description="Document category")
    entity_id: str = Field(..., description="Entity the document belongs to")
    case_id: Optional[str] = Field(None, description="Case the document belongs to")
    storage_key: Optional[str] = Field(
        None, description="Pointer into document storage (null while the upload is a placeholder)"
    )
    file_name: Optional[str] = Field(None, description="Original file name")
    uploaded_by: Optional[str] = Field(None, description="Actor who uploaded the document")
    audit_round: int = Field(1, ge=1, description="Audit round of the case when uploaded")
    created_at: datetime = Field(..., description="Creation timestamp")

    @property
    def is_finalized(self) -> bool:
        return bool(self.storage_key)

    class Config:
        """Pydantic configuration."""
        use_enum_values = True
