"""Repository for document references."""

import logging
from typing import List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from labelflow.models.document import Document, DocumentCategory
from labelflow.database.models import DocumentDB, enum_to_value

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Repository for Document database operations."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, document: Document) -> Document:
        """Create a new document reference."""
        try:
            document_db = DocumentDB.from_pydantic(document)
            self.db.add(document_db)
            self.db.commit()
            self.db.refresh(document_db)
            logger.debug(f"Created document {document.id} ({document.category}) for case {document.case_id}")
            return document_db.to_pydantic()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create document {document.id}: {type(e).__name__}: {str(e)}")
            raise

    def exists_finalized(
        self,
        category: DocumentCategory,
        case_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        audit_round: Optional[int] = None,
    ) -> bool:
        """Whether a document of `category` with a real storage pointer exists.

        Placeholders (null storage_key) do not count. With `audit_round`, only
        documents uploaded during that round do.
        """
        if case_id is None and entity_id is None:
            raise ValueError("exists_finalized requires case_id or entity_id")
        query = self.db.query(DocumentDB.id).filter(
            DocumentDB.category == enum_to_value(category),
            DocumentDB.storage_key.isnot(None),
            DocumentDB.storage_key != "",
        )
        if case_id is not None:
            query = query.filter(DocumentDB.case_id == case_id)
        if entity_id is not None:
            query = query.filter(DocumentDB.entity_id == entity_id)
        if audit_round is not None:
            query = query.filter(DocumentDB.audit_round == audit_round)
        return query.first() is not None

    def list_for_case(self, case_id: str, category: Optional[DocumentCategory] = None) -> List[Document]:
        """Documents of a case, newest first."""
        query = self.db.query(DocumentDB).filter(DocumentDB.case_id == case_id)
        if category is not None:
            query = query.filter(DocumentDB.category == enum_to_value(category))
        return [d.to_pydantic() for d in query.order_by(desc(DocumentDB.created_at)).all()]
