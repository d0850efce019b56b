"""Document repository"""

from typing import Optional

from sqlalchemy.orm import Query, Session

from ...models_documents import Document


class DocumentRepository:
    """Repository for document database operations"""

    @staticmethod
    def create(db: Session, **fields) -> Document:
        document = Document(**fields)
        db.add(document)
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def save(db: Session, document: Document) -> Document:
        db.commit()
        db.refresh(document)
        return document

    @staticmethod
    def for_owner(
        db: Session,
        owner_id: int,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Query:
        """Live (not deleted) documents filed under the owner, newest first"""
        query = db.query(Document).filter(Document.user_id == owner_id, Document.status != "deleted")
        if category:
            query = query.filter(Document.category == category)
        if status:
            query = query.filter(Document.status == status)
        if search:
            query = query.filter(Document.file_name.ilike(f"%{search}%"))
        return query.order_by(Document.created_at.desc(), Document.id.desc())
