"""
Document vault service

Clients file tax and business documents by category; admins and the staff
assigned to a client can read them. Only metadata is stored here.
"""

import logging
import math
import os
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AssignClient, User
from ...models_documents import DOCUMENT_CATEGORIES, DOCUMENT_CATEGORY_VALUES, Document
from ...permissions import can_access_owner
from ...responses import api_error
from ...roles import Role
from ..notifications.service import create_notification
from .repository import DocumentRepository
from .schemas import DocumentFile, DocumentUpdate, DocumentUpload, DocumentUploadMany

logger = logging.getLogger(__name__)

EDITABLE_STATUSES = ("active", "archived")


def document_to_dict(document: Document, detail: bool = False) -> dict:
    data = {
        "id": document.id,
        "userId": document.user_id,
        "fileName": document.file_name,
        "fileType": document.file_type,
        "mimeType": document.mime_type,
        "fileSize": document.file_size,
        "category": document.category,
        "taxYear": document.tax_year,
        "status": document.status,
        "uploadedBy": document.uploaded_by,
        "downloadUrl": f"/api/documents/{document.id}/download",
        "createdAt": document.created_at,
    }
    if detail:
        data.update(
            {
                "description": document.description,
                "fileUrl": document.file_url,
                "accessCount": document.access_count,
                "lastAccessedAt": document.last_accessed_at,
                "updatedAt": document.updated_at,
            }
        )
    return data


def _check_category(category: Optional[str]) -> str:
    if not category:
        raise api_error(400, "Document category is required")
    if category not in DOCUMENT_CATEGORY_VALUES:
        raise api_error(400, f"Invalid category. Must be one of: {', '.join(DOCUMENT_CATEGORY_VALUES)}")
    return category


def _file_type(file_name: str) -> Optional[str]:
    return os.path.splitext(file_name)[1].lower().lstrip(".") or None


class DocumentService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = DocumentRepository()

    @staticmethod
    def list_categories() -> list[dict]:
        return [
            {"value": value, "label": label, "description": description}
            for value, label, description in DOCUMENT_CATEGORIES
        ]

    def _resolve_owner(self, user: User, client_id: Optional[int]) -> User:
        """The caller by default; admins and assigned staff may act for a client"""
        if not client_id or client_id == user.id:
            return user

        client = self.db.get(User, client_id)
        if not client or client.role is not Role.CLIENT:
            raise api_error(404, "Client not found")
        if not can_access_owner(self.db, user, client.id):
            logger.warning(f"🚫 {user.email} denied documents of client {client.id}")
            raise api_error(403, "You do not have access to this client's documents")
        return client

    def _notify_upload(self, owner: User, uploader: User, count: int, category: str):
        """Tell the other side of the relationship that documents arrived"""
        if owner.id != uploader.id:
            recipients = [owner.id]
        else:
            recipients = [
                row.staff_id for row in self.db.query(AssignClient).filter(AssignClient.client_id == owner.id).all()
            ]
        label = next(label for value, label, _ in DOCUMENT_CATEGORIES if value == category)
        for recipient_id in recipients:
            create_notification(
                self.db,
                recipient_id,
                "document_uploaded",
                "New document uploaded",
                f"{uploader.full_name} uploaded {count} {label} document(s)",
                {"clientId": owner.id, "category": category},
                sender_id=uploader.id,
            )

    def _store(self, owner: User, uploader: User, file: DocumentFile, category: str, **extra) -> Document:
        return self.repo.create(
            self.db,
            user_id=owner.id,
            uploaded_by=uploader.id,
            file_name=file.fileName,
            file_url=file.fileUrl,
            file_type=_file_type(file.fileName),
            mime_type=file.mimeType,
            file_size=file.fileSize,
            category=category,
            status="active",
            **extra,
        )

    # ------------------------------------------------------------------
    # UPLOAD
    # ------------------------------------------------------------------

    def upload_document(self, data: DocumentUpload, user: User) -> dict:
        if not (data.fileName and data.fileUrl):
            raise api_error(400, "No file uploaded")
        category = _check_category(data.category)
        owner = self._resolve_owner(user, data.clientId)

        document = self._store(
            owner, user, data, category, tax_year=data.taxYear, description=data.description
        )
        logger.info(f"📄 {user.email} uploaded document {document.id} ({category}) for user {owner.id}")
        self._notify_upload(owner, user, 1, category)
        return document_to_dict(document)

    def upload_documents(self, data: DocumentUploadMany, user: User) -> tuple[dict, str]:
        """Returns (data, message); files missing a name or URL are reported, not fatal"""
        if not data.files:
            raise api_error(400, "No files uploaded")
        category = _check_category(data.category)
        owner = self._resolve_owner(user, data.clientId)

        successful, failed = [], []
        for file in data.files:
            if not (file.fileName and file.fileUrl):
                failed.append({"fileName": file.fileName, "error": "fileName and fileUrl are required"})
                continue
            document = self._store(owner, user, file, category, tax_year=data.taxYear)
            successful.append({"id": document.id, "fileName": document.file_name, "status": "success"})

        if successful:
            logger.info(f"📄 {user.email} uploaded {len(successful)} documents ({category}) for user {owner.id}")
            self._notify_upload(owner, user, len(successful), category)
        return (
            {"successful": successful, "failed": failed, "total": len(data.files)},
            f"{len(successful)} documents uploaded successfully",
        )

    # ------------------------------------------------------------------
    # READ
    # ------------------------------------------------------------------

    def list_documents(
        self,
        user: User,
        client_id: Optional[int] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> dict:
        owner = self._resolve_owner(user, client_id)
        query = self.repo.for_owner(self.db, owner.id, category, status, search)

        total = query.count()
        documents = query.offset((page - 1) * limit).limit(limit).all()
        return {
            "documents": [document_to_dict(d) for d in documents],
            "pagination": {
                "total": total,
                "pages": math.ceil(total / limit) if limit else 0,
                "currentPage": page,
                "perPage": limit,
            },
        }

    @staticmethod
    def get_document(document: Document) -> dict:
        return document_to_dict(document, detail=True)

    def download_document(self, document: Document, user: User) -> dict:
        document.access_count = (document.access_count or 0) + 1
        document.last_accessed_at = datetime.utcnow()
        document.last_accessed_by = user.id
        document = self.repo.save(self.db, document)
        return {
            "fileName": document.file_name,
            "fileUrl": document.file_url,
            "mimeType": document.mime_type,
            "fileSize": document.file_size,
        }

    # ------------------------------------------------------------------
    # WRITE
    # ------------------------------------------------------------------

    def update_document(self, document: Document, data: DocumentUpdate) -> dict:
        if data.category is not None:
            document.category = _check_category(data.category)
        if data.taxYear is not None:
            document.tax_year = data.taxYear
        if data.description is not None:
            document.description = data.description
        if data.status is not None:
            if data.status not in EDITABLE_STATUSES:
                raise api_error(400, f"Invalid status. Must be one of: {', '.join(EDITABLE_STATUSES)}")
            document.status = data.status
        return document_to_dict(self.repo.save(self.db, document), detail=True)

    def delete_document(self, document: Document, user: User) -> None:
        """Soft delete; the stored file is left in place"""
        document.status = "deleted"
        document.deleted_at = datetime.utcnow()
        document.deleted_by = user.id
        self.repo.save(self.db, document)
        logger.info(f"🗑️ Document {document.id} deleted by {user.email}")
