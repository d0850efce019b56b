"""Document vault router"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...models_documents import Document
from ...permissions import Resource, authorize
from ...responses import envelope
from .schemas import DocumentUpdate, DocumentUpload, DocumentUploadMany
from .service import DocumentService

router = APIRouter(prefix="/documents", tags=["Documents"])


def get_document_service(db: Session = Depends(get_db)) -> DocumentService:
    """Dependency injection for DocumentService"""
    return DocumentService(db)


@router.get("/categories")
async def get_categories(_: User = Depends(get_current_user)):
    return envelope(DocumentService.list_categories(), "Categories retrieved successfully")


@router.post("/upload", status_code=201, dependencies=[Depends(authorize(Resource.DOCUMENT, "upload"))])
async def upload_document(
    data: DocumentUpload,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Record an uploaded file; admins and assigned staff may pass clientId"""
    return envelope(service.upload_document(data, current_user), "Document uploaded successfully")


@router.post("/upload-multiple", status_code=201, dependencies=[Depends(authorize(Resource.DOCUMENT, "upload"))])
async def upload_documents(
    data: DocumentUploadMany,
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    result, message = service.upload_documents(data, current_user)
    return envelope(result, message)


@router.get("", dependencies=[Depends(authorize(Resource.DOCUMENT, "list"))])
async def get_documents(
    clientId: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """The caller's documents, or a client's for admins and assigned staff"""
    return envelope(
        service.list_documents(current_user, clientId, category, status, search, page, limit),
        "Documents retrieved successfully",
    )


@router.get("/{document_id}")
async def get_document(
    document_id: int,
    document: Document = Depends(authorize(Resource.DOCUMENT, "view")),
    service: DocumentService = Depends(get_document_service),
):
    return envelope(service.get_document(document), "Document retrieved successfully")


@router.get("/{document_id}/download")
async def download_document(
    document_id: int,
    document: Document = Depends(authorize(Resource.DOCUMENT, "download")),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    """Counts the access and returns where the file can be fetched"""
    return envelope(service.download_document(document, current_user))


@router.patch("/{document_id}")
async def update_document(
    document_id: int,
    data: DocumentUpdate,
    document: Document = Depends(authorize(Resource.DOCUMENT, "update")),
    service: DocumentService = Depends(get_document_service),
):
    return envelope(service.update_document(document, data), "Document updated successfully")


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    document: Document = Depends(authorize(Resource.DOCUMENT, "delete")),
    current_user: User = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service),
):
    service.delete_document(document, current_user)
    return envelope(None, "Document deleted successfully")
