"""Document vault schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class DocumentFile(BaseModel):
    """Metadata of a file already stored by the upload service"""

    fileName: Optional[str] = Field(None, max_length=255)
    fileUrl: Optional[str] = Field(None, max_length=1000)
    fileSize: Optional[int] = Field(None, ge=0)
    mimeType: Optional[str] = Field(None, max_length=100)


class DocumentUpload(DocumentFile):
    category: Optional[str] = None
    taxYear: Optional[int] = Field(None, ge=1900, le=2100)
    description: Optional[str] = Field(None, max_length=500)
    # Admin/staff filing on a client's behalf
    clientId: Optional[int] = None


class DocumentUploadMany(BaseModel):
    files: list[DocumentFile] = Field(default_factory=list, max_length=10)
    category: Optional[str] = None
    taxYear: Optional[int] = Field(None, ge=1900, le=2100)
    clientId: Optional[int] = None


class DocumentUpdate(BaseModel):
    category: Optional[str] = None
    taxYear: Optional[int] = Field(None, ge=1900, le=2100)
    description: Optional[str] = Field(None, max_length=500)
    status: Optional[str] = None
