"""Task domain schemas - Pydantic models for request bodies

Required fields are checked in the service so missing values produce the
API's 400 messages rather than pydantic's 422.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.serializers import to_naive_utc


class TaskCreate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    taskType: Optional[str] = None
    priority: Optional[str] = None
    dueDate: Optional[datetime] = None
    assignedTo: Optional[int] = None
    clientId: Optional[int] = None
    integrationType: Optional[str] = None
    templateId: Optional[int] = None
    templateName: Optional[str] = None
    documentType: Optional[str] = None
    actionCategory: Optional[str] = None

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, v):
        return to_naive_utc(v)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    priority: Optional[str] = None
    dueDate: Optional[datetime] = None
    assignedTo: Optional[int] = None
    notes: Optional[str] = None

    @field_validator("dueDate")
    @classmethod
    def normalize_due_date(cls, v):
        return to_naive_utc(v)


class TaskStatusUpdate(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None


class TaskDocumentUpload(BaseModel):
    """Metadata of a file already stored by the upload service"""

    fileName: Optional[str] = Field(None, max_length=255)
    fileUrl: Optional[str] = Field(None, max_length=1000)
    fileSize: Optional[int] = Field(None, ge=0)
    mimeType: Optional[str] = None


class TaskApprove(BaseModel):
    reviewNotes: Optional[str] = None


class TaskReject(BaseModel):
    rejectionReason: Optional[str] = None


class TaskHelpRequestCreate(BaseModel):
    message: Optional[str] = None
