"""Task template schemas"""

from typing import Optional

from pydantic import BaseModel, Field

TEMPLATE_VISIBILITIES = ("SYSTEM", "ORGANIZATION", "PRIVATE")
TEMPLATE_AUDIENCES = ("ADMIN", "STAFF")


class TaskTemplateCreate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    category: Optional[str] = None
    taskType: Optional[str] = None
    documentType: Optional[str] = None
    integrationType: Optional[str] = None
    actionCategory: Optional[str] = None
    defaultPriority: Optional[str] = None
    defaultDueInDays: Optional[int] = Field(None, ge=1, le=365)
    visibility: Optional[str] = None
    availableFor: Optional[list[str]] = None


class TaskTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    documentType: Optional[str] = None
    integrationType: Optional[str] = None
    actionCategory: Optional[str] = None
    defaultPriority: Optional[str] = None
    defaultDueInDays: Optional[int] = Field(None, ge=1, le=365)
    visibility: Optional[str] = None
    availableFor: Optional[list[str]] = None
    active: Optional[bool] = None
