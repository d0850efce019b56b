"""Zapier / Ignition schemas"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


class ZapierLeadRequest(BaseModel):
    questionnaireId: Optional[int] = None
    email: Optional[str] = None
    name: Optional[str] = None
    answers: Optional[dict[str, Any]] = None
    recommendedPlan: Optional[str] = None


class ZapierStatusCallback(BaseModel):
    request_id: Optional[str] = Field(None, validation_alias=AliasChoices("request_id", "requestId"))
    status: Optional[str] = None
    error: Optional[str] = None
    errorStep: Optional[str] = None
    client_URL: Optional[str] = None
    run_id: Optional[str] = None


class IgnitionProposalStatus(BaseModel):
    email: Optional[str] = None
    proposal_status: Optional[str] = None
    payment_status: Optional[str] = None
    proposal_id: Optional[str] = None
    paid_at: Optional[str] = None
