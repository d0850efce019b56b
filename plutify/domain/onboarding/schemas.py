from typing import Any, Optional

from pydantic import BaseModel


class OnboardingData(BaseModel):
    businessNeeds: Optional[str] = None
    previousBookkeeper: Optional[str] = None
    businessDetails: Optional[dict[str, Any]] = None
    industry: Optional[str] = None


class SaveProgressRequest(BaseModel):
    currentStep: Optional[int] = None
    data: Optional[OnboardingData] = None


class CompleteRequest(BaseModel):
    data: Optional[OnboardingData] = None


class ValidateStepRequest(BaseModel):
    data: Optional[OnboardingData] = None
