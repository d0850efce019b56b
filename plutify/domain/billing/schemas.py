"""Billing schemas"""

from typing import Any, Optional

from pydantic import BaseModel, Field

BILLING_PERIODS = ("monthly", "yearly")


class PlanCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    pricePerMonth: Optional[float] = Field(None, ge=0)
    pricePerYear: Optional[float] = Field(None, ge=0)
    features: Optional[list[str]] = None
    trialDays: int = Field(0, ge=0, le=365)
    isPopular: bool = False


class PlanUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    pricePerMonth: Optional[float] = Field(None, ge=0)
    pricePerYear: Optional[float] = Field(None, ge=0)
    features: Optional[list[str]] = None
    trialDays: Optional[int] = Field(None, ge=0, le=365)
    isPopular: Optional[bool] = None
    isActive: Optional[bool] = None


class SubscriptionCreate(BaseModel):
    planId: Optional[int] = None
    billingPeriod: str = Field("monthly", pattern="^(monthly|yearly)$")
    paymentMethodId: Optional[str] = None


class SubscriptionUpdate(BaseModel):
    planId: Optional[int] = None
    billingPeriod: Optional[str] = Field(None, pattern="^(monthly|yearly)$")


class SubscriptionCancel(BaseModel):
    cancelImmediately: bool = False


class BillingInfoUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[dict[str, Any]] = None
    companyName: Optional[str] = None
    taxId: Optional[str] = None


class CouponApply(BaseModel):
    couponCode: Optional[str] = None


class PaymentMethodUpdate(BaseModel):
    paymentMethodId: Optional[str] = None
