"""
Billing Models
Stripe-backed subscription plans, user subscriptions, billing details and payment history
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    price_per_month = Column(Float, nullable=False, default=0)
    price_per_year = Column(Float, nullable=True)
    billing_period = Column(String(10), nullable=False, default="both")  # monthly, yearly, both

    stripe_product_id = Column(String(255), nullable=True)
    stripe_price_id_monthly = Column(String(255), nullable=True)
    stripe_price_id_yearly = Column(String(255), nullable=True)

    features = Column(JSON, nullable=True)
    trial_days = Column(Integer, default=0)
    is_active = Column(Boolean, default=True)
    is_popular = Column(Boolean, default=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class UserSubscription(Base):
    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    subscription_plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=True)

    stripe_customer_id = Column(String(255), nullable=False)
    stripe_subscription_id = Column(String(255), unique=True, index=True, nullable=True)
    stripe_price_id = Column(String(255), nullable=True)

    # active, cancelled, past_due, unpaid, incomplete, incomplete_expired, trialing, paused
    status = Column(String(30), nullable=False, default="incomplete")
    billing_period = Column(String(10), nullable=False, default="monthly")
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False)
    cancelled_at = Column(DateTime, nullable=True)
    trial_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    plan = relationship("SubscriptionPlan")


class BillingInfo(Base):
    __tablename__ = "billing_info"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    stripe_customer_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    address = Column(JSON, nullable=True)  # line1, line2, city, state, country, postal_code
    company_name = Column(String(255), nullable=True)
    tax_id = Column(String(100), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("user_subscriptions.id"), nullable=True)

    stripe_invoice_id = Column(String(255), unique=True, index=True, nullable=True)
    stripe_payment_intent_id = Column(String(255), nullable=True)

    amount = Column(Float, nullable=False)  # major currency units
    currency = Column(String(10), nullable=False, default="usd")
    # succeeded, failed, pending, refunded, cancelled, processing
    status = Column(String(20), nullable=False)
    type = Column(String(20), nullable=False, default="subscription")
    invoice_url = Column(String(1000), nullable=True)
    invoice_pdf = Column(String(1000), nullable=True)
    description = Column(Text, nullable=True)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
