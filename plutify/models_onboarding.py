"""
Onboarding Pipeline Models
Questionnaire responses, Zapier dispatch jobs, engagement letters and the
post-signup onboarding wizard
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.sql import func

from .database import Base

QUESTIONNAIRE_STATUSES = ("pending", "proposal_sent", "signed", "onboarded")

ZAPIER_JOB_STATUSES = ("PENDING", "SUCCESS", "FAILED", "TIMEOUT")

ENGAGEMENT_LETTER_STATUSES = ("PROCESSING", "CREATED", "SENT", "CREATED_NOT_SENT", "FAILED", "SIGNED")
ENGAGEMENT_LETTER_ACTIVE_STATUSES = ("PROCESSING", "CREATED", "SENT")

_ACTIVE_LETTER_PREDICATE = text("status IN ('PROCESSING', 'CREATED', 'SENT')")
_IN_FLIGHT_JOB_PREDICATE = text("status IN ('PENDING', 'SUCCESS')")


class QuestionnaireResponse(Base):
    __tablename__ = "questionnaire_responses"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    answers = Column(JSON, nullable=False)
    recommended_plan = Column(String(20), nullable=False)  # startup, essential, enterprise
    status = Column(String(20), nullable=False, default="pending", index=True)
    # ipAddress, userAgent, source, ignitionClientId, proposalId, paymentStatus, paidAt
    meta = Column("metadata", JSON, nullable=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    # Informational expiry marker, refreshed on every submission (never auto-deleted)
    expires_at = Column(DateTime, nullable=True, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class ZapierJob(Base):
    """One outbound "create client in Ignition" dispatch and its callback state"""

    __tablename__ = "zapier_jobs"
    __table_args__ = (
        # At most one PENDING/SUCCESS job per email
        Index(
            "uq_zapier_job_email_in_flight",
            "email",
            unique=True,
            postgresql_where=_IN_FLIGHT_JOB_PREDICATE,
            sqlite_where=_IN_FLIGHT_JOB_PREDICATE,
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(64), unique=True, index=True, nullable=False)
    email = Column(String(255), index=True, nullable=True)
    questionnaire_id = Column(Integer, ForeignKey("questionnaire_responses.id"), nullable=True)
    payload = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="PENDING", index=True)
    zapier = Column(JSON, nullable=True)  # errorStep, errorMessage, runId
    ignition = Column(JSON, nullable=True)  # client_URL
    retry_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class EngagementLetter(Base):
    __tablename__ = "engagement_letters"
    __table_args__ = (
        # One active engagement letter per email
        Index(
            "uq_engagement_letter_email_active",
            "email",
            unique=True,
            postgresql_where=_ACTIVE_LETTER_PREDICATE,
            sqlite_where=_ACTIVE_LETTER_PREDICATE,
        ),
        Index("ix_engagement_letter_email_status", "email", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False)
    document_id = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, index=True)
    document_name = Column(String(255), nullable=True)
    client_name = Column(String(255), nullable=True)
    document_url = Column(String(1000), nullable=True)
    error = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Onboarding(Base):
    """Post-signup onboarding wizard progress (4 steps)"""

    __tablename__ = "onboardings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    current_step = Column(Integer, default=1, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    business_needs = Column(String(255), nullable=True)
    previous_bookkeeper = Column(String(255), nullable=True)
    # businessName, businessType, yearStarted, employeeCount, monthlyRevenue
    business_details = Column(JSON, nullable=True)
    industry = Column(String(255), nullable=True)

    meta = Column("metadata", JSON, nullable=True)  # ipAddress, userAgent, source, lastSavedAt

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
