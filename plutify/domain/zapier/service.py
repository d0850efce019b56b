"""
Zapier service - questionnaire to Ignition pipeline

Outbound: POST the formatted questionnaire to the Zapier catch hook and track it
as a ZapierJob. Inbound: status callbacks from the zap and proposal/payment
updates from Ignition, which end in the client's account being created.
"""

import logging
import secrets
import uuid
from typing import Optional

import httpx
from fastapi import BackgroundTasks
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...auth import hash_password
from ...background import enqueue_email
from ...config import IS_DEVELOPMENT, ZAPIER_TIMEOUT_SECONDS, ZAPIER_USER_AGENT, ZAPIER_WEBHOOK_URL
from ...models import User
from ...models_onboarding import QUESTIONNAIRE_STATUSES, ZAPIER_JOB_STATUSES, QuestionnaireResponse, ZapierJob
from ...responses import api_error
from ...roles import Role
from ...shared.validators import normalize_email, split_full_name
from ..questionnaire.repository import QuestionnaireRepository
from ..users.repository import UserRepository
from .payload import build_test_payload, format_data_for_zapier
from .repository import ZapierJobRepository
from .schemas import IgnitionProposalStatus, ZapierLeadRequest, ZapierStatusCallback

logger = logging.getLogger(__name__)

RETRYABLE_JOB_STATUSES = ("FAILED", "TIMEOUT")
PAID_STATUSES = ("paid", "succeeded", "completed")
PROPOSAL_STATUS_MAP = {
    "sent": "proposal_sent",
    "accepted": "signed",
    "signed": "signed",
}


async def post_to_zapier(url: str, payload: dict) -> dict:
    """POST to the catch hook; failures are returned, never raised"""
    try:
        async with httpx.AsyncClient(timeout=ZAPIER_TIMEOUT_SECONDS) as client:
            response = await client.post(
                url,
                json=payload,
                headers={"Content-Type": "application/json", "User-Agent": ZAPIER_USER_AGENT},
            )
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"❌ Zapier webhook returned {e.response.status_code}: {e.response.text[:200]}")
        return {"success": False, "error": str(e), "status": e.response.status_code, "data": None}
    except httpx.HTTPError as e:
        logger.error(f"❌ Zapier webhook error: {e}")
        return {"success": False, "error": str(e), "status": 500, "data": None}

    try:
        data = response.json()
    except ValueError:
        data = response.text or None
    logger.info(f"✅ Zapier webhook called successfully ({response.status_code})")
    return {"success": True, "status": response.status_code, "data": data}


def job_to_dict(job: ZapierJob) -> dict:
    return {
        "id": job.id,
        "requestId": job.request_id,
        "email": job.email,
        "questionnaireId": job.questionnaire_id,
        "status": job.status,
        "zapier": job.zapier,
        "ignition": job.ignition,
        "retryCount": job.retry_count,
        "createdAt": job.created_at,
        "updatedAt": job.updated_at,
    }


def _advance_status(current: str, new: str) -> str:
    """Questionnaire status only moves forward along QUESTIONNAIRE_STATUSES"""
    if QUESTIONNAIRE_STATUSES.index(new) > QUESTIONNAIRE_STATUSES.index(current):
        return new
    return current


class ZapierService:
    def __init__(self, db: Session):
        self.db = db
        self.jobs = ZapierJobRepository()
        self.questionnaires = QuestionnaireRepository()
        self.users = UserRepository()

    # ========================================================================
    # OUTBOUND
    # ========================================================================

    def _resolve_lead(self, data: ZapierLeadRequest) -> tuple[dict, Optional[QuestionnaireResponse]]:
        if data.questionnaireId is not None:
            questionnaire = self.questionnaires.get_by_id(self.db, data.questionnaireId)
            if not questionnaire:
                raise api_error(404, "Questionnaire response not found", "NOT_FOUND")
            lead = {
                "email": questionnaire.email,
                "name": questionnaire.name,
                "answers": questionnaire.answers,
                "recommended_plan": questionnaire.recommended_plan,
            }
            return lead, questionnaire

        if data.email and data.name and data.answers and data.recommendedPlan:
            lead = {
                "email": normalize_email(data.email),
                "name": data.name,
                "answers": data.answers,
                "recommended_plan": data.recommendedPlan,
            }
            return lead, None

        raise api_error(
            400,
            "Either questionnaireId or (email, name, answers, recommendedPlan) are required",
            "MISSING_REQUIRED_FIELDS",
        )

    async def create_client_in_ignition(self, data: ZapierLeadRequest) -> tuple[dict, str]:
        """Returns (data, message); at most one PENDING/SUCCESS job per email"""
        if data.email and self.jobs.in_flight_for_email(self.db, normalize_email(data.email)):
            raise api_error(409, "Request already exists for this email.")

        lead, questionnaire = self._resolve_lead(data)
        if self.jobs.in_flight_for_email(self.db, lead["email"]):
            raise api_error(409, "Request already exists for this email.")

        formatted = format_data_for_zapier(**lead)

        if not ZAPIER_WEBHOOK_URL:
            logger.warning("⚠️ ZAPIER_WEBHOOK_URL not configured. Skipping Zapier webhook call.")
            if IS_DEVELOPMENT:
                return (
                    {"zapierCalled": False, "reason": "ZAPIER_WEBHOOK_URL not configured", "formattedData": formatted},
                    "Questionnaire processed (Zapier webhook not configured)",
                )
            raise api_error(500, "Zapier webhook URL is not configured", "CONFIGURATION_ERROR")

        request_id = str(uuid.uuid4())
        payload = {**formatted, "requestId": request_id, "status": "PENDING"}

        # The job row exists before dispatch so the status callback can always find it
        try:
            job = self.jobs.create(
                self.db,
                ZapierJob(
                    request_id=request_id,
                    email=lead["email"],
                    questionnaire_id=questionnaire.id if questionnaire else None,
                    payload=payload,
                    status="PENDING",
                ),
            )
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(409, "Request already exists for this email.") from e

        zapier_response = await post_to_zapier(ZAPIER_WEBHOOK_URL, payload)

        # A failed first dispatch frees the email and makes the job retryable
        if not zapier_response["success"]:
            job.status = "FAILED"
            job.zapier = {**(job.zapier or {}), "errorMessage": zapier_response.get("error")}
            self.jobs.save(self.db, job)

        if questionnaire is not None:
            ignition_client_id = None
            if zapier_response["success"] and isinstance(zapier_response.get("data"), dict):
                ignition_client_id = zapier_response["data"].get("id")
            questionnaire.status = "proposal_sent" if zapier_response["success"] else "pending"
            questionnaire.meta = {**(questionnaire.meta or {}), "ignitionClientId": ignition_client_id}
            self.questionnaires.save(self.db, questionnaire)

        logger.info(f"📤 Lead for {lead['email']} sent to Zapier (request {request_id})")
        return (
            {"zapierCalled": True, "zapierResponse": zapier_response, "formattedData": payload},
            "Client creation request sent to Ignition via Zapier",
        )

    async def send_test_webhook(self) -> dict:
        if not ZAPIER_WEBHOOK_URL:
            raise api_error(400, "ZAPIER_WEBHOOK_URL is not configured", "CONFIGURATION_ERROR")
        payload = build_test_payload()
        zapier_response = await post_to_zapier(ZAPIER_WEBHOOK_URL, payload)
        if not zapier_response["success"]:
            raise api_error(502, "Test webhook failed", "UPSTREAM_ERROR", details=zapier_response.get("error"))
        return {"status": zapier_response["status"], "response": zapier_response["data"], "sentData": payload}

    # ========================================================================
    # JOBS
    # ========================================================================

    def list_jobs(self, status: Optional[str] = None, email: Optional[str] = None) -> list[dict]:
        return [job_to_dict(job) for job in self.jobs.list_jobs(self.db, status, normalize_email(email))]

    def prepare_retry(self, request_id: str) -> dict:
        """Mark a FAILED/TIMEOUT job as pending again; the caller queues the re-dispatch"""
        job = self.jobs.get_by_request_id(self.db, request_id)
        if not job:
            raise api_error(404, "Zapier job not found")
        if job.status not in RETRYABLE_JOB_STATUSES:
            raise api_error(400, f"Only FAILED or TIMEOUT jobs can be retried (current: {job.status})")

        job.retry_count = (job.retry_count or 0) + 1
        job.status = "PENDING"
        return job_to_dict(self._save_in_flight(job))

    def _save_in_flight(self, job: ZapierJob) -> ZapierJob:
        """Save a job moving to PENDING/SUCCESS; another in-flight job for the email is a 409"""
        try:
            return self.jobs.save(self.db, job)
        except IntegrityError as e:
            self.db.rollback()
            raise api_error(409, "Request already exists for this email.") from e

    async def redispatch_job(self, request_id: str) -> dict:
        """Background job body: re-send the stored payload; raises so the runner retries"""
        job = self.jobs.get_by_request_id(self.db, request_id)
        if not job:
            logger.error(f"❌ Zapier job {request_id} disappeared before re-dispatch")
            return {"dispatched": False, "error": "job not found"}
        if not ZAPIER_WEBHOOK_URL:
            raise RuntimeError("ZAPIER_WEBHOOK_URL is not configured")

        zapier_response = await post_to_zapier(ZAPIER_WEBHOOK_URL, job.payload)
        if not zapier_response["success"]:
            job.status = "FAILED"
            job.zapier = {**(job.zapier or {}), "errorMessage": zapier_response.get("error")}
            self.jobs.save(self.db, job)
            raise RuntimeError(f"Zapier re-dispatch failed for {request_id}: {zapier_response.get('error')}")

        # An earlier try of this job may have marked it FAILED
        if job.status == "FAILED":
            job.status = "PENDING"
            self.jobs.save(self.db, job)

        return {"dispatched": True, "requestId": request_id, "status": zapier_response["status"]}

    # ========================================================================
    # INBOUND CALLBACKS
    # ========================================================================

    def handle_status_callback(self, data: ZapierStatusCallback) -> dict:
        if not data.request_id or not data.status:
            raise api_error(400, "Invalid callback payload")

        status = data.status.strip().upper()
        if status not in ZAPIER_JOB_STATUSES:
            raise api_error(400, f"Invalid status. Must be one of: {', '.join(ZAPIER_JOB_STATUSES)}")

        job = self.jobs.get_by_request_id(self.db, data.request_id)
        if not job:
            raise api_error(404, "Zapier job not found")

        # Callbacks always win; there is no terminal-state guard
        job.status = status
        job.zapier = {
            **(job.zapier or {}),
            "errorMessage": data.error,
            "errorStep": data.errorStep,
            "runId": data.run_id,
        }
        job.ignition = {**(job.ignition or {}), "client_URL": data.client_URL}
        job = self._save_in_flight(job)

        logger.info(f"🔔 Zapier callback for {data.request_id}: {job.status}")
        return {"ok": True, "submittedAt": job.created_at}

    async def handle_proposal_status(self, data: IgnitionProposalStatus, background_tasks: BackgroundTasks) -> dict:
        if not data.email:
            raise api_error(400, "Email is required")

        email = normalize_email(data.email)
        questionnaire = self.questionnaires.get_by_email(self.db, email)
        if not questionnaire:
            raise api_error(404, "No questionnaire response found for this email")

        proposal_status = (data.proposal_status or "").strip().lower()
        mapped = PROPOSAL_STATUS_MAP.get(proposal_status)
        if mapped:
            questionnaire.status = _advance_status(questionnaire.status, mapped)

        questionnaire.meta = {
            **(questionnaire.meta or {}),
            "proposalId": data.proposal_id,
            "proposalStatus": data.proposal_status,
            "paymentStatus": data.payment_status,
            "paidAt": data.paid_at,
        }
        self.questionnaires.save(self.db, questionnaire)

        onboarding = None
        payment_confirmed = (data.payment_status or "").strip().lower() in PAID_STATUSES
        if payment_confirmed:
            onboarding = await self.onboard_client_from_questionnaire(questionnaire, background_tasks)

        logger.info(f"🔔 Ignition update for {email}: proposal={proposal_status or '-'} paid={payment_confirmed}")
        return {
            "email": email,
            "status": questionnaire.status,
            "paymentConfirmed": payment_confirmed,
            "onboarding": onboarding,
        }

    async def onboard_client_from_questionnaire(
        self, questionnaire: QuestionnaireResponse, background_tasks: BackgroundTasks
    ) -> dict:
        """Create (or link) the client account for a paid proposal; idempotent"""
        if questionnaire.status == "onboarded":
            return {"alreadyOnboarded": True, "userId": questionnaire.user_id}

        user: Optional[User] = self.users.get_by_email(self.db, questionnaire.email)
        created = False
        if user is None:
            first_name, last_name = split_full_name(questionnaire.name)
            try:
                user = self.users.create_user(
                    self.db,
                    first_name=first_name,
                    last_name=last_name or None,
                    email=questionnaire.email,
                    password=hash_password(secrets.token_urlsafe(24)),
                    role_id=Role.CLIENT.value,
                    active=True,
                )
            except IntegrityError:
                self.db.rollback()
                user = self.users.get_by_email(self.db, questionnaire.email)
            else:
                created = True

        questionnaire.user_id = user.id
        questionnaire.status = "onboarded"
        self.questionnaires.save(self.db, questionnaire)

        await enqueue_email(background_tasks, "welcome", user.email, user_name=user.first_name)
        logger.info(f"🎉 Client {user.email} onboarded from questionnaire ({'created' if created else 'linked'})")
        return {"alreadyOnboarded": False, "userId": user.id, "created": created}
