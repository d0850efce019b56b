"""Zapier / Ignition router - lead dispatch, job admin and inbound callbacks"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_admin
from ...background import enqueue_job
from ...config import IS_PRODUCTION
from ...database import get_db
from ...models import User
from ...responses import envelope
from ...webhook_security import verify_callback_secret
from .schemas import IgnitionProposalStatus, ZapierLeadRequest, ZapierStatusCallback
from .service import ZapierService

router = APIRouter(tags=["Zapier"])


def get_zapier_service(db: Session = Depends(get_db)) -> ZapierService:
    return ZapierService(db)


@router.post("/integrations/zapier/lead")
async def create_client_in_ignition(
    data: ZapierLeadRequest,
    service: ZapierService = Depends(get_zapier_service),
):
    """Send a questionnaire (by id or inline) to the Ignition "Create Client" zap"""
    result, message = await service.create_client_in_ignition(data)
    return envelope(result, message)


@router.post("/zapier/status", dependencies=[Depends(verify_callback_secret)])
async def zapier_status_callback(
    data: ZapierStatusCallback,
    service: ZapierService = Depends(get_zapier_service),
):
    # Raw body for the zap's own bookkeeping, not the envelope
    return service.handle_status_callback(data)


@router.post("/integrations/ignition/proposal-status", dependencies=[Depends(verify_callback_secret)])
async def ignition_proposal_status(
    data: IgnitionProposalStatus,
    background_tasks: BackgroundTasks,
    service: ZapierService = Depends(get_zapier_service),
):
    """Proposal/payment updates from Ignition; a confirmed payment onboards the client"""
    result = await service.handle_proposal_status(data, background_tasks)
    return envelope(result, "Proposal status updated")


@router.get("/integrations/zapier/jobs")
async def list_zapier_jobs(
    status: Optional[str] = Query(None),
    email: Optional[str] = Query(None),
    _: User = Depends(require_admin),
    service: ZapierService = Depends(get_zapier_service),
):
    return envelope(service.list_jobs(status, email))


@router.post("/integrations/zapier/jobs/{request_id}/retry", status_code=202)
async def retry_zapier_job(
    request_id: str,
    background_tasks: BackgroundTasks,
    _: User = Depends(require_admin),
    service: ZapierService = Depends(get_zapier_service),
):
    job = service.prepare_retry(request_id)
    job_id = await enqueue_job(background_tasks, "redispatch_zapier_job_task", request_id)
    return envelope({**job, "backgroundJobId": job_id}, "Zapier job queued for retry")


if not IS_PRODUCTION:

    @router.post("/integrations/zapier/test")
    async def test_zapier_webhook(service: ZapierService = Depends(get_zapier_service)):
        return envelope(await service.send_test_webhook(), "Test webhook called successfully")
