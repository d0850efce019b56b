"""
Background job dispatch

Side effects (emails, Zapier retries) are queued as named jobs. With Redis
configured they go to the arq worker (tracked job id, retries, kept result);
otherwise they run after the response via FastAPI BackgroundTasks with the
same bounded retry policy (only a raised arq Retry is retried).
"""

import asyncio
import logging
import uuid
from typing import Optional

from arq import create_pool
from arq.worker import Retry
from fastapi import BackgroundTasks

from .config import REDIS_URL
from .worker import WorkerSettings, get_redis_settings

logger = logging.getLogger(__name__)

JOB_FUNCTIONS = {func.__name__: func for func in WorkerSettings.functions}
MAX_INLINE_TRIES = WorkerSettings.max_tries
INLINE_RETRY_DELAY_SECONDS = 1.0


async def run_job_inline(job_name: str, *args, **kwargs) -> Optional[dict]:
    """Run a worker function in-process; like arq, only a raised Retry is retried"""
    func = JOB_FUNCTIONS[job_name]
    job_id = f"inline-{uuid.uuid4().hex[:12]}"

    for attempt in range(1, MAX_INLINE_TRIES + 1):
        ctx = {"job_id": job_id, "job_try": attempt}
        try:
            result = await func(ctx, *args, **kwargs)
            logger.info(f"✅ Background job {job_name} ({job_id}) completed on try {attempt}")
            return result
        except Retry as e:
            logger.warning(f"⚠️ Background job {job_name} ({job_id}) asked to retry after try {attempt}: {e}")
            if attempt < MAX_INLINE_TRIES:
                await asyncio.sleep(INLINE_RETRY_DELAY_SECONDS * attempt)
        except Exception as e:
            logger.error(f"❌ Background job {job_name} ({job_id}) failed on try {attempt}: {e}")
            return None

    logger.error(f"❌ Background job {job_name} ({job_id}) gave up after {MAX_INLINE_TRIES} tries")
    return None


async def enqueue_job(background_tasks: BackgroundTasks, job_name: str, *args, **kwargs) -> Optional[str]:
    """
    Queue a job by worker function name.

    Returns the arq job id when queued on Redis, otherwise None (scheduled in-process).
    """
    if job_name not in JOB_FUNCTIONS:
        raise ValueError(f"Unknown background job: {job_name}")

    if REDIS_URL:
        try:
            pool = await create_pool(get_redis_settings())
            try:
                job = await pool.enqueue_job(job_name, *args, **kwargs)
            finally:
                await pool.close()
            if job is not None:
                logger.info(f"📋 Queued {job_name} on arq: {job.job_id}")
                return job.job_id
        except Exception as e:
            logger.warning(f"⚠️ Failed to queue {job_name} on arq, running in-process: {e}")

    background_tasks.add_task(run_job_inline, job_name, *args, **kwargs)
    return None


async def enqueue_email(background_tasks: BackgroundTasks, template: str, to: str, **context) -> Optional[str]:
    return await enqueue_job(background_tasks, "send_email_task", template, to, context)
