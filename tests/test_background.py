import asyncio

import pytest
from arq.worker import Retry

from plutify import background, worker
from plutify.domain.zapier.service import ZapierService


@pytest.fixture()
def no_delay(monkeypatch):
    monkeypatch.setattr(background, "INLINE_RETRY_DELAY_SECONDS", 0)


def test_inline_runner_retries_on_retry_signal(monkeypatch, no_delay):
    tries = []

    async def flaky(ctx):
        tries.append(ctx["job_try"])
        if ctx["job_try"] < 3:
            raise Retry(defer=1)
        return {"ok": True}

    monkeypatch.setitem(background.JOB_FUNCTIONS, "flaky", flaky)

    assert asyncio.run(background.run_job_inline("flaky")) == {"ok": True}
    assert tries == [1, 2, 3]


def test_inline_runner_gives_up_after_max_tries(monkeypatch, no_delay):
    tries = []

    async def always_retry(ctx):
        tries.append(ctx["job_try"])
        raise Retry(defer=1)

    monkeypatch.setitem(background.JOB_FUNCTIONS, "always_retry", always_retry)

    assert asyncio.run(background.run_job_inline("always_retry")) is None
    assert tries == [1, 2, 3]


def test_inline_runner_does_not_retry_plain_errors(monkeypatch, no_delay):
    tries = []

    async def broken(ctx):
        tries.append(ctx["job_try"])
        raise ValueError("bad input")

    monkeypatch.setitem(background.JOB_FUNCTIONS, "broken", broken)

    assert asyncio.run(background.run_job_inline("broken")) is None
    assert tries == [1]


class _ClosableSession:
    closed = False

    def close(self):
        self.closed = True


def test_failed_redispatch_asks_arq_to_retry(monkeypatch):
    session = _ClosableSession()

    async def failing_redispatch(self, request_id):
        raise RuntimeError("Zapier webhook failed")

    monkeypatch.setattr(worker, "SessionLocal", lambda: session)
    monkeypatch.setattr(ZapierService, "redispatch_job", failing_redispatch)

    with pytest.raises(Retry) as exc_info:
        asyncio.run(worker.redispatch_zapier_job_task({"job_id": "j1", "job_try": 2}, "req-1"))

    # Backoff grows with the try number (arq stores it in milliseconds)
    assert exc_info.value.defer_score == 2 * worker.RETRY_BACKOFF_SECONDS * 1000
    assert session.closed is True


def test_failed_email_send_asks_arq_to_retry(monkeypatch):
    from plutify import email_service

    async def failing_sender(to, **context):
        raise Exception("Failed to send email: timeout")

    monkeypatch.setitem(email_service.EMAIL_SENDERS, "welcome", failing_sender)

    with pytest.raises(Retry):
        asyncio.run(worker.send_email_task({"job_id": "j2", "job_try": 1}, "welcome", "a@b.com", {}))
