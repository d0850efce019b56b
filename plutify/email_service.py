"""
Email Service
Transactional email via Resend. Bodies are plain HTML strings.
"""

import html
import logging
from typing import Optional, Union

import resend

from .config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def _layout(title: str, body: str) -> str:
    return (
        "<div style=\"font-family:Arial,sans-serif;max-width:560px;margin:0 auto\">"
        f"<h2 style=\"color:#0f172a\">{html.escape(title)}</h2>"
        f"{body}"
        "<p style=\"color:#64748b;font-size:12px\">Plutify Bookkeeping</p>"
        "</div>"
    )


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    html_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend.

    Returns the Resend response, or {"skipped": True} when no API key is configured
    (local development). Delivery errors are raised so the job runner can retry.
    """
    recipients = [to] if isinstance(to, str) else to

    if not RESEND_API_KEY:
        logger.warning(f"⚠️ RESEND_API_KEY missing - skipping email '{subject}' to {recipients}")
        return {"skipped": True, "to": recipients}

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built emails for common events
# ============================================


async def send_welcome_email(to: str, user_name: str) -> dict:
    body = (
        f"<p>Hi {html.escape(user_name)},</p>"
        "<p>Your Plutify account is ready. Sign in to start working with your bookkeeping team.</p>"
        f"<p><a href=\"{FRONTEND_URL}/login\">Sign in</a></p>"
    )
    return await send_email(to, "Welcome to Plutify", _layout("Welcome to Plutify", body))


async def send_account_created_email(
    to: str, user_name: str, temporary_password: str, role_label: str = "client"
) -> dict:
    """Account provisioned on someone's behalf (staff created by admin, client onboarded)"""
    body = (
        f"<p>Hi {html.escape(user_name)},</p>"
        f"<p>A Plutify {html.escape(role_label)} account has been created for you.</p>"
        f"<p>Email: <b>{html.escape(to)}</b><br>Temporary password: <b>{html.escape(temporary_password)}</b></p>"
        "<p>Please sign in and change your password.</p>"
        f"<p><a href=\"{FRONTEND_URL}/login\">Sign in</a></p>"
    )
    return await send_email(to, "Your Plutify account", _layout("Your account is ready", body))


async def send_client_assigned_email(to: str, staff_name: str, client_name: str, client_email: str) -> dict:
    body = (
        f"<p>Hi {html.escape(staff_name)},</p>"
        f"<p>You have been assigned a new client: <b>{html.escape(client_name)}</b> ({html.escape(client_email)}).</p>"
    )
    return await send_email(to, "New client assigned", _layout("New client assigned", body))


async def send_staff_assigned_email(to: str, client_name: str, staff_name: str, staff_email: str) -> dict:
    body = (
        f"<p>Hi {html.escape(client_name)},</p>"
        f"<p><b>{html.escape(staff_name)}</b> ({html.escape(staff_email)}) is now your dedicated bookkeeper.</p>"
    )
    return await send_email(to, "Meet your bookkeeper", _layout("Your bookkeeper", body))


async def send_task_reminder_email(to: str, user_name: str, task_title: str, due_date: str, overdue: bool) -> dict:
    headline = "Task overdue" if overdue else "Task due soon"
    body = (
        f"<p>Hi {html.escape(user_name)},</p>"
        f"<p>The task <b>{html.escape(task_title)}</b> {'was' if overdue else 'is'} due on {html.escape(due_date)}.</p>"
        f"<p><a href=\"{FRONTEND_URL}/tasks\">View your tasks</a></p>"
    )
    return await send_email(to, headline, _layout(headline, body))


# Name -> sender, used by background jobs so payloads stay JSON serializable
EMAIL_SENDERS = {
    "welcome": send_welcome_email,
    "account_created": send_account_created_email,
    "client_assigned": send_client_assigned_email,
    "staff_assigned": send_staff_assigned_email,
    "task_reminder": send_task_reminder_email,
}
