"""
Email Service using Resend
Emails are written as MJML templates and compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml2html as mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    claim_reviewed_template,
    emergency_alert_template,
    welcome_email_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailNotConfiguredError(Exception):
    """Raised when no email provider is configured"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        # mjml_to_html returns a dict-like result with 'html' and 'errors'
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        return str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend

    Args:
        to: Recipient email(s)
        subject: Email subject line
        mjml_content: MJML template content (will be compiled to HTML)
        from_address: Optional custom from address

    Returns:
        Send response dict
    """
    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing")
        raise EmailNotConfiguredError("Email service not configured")

    recipients = [to] if isinstance(to, str) else to
    html_content = compile_mjml_to_html(mjml_content)

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


async def send_welcome_email(to: str, user_name: str) -> dict:
    return await send_email(
        to=to,
        subject="Bem-vindo à CN Vidas",
        mjml_content=welcome_email_template(user_name),
    )


async def send_emergency_alert_email(to: str, doctor_name: str, patient_name: str, appointment_id: int) -> dict:
    """Alert a doctor that a patient is waiting in the emergency room"""
    return await send_email(
        to=to,
        subject="🚨 Paciente aguardando atendimento de emergência",
        mjml_content=emergency_alert_template(doctor_name, patient_name, appointment_id),
    )


async def send_claim_reviewed_email(
    to: str,
    user_name: str,
    claim_id: int,
    status: str,
    amount_approved: Optional[int] = None,
    review_notes: Optional[str] = None,
) -> dict:
    return await send_email(
        to=to,
        subject="Seu sinistro foi analisado - CN Vidas",
        mjml_content=claim_reviewed_template(user_name, claim_id, status, amount_approved, review_notes),
    )


async def deliver_safely(send_fn, *args, **kwargs) -> Optional[dict]:
    """Run an email send for a background task; delivery failures are logged and dropped"""
    try:
        return await send_fn(*args, **kwargs)
    except Exception as e:
        logger.warning(f"⚠️ Email not delivered ({send_fn.__name__}): {e}")
        return None
