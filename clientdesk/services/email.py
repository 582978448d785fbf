"""Outbound email through the Resend HTTP API."""

import logging

import httpx

from clientdesk.config import settings

logger = logging.getLogger(__name__)

OVERDUE_REMINDER_INTERVAL_DAYS = 7


def is_enabled() -> bool:
    return bool(settings.resend_api_key)


def send_email(
    to_email: str, subject: str, text: str, html: str | None = None
) -> tuple[bool, str | None, str | None]:
    """Send an email.

    Returns (success, provider message id, error message). Provider failures
    are logged and reported in the tuple rather than raised.
    """
    if not is_enabled():
        logger.info("email_skipped reason=not_configured to=%s", to_email)
        return False, None, "Envio de e-mail não configurado"
    payload: dict = {
        "from": settings.email_from,
        "to": [to_email],
        "subject": subject,
        "text": text,
    }
    if html:
        payload["html"] = html
    try:
        response = httpx.post(
            settings.resend_api_url,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json=payload,
            timeout=30.0,
        )
        if response.status_code in (200, 201):
            data = response.json()
            return True, data.get("id"), None
        error_data = response.json() if response.content else {}
        error_msg = error_data.get("message", f"HTTP {response.status_code}")
        logger.error(
            "email_send_failed provider=resend status=%s message=%s",
            response.status_code,
            error_msg,
        )
        return False, None, error_msg
    except Exception as exc:
        logger.error("email_send_error provider=resend error=%s", exc)
        return False, None, str(exc)


def should_send_overdue_reminder(days_overdue: int) -> bool:
    """Reminders go out on the first overdue day and weekly after that."""
    return days_overdue > 0 and days_overdue % OVERDUE_REMINDER_INTERVAL_DAYS == 1


def send_invoice_overdue_email(
    to_email: str,
    client_name: str,
    invoice_number: str,
    amount: str,
    due_date: str,
    days_overdue: int,
) -> tuple[bool, str | None, str | None]:
    subject = f"Fatura {invoice_number} em atraso"
    text = (
        f"Olá {client_name},\n\n"
        f"A fatura {invoice_number} no valor de {amount}, com vencimento em "
        f"{due_date}, está em atraso há {days_overdue} dia(s).\n\n"
        f"Acesse {settings.app_url} para consultar os dados de pagamento.\n"
    )
    return send_email(to_email, subject, text)
