"""Outbound WhatsApp messages through the WhatsApp Cloud API."""

import logging
import re

import httpx

from clientdesk.config import settings

logger = logging.getLogger(__name__)


def is_enabled() -> bool:
    return bool(settings.whatsapp_token and settings.whatsapp_phone_number_id)


def normalize_phone(phone: str) -> str:
    """Digits only, with the Brazilian country code when it is missing."""
    digits = re.sub(r"\D", "", phone or "")
    if digits and len(digits) <= 11:
        digits = f"55{digits}"
    return digits


def send_message(to_phone: str, body: str) -> tuple[bool, str | None, str | None]:
    """Send a text message.

    Returns (success, provider message id, error message).
    """
    if not is_enabled():
        return False, None, "WhatsApp não configurado"
    recipient = normalize_phone(to_phone)
    if not recipient:
        return False, None, "Telefone inválido"
    url = f"{settings.whatsapp_api_url}/{settings.whatsapp_phone_number_id}/messages"
    try:
        response = httpx.post(
            url,
            headers={"Authorization": f"Bearer {settings.whatsapp_token}"},
            json={
                "messaging_product": "whatsapp",
                "to": recipient,
                "type": "text",
                "text": {"body": body},
            },
            timeout=30.0,
        )
        if response.status_code in (200, 201):
            data = response.json()
            messages = data.get("messages") or [{}]
            return True, messages[0].get("id"), None
        error_data = response.json() if response.content else {}
        error_msg = (error_data.get("error") or {}).get(
            "message", f"HTTP {response.status_code}"
        )
        if response.status_code in (401, 403):
            logger.error(
                "whatsapp_auth_failed status=%s message=%s",
                response.status_code,
                error_msg,
            )
        return False, None, error_msg
    except Exception as exc:
        logger.error("whatsapp_send_error error=%s", exc)
        return False, None, str(exc)
