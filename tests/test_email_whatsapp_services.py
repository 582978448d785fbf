from unittest.mock import MagicMock

import httpx
import pytest

from clientdesk.services import email as email_service
from clientdesk.services import whatsapp as whatsapp_service


def _response(status_code: int, payload: dict | None = None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.content = b"{}" if payload else b""
    return response


@pytest.fixture()
def email_enabled(monkeypatch):
    monkeypatch.setattr(
        email_service,
        "settings",
        email_service.settings.model_copy(update={"resend_api_key": "re_test"}),
    )


@pytest.fixture()
def whatsapp_enabled(monkeypatch):
    monkeypatch.setattr(
        whatsapp_service,
        "settings",
        whatsapp_service.settings.model_copy(
            update={"whatsapp_token": "wa_token", "whatsapp_phone_number_id": "12345"}
        ),
    )


def test_email_not_configured(monkeypatch):
    monkeypatch.setattr(
        email_service,
        "settings",
        email_service.settings.model_copy(update={"resend_api_key": None}),
    )
    assert email_service.is_enabled() is False
    assert email_service.send_email("a@example.com", "Oi", "texto") == (
        False,
        None,
        "Envio de e-mail não configurado",
    )


def test_send_email_success(email_enabled, monkeypatch):
    post = MagicMock(return_value=_response(200, {"id": "msg_1"}))
    monkeypatch.setattr(email_service.httpx, "post", post)

    ok, message_id, error = email_service.send_email(
        "a@example.com", "Oi", "texto", html="<p>texto</p>"
    )

    assert (ok, message_id, error) == (True, "msg_1", None)
    kwargs = post.call_args.kwargs
    assert kwargs["headers"] == {"Authorization": "Bearer re_test"}
    assert kwargs["json"]["to"] == ["a@example.com"]
    assert kwargs["json"]["html"] == "<p>texto</p>"


def test_send_email_provider_error(email_enabled, monkeypatch):
    monkeypatch.setattr(
        email_service.httpx,
        "post",
        MagicMock(return_value=_response(422, {"message": "Invalid to"})),
    )
    assert email_service.send_email("x", "Oi", "texto") == (False, None, "Invalid to")

    monkeypatch.setattr(
        email_service.httpx, "post", MagicMock(return_value=_response(500))
    )
    assert email_service.send_email("x", "Oi", "texto") == (False, None, "HTTP 500")


def test_send_email_transport_error(email_enabled, monkeypatch):
    monkeypatch.setattr(
        email_service.httpx,
        "post",
        MagicMock(side_effect=httpx.ConnectError("connection refused")),
    )
    ok, _, error = email_service.send_email("x", "Oi", "texto")
    assert ok is False
    assert error == "connection refused"


@pytest.mark.parametrize(
    "days,expected",
    [(0, False), (1, True), (2, False), (7, False), (8, True), (15, True), (-6, False)],
)
def test_should_send_overdue_reminder(days, expected):
    assert email_service.should_send_overdue_reminder(days) is expected


def test_overdue_email_content(email_enabled, monkeypatch):
    post = MagicMock(return_value=_response(201, {"id": "msg_2"}))
    monkeypatch.setattr(email_service.httpx, "post", post)

    email_service.send_invoice_overdue_email(
        "a@example.com", "Padaria", "2024-0003", "R$ 1.000,00", "01/05/2024", 8
    )

    payload = post.call_args.kwargs["json"]
    assert payload["subject"] == "Fatura 2024-0003 em atraso"
    assert "Olá Padaria" in payload["text"]
    assert "há 8 dia(s)" in payload["text"]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(11) 99999-0000", "5511999990000"),
        ("+55 11 99999-0000", "5511999990000"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_phone(raw, expected):
    assert whatsapp_service.normalize_phone(raw) == expected


def test_whatsapp_not_configured(monkeypatch):
    monkeypatch.setattr(
        whatsapp_service,
        "settings",
        whatsapp_service.settings.model_copy(update={"whatsapp_token": None}),
    )
    assert whatsapp_service.send_message("11999990000", "Oi") == (
        False,
        None,
        "WhatsApp não configurado",
    )


def test_whatsapp_invalid_phone(whatsapp_enabled):
    assert whatsapp_service.send_message("sem numero", "Oi") == (
        False,
        None,
        "Telefone inválido",
    )


def test_whatsapp_send_success(whatsapp_enabled, monkeypatch):
    post = MagicMock(return_value=_response(200, {"messages": [{"id": "wamid.1"}]}))
    monkeypatch.setattr(whatsapp_service.httpx, "post", post)

    assert whatsapp_service.send_message("11 99999-0000", "Oi") == (True, "wamid.1", None)
    assert post.call_args.args[0].endswith("/12345/messages")
    assert post.call_args.kwargs["json"]["to"] == "5511999990000"
    assert post.call_args.kwargs["json"]["text"] == {"body": "Oi"}


def test_whatsapp_send_error(whatsapp_enabled, monkeypatch):
    monkeypatch.setattr(
        whatsapp_service.httpx,
        "post",
        MagicMock(return_value=_response(401, {"error": {"message": "Invalid token"}})),
    )
    assert whatsapp_service.send_message("11999990000", "Oi") == (
        False,
        None,
        "Invalid token",
    )
