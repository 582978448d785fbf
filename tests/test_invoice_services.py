from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from fastapi import HTTPException

from clientdesk.models.billing import InvoiceStatus, PaymentMethod
from clientdesk.models.client import ClientPaymentStatus
from clientdesk.models.finance import Transaction, TransactionSubtype, TransactionType
from clientdesk.models.notification import Notification, NotificationType
from clientdesk.schemas.billing import InvoiceCreate, InvoiceItemCreate, InvoiceUpdate
from clientdesk.services import billing as billing_service


def _create_invoice(db_session, organization, client, **overrides):
    data = {
        "client_id": client.id,
        "issue_date": date(2024, 5, 1),
        "due_date": date(2024, 5, 10),
        "items": [
            InvoiceItemCreate(
                description="Gestão de redes sociais",
                quantity=Decimal("1"),
                unit_amount=Decimal("800.00"),
            ),
            InvoiceItemCreate(
                description="Impulsionamento",
                quantity=Decimal("2"),
                unit_amount=Decimal("100.00"),
            ),
        ],
    }
    data.update(overrides)
    return billing_service.invoices.create(
        db_session, organization.id, InvoiceCreate(**data)
    )


def test_create_invoice_numbers_sequentially_per_year(db_session, organization, client):
    first = _create_invoice(db_session, organization, client)
    second = _create_invoice(db_session, organization, client)
    next_year = _create_invoice(
        db_session,
        organization,
        client,
        issue_date=date(2025, 1, 2),
        due_date=date(2025, 1, 10),
    )
    assert first.number == "2024-0001"
    assert second.number == "2024-0002"
    assert next_year.number == "2025-0001"


def test_create_invoice_calculates_totals(db_session, organization, client):
    invoice = _create_invoice(
        db_session, organization, client, discount=Decimal("50"), tax=Decimal("5.50")
    )
    assert invoice.status == InvoiceStatus.open
    assert invoice.subtotal == Decimal("1000.00")
    assert invoice.total == Decimal("955.50")
    assert len(invoice.items) == 2
    assert invoice.currency == "BRL"
    db_session.refresh(client)
    assert client.payment_status == ClientPaymentStatus.pending


def test_create_invoice_requires_items(db_session, organization, client):
    with pytest.raises(HTTPException) as exc:
        _create_invoice(db_session, organization, client, items=[])
    assert exc.value.status_code == 400
    assert exc.value.detail == "A fatura deve ter pelo menos um item"


def test_create_invoice_rejects_zero_total(db_session, organization, client):
    with pytest.raises(HTTPException) as exc:
        _create_invoice(db_session, organization, client, discount=Decimal("1000.00"))
    assert exc.value.status_code == 400
    assert exc.value.detail == "O valor da fatura deve ser maior que zero"


def test_update_invoice_rejects_zero_total(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client)
    with pytest.raises(HTTPException) as exc:
        billing_service.invoices.update(
            db_session, organization.id, invoice.id, InvoiceUpdate(discount=Decimal("1000"))
        )
    assert exc.value.status_code == 400
    db_session.rollback()
    db_session.refresh(invoice)
    assert invoice.total == Decimal("1000.00")


def test_create_invoice_rejects_duplicate_number(db_session, organization, client):
    _create_invoice(db_session, organization, client, number="ESPECIAL-1")
    with pytest.raises(HTTPException) as exc:
        _create_invoice(db_session, organization, client, number="ESPECIAL-1")
    assert exc.value.status_code == 409


def test_invoice_is_scoped_to_organization(
    db_session, organization, other_organization, client
):
    invoice = _create_invoice(db_session, organization, client)
    with pytest.raises(HTTPException) as exc:
        billing_service.invoices.get(db_session, other_organization.id, invoice.id)
    assert exc.value.status_code == 404


def test_draft_invoice_can_be_opened(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client, draft=True)
    assert invoice.status == InvoiceStatus.draft
    opened = billing_service.invoices.open(db_session, organization.id, invoice.id)
    assert opened.status == InvoiceStatus.open


def test_update_invoice_replaces_items(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client)
    updated = billing_service.invoices.update(
        db_session,
        organization.id,
        invoice.id,
        InvoiceUpdate(
            items=[InvoiceItemCreate(description="Consultoria", unit_amount=Decimal("300"))],
            discount=Decimal("20"),
        ),
    )
    assert len(updated.items) == 1
    assert updated.subtotal == Decimal("300.00")
    assert updated.total == Decimal("280.00")


def test_full_payment_marks_invoice_paid_and_records_income(
    db_session, organization, owner, client
):
    invoice = _create_invoice(db_session, organization, client)
    paid_at = datetime(2024, 5, 15, 14, tzinfo=timezone.utc)
    payment = billing_service.invoices.mark_invoice_paid(
        db_session, organization.id, invoice.id, method="boleto", paid_at=paid_at
    )
    db_session.refresh(invoice)
    db_session.refresh(client)
    assert payment.amount == Decimal("1000.00")
    assert payment.method == PaymentMethod.boleto
    assert invoice.status == InvoiceStatus.paid
    assert client.payment_status == ClientPaymentStatus.confirmed

    transaction = (
        db_session.query(Transaction)
        .filter(Transaction.invoice_id == invoice.id)
        .one()
    )
    assert transaction.type == TransactionType.income
    assert transaction.subtype == TransactionSubtype.invoice_payment
    assert transaction.amount == Decimal("1000.00")
    assert transaction.transaction_date == date(2024, 5, 15)
    assert transaction.metadata_["days_late"] == 5
    assert transaction.metadata_["payment_method"] == "boleto"


def test_partial_payment_keeps_invoice_outstanding(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client)
    billing_service.invoices.mark_invoice_paid(
        db_session, organization.id, invoice.id, amount=Decimal("400")
    )
    db_session.refresh(invoice)
    assert invoice.status == InvoiceStatus.open

    billing_service.invoices.mark_invoice_paid(db_session, organization.id, invoice.id)
    db_session.refresh(invoice)
    assert invoice.status == InvoiceStatus.paid
    payments = billing_service.invoices.list_payments(
        db_session, organization.id, invoice.id
    )
    assert [p.amount for p in payments] == [Decimal("400.00"), Decimal("600.00")]


def test_paid_invoice_rejects_further_payment(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client)
    billing_service.invoices.mark_invoice_paid(db_session, organization.id, invoice.id)
    with pytest.raises(HTTPException) as exc:
        billing_service.invoices.mark_invoice_paid(
            db_session, organization.id, invoice.id
        )
    assert exc.value.status_code == 409


def test_cancel_invoice_records_reason_and_notifies(
    db_session, organization, owner, client
):
    invoice = _create_invoice(db_session, organization, client)
    cancelled = billing_service.invoices.cancel_invoice(
        db_session, organization.id, invoice.id, reason="Cobrança duplicada"
    )
    assert cancelled.status == InvoiceStatus.void
    assert "Cancelada: Cobrança duplicada" in cancelled.internal_notes
    notification = (
        db_session.query(Notification)
        .filter(Notification.invoice_id == invoice.id)
        .one()
    )
    assert notification.member_id == owner.id
    assert notification.type == NotificationType.billing_invoice_void


def test_cancel_invoice_with_payments_is_rejected(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client)
    billing_service.invoices.mark_invoice_paid(
        db_session, organization.id, invoice.id, amount=Decimal("100")
    )
    with pytest.raises(HTTPException) as exc:
        billing_service.invoices.cancel_invoice(db_session, organization.id, invoice.id)
    assert exc.value.detail == "Fatura possui pagamentos registrados"


def test_update_overdue_invoices_marks_past_due(db_session, organization, client):
    late = _create_invoice(db_session, organization, client)
    current = _create_invoice(
        db_session, organization, client, due_date=date(2024, 6, 10)
    )
    updated = billing_service.invoices.update_overdue_invoices(
        db_session, organization.id, today=date(2024, 5, 20)
    )
    db_session.refresh(late)
    db_session.refresh(current)
    assert updated == 1
    assert late.status == InvoiceStatus.overdue
    assert current.status == InvoiceStatus.open


def test_list_org_invoices_filters_and_pages(db_session, organization, client):
    for _ in range(3):
        _create_invoice(db_session, organization, client)
    _create_invoice(db_session, organization, client, draft=True)

    result = billing_service.invoices.list_org_invoices(
        db_session, organization.id, status="open", page=1, page_size=2
    )
    assert result["total"] == 3
    assert len(result["items"]) == 2

    by_name = billing_service.invoices.list_org_invoices(
        db_session, organization.id, q="padaria"
    )
    assert by_name["total"] == 4

    with pytest.raises(HTTPException):
        billing_service.invoices.list_org_invoices(
            db_session, organization.id, status="unknown"
        )


def test_whatsapp_message_lists_items_and_total(db_session, organization, client):
    invoice = _create_invoice(db_session, organization, client)
    message = billing_service.invoices.compose_invoice_whatsapp_message(
        db_session, organization.id, invoice.id
    )
    assert message.startswith("Olá Padaria Central!")
    assert f"Fatura: {invoice.number}" in message
    assert "Vencimento: 10/05/2024" in message
    assert "Total: R$ 1.000,00" in message
    assert "CNPJ: 12.345.678/0001-90" in message
