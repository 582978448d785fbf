"""Shared helpers for billing services."""

from datetime import date
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from clientdesk.config import settings
from clientdesk.models.billing import Invoice, InvoiceItem, InvoiceStatus, Payment
from clientdesk.models.client import Client, ClientPaymentStatus
from clientdesk.services.billing import lifecycle
from clientdesk.services.common import coerce_uuid, get_org_entity, round_money


def _validate_client(db: Session, org_id, client_id) -> Client:
    return get_org_entity(db, Client, org_id, client_id, "Cliente não encontrado")


def _get_invoice(db: Session, org_id, invoice_id) -> Invoice:
    return get_org_entity(db, Invoice, org_id, invoice_id, "Fatura não encontrada")


def _next_invoice_number(db: Session, org_id, year: int) -> str:
    """Next sequential number in the YYYY-NNNN series of the organization."""
    prefix = f"{year:04d}-"
    numbers = (
        db.query(Invoice.number)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.number.like(f"{prefix}%"))
        .all()
    )
    highest = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:04d}"


def _ensure_unique_number(db: Session, org_id, number: str) -> None:
    exists = (
        db.query(Invoice.id)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.number == number)
        .first()
    )
    if exists:
        raise HTTPException(
            status_code=409, detail=f"Fatura com número {number} já existe"
        )


def _replace_items(invoice: Invoice, items) -> None:
    if not items:
        raise HTTPException(
            status_code=400, detail="A fatura deve ter pelo menos um item"
        )
    invoice.items.clear()
    for item in items:
        invoice.items.append(
            InvoiceItem(
                description=item.description,
                quantity=Decimal(item.quantity),
                unit_amount=round_money(item.unit_amount),
                total=lifecycle.item_total(item.quantity, item.unit_amount),
            )
        )


def _recalculate_invoice_totals(invoice: Invoice) -> None:
    subtotal, total = lifecycle.calculate_totals(
        invoice.items, invoice.discount, invoice.tax
    )
    if total <= 0:
        raise HTTPException(
            status_code=400, detail="O valor da fatura deve ser maior que zero"
        )
    invoice.subtotal = subtotal
    invoice.total = total


def _build_invoice(
    db: Session,
    org_id,
    client: Client,
    items,
    issue_date: date,
    due_date: date,
    status: InvoiceStatus = InvoiceStatus.open,
    discount: Decimal | None = None,
    tax: Decimal | None = None,
    currency: str | None = None,
    notes: str | None = None,
    internal_notes: str | None = None,
    installment_id=None,
    number: str | None = None,
    created_by=None,
) -> Invoice:
    """Validate and stage a new invoice in the session without committing."""
    lifecycle.validate_dates(issue_date, due_date)
    if number:
        _ensure_unique_number(db, org_id, number)
    else:
        number = _next_invoice_number(db, org_id, issue_date.year)
    invoice = Invoice(
        org_id=coerce_uuid(org_id),
        client_id=client.id,
        installment_id=coerce_uuid(installment_id),
        number=number,
        status=status,
        issue_date=issue_date,
        due_date=due_date,
        discount=round_money(discount or 0),
        tax=round_money(tax or 0),
        currency=currency or settings.default_currency,
        notes=notes,
        internal_notes=internal_notes,
        created_by=coerce_uuid(created_by),
    )
    _replace_items(invoice, items)
    _recalculate_invoice_totals(invoice)
    db.add(invoice)
    db.flush()
    return invoice


def _paid_amount(db: Session, invoice: Invoice) -> Decimal:
    total = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.invoice_id == invoice.id)
        .scalar()
    )
    return round_money(total or 0)


def _sync_client_payment_status(db: Session, client: Client) -> ClientPaymentStatus:
    """Derive the client's aggregate status from its outstanding invoices."""
    statuses = {
        row[0]
        for row in db.query(Invoice.status)
        .filter(Invoice.client_id == client.id)
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.status.in_(lifecycle.OUTSTANDING_STATUSES))
        .distinct()
        .all()
    }
    if InvoiceStatus.overdue in statuses:
        client.payment_status = ClientPaymentStatus.late
    elif InvoiceStatus.open in statuses:
        client.payment_status = ClientPaymentStatus.pending
    else:
        client.payment_status = ClientPaymentStatus.confirmed
    return client.payment_status


def format_brl(value: Decimal | int | float) -> str:
    """Format an amount as Brazilian reais, e.g. R$ 1.234,56."""
    amount = round_money(value)
    sign = "-" if amount < 0 else ""
    formatted = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}R$ {formatted}"


def format_date_br(value: date) -> str:
    return value.strftime("%d/%m/%Y")
