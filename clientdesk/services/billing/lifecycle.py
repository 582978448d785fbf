"""Invoice status rules.

DRAFT -> OPEN -> PAID | OVERDUE | VOID, with OVERDUE -> PAID | VOID.
PAID and VOID are terminal.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable

from fastapi import HTTPException

from clientdesk.models.billing import Invoice, InvoiceStatus
from clientdesk.services.common import round_money, utc_now

TERMINAL_STATUSES = {InvoiceStatus.paid, InvoiceStatus.void}
PAYABLE_STATUSES = {InvoiceStatus.draft, InvoiceStatus.open, InvoiceStatus.overdue}
OUTSTANDING_STATUSES = {InvoiceStatus.open, InvoiceStatus.overdue}


def item_total(quantity: Decimal, unit_amount: Decimal) -> Decimal:
    return round_money(Decimal(quantity) * Decimal(unit_amount))


def calculate_totals(
    items: Iterable, discount: Decimal | None, tax: Decimal | None
) -> tuple[Decimal, Decimal]:
    """Return (subtotal, total) where total = subtotal - discount + tax."""
    subtotal = round_money(
        sum((item_total(item.quantity, item.unit_amount) for item in items), Decimal("0"))
    )
    total = round_money(subtotal - Decimal(discount or 0) + Decimal(tax or 0))
    if total < 0:
        raise HTTPException(
            status_code=400,
            detail="O desconto não pode ser maior que o valor da fatura",
        )
    return subtotal, total


def validate_dates(issue_date: date, due_date: date) -> None:
    if due_date < issue_date:
        raise HTTPException(
            status_code=400,
            detail="A data de vencimento não pode ser anterior à data de emissão",
        )


def is_overdue(invoice: Invoice, today: date) -> bool:
    return invoice.status in OUTSTANDING_STATUSES and invoice.due_date < today


def can_be_edited(invoice: Invoice) -> bool:
    return invoice.status not in TERMINAL_STATUSES


def ensure_editable(invoice: Invoice) -> None:
    if not can_be_edited(invoice):
        raise HTTPException(
            status_code=409, detail="Fatura paga ou cancelada não pode ser editada"
        )


def open_invoice(invoice: Invoice) -> None:
    if invoice.status != InvoiceStatus.draft:
        raise HTTPException(
            status_code=409, detail="Apenas faturas em rascunho podem ser emitidas"
        )
    invoice.status = InvoiceStatus.open


def mark_paid(invoice: Invoice, paid_at: datetime | None = None) -> None:
    if invoice.status == InvoiceStatus.paid:
        raise HTTPException(status_code=409, detail="Fatura já está paga")
    if invoice.status == InvoiceStatus.void:
        raise HTTPException(status_code=409, detail="Fatura cancelada não pode ser paga")
    invoice.status = InvoiceStatus.paid
    invoice.paid_at = paid_at or utc_now()


def cancel(invoice: Invoice, cancelled_at: datetime | None = None) -> None:
    if invoice.status == InvoiceStatus.paid:
        raise HTTPException(
            status_code=409, detail="Fatura já paga; não pode cancelar"
        )
    if invoice.status == InvoiceStatus.void:
        raise HTTPException(status_code=409, detail="Fatura já cancelada")
    invoice.status = InvoiceStatus.void
    invoice.cancelled_at = cancelled_at or utc_now()


def mark_overdue(invoice: Invoice, at: datetime | None = None) -> None:
    if invoice.status != InvoiceStatus.open:
        raise HTTPException(
            status_code=409, detail="Apenas faturas em aberto podem ficar vencidas"
        )
    invoice.status = InvoiceStatus.overdue
    invoice.overdue_at = at or utc_now()
