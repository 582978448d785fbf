"""Invoice management services."""

import logging
from datetime import date, datetime
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from clientdesk.config import settings
from clientdesk.models.billing import Invoice, InvoiceStatus, Payment, PaymentMethod
from clientdesk.models.client import Client
from clientdesk.models.finance import (
    Transaction,
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)
from clientdesk.models.notification import NotificationPriority, NotificationType
from clientdesk.models.organization import Organization
from clientdesk.schemas.billing import InvoiceCreate, InvoiceUpdate
from clientdesk.services.billing import lifecycle
from clientdesk.services.billing._common import (
    _build_invoice,
    _get_invoice,
    _paid_amount,
    _recalculate_invoice_totals,
    _replace_items,
    _sync_client_payment_status,
    _validate_client,
    format_brl,
    format_date_br,
)
from clientdesk.services.common import (
    as_utc,
    coerce_uuid,
    round_money,
    utc_now,
    validate_enum,
)
from clientdesk.services.notifications import create_notification
from clientdesk.services.response import paged_response

logger = logging.getLogger(__name__)


def invoice_link(invoice: Invoice) -> str:
    return f"/clients/{invoice.client_id}/billing/invoices/{invoice.id}"


class Invoices:
    @staticmethod
    def create(db: Session, org_id, payload: InvoiceCreate, created_by=None):
        client = _validate_client(db, org_id, payload.client_id)
        invoice = _build_invoice(
            db,
            org_id,
            client,
            payload.items,
            issue_date=payload.issue_date or date.today(),
            due_date=payload.due_date,
            status=InvoiceStatus.draft if payload.draft else InvoiceStatus.open,
            discount=payload.discount,
            tax=payload.tax,
            currency=payload.currency,
            notes=payload.notes,
            internal_notes=payload.internal_notes,
            installment_id=payload.installment_id,
            number=payload.number,
            created_by=created_by,
        )
        _sync_client_payment_status(db, client)
        db.commit()
        db.refresh(invoice)
        logger.info(f"Invoice {invoice.number} created for client {client.id}")
        return invoice

    @staticmethod
    def get(db: Session, org_id, invoice_id):
        return _get_invoice(db, org_id, invoice_id)

    @staticmethod
    def list_client_invoices(db: Session, org_id, client_id) -> list[Invoice]:
        _validate_client(db, org_id, client_id)
        return (
            db.query(Invoice)
            .options(selectinload(Invoice.items))
            .filter(Invoice.org_id == coerce_uuid(org_id))
            .filter(Invoice.client_id == coerce_uuid(client_id))
            .filter(Invoice.deleted_at.is_(None))
            .order_by(Invoice.issue_date.desc(), Invoice.created_at.desc())
            .all()
        )

    @staticmethod
    def list_org_invoices(
        db: Session,
        org_id,
        status: str | None = None,
        q: str | None = None,
        issue_from: date | None = None,
        issue_to: date | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
        min_amount: Decimal | None = None,
        max_amount: Decimal | None = None,
        client_id=None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        query = (
            db.query(Invoice)
            .join(Client, Client.id == Invoice.client_id)
            .filter(Invoice.org_id == coerce_uuid(org_id))
            .filter(Invoice.deleted_at.is_(None))
        )
        if status:
            query = query.filter(
                Invoice.status == validate_enum(status, InvoiceStatus, "Status")
            )
        if client_id:
            query = query.filter(Invoice.client_id == coerce_uuid(client_id))
        if q:
            like = f"%{q.strip().lower()}%"
            query = query.filter(
                or_(
                    func.lower(Invoice.number).like(like),
                    func.lower(Invoice.notes).like(like),
                    func.lower(Client.name).like(like),
                )
            )
        if issue_from:
            query = query.filter(Invoice.issue_date >= issue_from)
        if issue_to:
            query = query.filter(Invoice.issue_date <= issue_to)
        if due_from:
            query = query.filter(Invoice.due_date >= due_from)
        if due_to:
            query = query.filter(Invoice.due_date <= due_to)
        if min_amount is not None:
            query = query.filter(Invoice.total >= min_amount)
        if max_amount is not None:
            query = query.filter(Invoice.total <= max_amount)
        total = query.count()
        page = max(page, 1)
        items = (
            query.options(selectinload(Invoice.items))
            .order_by(Invoice.issue_date.desc(), Invoice.created_at.desc())
            .limit(page_size)
            .offset((page - 1) * page_size)
            .all()
        )
        return paged_response(items, total, page, page_size)

    @staticmethod
    def update(db: Session, org_id, invoice_id, payload: InvoiceUpdate):
        invoice = _get_invoice(db, org_id, invoice_id)
        lifecycle.ensure_editable(invoice)
        data = payload.model_dump(exclude_unset=True)
        items = data.pop("items", None)
        if items is not None:
            _replace_items(invoice, payload.items)
        for key, value in data.items():
            if key in ("discount", "tax") and value is not None:
                value = round_money(value)
            setattr(invoice, key, value)
        lifecycle.validate_dates(invoice.issue_date, invoice.due_date)
        _recalculate_invoice_totals(invoice)
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def open(db: Session, org_id, invoice_id):
        invoice = _get_invoice(db, org_id, invoice_id)
        lifecycle.open_invoice(invoice)
        db.flush()
        client = db.get(Client, invoice.client_id)
        if client:
            _sync_client_payment_status(db, client)
        db.commit()
        db.refresh(invoice)
        return invoice

    @staticmethod
    def cancel_invoice(db: Session, org_id, invoice_id, reason: str | None = None):
        """Void an invoice that has not received any payment."""
        invoice = _get_invoice(db, org_id, invoice_id)
        if invoice.status not in (InvoiceStatus.paid, InvoiceStatus.void):
            has_payments = (
                db.query(Payment.id).filter(Payment.invoice_id == invoice.id).first()
            )
            if has_payments:
                raise HTTPException(
                    status_code=409, detail="Fatura possui pagamentos registrados"
                )
        lifecycle.cancel(invoice)
        if reason:
            stamp = format_date_br(date.today())
            note = f"[{stamp}] Cancelada: {reason}"
            invoice.internal_notes = (
                f"{invoice.internal_notes}\n{note}" if invoice.internal_notes else note
            )
        db.flush()
        client = db.get(Client, invoice.client_id)
        if client:
            _sync_client_payment_status(db, client)
        create_notification(
            db,
            org_id,
            NotificationType.billing_invoice_void,
            f"Fatura {invoice.number} cancelada",
            reason or "Fatura cancelada",
            client_id=invoice.client_id,
            invoice_id=invoice.id,
            link=invoice_link(invoice),
            priority=NotificationPriority.low,
            commit=False,
        )
        db.commit()
        db.refresh(invoice)
        logger.info(f"Invoice {invoice.number} voided")
        return invoice

    @staticmethod
    def mark_invoice_paid(
        db: Session,
        org_id,
        invoice_id,
        method: PaymentMethod | str = PaymentMethod.pix,
        amount: Decimal | None = None,
        paid_at: datetime | None = None,
        created_by=None,
    ) -> Payment:
        """Record a payment and its income entry in one transaction.

        The invoice becomes PAID once its payments cover the total.
        """
        invoice = _get_invoice(db, org_id, invoice_id)
        if invoice.status == InvoiceStatus.paid:
            raise HTTPException(status_code=409, detail="Fatura já está paga")
        if invoice.status == InvoiceStatus.void:
            raise HTTPException(
                status_code=409, detail="Fatura cancelada não pode ser paga"
            )
        payment_method = validate_enum(method, PaymentMethod, "Método de pagamento")
        paid_at = as_utc(paid_at) or utc_now()
        already_paid = _paid_amount(db, invoice)
        value = round_money(amount if amount is not None else invoice.total - already_paid)
        if value <= 0:
            raise HTTPException(
                status_code=400, detail="O valor do pagamento deve ser maior que zero"
            )
        days_late = max(0, (paid_at.date() - invoice.due_date).days)
        try:
            payment = Payment(
                org_id=invoice.org_id,
                invoice_id=invoice.id,
                client_id=invoice.client_id,
                amount=value,
                method=payment_method,
                paid_at=paid_at,
            )
            db.add(payment)
            db.add(
                Transaction(
                    org_id=invoice.org_id,
                    type=TransactionType.income,
                    subtype=TransactionSubtype.invoice_payment,
                    status=TransactionStatus.confirmed,
                    amount=value,
                    description=f"Pagamento da fatura {invoice.number}",
                    category="Faturas",
                    transaction_date=paid_at.date(),
                    client_id=invoice.client_id,
                    invoice_id=invoice.id,
                    metadata_={
                        "invoice_number": invoice.number,
                        "payment_method": payment_method.value,
                        "days_late": days_late,
                    },
                    created_by=coerce_uuid(created_by),
                )
            )
            if already_paid + value >= invoice.total:
                lifecycle.mark_paid(invoice, paid_at)
            db.flush()
            client = db.get(Client, invoice.client_id)
            if client:
                _sync_client_payment_status(db, client)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(payment)
        logger.info(
            f"Payment of {value} recorded for invoice {invoice.number} "
            f"(days_late={days_late})"
        )
        return payment

    @staticmethod
    def list_payments(db: Session, org_id, invoice_id) -> list[Payment]:
        invoice = _get_invoice(db, org_id, invoice_id)
        return (
            db.query(Payment)
            .filter(Payment.invoice_id == invoice.id)
            .order_by(Payment.paid_at.asc())
            .all()
        )

    @staticmethod
    def compose_invoice_whatsapp_message(db: Session, org_id, invoice_id) -> str:
        invoice = _get_invoice(db, org_id, invoice_id)
        client = db.get(Client, invoice.client_id)
        organization = db.get(Organization, invoice.org_id)
        pix_key = settings.pix_key or "CHAVE_PIX_NAO_CONFIGURADA"
        portal_url = f"{settings.app_url.rstrip('/')}{invoice_link(invoice)}"
        item_lines = "\n".join(
            f"• {item.description} ({item.quantity.normalize():f}x) = {format_brl(item.total)}"
            for item in invoice.items
        ) or "• Mensalidade"
        lines = [
            f"Olá {client.name if client else ''}!",
            "",
            "Segue sua cobrança referente aos serviços prestados em "
            f"{format_date_br(invoice.issue_date)}.",
            "",
            f"Fatura: {invoice.number}",
            f"Vencimento: {format_date_br(invoice.due_date)}",
            f"Status: {invoice.status.value.upper()}",
            "",
            "Itens:",
            item_lines,
            "",
            f"Total: {format_brl(invoice.total)}",
            "",
            f"Chave PIX para pagamento: {pix_key}",
        ]
        if organization and organization.name:
            lines.append(f"Razão Social: {organization.name}")
        if organization and organization.cnpj:
            lines.append(f"CNPJ: {organization.cnpj}")
        lines.extend(
            [
                f"Link da fatura / portal: {portal_url}",
                "",
                "Por favor, após realizar o pagamento, confirme pelo portal "
                "ou aguarde atualização automática.",
                "Muito obrigado!",
            ]
        )
        return "\n".join(lines)

    @staticmethod
    def update_overdue_invoices(
        db: Session, org_id, today: date | None = None, now: datetime | None = None
    ) -> int:
        """Move OPEN invoices past their due date to OVERDUE."""
        today = today or date.today()
        invoices = (
            db.query(Invoice)
            .filter(Invoice.org_id == coerce_uuid(org_id))
            .filter(Invoice.deleted_at.is_(None))
            .filter(Invoice.status == InvoiceStatus.open)
            .filter(Invoice.due_date < today)
            .all()
        )
        now = now or utc_now()
        for invoice in invoices:
            lifecycle.mark_overdue(invoice, now)
        db.commit()
        return len(invoices)

