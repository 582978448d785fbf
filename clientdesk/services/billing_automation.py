from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clientdesk.config import settings
from clientdesk.metrics import record_invoices_generated, record_overdue
from clientdesk.models.billing import Installment, Invoice, InvoiceStatus
from clientdesk.models.client import Client, ClientPaymentStatus, ClientStatus
from clientdesk.models.finance import Transaction, TransactionStatus, TransactionType
from clientdesk.models.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
)
from clientdesk.schemas.billing import InvoiceItemCreate
from clientdesk.services import whatsapp
from clientdesk.services.billing import invoices as invoice_service
from clientdesk.services.billing import installments as installment_service
from clientdesk.services.billing._common import (
    _build_invoice,
    _sync_client_payment_status,
    _validate_client,
    format_date_br,
)
from clientdesk.services.billing.invoices import invoice_link
from clientdesk.services.billing.payments import monthly_due_date
from clientdesk.services.common import (
    add_months,
    clamp_day,
    coerce_uuid,
    month_bounds,
    month_key,
    round_money,
    utc_now,
)
from clientdesk.services.notifications import create_notification

logger = logging.getLogger(__name__)

MONTH_NAMES_PT = (
    "janeiro",
    "fevereiro",
    "março",
    "abril",
    "maio",
    "junho",
    "julho",
    "agosto",
    "setembro",
    "outubro",
    "novembro",
    "dezembro",
)
EXCLUDED_CLIENT_STATUSES = (ClientStatus.closed, ClientStatus.canceled)
DEFAULT_SMART_PAYMENT_DAY = 10
FINANCIAL_ALERT_TYPES = (NotificationType.billing_due_soon, NotificationType.billing_overdue)


def _month_label(value: date) -> str:
    return f"{MONTH_NAMES_PT[value.month - 1]} de {value.year}"


def _period_marker(value: date) -> str:
    return f"period:{month_key(value)}"


def _contract_active(client: Client, today: date) -> bool:
    if not client.contract_start or client.contract_start > today:
        return False
    if client.contract_end and client.contract_end < today:
        return False
    return True


def _blocked(client: Client, reason: str, block_type: str) -> dict:
    return {
        "client_id": str(client.id),
        "client_name": client.name,
        "reason": reason,
        "type": block_type,
    }


def _invoice_summary(invoice: Invoice, **extra: Any) -> dict:
    data = {
        "id": str(invoice.id),
        "client_id": str(invoice.client_id),
        "number": invoice.number,
        "total": invoice.total,
        "due_date": invoice.due_date.isoformat(),
    }
    data.update(extra)
    return data


# ---------------------------------------------------------------------------
# Monthly invoices (one per client per calendar month)
# ---------------------------------------------------------------------------


def _generate_monthly_invoice(
    db: Session, org_id, client: Client, today: date
) -> tuple[Invoice, bool]:
    if not client.contract_value:
        raise HTTPException(status_code=400, detail="Valor de contrato não definido")
    marker = _period_marker(today)
    existing = (
        db.query(Invoice)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.client_id == client.id)
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.notes.like(f"%{marker}%"))
        .first()
    )
    if existing:
        return existing, False
    due_date = monthly_due_date(client, today)
    invoice = _build_invoice(
        db,
        org_id,
        client,
        [InvoiceItemCreate(description="Mensalidade", unit_amount=client.contract_value)],
        issue_date=min(today, due_date),
        due_date=due_date,
        status=InvoiceStatus.open,
        notes=f"Mensalidade {_month_label(today)} | {marker}",
    )
    return invoice, True


def generate_monthly_invoice(
    db: Session, org_id, client_id, today: date | None = None
) -> Invoice:
    """Return the client's invoice for the month, creating it when missing."""
    today = today or date.today()
    client = _validate_client(db, org_id, client_id)
    invoice, created = _generate_monthly_invoice(db, org_id, client, today)
    if created:
        _sync_client_payment_status(db, client)
        db.commit()
        db.refresh(invoice)
        record_invoices_generated("monthly", 1)
        logger.info(f"Monthly invoice {invoice.number} generated for client {client.id}")
    return invoice


def count_financial_alerts(db: Session, org_id, member_id=None) -> int:
    query = (
        db.query(Notification)
        .filter(Notification.org_id == coerce_uuid(org_id))
        .filter(Notification.read.is_(False))
        .filter(Notification.type.in_(FINANCIAL_ALERT_TYPES))
    )
    if member_id:
        query = query.filter(Notification.member_id == coerce_uuid(member_id))
    return query.count()


def _already_alerted(db: Session, invoice: Invoice, notification_type: NotificationType) -> bool:
    return (
        db.query(Notification.id)
        .filter(Notification.invoice_id == invoice.id)
        .filter(Notification.type == notification_type)
        .filter(Notification.read.is_(False))
        .first()
        is not None
    )


def _send_whatsapp_alerts(
    db: Session,
    org_id,
    due_soon: list[Invoice],
    became_overdue: list[Invoice],
    generated: list[Invoice],
    send_alerts: bool,
    send_full: bool,
    summary: dict,
) -> None:
    if not whatsapp.is_enabled():
        logger.info("WhatsApp not configured; skipping billing messages")
        return
    phones: dict = {}
    for invoice in [*due_soon, *became_overdue, *generated]:
        if invoice.client_id not in phones:
            client = db.get(Client, invoice.client_id)
            phones[invoice.client_id] = client.phone if client else None

    if send_alerts:
        for invoice in due_soon:
            phone = phones.get(invoice.client_id)
            if not phone:
                continue
            body = (
                f"Olá! Sua fatura {invoice.number} vence em "
                f"{format_date_br(invoice.due_date)}. Acesse o portal para detalhes."
            )
            success, _, _ = whatsapp.send_message(phone, body)
            summary["notifications_sent"] += int(success)

    for invoice in became_overdue:
        phone = phones.get(invoice.client_id)
        if not phone:
            continue
        if send_full:
            body = invoice_service.compose_invoice_whatsapp_message(db, org_id, invoice.id)
            success, _, _ = whatsapp.send_message(phone, body)
            summary["whatsapp_full_sent_overdue"] += int(success)
        elif send_alerts:
            body = (
                f"Atenção: sua fatura {invoice.number} venceu em "
                f"{format_date_br(invoice.due_date)}. Para detalhes e pagamento PIX "
                "acesse o portal."
            )
            success, _, _ = whatsapp.send_message(phone, body)
            summary["notifications_sent"] += int(success)

    if send_full:
        for invoice in generated:
            phone = phones.get(invoice.client_id)
            if not phone:
                continue
            body = invoice_service.compose_invoice_whatsapp_message(db, org_id, invoice.id)
            success, _, _ = whatsapp.send_message(phone, body)
            summary["whatsapp_full_sent_new"] += int(success)


def daily_job(
    db: Session,
    org_id,
    today: date | None = None,
    send_notifications: bool = False,
    send_whatsapp_full: bool | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Run the daily billing routine for one organization.

    Updates late installments, generates the month's invoices, marks overdue
    invoices and raises due-soon and overdue alerts.
    """
    now = now or utc_now()
    today = today or now.date()
    summary: dict[str, Any] = {
        "generated_count": 0,
        "overdue_marked": 0,
        "due_soon": 0,
        "overdue_notified": 0,
        "notifications_sent": 0,
        "whatsapp_full_sent_new": 0,
        "whatsapp_full_sent_overdue": 0,
        "errors": [],
    }

    installment_service.update_late_installments(db, org_id, today)

    clients = (
        db.query(Client)
        .filter(Client.org_id == coerce_uuid(org_id))
        .filter(Client.deleted_at.is_(None))
        .filter(Client.status.notin_(EXCLUDED_CLIENT_STATUSES))
        .order_by(Client.name.asc())
        .all()
    )
    generated: list[Invoice] = []
    for client in clients:
        if not _contract_active(client, today):
            continue
        if client.is_installment or not client.contract_value:
            continue
        try:
            invoice, created = _generate_monthly_invoice(db, org_id, client, today)
            db.commit()
        except HTTPException as exc:
            db.rollback()
            logger.warning(f"Monthly invoice skipped for client {client.id}: {exc.detail}")
            summary["errors"].append({"client_id": str(client.id), "error": exc.detail})
            continue
        if created:
            generated.append(invoice)
    summary["generated_count"] = len(generated)
    record_invoices_generated("monthly", len(generated))

    summary["overdue_marked"] = invoice_service.update_overdue_invoices(
        db, org_id, today, now
    )
    record_overdue(summary["overdue_marked"])

    late_client_ids = (
        select(Invoice.client_id)
        .where(Invoice.org_id == coerce_uuid(org_id))
        .where(Invoice.deleted_at.is_(None))
        .where(Invoice.status == InvoiceStatus.overdue)
    )
    db.query(Client).filter(Client.id.in_(late_client_ids)).update(
        {Client.payment_status: ClientPaymentStatus.late}, synchronize_session=False
    )
    db.commit()

    soon = today + timedelta(days=settings.invoice_due_soon_days)
    due_soon = (
        db.query(Invoice)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.status == InvoiceStatus.open)
        .filter(Invoice.due_date >= today)
        .filter(Invoice.due_date <= soon)
        .all()
    )
    became_overdue = (
        db.query(Invoice)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.status == InvoiceStatus.overdue)
        .filter(Invoice.overdue_at >= now - timedelta(hours=24))
        .all()
    )
    summary["due_soon"] = len(due_soon)
    summary["overdue_notified"] = len(became_overdue)

    for invoice in due_soon:
        if _already_alerted(db, invoice, NotificationType.billing_due_soon):
            continue
        create_notification(
            db,
            org_id,
            NotificationType.billing_due_soon,
            f"Fatura {invoice.number} vence em breve",
            f"Vence em {format_date_br(invoice.due_date)}",
            client_id=invoice.client_id,
            invoice_id=invoice.id,
            link=invoice_link(invoice),
            priority=NotificationPriority.medium,
            commit=False,
        )
    for invoice in became_overdue:
        if _already_alerted(db, invoice, NotificationType.billing_overdue):
            continue
        create_notification(
            db,
            org_id,
            NotificationType.billing_overdue,
            f"Fatura {invoice.number} vencida",
            f"Venceu em {format_date_br(invoice.due_date)}",
            client_id=invoice.client_id,
            invoice_id=invoice.id,
            link=invoice_link(invoice),
            priority=NotificationPriority.high,
            commit=False,
        )
    db.commit()

    send_full = (
        send_whatsapp_full
        if send_whatsapp_full is not None
        else settings.whatsapp_send_automatic
    )
    if send_notifications or send_full:
        _send_whatsapp_alerts(
            db,
            org_id,
            due_soon,
            became_overdue,
            generated,
            send_alerts=send_notifications,
            send_full=send_full,
            summary=summary,
        )

    logger.info(
        f"Daily billing for org {org_id}: generated={summary['generated_count']} "
        f"overdue={summary['overdue_marked']} due_soon={summary['due_soon']}"
    )
    return summary


# ---------------------------------------------------------------------------
# Smart monthly generation (installment-aware)
# ---------------------------------------------------------------------------


def build_installment_plan(
    start_number: int,
    count: int,
    amount: Decimal,
    payment_days: list[int],
    today: date,
    plan_name: str,
) -> list[dict]:
    """Plan the next installments across the client's payment days.

    Consecutive installments cycle through the payment days and advance one
    month each time the list wraps around. Dates already in the past move
    one month forward.
    """
    plan = []
    for index in range(count):
        number = start_number + index
        day = payment_days[index % len(payment_days)]
        target = add_months(today.replace(day=1), index // len(payment_days))
        due_date = clamp_day(target.year, target.month, day)
        if due_date < today:
            shifted = add_months(due_date.replace(day=1), 1)
            due_date = clamp_day(shifted.year, shifted.month, day)
        plan.append(
            {
                "installment_number": number,
                "due_date": due_date,
                "amount": round_money(amount),
                "description": f"Parcela {number} - {plan_name} - {_month_label(due_date)}",
            }
        )
    return plan


def _generate_installment_invoices(
    db: Session, org_id, client: Client, today: date, created_by=None
) -> dict:
    total_installments = client.installment_count or 0
    generated_count = (
        db.query(Invoice)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.client_id == client.id)
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.notes.like("Parcela%"))
        .count()
    )
    if total_installments and generated_count >= total_installments:
        return {
            "invoices": [],
            "blocked": _blocked(
                client,
                f"Todas as {total_installments} parcelas já foram geradas",
                "ALL_INSTALLMENTS_GENERATED",
            ),
        }
    remaining = max(0, total_installments - generated_count)
    payment_days = client.installment_payment_days or [
        client.payment_day or DEFAULT_SMART_PAYMENT_DAY
    ]
    plan_name = client.plan.value.capitalize() if client.plan else "Serviços"
    plan = build_installment_plan(
        generated_count + 1,
        remaining,
        client.installment_value or Decimal("0"),
        payment_days,
        today,
        plan_name,
    )
    created: list[dict] = []
    for entry in plan[: min(settings.installment_batch_size, remaining)]:
        existing = (
            db.query(Invoice.id)
            .filter(Invoice.org_id == coerce_uuid(org_id))
            .filter(Invoice.client_id == client.id)
            .filter(Invoice.deleted_at.is_(None))
            .filter(Invoice.due_date == entry["due_date"])
            .first()
        )
        if existing:
            continue
        installment = (
            db.query(Installment)
            .filter(Installment.client_id == client.id)
            .filter(Installment.number == entry["installment_number"])
            .first()
        )
        invoice = _build_invoice(
            db,
            org_id,
            client,
            [InvoiceItemCreate(description=entry["description"], unit_amount=entry["amount"])],
            issue_date=today,
            due_date=entry["due_date"],
            status=InvoiceStatus.open,
            notes=f"Parcela {entry['installment_number']} de {total_installments}",
            installment_id=installment.id if installment else None,
            created_by=created_by,
        )
        created.append(
            _invoice_summary(
                invoice,
                kind="installment",
                installment_info={
                    "current": entry["installment_number"],
                    "total": total_installments,
                    "remaining": max(0, total_installments - entry["installment_number"]),
                },
            )
        )
    return {"invoices": created, "blocked": None}


def _generate_regular_invoice(
    db: Session, org_id, client: Client, today: date, created_by=None
) -> dict:
    payment_day = client.payment_day or DEFAULT_SMART_PAYMENT_DAY
    due_date = clamp_day(today.year, today.month, payment_day)
    if due_date < today:
        shifted = add_months(today.replace(day=1), 1)
        due_date = clamp_day(shifted.year, shifted.month, payment_day)
    # One regular invoice per due month.
    first, last = month_bounds(due_date)
    existing = (
        db.query(Invoice.id)
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.client_id == client.id)
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.due_date >= first)
        .filter(Invoice.due_date <= last)
        .first()
    )
    if existing:
        return {
            "invoice": None,
            "blocked": _blocked(
                client, "Fatura já gerada neste mês", "MONTHLY_ALREADY_GENERATED"
            ),
        }
    plan_name = client.plan.value.capitalize() if client.plan else "Serviços de gestão"
    invoice = _build_invoice(
        db,
        org_id,
        client,
        [
            InvoiceItemCreate(
                description=f"{plan_name} - {_month_label(today)}",
                unit_amount=client.contract_value,
            )
        ],
        issue_date=today,
        due_date=due_date,
        status=InvoiceStatus.open,
        notes="Fatura mensal",
        created_by=created_by,
    )
    return {"invoice": _invoice_summary(invoice, kind="regular"), "blocked": None}


def generate_smart_monthly_invoices(
    db: Session, org_id, today: date | None = None, created_by=None
) -> dict[str, Any]:
    today = today or date.today()
    clients = (
        db.query(Client)
        .filter(Client.org_id == coerce_uuid(org_id))
        .filter(Client.deleted_at.is_(None))
        .filter(Client.contract_value > 0)
        .filter(Client.status.notin_(EXCLUDED_CLIENT_STATUSES))
        .order_by(Client.name.asc())
        .all()
    )
    results: dict[str, list] = {"success": [], "blocked": [], "errors": []}
    installments_generated = 0
    regular_generated = 0
    total_amount = Decimal("0.00")

    for client in clients:
        if client.contract_end and client.contract_end < today:
            results["blocked"].append(_blocked(client, "Contrato encerrado", "CONTRACT_ENDED"))
            continue
        if client.contract_start and client.contract_start > today:
            results["blocked"].append(
                _blocked(client, "Contrato ainda não iniciado", "CONTRACT_NOT_STARTED")
            )
            continue
        try:
            if client.is_installment and client.installment_count and client.installment_value:
                outcome = _generate_installment_invoices(db, org_id, client, today, created_by)
                if outcome["blocked"]:
                    results["blocked"].append(outcome["blocked"])
                else:
                    installments_generated += len(outcome["invoices"])
                    total_amount += sum(
                        (item["total"] for item in outcome["invoices"]), Decimal("0")
                    )
                    results["success"].extend(outcome["invoices"])
            else:
                outcome = _generate_regular_invoice(db, org_id, client, today, created_by)
                if outcome["blocked"]:
                    results["blocked"].append(outcome["blocked"])
                else:
                    regular_generated += 1
                    total_amount += outcome["invoice"]["total"]
                    results["success"].append(outcome["invoice"])
            _sync_client_payment_status(db, client)
            db.commit()
        except HTTPException as exc:
            db.rollback()
            logger.warning(f"Invoice generation failed for client {client.id}: {exc.detail}")
            results["errors"].append(
                {
                    "client_id": str(client.id),
                    "client_name": client.name,
                    "error": exc.detail,
                    "type": "GENERATION_ERROR",
                }
            )

    record_invoices_generated("installment", installments_generated)
    record_invoices_generated("regular", regular_generated)
    logger.info(
        f"Smart invoice generation for org {org_id}: "
        f"generated={len(results['success'])} blocked={len(results['blocked'])} "
        f"errors={len(results['errors'])}"
    )
    return {
        **results,
        "summary": {
            "total": len(clients),
            "generated": len(results["success"]),
            "blocked": len(results["blocked"]),
            "errors": len(results["errors"]),
            "total_amount": round_money(total_amount),
            "installments": installments_generated,
            "regular": regular_generated,
        },
    }


def update_overdue_invoices(db: Session, org_id, today: date | None = None) -> int:
    count = invoice_service.update_overdue_invoices(db, org_id, today)
    record_overdue(count)
    return count


def sync_client_financial_data(db: Session, org_id, client_id) -> ClientPaymentStatus:
    client = _validate_client(db, org_id, client_id)
    status = _sync_client_payment_status(db, client)
    db.commit()
    return status


def calculate_projection(
    db: Session, org_id, months: int = 3, today: date | None = None
) -> dict[str, list]:
    """Expected and confirmed revenue for the next months."""
    today = today or date.today()
    clients = (
        db.query(Client)
        .filter(Client.org_id == coerce_uuid(org_id))
        .filter(Client.deleted_at.is_(None))
        .filter(Client.status == ClientStatus.active)
        .filter(Client.contract_value > 0)
        .all()
    )
    projections = []
    for offset in range(months):
        target = add_months(today.replace(day=1), offset)
        first, last = month_bounds(target)
        expected = Decimal("0.00")
        active_clients = 0
        for client in clients:
            start = client.contract_start or date.min
            end = client.contract_end or date.max
            if start <= target <= end:
                active_clients += 1
                if client.is_installment and client.installment_value:
                    expected += client.installment_value
                else:
                    expected += client.contract_value or Decimal("0")
        confirmed = (
            db.query(func.coalesce(func.sum(Transaction.amount), 0))
            .filter(Transaction.org_id == coerce_uuid(org_id))
            .filter(Transaction.type == TransactionType.income)
            .filter(Transaction.status == TransactionStatus.confirmed)
            .filter(Transaction.deleted_at.is_(None))
            .filter(Transaction.transaction_date >= first)
            .filter(Transaction.transaction_date <= last)
            .scalar()
        )
        projections.append(
            {
                "month": month_key(target),
                "label": _month_label(target),
                "expected_revenue": round_money(expected),
                "confirmed_revenue": round_money(confirmed or 0),
                "clients": active_clients,
            }
        )
    return {"projections": projections}
