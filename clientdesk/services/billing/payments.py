"""Monthly and installment payment reconciliation."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from clientdesk.config import settings
from clientdesk.models.billing import Installment, InstallmentStatus
from clientdesk.models.client import Client, ClientPaymentStatus
from clientdesk.models.finance import (
    Transaction,
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)
from clientdesk.models.notification import NotificationType
from clientdesk.services.billing._common import _validate_client, format_brl
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

# Monthly-mode due day is kept inside 1..28 so it exists in every month.
MAX_MONTHLY_DUE_DAY = 28


def monthly_due_date(client: Client, reference: date) -> date:
    day = client.payment_day or settings.default_payment_day
    day = max(1, min(day, MAX_MONTHLY_DUE_DAY))
    return clamp_day(reference.year, reference.month, day)


def _month_income(db: Session, client: Client, reference: date) -> Decimal:
    first, last = month_bounds(reference)
    total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.org_id == client.org_id)
        .filter(Transaction.client_id == client.id)
        .filter(Transaction.type == TransactionType.income)
        .filter(Transaction.status == TransactionStatus.confirmed)
        .filter(Transaction.deleted_at.is_(None))
        .filter(Transaction.transaction_date >= first)
        .filter(Transaction.transaction_date <= last)
        .scalar()
    )
    return round_money(total or 0)


def _installment_query(db: Session, org_id):
    return (
        db.query(Installment)
        .join(Client, Client.id == Installment.client_id)
        .filter(Client.org_id == coerce_uuid(org_id))
    )


def _refresh_installment_payment_status(
    db: Session, client: Client, today: date
) -> ClientPaymentStatus:
    installments = (
        db.query(Installment).filter(Installment.client_id == client.id).all()
    )
    late = any(
        item.status == InstallmentStatus.late
        or (item.status == InstallmentStatus.pending and item.due_date < today)
        for item in installments
    )
    due_pending = any(
        item.status != InstallmentStatus.confirmed and item.due_date <= today
        for item in installments
    )
    if late:
        client.payment_status = ClientPaymentStatus.late
    elif due_pending:
        client.payment_status = ClientPaymentStatus.pending
    else:
        client.payment_status = ClientPaymentStatus.confirmed
    return client.payment_status


class MonthlyPayments:
    @staticmethod
    def get_monthly_payment_status(
        db: Session, org_id, client_id, today: date | None = None
    ) -> dict:
        today = today or date.today()
        client = _validate_client(db, org_id, client_id)
        if client.is_installment:
            first, last = month_bounds(today)
            installments = (
                db.query(Installment)
                .filter(Installment.client_id == client.id)
                .filter(Installment.due_date >= first)
                .filter(Installment.due_date <= last)
                .order_by(Installment.number.asc())
                .all()
            )
            confirmed = [
                item for item in installments
                if item.status == InstallmentStatus.confirmed
            ]
            pending = [
                item for item in installments
                if item.status != InstallmentStatus.confirmed
            ]
            is_paid = bool(installments) and not pending
            latest_due = max((item.due_date for item in installments), default=None)
            return {
                "mode": "installment",
                "month": month_key(today),
                "is_paid": is_paid,
                "is_late": bool(installments)
                and not is_paid
                and latest_due is not None
                and today > latest_due,
                "due_date": latest_due,
                "expected_amount": round_money(
                    sum((item.amount for item in installments), Decimal("0"))
                ),
                "paid_amount": round_money(
                    sum((item.amount for item in confirmed), Decimal("0"))
                ),
                "installments": {
                    "total": len(installments),
                    "paid": len(confirmed),
                    "pending": len(pending),
                    "next_pending_id": pending[0].id if pending else None,
                },
            }

        if not client.contract_value:
            raise HTTPException(
                status_code=400,
                detail="Cliente não possui valor de contrato definido",
            )
        due_date = monthly_due_date(client, today)
        paid_amount = _month_income(db, client, today)
        threshold = round_money(
            client.contract_value * (Decimal("1") - settings.monthly_payment_tolerance)
        )
        is_paid = paid_amount >= threshold
        return {
            "mode": "monthly",
            "month": month_key(today),
            "is_paid": is_paid,
            "is_late": not is_paid and today > due_date,
            "due_date": due_date,
            "expected_amount": round_money(client.contract_value),
            "paid_amount": paid_amount,
            "installments": None,
        }

    @staticmethod
    def confirm_monthly_payment(
        db: Session,
        org_id,
        client_id,
        amount: Decimal | None = None,
        today: date | None = None,
        created_by=None,
    ) -> Transaction:
        today = today or date.today()
        client = _validate_client(db, org_id, client_id)
        if client.is_installment:
            raise HTTPException(
                status_code=400,
                detail="Cliente está em modo parcelado. Use a confirmação de parcelas.",
            )
        value = amount if amount is not None else client.contract_value
        if not value:
            raise HTTPException(
                status_code=400,
                detail="Cliente não possui valor de contrato definido",
            )
        first, last = month_bounds(today)
        existing = (
            db.query(Transaction.id)
            .filter(Transaction.org_id == client.org_id)
            .filter(Transaction.client_id == client.id)
            .filter(Transaction.type == TransactionType.income)
            .filter(Transaction.deleted_at.is_(None))
            .filter(Transaction.status != TransactionStatus.cancelled)
            .filter(Transaction.transaction_date >= first)
            .filter(Transaction.transaction_date <= last)
            .first()
        )
        if existing:
            raise HTTPException(
                status_code=409,
                detail="Já existe um pagamento registrado para este mês",
            )
        try:
            transaction = Transaction(
                org_id=client.org_id,
                type=TransactionType.income,
                subtype=TransactionSubtype.monthly_fee,
                status=TransactionStatus.confirmed,
                amount=round_money(value),
                description=f"Mensalidade {month_key(today)} - {client.name}",
                category="Mensalidade",
                transaction_date=today,
                client_id=client.id,
                metadata_={"month": month_key(today)},
                created_by=coerce_uuid(created_by),
            )
            db.add(transaction)
            client.payment_status = ClientPaymentStatus.confirmed
            create_notification(
                db,
                org_id,
                NotificationType.payment_confirmed,
                f"Pagamento confirmado - {client.name}",
                f"Mensalidade de {format_brl(transaction.amount)} registrada",
                client_id=client.id,
                link=f"/clients/{client.id}/billing",
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(transaction)
        logger.info(f"Monthly payment confirmed for client {client.id}")
        return transaction


class Installments:
    @staticmethod
    def create_installment_plan(
        db: Session,
        org_id,
        client_id,
        count: int,
        start_date: date | None = None,
    ) -> list[Installment]:
        client = _validate_client(db, org_id, client_id)
        if count < 1:
            raise HTTPException(
                status_code=400, detail="Número de parcelas deve ser maior que zero"
            )
        if not client.contract_value:
            raise HTTPException(
                status_code=400,
                detail="Cliente não possui valor de contrato definido",
            )
        existing = (
            db.query(Installment.id).filter(Installment.client_id == client.id).first()
        )
        if existing:
            raise HTTPException(
                status_code=409, detail="Cliente já possui parcelas cadastradas"
            )
        start = start_date or client.contract_start or date.today()
        base_value = round_money(Decimal(client.contract_value) / count)
        remainder = round_money(Decimal(client.contract_value) - base_value * count)
        installments: list[Installment] = []
        try:
            for index in range(count):
                amount = base_value
                if index == count - 1:
                    amount = round_money(base_value + remainder)
                installment = Installment(
                    client_id=client.id,
                    number=index + 1,
                    amount=amount,
                    due_date=add_months(start, index),
                    status=InstallmentStatus.pending,
                )
                db.add(installment)
                installments.append(installment)
            client.is_installment = True
            client.installment_count = count
            client.installment_value = base_value
            create_notification(
                db,
                org_id,
                NotificationType.installment_created,
                f"Parcelamento criado - {client.name}",
                f"{count} parcelas de {format_brl(base_value)}",
                client_id=client.id,
                link=f"/clients/{client.id}/billing",
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        for installment in installments:
            db.refresh(installment)
        logger.info(f"Installment plan of {count} created for client {client.id}")
        return installments

    @staticmethod
    def get_client_installments(db: Session, org_id, client_id) -> dict:
        client = _validate_client(db, org_id, client_id)
        installments = (
            db.query(Installment)
            .filter(Installment.client_id == client.id)
            .order_by(Installment.number.asc())
            .all()
        )
        return {
            "installments": installments,
            "total_installments": client.installment_count or len(installments),
        }

    @staticmethod
    def confirm_installment_payment(
        db: Session,
        org_id,
        installment_id,
        today: date | None = None,
        created_by=None,
    ) -> Installment:
        today = today or date.today()
        installment = (
            _installment_query(db, org_id)
            .filter(Installment.id == coerce_uuid(installment_id))
            .first()
        )
        if not installment:
            raise HTTPException(status_code=404, detail="Parcela não encontrada")
        if installment.status == InstallmentStatus.confirmed:
            raise HTTPException(status_code=409, detail="Parcela já foi confirmada")
        client = db.get(Client, installment.client_id)
        try:
            installment.status = InstallmentStatus.confirmed
            installment.paid_at = utc_now()
            db.add(
                Transaction(
                    org_id=client.org_id,
                    type=TransactionType.income,
                    subtype=TransactionSubtype.installment,
                    status=TransactionStatus.confirmed,
                    amount=round_money(installment.amount),
                    description=f"Parcela {installment.number} - {client.name}",
                    category="Parcelas",
                    transaction_date=today,
                    client_id=client.id,
                    metadata_={
                        "installment_id": str(installment.id),
                        "installment_number": installment.number,
                    },
                    created_by=coerce_uuid(created_by),
                )
            )
            db.flush()
            _refresh_installment_payment_status(db, client, today)
            create_notification(
                db,
                org_id,
                NotificationType.installment_confirmed,
                f"Parcela {installment.number} confirmada - {client.name}",
                f"Pagamento de {format_brl(installment.amount)} registrado",
                client_id=client.id,
                link=f"/clients/{client.id}/billing",
                commit=False,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(installment)
        return installment

    @staticmethod
    def update_late_installments(db: Session, org_id, today: date | None = None) -> int:
        """Mark PENDING installments past their due date as LATE."""
        today = today or date.today()
        late = (
            _installment_query(db, org_id)
            .filter(Installment.status == InstallmentStatus.pending)
            .filter(Installment.due_date < today)
            .all()
        )
        for installment in late:
            installment.status = InstallmentStatus.late
        db.commit()
        return len(late)

