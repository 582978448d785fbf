"""Financial transaction (ledger) services."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import case, func
from sqlalchemy.orm import Session

from clientdesk.models.billing import Invoice
from clientdesk.models.client import Client
from clientdesk.models.finance import (
    CostItem,
    Transaction,
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)
from clientdesk.schemas.finance import TransactionCreate, TransactionUpdate
from clientdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_org_entity,
    round_money,
    utc_now,
    validate_enum,
)
from clientdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _validate_amount(amount: Decimal | None) -> None:
    if amount is None or amount <= 0:
        raise HTTPException(
            status_code=400, detail="O valor da transação deve ser maior que zero"
        )


def _validate_date(value: date | None, today: date) -> None:
    if value and value > today:
        raise HTTPException(
            status_code=400, detail="A data da transação não pode ser no futuro"
        )


def _validate_references(db: Session, org_id, data: dict) -> None:
    """Linked client, invoice and cost item must belong to the organization."""
    if data.get("client_id"):
        get_org_entity(db, Client, org_id, data["client_id"], "Cliente não encontrado")
    if data.get("invoice_id"):
        get_org_entity(db, Invoice, org_id, data["invoice_id"], "Fatura não encontrada")
    if data.get("cost_item_id"):
        get_org_entity(
            db, CostItem, org_id, data["cost_item_id"], "Item de custo não encontrado"
        )


class Transactions(ListResponseMixin):
    @staticmethod
    def create(
        db: Session,
        org_id,
        payload: TransactionCreate,
        created_by=None,
        today: date | None = None,
    ):
        _validate_amount(payload.amount)
        _validate_date(payload.transaction_date, today or date.today())
        data = payload.model_dump()
        _validate_references(db, org_id, data)
        data["amount"] = round_money(data["amount"])
        transaction = Transaction(
            org_id=coerce_uuid(org_id), created_by=coerce_uuid(created_by), **data
        )
        db.add(transaction)
        db.commit()
        db.refresh(transaction)
        return transaction

    @staticmethod
    def get(db: Session, org_id, transaction_id):
        return get_org_entity(
            db, Transaction, org_id, transaction_id, "Transação não encontrada"
        )

    @staticmethod
    def list(
        db: Session,
        org_id,
        type: str | None,
        subtype: str | None,
        status: str | None,
        client_id: str | None,
        invoice_id: str | None,
        cost_item_id: str | None,
        category: str | None,
        date_from: date | None,
        date_to: date | None,
        include_deleted: bool,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(Transaction).filter(Transaction.org_id == coerce_uuid(org_id))
        if not include_deleted:
            query = query.filter(Transaction.deleted_at.is_(None))
        if type:
            query = query.filter(
                Transaction.type == validate_enum(type, TransactionType, "Tipo")
            )
        if subtype:
            query = query.filter(
                Transaction.subtype
                == validate_enum(subtype, TransactionSubtype, "Subtipo")
            )
        if status:
            query = query.filter(
                Transaction.status == validate_enum(status, TransactionStatus, "Status")
            )
        if client_id:
            query = query.filter(Transaction.client_id == coerce_uuid(client_id))
        if invoice_id:
            query = query.filter(Transaction.invoice_id == coerce_uuid(invoice_id))
        if cost_item_id:
            query = query.filter(Transaction.cost_item_id == coerce_uuid(cost_item_id))
        if category:
            query = query.filter(Transaction.category == category)
        if date_from:
            query = query.filter(Transaction.transaction_date >= date_from)
        if date_to:
            query = query.filter(Transaction.transaction_date <= date_to)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "date": Transaction.transaction_date,
                "amount": Transaction.amount,
                "created_at": Transaction.created_at,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(
        db: Session,
        org_id,
        transaction_id,
        payload: TransactionUpdate,
        today: date | None = None,
    ):
        transaction = Transactions.get(db, org_id, transaction_id)
        data = payload.model_dump(exclude_unset=True)
        if "amount" in data:
            _validate_amount(data["amount"])
            data["amount"] = round_money(data["amount"])
        if "transaction_date" in data:
            _validate_date(data["transaction_date"], today or date.today())
        _validate_references(db, org_id, data)
        for key, value in data.items():
            setattr(transaction, key, value)
        db.commit()
        db.refresh(transaction)
        return transaction

    @staticmethod
    def delete(db: Session, org_id, transaction_id):
        transaction = Transactions.get(db, org_id, transaction_id)
        transaction.deleted_at = utc_now()
        db.commit()
        logger.info(f"Transaction {transaction.id} soft-deleted")

    @staticmethod
    def summary(
        db: Session, org_id, date_from: date | None = None, date_to: date | None = None
    ) -> dict:
        """Confirmed income, expense and net over an optional date window."""
        income_expr = func.coalesce(
            func.sum(
                case((Transaction.type == TransactionType.income, Transaction.amount), else_=0)
            ),
            0,
        )
        expense_expr = func.coalesce(
            func.sum(
                case((Transaction.type == TransactionType.expense, Transaction.amount), else_=0)
            ),
            0,
        )
        query = (
            db.query(income_expr, expense_expr, func.count(Transaction.id))
            .filter(Transaction.org_id == coerce_uuid(org_id))
            .filter(Transaction.status == TransactionStatus.confirmed)
            .filter(Transaction.deleted_at.is_(None))
        )
        if date_from:
            query = query.filter(Transaction.transaction_date >= date_from)
        if date_to:
            query = query.filter(Transaction.transaction_date <= date_to)
        income, expense, count = query.one()
        income = round_money(income or 0)
        expense = round_money(expense or 0)
        return {
            "income": income,
            "expense": expense,
            "net": round_money(income - expense),
            "count": count,
        }


transactions = Transactions()
