"""Internal cost items, client cost subscriptions and their monthly materialization."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from clientdesk.metrics import COSTS_MATERIALIZED
from clientdesk.models.client import Client
from clientdesk.models.finance import (
    ClientCostSubscription,
    CostItem,
    Transaction,
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)
from clientdesk.schemas.finance import (
    CostItemCreate,
    CostItemUpdate,
    CostSubscriptionCreate,
    CostSubscriptionUpdate,
)
from clientdesk.services.common import (
    apply_pagination,
    coerce_uuid,
    get_org_entity,
    month_bounds,
    round_money,
    utc_now,
)
from clientdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

DEFAULT_COST_CATEGORY = "GERAL"


def _validate_cost_amount(amount: Decimal | None) -> None:
    if amount is None or amount <= 0:
        raise HTTPException(
            status_code=400, detail="O valor do custo deve ser maior que zero"
        )


def _validate_period(start: date | None, end: date | None) -> None:
    if start and end and end < start:
        raise HTTPException(
            status_code=400,
            detail="A data final não pode ser anterior à data inicial",
        )


def _get_cost_item(db: Session, org_id, cost_item_id) -> CostItem:
    item = db.get(CostItem, coerce_uuid(cost_item_id))
    if not item or item.org_id != coerce_uuid(org_id) or not item.active:
        raise HTTPException(status_code=404, detail="Item de custo não encontrado")
    return item


class CostItems(ListResponseMixin):
    @staticmethod
    def create(db: Session, org_id, payload: CostItemCreate):
        _validate_cost_amount(payload.amount)
        data = payload.model_dump()
        data["amount"] = round_money(data["amount"])
        item = CostItem(org_id=coerce_uuid(org_id), **data)
        db.add(item)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def get(db: Session, org_id, cost_item_id):
        return _get_cost_item(db, org_id, cost_item_id)

    @staticmethod
    def list(
        db: Session,
        org_id,
        active: bool | None,
        category: str | None,
        limit: int,
        offset: int,
    ):
        query = (
            db.query(CostItem)
            .options(selectinload(CostItem.subscriptions))
            .filter(CostItem.org_id == coerce_uuid(org_id))
        )
        if active is None:
            query = query.filter(CostItem.active.is_(True))
        else:
            query = query.filter(CostItem.active == active)
        if category:
            query = query.filter(CostItem.category == category)
        query = query.order_by(CostItem.name.asc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, org_id, cost_item_id, payload: CostItemUpdate):
        item = db.get(CostItem, coerce_uuid(cost_item_id))
        if not item or item.org_id != coerce_uuid(org_id):
            raise HTTPException(status_code=404, detail="Item de custo não encontrado")
        data = payload.model_dump(exclude_unset=True)
        if "amount" in data:
            _validate_cost_amount(data["amount"])
            data["amount"] = round_money(data["amount"])
        for key, value in data.items():
            setattr(item, key, value)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def delete(db: Session, org_id, cost_item_id):
        item = _get_cost_item(db, org_id, cost_item_id)
        item.active = False
        db.commit()


def _ensure_no_active_overlap(
    db: Session,
    org_id,
    client_id,
    cost_item_id,
    start_date: date,
    end_date: date | None,
    exclude_id=None,
) -> None:
    """Active subscriptions of a client to one cost item must not share days."""
    query = (
        db.query(ClientCostSubscription.id)
        .filter(ClientCostSubscription.org_id == coerce_uuid(org_id))
        .filter(ClientCostSubscription.client_id == coerce_uuid(client_id))
        .filter(ClientCostSubscription.cost_item_id == coerce_uuid(cost_item_id))
        .filter(ClientCostSubscription.active.is_(True))
        .filter(ClientCostSubscription.deleted_at.is_(None))
        .filter(
            or_(
                ClientCostSubscription.end_date.is_(None),
                ClientCostSubscription.end_date >= start_date,
            )
        )
    )
    if end_date is not None:
        query = query.filter(ClientCostSubscription.start_date <= end_date)
    if exclude_id is not None:
        query = query.filter(ClientCostSubscription.id != coerce_uuid(exclude_id))
    if query.first():
        raise HTTPException(
            status_code=409,
            detail="Já existe uma associação ativa para este cliente e custo",
        )


class CostSubscriptions(ListResponseMixin):
    @staticmethod
    def create(db: Session, org_id, payload: CostSubscriptionCreate, created_by=None):
        _validate_period(payload.start_date, payload.end_date)
        get_org_entity(db, Client, org_id, payload.client_id, "Cliente não encontrado")
        _get_cost_item(db, org_id, payload.cost_item_id)
        _ensure_no_active_overlap(
            db,
            org_id,
            payload.client_id,
            payload.cost_item_id,
            payload.start_date,
            payload.end_date,
        )
        subscription = ClientCostSubscription(
            org_id=coerce_uuid(org_id),
            created_by=coerce_uuid(created_by),
            **payload.model_dump(),
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def get(db: Session, org_id, subscription_id):
        return get_org_entity(
            db, ClientCostSubscription, org_id, subscription_id, "Associação não encontrada"
        )

    @staticmethod
    def list(
        db: Session,
        org_id,
        client_id: str | None,
        cost_item_id: str | None,
        active: bool | None,
        include_deleted: bool,
        limit: int,
        offset: int,
    ):
        query = db.query(ClientCostSubscription).filter(
            ClientCostSubscription.org_id == coerce_uuid(org_id)
        )
        if not include_deleted:
            query = query.filter(ClientCostSubscription.deleted_at.is_(None))
        if client_id:
            query = query.filter(ClientCostSubscription.client_id == coerce_uuid(client_id))
        if cost_item_id:
            query = query.filter(
                ClientCostSubscription.cost_item_id == coerce_uuid(cost_item_id)
            )
        if active is not None:
            query = query.filter(ClientCostSubscription.active == active)
        query = query.order_by(ClientCostSubscription.start_date.desc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, org_id, subscription_id, payload: CostSubscriptionUpdate):
        subscription = CostSubscriptions.get(db, org_id, subscription_id)
        data = payload.model_dump(exclude_unset=True)
        _validate_period(
            data.get("start_date", subscription.start_date),
            data.get("end_date", subscription.end_date),
        )
        if data.get("active", subscription.active):
            _ensure_no_active_overlap(
                db,
                org_id,
                subscription.client_id,
                subscription.cost_item_id,
                data.get("start_date") or subscription.start_date,
                data["end_date"] if "end_date" in data else subscription.end_date,
                exclude_id=subscription.id,
            )
        for key, value in data.items():
            setattr(subscription, key, value)
        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def delete(db: Session, org_id, subscription_id):
        subscription = CostSubscriptions.get(db, org_id, subscription_id)
        subscription.deleted_at = utc_now()
        subscription.active = False
        db.commit()


def materialize_monthly(
    db: Session, org_id, today: date | None = None, created_by=None
) -> dict[str, list]:
    """Turn the month's active cost subscriptions into expense transactions.

    A subscription already materialized for the client and cost item in the
    month is skipped, so reruns do not duplicate expenses.
    """
    today = today or date.today()
    first, last = month_bounds(today)
    subscriptions = (
        db.query(ClientCostSubscription)
        .options(
            selectinload(ClientCostSubscription.client),
            selectinload(ClientCostSubscription.cost_item),
        )
        .filter(ClientCostSubscription.org_id == coerce_uuid(org_id))
        .filter(ClientCostSubscription.active.is_(True))
        .filter(ClientCostSubscription.deleted_at.is_(None))
        .filter(ClientCostSubscription.start_date <= last)
        .filter(
            or_(
                ClientCostSubscription.end_date.is_(None),
                ClientCostSubscription.end_date >= first,
            )
        )
        .all()
    )
    results: dict[str, list] = {"success": [], "skipped": [], "errors": []}
    month_year = f"{today.month}/{today.year}"
    for subscription in subscriptions:
        client = subscription.client
        cost_item = subscription.cost_item
        existing = (
            db.query(Transaction.id)
            .filter(Transaction.org_id == coerce_uuid(org_id))
            .filter(Transaction.client_id == subscription.client_id)
            .filter(Transaction.cost_item_id == subscription.cost_item_id)
            .filter(Transaction.subtype == TransactionSubtype.internal_cost)
            .filter(Transaction.transaction_date >= first)
            .filter(Transaction.transaction_date <= last)
            .filter(Transaction.deleted_at.is_(None))
            .first()
        )
        if existing:
            results["skipped"].append(
                {
                    "subscription_id": str(subscription.id),
                    "client_name": client.name,
                    "reason": "Já materializado neste mês",
                }
            )
            COSTS_MATERIALIZED.labels(outcome="skipped").inc()
            continue
        if not cost_item.active or cost_item.amount is None or cost_item.amount <= 0:
            results["errors"].append(
                {
                    "subscription_id": str(subscription.id),
                    "client_name": client.name,
                    "error": "O valor do custo deve ser maior que zero",
                }
            )
            COSTS_MATERIALIZED.labels(outcome="error").inc()
            continue
        transaction = Transaction(
            org_id=coerce_uuid(org_id),
            type=TransactionType.expense,
            subtype=TransactionSubtype.internal_cost,
            status=TransactionStatus.confirmed,
            amount=round_money(cost_item.amount),
            description=f"{cost_item.name} - {client.name}",
            category=cost_item.category or DEFAULT_COST_CATEGORY,
            transaction_date=today,
            client_id=subscription.client_id,
            cost_item_id=subscription.cost_item_id,
            metadata_={
                "subscription_id": str(subscription.id),
                "cost_item_name": cost_item.name,
                "client_name": client.name,
                "month_year": month_year,
            },
            created_by=coerce_uuid(created_by),
        )
        db.add(transaction)
        db.flush()
        results["success"].append(
            {
                "subscription_id": str(subscription.id),
                "client_id": str(subscription.client_id),
                "client_name": client.name,
                "cost_item_name": cost_item.name,
                "transaction_id": str(transaction.id),
                "amount": transaction.amount,
            }
        )
        COSTS_MATERIALIZED.labels(outcome="success").inc()
    db.commit()
    logger.info(
        f"Cost materialization for org {org_id}: success={len(results['success'])} "
        f"skipped={len(results['skipped'])} errors={len(results['errors'])}"
    )
    return results


def calculate_client_margin(
    db: Session,
    org_id,
    client_id,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict:
    client = get_org_entity(db, Client, org_id, client_id, "Cliente não encontrado")
    query = (
        db.query(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.org_id == coerce_uuid(org_id))
        .filter(Transaction.client_id == client.id)
        .filter(Transaction.status == TransactionStatus.confirmed)
        .filter(Transaction.deleted_at.is_(None))
    )
    if date_from:
        query = query.filter(Transaction.transaction_date >= date_from)
    if date_to:
        query = query.filter(Transaction.transaction_date <= date_to)
    totals = {row[0]: round_money(row[1] or 0) for row in query.group_by(Transaction.type).all()}
    income = totals.get(TransactionType.income, Decimal("0.00"))
    expenses = totals.get(TransactionType.expense, Decimal("0.00"))
    net_profit = round_money(income - expenses)
    margin = round_money(net_profit / income * 100) if income > 0 else Decimal("0.00")
    return {
        "client_id": client.id,
        "income": income,
        "expenses": expenses,
        "net_profit": net_profit,
        "profit_margin": margin,
    }


cost_items = CostItems()
cost_subscriptions = CostSubscriptions()
