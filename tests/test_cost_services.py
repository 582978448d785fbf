from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from clientdesk.models.finance import Transaction, TransactionSubtype, TransactionType
from clientdesk.schemas.finance import (
    CostItemCreate,
    CostItemUpdate,
    CostSubscriptionCreate,
    CostSubscriptionUpdate,
    TransactionCreate,
)
from clientdesk.services import costs as costs_service
from clientdesk.services import transactions as transactions_service


@pytest.fixture()
def cost_item(db_session, organization):
    return costs_service.cost_items.create(
        db_session,
        organization.id,
        CostItemCreate(name="Licença Canva", amount=Decimal("49.90"), category="Software"),
    )


def _subscribe(db_session, organization, client, cost_item, **fields):
    data = {
        "client_id": client.id,
        "cost_item_id": cost_item.id,
        "start_date": date(2024, 1, 1),
    }
    data.update(fields)
    return costs_service.cost_subscriptions.create(
        db_session, organization.id, CostSubscriptionCreate(**data)
    )


def test_cost_item_requires_positive_amount(db_session, organization):
    with pytest.raises(HTTPException) as exc:
        costs_service.cost_items.create(
            db_session, organization.id, CostItemCreate(name="Grátis", amount=Decimal("0"))
        )
    assert exc.value.status_code == 400


def test_cost_item_delete_deactivates(db_session, organization, cost_item):
    costs_service.cost_items.delete(db_session, organization.id, cost_item.id)
    with pytest.raises(HTTPException) as exc:
        costs_service.cost_items.get(db_session, organization.id, cost_item.id)
    assert exc.value.status_code == 404
    inactive = costs_service.cost_items.list(
        db_session, organization.id, active=False, category=None, limit=10, offset=0
    )
    assert [item.id for item in inactive] == [cost_item.id]


def test_cost_item_update_rounds_amount(db_session, organization, cost_item):
    updated = costs_service.cost_items.update(
        db_session, organization.id, cost_item.id, CostItemUpdate(amount=Decimal("59.999"))
    )
    assert updated.amount == Decimal("60.00")


def test_subscription_rejects_inverted_period(db_session, organization, client, cost_item):
    with pytest.raises(HTTPException) as exc:
        _subscribe(
            db_session,
            organization,
            client,
            cost_item,
            start_date=date(2024, 5, 1),
            end_date=date(2024, 4, 1),
        )
    assert exc.value.status_code == 400


def test_subscription_rejects_overlap(db_session, organization, client, cost_item):
    _subscribe(db_session, organization, client, cost_item, end_date=date(2024, 3, 31))
    with pytest.raises(HTTPException) as exc:
        _subscribe(db_session, organization, client, cost_item, start_date=date(2024, 3, 1))
    assert exc.value.status_code == 409
    later = _subscribe(
        db_session, organization, client, cost_item, start_date=date(2024, 4, 1)
    )
    assert later.active is True


def test_subscription_update_rechecks_overlap(db_session, organization, client, cost_item):
    first = _subscribe(db_session, organization, client, cost_item, end_date=date(2024, 3, 31))
    _subscribe(db_session, organization, client, cost_item, start_date=date(2024, 4, 1))

    with pytest.raises(HTTPException) as exc:
        costs_service.cost_subscriptions.update(
            db_session,
            organization.id,
            first.id,
            CostSubscriptionUpdate(end_date=date(2024, 6, 30)),
        )
    assert exc.value.status_code == 409
    db_session.rollback()

    renamed = costs_service.cost_subscriptions.update(
        db_session, organization.id, first.id, CostSubscriptionUpdate(notes="Plano antigo")
    )
    assert renamed.notes == "Plano antigo"


def test_subscription_reactivation_rechecks_overlap(
    db_session, organization, client, cost_item
):
    paused = _subscribe(db_session, organization, client, cost_item)
    costs_service.cost_subscriptions.update(
        db_session, organization.id, paused.id, CostSubscriptionUpdate(active=False)
    )
    _subscribe(db_session, organization, client, cost_item, start_date=date(2024, 2, 1))

    with pytest.raises(HTTPException) as exc:
        costs_service.cost_subscriptions.update(
            db_session, organization.id, paused.id, CostSubscriptionUpdate(active=True)
        )
    assert exc.value.status_code == 409


def test_subscription_update_and_delete(db_session, organization, client, cost_item):
    subscription = _subscribe(db_session, organization, client, cost_item)
    updated = costs_service.cost_subscriptions.update(
        db_session,
        organization.id,
        subscription.id,
        CostSubscriptionUpdate(end_date=date(2024, 12, 31), notes="Contrato anual"),
    )
    assert updated.end_date == date(2024, 12, 31)

    costs_service.cost_subscriptions.delete(db_session, organization.id, subscription.id)
    visible = costs_service.cost_subscriptions.list(
        db_session,
        organization.id,
        client_id=str(client.id),
        cost_item_id=None,
        active=None,
        include_deleted=False,
        limit=10,
        offset=0,
    )
    assert visible == []
    everything = costs_service.cost_subscriptions.list(
        db_session,
        organization.id,
        client_id=None,
        cost_item_id=None,
        active=None,
        include_deleted=True,
        limit=10,
        offset=0,
    )
    assert len(everything) == 1


def test_materialize_monthly_creates_expenses_once(
    db_session, organization, client, cost_item
):
    subscription = _subscribe(db_session, organization, client, cost_item)
    _subscribe(
        db_session,
        organization,
        client,
        costs_service.cost_items.create(
            db_session,
            organization.id,
            CostItemCreate(name="Hospedagem", amount=Decimal("30")),
        ),
        start_date=date(2024, 6, 1),
    )

    result = costs_service.materialize_monthly(
        db_session, organization.id, today=date(2024, 5, 3)
    )
    assert len(result["success"]) == 1
    assert result["skipped"] == []
    assert result["errors"] == []

    transaction = db_session.query(Transaction).one()
    assert transaction.type == TransactionType.expense
    assert transaction.subtype == TransactionSubtype.internal_cost
    assert transaction.amount == Decimal("49.90")
    assert transaction.description == "Licença Canva - Padaria Central"
    assert transaction.category == "Software"
    assert transaction.metadata_ == {
        "subscription_id": str(subscription.id),
        "cost_item_name": "Licença Canva",
        "client_name": "Padaria Central",
        "month_year": "5/2024",
    }

    rerun = costs_service.materialize_monthly(
        db_session, organization.id, today=date(2024, 5, 28)
    )
    assert rerun["success"] == []
    assert rerun["skipped"][0]["reason"] == "Já materializado neste mês"


def test_materialize_uses_default_category(db_session, organization, client):
    item = costs_service.cost_items.create(
        db_session, organization.id, CostItemCreate(name="Domínio", amount=Decimal("5"))
    )
    _subscribe(db_session, organization, client, item)
    costs_service.materialize_monthly(db_session, organization.id, today=date(2024, 5, 3))
    transaction = db_session.query(Transaction).one()
    assert transaction.category == "GERAL"


def test_client_margin(db_session, organization, client, cost_item):
    transactions_service.transactions.create(
        db_session,
        organization.id,
        TransactionCreate(
            type=TransactionType.income,
            amount=Decimal("1000"),
            description="Mensalidade",
            transaction_date=date(2024, 5, 5),
            client_id=client.id,
        ),
        today=date(2024, 5, 10),
    )
    _subscribe(db_session, organization, client, cost_item)
    costs_service.materialize_monthly(db_session, organization.id, today=date(2024, 5, 3))

    margin = costs_service.calculate_client_margin(db_session, organization.id, client.id)
    assert margin["income"] == Decimal("1000.00")
    assert margin["expenses"] == Decimal("49.90")
    assert margin["net_profit"] == Decimal("950.10")
    assert margin["profit_margin"] == Decimal("95.01")


def test_client_margin_without_income_is_zero(db_session, organization, client):
    margin = costs_service.calculate_client_margin(db_session, organization.id, client.id)
    assert margin["profit_margin"] == Decimal("0.00")
    assert margin["net_profit"] == Decimal("0.00")
