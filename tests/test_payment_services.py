from datetime import date
from decimal import Decimal

import pytest
from fastapi import HTTPException

from clientdesk.models.billing import InstallmentStatus
from clientdesk.models.client import ClientPaymentStatus
from clientdesk.models.finance import (
    Transaction,
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)
from clientdesk.services import billing as billing_service
from clientdesk.services.billing import payments as payments_service
from clientdesk.services.billing.payments import monthly_due_date


def test_monthly_due_date_clamps_to_28(client):
    client.payment_day = 31
    assert monthly_due_date(client, date(2024, 2, 5)) == date(2024, 2, 28)
    client.payment_day = 10
    assert monthly_due_date(client, date(2024, 2, 5)) == date(2024, 2, 10)


def test_monthly_status_is_late_before_payment(db_session, organization, client):
    status = billing_service.monthly_payments.get_monthly_payment_status(
        db_session, organization.id, client.id, today=date(2024, 5, 12)
    )
    assert status["mode"] == "monthly"
    assert status["month"] == "2024-05"
    assert status["is_paid"] is False
    assert status["is_late"] is True
    assert status["due_date"] == date(2024, 5, 10)
    assert status["expected_amount"] == Decimal("1000.00")
    assert status["paid_amount"] == Decimal("0.00")


def test_confirm_monthly_payment_records_income(db_session, organization, client):
    today = date(2024, 5, 12)
    transaction = billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, today=today
    )
    assert transaction.subtype == TransactionSubtype.monthly_fee
    assert transaction.amount == Decimal("1000.00")
    assert transaction.transaction_date == today
    assert transaction.metadata_ == {"month": "2024-05"}
    db_session.refresh(client)
    assert client.payment_status == ClientPaymentStatus.confirmed

    status = billing_service.monthly_payments.get_monthly_payment_status(
        db_session, organization.id, client.id, today=today
    )
    assert status["is_paid"] is True
    assert status["is_late"] is False


def test_confirm_monthly_payment_once_per_month(db_session, organization, client):
    billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, today=date(2024, 5, 12)
    )
    with pytest.raises(HTTPException) as exc:
        billing_service.monthly_payments.confirm_monthly_payment(
            db_session, organization.id, client.id, today=date(2024, 5, 20)
        )
    assert exc.value.status_code == 409
    billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, today=date(2024, 6, 3)
    )


def test_payment_within_tolerance_counts_as_paid(db_session, organization, client):
    billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, amount=Decimal("960"), today=date(2024, 5, 8)
    )
    status = billing_service.monthly_payments.get_monthly_payment_status(
        db_session, organization.id, client.id, today=date(2024, 5, 8)
    )
    assert status["is_paid"] is True


def test_payment_below_tolerance_is_not_paid(db_session, organization, client):
    billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, amount=Decimal("949.99"), today=date(2024, 5, 8)
    )
    status = billing_service.monthly_payments.get_monthly_payment_status(
        db_session, organization.id, client.id, today=date(2024, 5, 8)
    )
    assert status["paid_amount"] == Decimal("949.99")
    assert status["is_paid"] is False


def test_income_from_other_organization_is_ignored(
    db_session, organization, other_organization, client
):
    db_session.add(
        Transaction(
            org_id=other_organization.id,
            type=TransactionType.income,
            subtype=TransactionSubtype.other,
            status=TransactionStatus.confirmed,
            amount=Decimal("1000.00"),
            description="Recebimento",
            transaction_date=date(2024, 5, 5),
            client_id=client.id,
        )
    )
    db_session.commit()

    status = billing_service.monthly_payments.get_monthly_payment_status(
        db_session, organization.id, client.id, today=date(2024, 5, 8)
    )
    assert status["is_paid"] is False
    transaction = billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, today=date(2024, 5, 8)
    )
    assert transaction.org_id == organization.id


def test_installment_plan_splits_contract_value(db_session, organization, client):
    installments = billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 3, start_date=date(2024, 1, 31)
    )
    assert [item.number for item in installments] == [1, 2, 3]
    assert [item.amount for item in installments] == [
        Decimal("333.33"),
        Decimal("333.33"),
        Decimal("333.34"),
    ]
    assert [item.due_date for item in installments] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]
    db_session.refresh(client)
    assert client.is_installment is True
    assert client.installment_count == 3
    assert client.installment_value == Decimal("333.33")


def test_installment_plan_only_once(db_session, organization, client):
    billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 2
    )
    with pytest.raises(HTTPException) as exc:
        billing_service.installments.create_installment_plan(
            db_session, organization.id, client.id, 2
        )
    assert exc.value.status_code == 409


def test_installment_client_cannot_confirm_monthly(db_session, organization, client):
    billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 2
    )
    with pytest.raises(HTTPException) as exc:
        billing_service.monthly_payments.confirm_monthly_payment(
            db_session, organization.id, client.id
        )
    assert exc.value.status_code == 400


def test_confirm_installment_creates_transaction(db_session, organization, client):
    installments = billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 2, start_date=date(2024, 5, 5)
    )
    confirmed = billing_service.installments.confirm_installment_payment(
        db_session, organization.id, installments[0].id, today=date(2024, 5, 6)
    )
    assert confirmed.status == InstallmentStatus.confirmed
    assert confirmed.paid_at is not None
    transaction = (
        db_session.query(Transaction)
        .filter(Transaction.subtype == TransactionSubtype.installment)
        .one()
    )
    assert transaction.amount == Decimal("500.00")
    assert transaction.metadata_["installment_number"] == 1
    db_session.refresh(client)
    assert client.payment_status == ClientPaymentStatus.confirmed

    with pytest.raises(HTTPException) as exc:
        billing_service.installments.confirm_installment_payment(
            db_session, organization.id, installments[0].id
        )
    assert exc.value.status_code == 409


def test_installment_status_for_month(db_session, organization, client):
    installments = billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 2, start_date=date(2024, 5, 5)
    )
    status = billing_service.monthly_payments.get_monthly_payment_status(
        db_session, organization.id, client.id, today=date(2024, 5, 20)
    )
    assert status["mode"] == "installment"
    assert status["is_paid"] is False
    assert status["is_late"] is True
    assert status["installments"]["total"] == 1
    assert status["installments"]["next_pending_id"] == installments[0].id


def test_update_late_installments(db_session, organization, client):
    billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 3, start_date=date(2024, 5, 5)
    )
    updated = billing_service.installments.update_late_installments(
        db_session, organization.id, today=date(2024, 6, 10)
    )
    assert updated == 2
    listing = billing_service.installments.get_client_installments(
        db_session, organization.id, client.id
    )
    statuses = [item.status for item in listing["installments"]]
    assert statuses == [
        InstallmentStatus.late,
        InstallmentStatus.late,
        InstallmentStatus.pending,
    ]
    assert listing["total_installments"] == 3


def test_confirm_installment_rolls_back_on_failure(
    db_session, organization, client, monkeypatch
):
    installments = billing_service.installments.create_installment_plan(
        db_session, organization.id, client.id, 2, start_date=date(2024, 5, 5)
    )

    def failing_notification(*args, **kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(payments_service, "create_notification", failing_notification)
    with pytest.raises(RuntimeError):
        billing_service.installments.confirm_installment_payment(
            db_session, organization.id, installments[0].id, today=date(2024, 5, 6)
        )

    db_session.refresh(installments[0])
    assert installments[0].status == InstallmentStatus.pending
    assert (
        db_session.query(Transaction)
        .filter(Transaction.subtype == TransactionSubtype.installment)
        .count()
        == 0
    )
