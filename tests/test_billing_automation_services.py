from datetime import date, datetime, timezone
from decimal import Decimal

from clientdesk.models.billing import Invoice, InvoiceStatus
from clientdesk.models.client import Client, ClientPaymentStatus, ClientPlan, ClientStatus
from clientdesk.models.notification import Notification, NotificationType
from clientdesk.schemas.billing import InvoiceCreate, InvoiceItemCreate
from clientdesk.services import billing as billing_service
from clientdesk.services import billing_automation


def _add_client(db_session, organization, **fields):
    data = {
        "org_id": organization.id,
        "name": "Cliente",
        "status": ClientStatus.active,
        "contract_start": date(2024, 1, 1),
        "contract_value": Decimal("1000.00"),
        "payment_day": 10,
    }
    data.update(fields)
    client = Client(**data)
    db_session.add(client)
    db_session.commit()
    db_session.refresh(client)
    return client


def test_build_installment_plan_cycles_payment_days():
    plan = billing_automation.build_installment_plan(
        1, 3, Decimal("500"), [5, 20], date(2024, 5, 12), "Gestao"
    )
    assert [entry["installment_number"] for entry in plan] == [1, 2, 3]
    assert [entry["due_date"] for entry in plan] == [
        date(2024, 6, 5),
        date(2024, 5, 20),
        date(2024, 6, 5),
    ]
    assert plan[1]["description"] == "Parcela 2 - Gestao - maio de 2024"
    assert all(entry["amount"] == Decimal("500.00") for entry in plan)


def test_generate_monthly_invoice_is_idempotent(db_session, organization, client):
    first = billing_automation.generate_monthly_invoice(
        db_session, organization.id, client.id, today=date(2024, 5, 3)
    )
    again = billing_automation.generate_monthly_invoice(
        db_session, organization.id, client.id, today=date(2024, 5, 25)
    )
    assert again.id == first.id
    assert first.issue_date == date(2024, 5, 3)
    assert first.due_date == date(2024, 5, 10)
    assert first.total == Decimal("1000.00")
    assert "period:2024-05" in first.notes
    assert "maio de 2024" in first.notes


def test_generate_monthly_invoice_late_in_month_issues_on_due_date(
    db_session, organization, client
):
    invoice = billing_automation.generate_monthly_invoice(
        db_session, organization.id, client.id, today=date(2024, 5, 20)
    )
    assert invoice.issue_date == date(2024, 5, 10)
    assert invoice.due_date == date(2024, 5, 10)


def test_daily_job_generates_marks_overdue_and_alerts(
    db_session, organization, owner, client
):
    old = billing_service.invoices.create(
        db_session,
        organization.id,
        InvoiceCreate(
            client_id=client.id,
            issue_date=date(2024, 4, 20),
            due_date=date(2024, 5, 1),
            items=[InvoiceItemCreate(description="Avulso", unit_amount=Decimal("250"))],
        ),
    )
    now = datetime(2024, 5, 8, 9, tzinfo=timezone.utc)

    summary = billing_automation.daily_job(
        db_session, organization.id, today=date(2024, 5, 8), now=now
    )

    assert summary["generated_count"] == 1
    assert summary["overdue_marked"] == 1
    assert summary["due_soon"] == 1
    assert summary["overdue_notified"] == 1
    assert summary["errors"] == []
    db_session.refresh(old)
    db_session.refresh(client)
    assert old.status == InvoiceStatus.overdue
    assert client.payment_status == ClientPaymentStatus.late
    types = {
        row.type
        for row in db_session.query(Notification)
        .filter(Notification.member_id == owner.id)
        .all()
    }
    assert types == {NotificationType.billing_due_soon, NotificationType.billing_overdue}

    rerun = billing_automation.daily_job(
        db_session, organization.id, today=date(2024, 5, 8), now=now
    )
    assert rerun["generated_count"] == 0
    assert rerun["overdue_marked"] == 0
    assert billing_automation.count_financial_alerts(db_session, organization.id) == 2


def test_daily_job_skips_inactive_contracts(db_session, organization):
    _add_client(db_session, organization, name="Encerrado", contract_end=date(2024, 3, 31))
    _add_client(db_session, organization, name="Futuro", contract_start=date(2024, 9, 1))
    _add_client(db_session, organization, name="Fechado", status=ClientStatus.closed)

    summary = billing_automation.daily_job(
        db_session, organization.id, today=date(2024, 5, 8)
    )
    assert summary["generated_count"] == 0
    assert db_session.query(Invoice).count() == 0


def test_smart_generation_handles_regular_installment_and_blocked(
    db_session, organization
):
    regular = _add_client(db_session, organization, name="A Regular")
    _add_client(
        db_session,
        organization,
        name="B Parcelado",
        plan=ClientPlan.gestao,
        is_installment=True,
        installment_count=3,
        installment_value=Decimal("500.00"),
        installment_payment_days=[5, 20],
    )
    _add_client(db_session, organization, name="C Encerrado", contract_end=date(2024, 4, 30))
    _add_client(db_session, organization, name="D Futuro", contract_start=date(2024, 7, 1))

    result = billing_automation.generate_smart_monthly_invoices(
        db_session, organization.id, today=date(2024, 5, 12)
    )

    summary = result["summary"]
    assert summary["total"] == 4
    assert summary["generated"] == 3
    assert summary["regular"] == 1
    assert summary["installments"] == 2
    assert summary["errors"] == 0
    assert summary["total_amount"] == Decimal("2000.00")
    assert {item["type"] for item in result["blocked"]} == {
        "CONTRACT_ENDED",
        "CONTRACT_NOT_STARTED",
    }
    regular_invoice = next(
        item for item in result["success"] if item["kind"] == "regular"
    )
    assert regular_invoice["client_id"] == str(regular.id)
    assert regular_invoice["due_date"] == "2024-06-10"

    rerun = billing_automation.generate_smart_monthly_invoices(
        db_session, organization.id, today=date(2024, 5, 12)
    )
    assert "MONTHLY_ALREADY_GENERATED" in {item["type"] for item in rerun["blocked"]}


def test_smart_generation_blocks_when_all_installments_exist(db_session, organization):
    _add_client(
        db_session,
        organization,
        name="Parcelado",
        is_installment=True,
        installment_count=2,
        installment_value=Decimal("600.00"),
        installment_payment_days=[15],
    )
    first = billing_automation.generate_smart_monthly_invoices(
        db_session, organization.id, today=date(2024, 5, 1)
    )
    assert first["summary"]["installments"] == 2
    notes = sorted(invoice.notes for invoice in db_session.query(Invoice).all())
    assert notes == ["Parcela 1 de 2", "Parcela 2 de 2"]

    second = billing_automation.generate_smart_monthly_invoices(
        db_session, organization.id, today=date(2024, 6, 1)
    )
    assert second["summary"]["generated"] == 0
    assert second["blocked"][0]["type"] == "ALL_INSTALLMENTS_GENERATED"


def test_calculate_projection_combines_contracts_and_income(
    db_session, organization, client
):
    _add_client(
        db_session,
        organization,
        name="Parcelado",
        is_installment=True,
        installment_count=4,
        installment_value=Decimal("250.00"),
        contract_end=date(2024, 5, 31),
    )
    billing_service.monthly_payments.confirm_monthly_payment(
        db_session, organization.id, client.id, today=date(2024, 5, 5)
    )

    projection = billing_automation.calculate_projection(
        db_session, organization.id, months=2, today=date(2024, 5, 5)
    )["projections"]

    assert [entry["month"] for entry in projection] == ["2024-05", "2024-06"]
    assert projection[0]["expected_revenue"] == Decimal("1250.00")
    assert projection[0]["confirmed_revenue"] == Decimal("1000.00")
    assert projection[0]["clients"] == 2
    assert projection[1]["expected_revenue"] == Decimal("1000.00")
    assert projection[1]["label"] == "junho de 2024"


def test_smart_generation_same_day_rerun_creates_nothing(db_session, organization):
    _add_client(
        db_session,
        organization,
        name="Parcelado",
        is_installment=True,
        installment_count=3,
        installment_value=Decimal("400.00"),
        installment_payment_days=[15],
    )
    first = billing_automation.generate_smart_monthly_invoices(
        db_session, organization.id, today=date(2024, 5, 1)
    )
    assert first["summary"]["installments"] == 2

    rerun = billing_automation.generate_smart_monthly_invoices(
        db_session, organization.id, today=date(2024, 5, 1)
    )
    assert rerun["summary"]["installments"] == 0

    due_dates = [invoice.due_date for invoice in db_session.query(Invoice).all()]
    assert sorted(due_dates) == [date(2024, 5, 15), date(2024, 6, 15)]
