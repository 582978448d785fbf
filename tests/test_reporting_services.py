from datetime import date, datetime
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from clientdesk.models.billing import InvoiceStatus
from clientdesk.schemas.billing import InvoiceCreate, InvoiceItemCreate
from clientdesk.services import billing as billing_service
from clientdesk.services import reporting


@pytest.mark.parametrize(
    "days,amount,expected",
    [
        (0, Decimal("99999"), reporting.RISK_LOW),
        (6, Decimal("999"), reporting.RISK_LOW),
        (6, Decimal("1000"), reporting.RISK_MEDIUM),
        (14, Decimal("4999"), reporting.RISK_MEDIUM),
        (14, Decimal("5000"), reporting.RISK_HIGH),
        (29, Decimal("10"), reporting.RISK_HIGH),
        (30, Decimal("10"), reporting.RISK_CRITICAL),
    ],
)
def test_calculate_risk_level(days, amount, expected):
    assert reporting.calculate_risk_level(days, amount) == expected


def test_payment_success_rate_and_accuracy():
    assert reporting.calculate_payment_success_rate(0, 0) == 100
    assert reporting.calculate_payment_success_rate(2, 3) == 67
    assert reporting.calculate_projection_accuracy(3, 0) == 0.0
    assert reporting.calculate_projection_accuracy(3, 6) == 50.0
    assert reporting.calculate_projection_accuracy(8, 6) == 100.0


@pytest.mark.parametrize("paid,total,expected", [(1, 8, 13), (3, 8, 38), (1, 40, 3), (1, 3, 33)])
def test_payment_success_rate_rounds_half_up(paid, total, expected):
    assert reporting.calculate_payment_success_rate(paid, total) == expected


def test_get_days_overdue_rounds_partial_days_up():
    assert reporting.get_days_overdue(date(2024, 5, 1), date(2024, 5, 11)) == 10
    assert reporting.get_days_overdue(date(2024, 5, 1), datetime(2024, 5, 1, 6)) == 1
    assert reporting.get_days_overdue(date(2024, 5, 10), date(2024, 5, 1)) == 0


def test_format_currency():
    assert reporting.format_currency(Decimal("1234.5")) == "R$ 1.234,50"
    assert reporting.format_currency(Decimal("10"), "USD") == "USD 10.00"


def test_analyze_trend_direction_uses_five_percent_band():
    assert reporting.analyze_trend_direction(100, 0) == reporting.TREND_STABLE
    assert reporting.analyze_trend_direction(104, 100) == reporting.TREND_STABLE
    assert reporting.analyze_trend_direction(80, 100) == reporting.TREND_IMPROVING
    assert reporting.analyze_trend_direction(120, 100) == reporting.TREND_WORSENING


def test_aggregate_and_rank_clients():
    alpha = SimpleNamespace(name="Alpha", email=None, status=None)
    beta = SimpleNamespace(name="Beta", email=None, status=None)
    invoices = [
        SimpleNamespace(
            client_id="a", client=alpha, status=InvoiceStatus.paid,
            total=Decimal("300"), issue_date=date(2024, 4, 2),
        ),
        SimpleNamespace(
            client_id="a", client=alpha, status=InvoiceStatus.overdue,
            total=Decimal("200"), issue_date=date(2024, 5, 2),
        ),
        SimpleNamespace(
            client_id="b", client=beta, status=InvoiceStatus.open,
            total=Decimal("700"), issue_date=date(2024, 5, 3),
        ),
    ]
    clients = list(reporting.aggregate_client_revenue(invoices).values())
    alpha_bucket = next(item for item in clients if item["client_id"] == "a")
    assert alpha_bucket["confirmed_revenue"] == Decimal("300")
    assert alpha_bucket["at_risk_revenue"] == Decimal("200")
    assert alpha_bucket["total_projected"] == Decimal("500")

    assert [c["client_name"] for c in reporting.top_clients_by_revenue(clients)] == [
        "Beta",
        "Alpha",
    ]
    assert reporting.top_clients_by_invoice_count(clients, limit=1)[0]["client_name"] == "Alpha"
    assert reporting.top_clients_by_overdue_amount(clients)[0]["client_name"] == "Alpha"

    months = reporting.aggregate_monthly_revenue(invoices)
    assert sorted(months) == ["2024-04", "2024-05"]
    assert months["2024-05"]["open_count"] == 1
    assert months["2024-05"]["overdue_count"] == 1


def test_group_delinquencies_by_risk_level():
    grouped = reporting.group_delinquencies_by_risk_level(
        [{"risk_level": "CRITICAL"}, {"risk_level": "LOW"}, {"risk_level": "CRITICAL"}]
    )
    assert len(grouped["critical"]) == 2
    assert len(grouped["low"]) == 1
    assert grouped["high"] == [] and grouped["medium"] == []


@pytest.fixture()
def reported_invoices(db_session, organization, client):
    def _create(issue, due):
        return billing_service.invoices.create(
            db_session,
            organization.id,
            InvoiceCreate(
                client_id=client.id,
                issue_date=issue,
                due_date=due,
                items=[InvoiceItemCreate(description="Mensalidade", unit_amount=Decimal("1000"))],
            ),
        )

    overdue = _create(date(2024, 3, 1), date(2024, 3, 10))
    paid = _create(date(2024, 4, 1), date(2024, 4, 10))
    open_ = _create(date(2024, 5, 1), date(2024, 5, 30))
    overdue.status = InvoiceStatus.overdue
    paid.status = InvoiceStatus.paid
    db_session.commit()
    return overdue, paid, open_


def test_revenue_projection(db_session, organization, reported_invoices):
    report = reporting.revenue_projection(
        db_session, organization.id, months=3, today=date(2024, 5, 20)
    )
    summary = report["summary"]
    assert summary["total_confirmed_revenue"] == Decimal("1000.00")
    assert summary["total_projected_revenue"] == Decimal("1000.00")
    assert summary["total_at_risk_revenue"] == Decimal("1000.00")
    assert summary["grand_total"] == Decimal("3000.00")
    assert summary["average_monthly_revenue"] == Decimal("1000.00")
    assert summary["projection_accuracy"] == 100.0
    assert [m["month"] for m in report["monthly_data"]] == ["2024-03", "2024-04", "2024-05"]
    assert report["metadata"]["invoice_count"] == 3
    assert report["top_clients"]["by_revenue"][0]["client_name"] == "Padaria Central"


def test_revenue_projection_rejects_invalid_months(db_session, organization):
    with pytest.raises(HTTPException) as exc:
        reporting.revenue_projection(db_session, organization.id, months=25)
    assert exc.value.detail == "Parâmetros inválidos"


def test_delinquency_analysis(db_session, organization, reported_invoices):
    report = reporting.delinquency_analysis(
        db_session, organization.id, today=date(2024, 5, 20)
    )
    summary = report["summary"]
    assert summary["delinquent_clients_count"] == 1
    assert summary["active_clients_count"] == 1
    assert summary["total_overdue_amount"] == Decimal("1000.00")
    assert summary["average_overdue_days"] == 71
    assert summary["delinquency_rate"] == 100

    delinquent = report["top_delinquents"][0]
    assert delinquent["risk_level"] == reporting.RISK_CRITICAL
    assert delinquent["oldest_overdue_date"] == date(2024, 3, 10)
    assert delinquent["payment_success_rate"] == 0
    assert len(report["by_risk_level"]["critical"]) == 1
    assert [t["trend"] for t in report["trends"]] == [
        reporting.TREND_STABLE,
        reporting.TREND_IMPROVING,
        reporting.TREND_STABLE,
    ]


def test_delinquency_analysis_respects_min_days(db_session, organization, reported_invoices):
    report = reporting.delinquency_analysis(
        db_session, organization.id, min_days_overdue=90, today=date(2024, 5, 20)
    )
    assert report["summary"]["delinquent_clients_count"] == 0
    assert report["trends"] == []
    with pytest.raises(HTTPException):
        reporting.delinquency_analysis(db_session, organization.id, limit=0)
