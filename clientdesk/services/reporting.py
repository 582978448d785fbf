"""Revenue projection and delinquency analysis reports.

Both reports aggregate invoices in memory after a bounded query, so the
helpers below work on plain invoice rows and return dictionaries that are
serialized as-is by the reports router.
"""

import logging
import math
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from fastapi import HTTPException
from sqlalchemy.orm import Session, selectinload

from clientdesk.config import settings
from clientdesk.models.billing import Invoice, InvoiceStatus
from clientdesk.models.client import ClientStatus
from clientdesk.services.billing._common import format_brl
from clientdesk.services.common import add_months, coerce_uuid, month_key, round_money, utc_now

logger = logging.getLogger(__name__)

RISK_LOW = "LOW"
RISK_MEDIUM = "MEDIUM"
RISK_HIGH = "HIGH"
RISK_CRITICAL = "CRITICAL"

TREND_IMPROVING = "improving"
TREND_STABLE = "stable"
TREND_WORSENING = "worsening"

REPORTED_STATUSES = (InvoiceStatus.paid, InvoiceStatus.open, InvoiceStatus.overdue)
TOP_N = 10
TREND_INVOICE_SAMPLE = 1000
ZERO = Decimal("0.00")

__all__ = [
    "add_months",
    "aggregate_client_delinquency",
    "aggregate_client_revenue",
    "aggregate_monthly_revenue",
    "analyze_trend_direction",
    "calculate_monthly_trends",
    "calculate_payment_success_rate",
    "calculate_projection_accuracy",
    "calculate_risk_level",
    "delinquency_analysis",
    "format_currency",
    "get_days_overdue",
    "get_month_key",
    "group_delinquencies_by_risk_level",
    "revenue_projection",
    "top_clients_by_invoice_count",
    "top_clients_by_overdue_amount",
    "top_clients_by_revenue",
]


def calculate_risk_level(overdue_days: int, overdue_amount: Decimal | int | float) -> str:
    if overdue_days == 0:
        return RISK_LOW
    if overdue_days < 7 and overdue_amount < 1000:
        return RISK_LOW
    if overdue_days < 15 and overdue_amount < 5000:
        return RISK_MEDIUM
    if overdue_days < 30:
        return RISK_HIGH
    return RISK_CRITICAL


def _ratio_rounded(numerator, denominator, scale: int = 1) -> int:
    """numerator / denominator * scale, rounded half up to an int."""
    value = Decimal(numerator) * scale / Decimal(denominator)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_payment_success_rate(paid_count: int, total_count: int) -> int:
    if total_count == 0:
        return 100
    return _ratio_rounded(paid_count, total_count, 100)


def calculate_projection_accuracy(months_with_data: int, total_months: int) -> float:
    """Confidence (0-100) of a projection given how many months had invoices."""
    if total_months == 0:
        return 0.0
    return min(months_with_data / total_months * 100, 100.0)


def format_currency(amount: Decimal | int | float, currency: str = "BRL") -> str:
    if currency == "BRL":
        return format_brl(amount)
    return f"{currency} {round_money(amount):,.2f}"


def get_month_key(value: date | datetime) -> str:
    return month_key(value)


def get_days_overdue(due_date: date, compare_date: date | datetime | None = None) -> int:
    compare_date = compare_date or utc_now()
    if isinstance(due_date, datetime):
        due_moment = due_date
    else:
        due_moment = datetime(due_date.year, due_date.month, due_date.day)
    if isinstance(compare_date, datetime):
        compare_moment = compare_date.replace(tzinfo=None)
    else:
        compare_moment = datetime(compare_date.year, compare_date.month, compare_date.day)
    due_moment = due_moment.replace(tzinfo=None)
    days = math.ceil((compare_moment - due_moment).total_seconds() / 86400)
    return max(0, days)


def _empty_revenue_bucket(**identity) -> dict:
    return {
        **identity,
        "confirmed_revenue": ZERO,
        "projected_revenue": ZERO,
        "at_risk_revenue": ZERO,
        "total_projected": ZERO,
        "invoice_count": 0,
        "paid_count": 0,
        "open_count": 0,
        "overdue_count": 0,
    }


def _add_to_revenue_bucket(bucket: dict, invoice: Invoice) -> None:
    total = invoice.total or ZERO
    bucket["invoice_count"] += 1
    if invoice.status == InvoiceStatus.paid:
        bucket["confirmed_revenue"] += total
        bucket["paid_count"] += 1
    elif invoice.status == InvoiceStatus.open:
        bucket["projected_revenue"] += total
        bucket["open_count"] += 1
    elif invoice.status == InvoiceStatus.overdue:
        bucket["at_risk_revenue"] += total
        bucket["overdue_count"] += 1
    bucket["total_projected"] = (
        bucket["confirmed_revenue"] + bucket["projected_revenue"] + bucket["at_risk_revenue"]
    )


def aggregate_client_revenue(invoices: Iterable[Invoice]) -> dict[str, dict]:
    clients: dict[str, dict] = {}
    for invoice in invoices:
        key = str(invoice.client_id)
        if key not in clients:
            clients[key] = _empty_revenue_bucket(
                client_id=key,
                client_name=invoice.client.name if invoice.client else "Desconhecido",
            )
        _add_to_revenue_bucket(clients[key], invoice)
    return clients


def aggregate_monthly_revenue(invoices: Iterable[Invoice]) -> dict[str, dict]:
    months: dict[str, dict] = {}
    for invoice in invoices:
        key = get_month_key(invoice.issue_date)
        if key not in months:
            months[key] = _empty_revenue_bucket(month=key)
        _add_to_revenue_bucket(months[key], invoice)
    return months


def aggregate_client_delinquency(
    invoices: Iterable[Invoice], today: date | None = None
) -> dict[str, dict]:
    today = today or date.today()
    clients: dict[str, dict] = {}
    for invoice in invoices:
        key = str(invoice.client_id)
        data = clients.get(key)
        if data is None:
            client = invoice.client
            data = {
                "client_id": key,
                "client_name": client.name if client else "Desconhecido",
                "client_email": client.email if client else None,
                "client_status": client.status.value if client else None,
                "overdue_days": 0,
                "overdue_amount": ZERO,
                "invoice_count": 0,
                "paid_count": 0,
                "pending_count": 0,
                "overdue_count": 0,
                "payment_success_rate": 0,
                "last_payment_date": None,
                "oldest_overdue_date": None,
                "risk_level": RISK_LOW,
            }
            clients[key] = data
        data["invoice_count"] += 1
        if invoice.status == InvoiceStatus.paid:
            data["paid_count"] += 1
            if invoice.paid_at and (
                data["last_payment_date"] is None or invoice.paid_at > data["last_payment_date"]
            ):
                data["last_payment_date"] = invoice.paid_at
        elif invoice.status == InvoiceStatus.open:
            data["pending_count"] += 1
        elif invoice.status == InvoiceStatus.overdue:
            data["overdue_count"] += 1
            data["overdue_days"] = max(
                data["overdue_days"], get_days_overdue(invoice.due_date, today)
            )
            data["overdue_amount"] += invoice.total or ZERO
            if data["oldest_overdue_date"] is None or invoice.due_date < data["oldest_overdue_date"]:
                data["oldest_overdue_date"] = invoice.due_date
        data["payment_success_rate"] = calculate_payment_success_rate(
            data["paid_count"], data["invoice_count"]
        )
        data["risk_level"] = calculate_risk_level(data["overdue_days"], data["overdue_amount"])
    return clients


def top_clients_by_revenue(clients: list[dict], limit: int = TOP_N) -> list[dict]:
    return sorted(clients, key=lambda item: item["total_projected"], reverse=True)[:limit]


def top_clients_by_invoice_count(clients: list[dict], limit: int = TOP_N) -> list[dict]:
    return sorted(clients, key=lambda item: item["invoice_count"], reverse=True)[:limit]


def top_clients_by_overdue_amount(clients: list[dict], limit: int = TOP_N) -> list[dict]:
    key = "overdue_amount" if clients and "overdue_amount" in clients[0] else "at_risk_revenue"
    return sorted(clients, key=lambda item: item[key], reverse=True)[:limit]


def group_delinquencies_by_risk_level(clients: list[dict]) -> dict[str, list[dict]]:
    return {
        "critical": [c for c in clients if c["risk_level"] == RISK_CRITICAL],
        "high": [c for c in clients if c["risk_level"] == RISK_HIGH],
        "medium": [c for c in clients if c["risk_level"] == RISK_MEDIUM],
        "low": [c for c in clients if c["risk_level"] == RISK_LOW],
    }


def analyze_trend_direction(current: Decimal | float, previous: Decimal | float) -> str:
    """Classify the change in overdue amount; a decrease is an improvement."""
    if previous == 0:
        return TREND_STABLE
    percent_change = (Decimal(str(current)) - Decimal(str(previous))) / Decimal(str(previous)) * 100
    if abs(percent_change) < 5:
        return TREND_STABLE
    return TREND_IMPROVING if percent_change < 0 else TREND_WORSENING


def calculate_monthly_trends(monthly_data: dict[str, dict]) -> list[dict]:
    trends: list[dict] = []
    previous_amount = None
    for month in sorted(monthly_data):
        data = monthly_data[month]
        amount = data.get("at_risk_revenue", ZERO)
        trends.append(
            {
                "month": month,
                "delinquent_count": data.get("overdue_count", 0),
                "overdue_amount": amount,
                "trend": TREND_STABLE
                if previous_amount is None
                else analyze_trend_direction(amount, previous_amount),
            }
        )
        previous_amount = amount
    return trends


def _reported_invoices(db: Session, org_id):
    return (
        db.query(Invoice)
        .options(selectinload(Invoice.client))
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.status.in_(REPORTED_STATUSES))
    )


def revenue_projection(
    db: Session,
    org_id,
    months: int = 12,
    from_date: date | None = None,
    to_date: date | None = None,
    today: date | None = None,
) -> dict:
    if months < 1 or months > 24:
        raise HTTPException(status_code=400, detail="Parâmetros inválidos")
    today = today or date.today()
    to_date = to_date or today
    from_date = from_date or to_date - timedelta(days=months * 30)
    if to_date < from_date:
        raise HTTPException(status_code=400, detail="Parâmetros inválidos")
    logger.info(
        f"Revenue projection for org {org_id}: months={months} from={from_date} to={to_date}"
    )
    invoices = (
        _reported_invoices(db, org_id)
        .filter(Invoice.issue_date >= from_date)
        .filter(Invoice.issue_date <= to_date)
        .order_by(Invoice.issue_date.desc())
        .all()
    )
    monthly_data = sorted(
        aggregate_monthly_revenue(invoices).values(), key=lambda item: item["month"]
    )
    client_breakdown = list(aggregate_client_revenue(invoices).values())

    total_confirmed = sum((m["confirmed_revenue"] for m in monthly_data), ZERO)
    total_projected = sum((m["projected_revenue"] for m in monthly_data), ZERO)
    total_at_risk = sum((m["at_risk_revenue"] for m in monthly_data), ZERO)
    grand_total = total_confirmed + total_projected + total_at_risk
    average = round_money(grand_total / len(monthly_data)) if monthly_data else ZERO
    span_months = math.ceil((to_date - from_date).days / 30)
    return {
        "summary": {
            "total_confirmed_revenue": total_confirmed,
            "total_projected_revenue": total_projected,
            "total_at_risk_revenue": total_at_risk,
            "grand_total": grand_total,
            "average_monthly_revenue": average,
            "projection_accuracy": calculate_projection_accuracy(len(monthly_data), span_months),
        },
        "monthly_data": monthly_data,
        "client_breakdown": client_breakdown,
        "top_clients": {
            "by_revenue": top_clients_by_revenue(client_breakdown),
            "by_invoice_count": top_clients_by_invoice_count(client_breakdown),
            "by_overdue_amount": top_clients_by_overdue_amount(client_breakdown),
        },
        "metadata": {
            "generated_at": utc_now(),
            "months_analyzed": months,
            "total_clients_analyzed": len(client_breakdown),
            "invoice_count": len(invoices),
            "from_date": from_date,
            "to_date": to_date,
            "currency": settings.default_currency,
        },
    }


def delinquency_analysis(
    db: Session,
    org_id,
    min_days_overdue: int = 0,
    limit: int = 50,
    today: date | None = None,
) -> dict:
    if min_days_overdue < 0 or limit < 1 or limit > 100:
        raise HTTPException(status_code=400, detail="Parâmetros inválidos")
    today = today or date.today()
    threshold = today - timedelta(days=min_days_overdue)
    logger.info(f"Delinquency analysis for org {org_id}: min_days_overdue={min_days_overdue}")
    overdue_invoices = (
        _reported_invoices(db, org_id)
        .filter(Invoice.status == InvoiceStatus.overdue)
        .filter(Invoice.due_date <= threshold)
        .order_by(Invoice.due_date.asc())
        .limit(limit * 3)
        .all()
    )
    all_invoices = (
        _reported_invoices(db, org_id)
        .order_by(Invoice.issue_date.desc())
        .limit(TREND_INVOICE_SAMPLE)
        .all()
    )
    delinquent_clients = sorted(
        aggregate_client_delinquency(overdue_invoices, today).values(),
        key=lambda item: item["overdue_amount"],
        reverse=True,
    )[:limit]
    total = len(delinquent_clients)
    active_count = sum(
        1 for c in delinquent_clients if c["client_status"] == ClientStatus.active.value
    )
    total_overdue = sum((c["overdue_amount"] for c in delinquent_clients), ZERO)
    average_days = (
        _ratio_rounded(sum(c["overdue_days"] for c in delinquent_clients), total)
        if total
        else 0
    )
    unique_clients = len({invoice.client_id for invoice in all_invoices})
    delinquency_rate = (
        _ratio_rounded(total, unique_clients, 100) if unique_clients else 0
    )
    return {
        "summary": {
            "total_clients_analyzed": total,
            "active_clients_count": active_count,
            "inactive_clients_count": total - active_count,
            "delinquent_clients_count": total,
            "total_overdue_amount": total_overdue,
            "average_overdue_days": average_days,
            "delinquency_rate": delinquency_rate,
        },
        "by_risk_level": group_delinquencies_by_risk_level(delinquent_clients),
        "top_delinquents": top_clients_by_overdue_amount(delinquent_clients),
        "trends": calculate_monthly_trends(aggregate_monthly_revenue(all_invoices))
        if overdue_invoices
        else [],
        "metadata": {
            "generated_at": utc_now(),
            "analysis_date": today,
            "currency": settings.default_currency,
        },
    }
