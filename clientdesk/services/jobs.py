"""Organization-wide runners shared by the Celery tasks and the cron endpoints.

Each runner walks every active organization and keeps going when one of
them fails; the failure is logged, rolled back and reported per organization.
"""

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session, selectinload

from clientdesk.models.billing import Invoice, InvoiceStatus
from clientdesk.services import billing_automation
from clientdesk.services import costs as cost_service
from clientdesk.services import email as email_service
from clientdesk.services.billing import installments
from clientdesk.services.billing._common import format_brl, format_date_br
from clientdesk.services.common import coerce_uuid
from clientdesk.services.organizations import organizations

logger = logging.getLogger(__name__)


def _for_each_organization(
    db: Session, job_name: str, runner: Callable[[Any], dict]
) -> dict[str, Any]:
    results: list[dict] = []
    errors: list[dict] = []
    for organization in organizations.list_active(db):
        try:
            results.append({"org_id": str(organization.id), **runner(organization.id)})
        except HTTPException as exc:
            db.rollback()
            logger.warning(f"{job_name} failed for org {organization.id}: {exc.detail}")
            errors.append({"org_id": str(organization.id), "error": exc.detail})
        except Exception as exc:
            db.rollback()
            logger.exception(f"{job_name} failed for org {organization.id}")
            errors.append({"org_id": str(organization.id), "error": str(exc)})
    return {"organizations": len(results) + len(errors), "results": results, "errors": errors}


def run_daily_billing(
    db: Session, today: date | None = None, send_notifications: bool = True
) -> dict[str, Any]:
    return _for_each_organization(
        db,
        "daily_billing",
        lambda org_id: billing_automation.daily_job(
            db, org_id, today=today, send_notifications=send_notifications
        ),
    )


def process_monthly_payments(db: Session, today: date | None = None) -> dict[str, Any]:
    return _for_each_organization(
        db,
        "process_monthly_payments",
        lambda org_id: billing_automation.generate_smart_monthly_invoices(
            db, org_id, today=today
        ),
    )


def send_overdue_emails(db: Session, org_id, today: date | None = None) -> int:
    """Send the weekly overdue reminder for each overdue invoice that is due one."""
    if not email_service.is_enabled():
        return 0
    today = today or date.today()
    overdue = (
        db.query(Invoice)
        .options(selectinload(Invoice.client))
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.deleted_at.is_(None))
        .filter(Invoice.status == InvoiceStatus.overdue)
        .all()
    )
    sent = 0
    for invoice in overdue:
        days_overdue = (today - invoice.due_date).days
        client = invoice.client
        if not client or not client.email:
            continue
        if not email_service.should_send_overdue_reminder(days_overdue):
            continue
        ok, _, error = email_service.send_invoice_overdue_email(
            client.email,
            client.name,
            invoice.number,
            format_brl(invoice.total),
            format_date_br(invoice.due_date),
            days_overdue,
        )
        if ok:
            sent += 1
        else:
            logger.warning(f"Overdue email for invoice {invoice.number} not sent: {error}")
    return sent


def _check_overdue_for_org(db: Session, org_id, today: date | None) -> dict[str, int]:
    return {
        "overdue_invoices": billing_automation.update_overdue_invoices(db, org_id, today),
        "late_installments": installments.update_late_installments(db, org_id, today),
        "emails_sent": send_overdue_emails(db, org_id, today),
    }


def check_overdue(db: Session, today: date | None = None) -> dict[str, Any]:
    return _for_each_organization(
        db, "check_overdue", lambda org_id: _check_overdue_for_org(db, org_id, today)
    )


def materialize_costs(db: Session, today: date | None = None) -> dict[str, Any]:
    return _for_each_organization(
        db,
        "materialize_costs",
        lambda org_id: cost_service.materialize_monthly(db, org_id, today=today),
    )
