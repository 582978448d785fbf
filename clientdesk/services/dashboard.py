"""Dashboard calendar events, sticky notes and the summary panel."""

import logging
from datetime import date
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from clientdesk.models.billing import Invoice, InvoiceStatus
from clientdesk.models.client import Client, ClientStatus
from clientdesk.models.dashboard import DashboardEvent, DashboardNote
from clientdesk.models.organization import MemberRole
from clientdesk.schemas.dashboard import (
    DashboardEventCreate,
    DashboardEventUpdate,
    DashboardNoteCreate,
    DashboardNoteUpdate,
)
from clientdesk.services import billing_automation
from clientdesk.services.common import (
    add_months,
    coerce_uuid,
    get_org_entity,
    month_bounds,
    month_key,
    parse_month_key,
    round_money,
)
from clientdesk.services.transactions import transactions

logger = logging.getLogger(__name__)

DEFAULT_EVENT_COLOR = "blue"
DEFAULT_NOTE_COLOR = "yellow"
UNTITLED_NOTE = "Sem título"
NOTE_TITLE_LENGTH = 60
SUMMARY_SERIES_MONTHS = 6


def _require_owner(role: str | None) -> None:
    if role != MemberRole.owner.value:
        raise HTTPException(status_code=403, detail="Acesso negado")


class DashboardEvents:
    @staticmethod
    def create(db: Session, org_id, payload: DashboardEventCreate, created_by=None):
        data = payload.model_dump()
        data["color"] = data.get("color") or DEFAULT_EVENT_COLOR
        event = DashboardEvent(
            org_id=coerce_uuid(org_id), created_by=coerce_uuid(created_by), **data
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def get(db: Session, org_id, event_id):
        return get_org_entity(db, DashboardEvent, org_id, event_id, "Evento não encontrado")

    @staticmethod
    def list(db: Session, org_id, month: str | None = None, today: date | None = None):
        """Events of a YYYY-MM month, the current one by default."""
        reference = parse_month_key(month) if month else (today or date.today())
        first, last = month_bounds(reference)
        return (
            db.query(DashboardEvent)
            .filter(DashboardEvent.org_id == coerce_uuid(org_id))
            .filter(DashboardEvent.event_date >= first)
            .filter(DashboardEvent.event_date <= last)
            .order_by(DashboardEvent.event_date.asc(), DashboardEvent.created_at.asc())
            .all()
        )

    @staticmethod
    def update(db: Session, org_id, event_id, payload: DashboardEventUpdate, role: str | None):
        _require_owner(role)
        event = DashboardEvents.get(db, org_id, event_id)
        data = payload.model_dump(exclude_unset=True)
        if "color" in data and not data["color"]:
            data["color"] = DEFAULT_EVENT_COLOR
        for key, value in data.items():
            setattr(event, key, value)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def delete(db: Session, org_id, event_id, role: str | None):
        _require_owner(role)
        event = DashboardEvents.get(db, org_id, event_id)
        db.delete(event)
        db.commit()


def _note_title(title: str | None, content: str | None) -> str:
    if title and title.strip():
        return title.strip()
    if content and content.strip():
        return content.strip()[:NOTE_TITLE_LENGTH]
    return UNTITLED_NOTE


class DashboardNotes:
    @staticmethod
    def create(db: Session, org_id, payload: DashboardNoteCreate, created_by=None):
        last_position = (
            db.query(func.max(DashboardNote.position))
            .filter(DashboardNote.org_id == coerce_uuid(org_id))
            .scalar()
        )
        note = DashboardNote(
            org_id=coerce_uuid(org_id),
            title=_note_title(payload.title, payload.content),
            content=payload.content,
            color=payload.color or DEFAULT_NOTE_COLOR,
            position=0 if last_position is None else last_position + 1,
            created_by=coerce_uuid(created_by),
        )
        db.add(note)
        db.commit()
        db.refresh(note)
        return note

    @staticmethod
    def get(db: Session, org_id, note_id):
        return get_org_entity(db, DashboardNote, org_id, note_id, "Nota não encontrada")

    @staticmethod
    def list(db: Session, org_id):
        return (
            db.query(DashboardNote)
            .filter(DashboardNote.org_id == coerce_uuid(org_id))
            .order_by(DashboardNote.position.asc(), DashboardNote.created_at.asc())
            .all()
        )

    @staticmethod
    def update(db: Session, org_id, note_id, payload: DashboardNoteUpdate):
        note = DashboardNotes.get(db, org_id, note_id)
        data = payload.model_dump(exclude_unset=True)
        if "color" in data and not data["color"]:
            data["color"] = DEFAULT_NOTE_COLOR
        for key, value in data.items():
            setattr(note, key, value)
        db.commit()
        db.refresh(note)
        return note

    @staticmethod
    def delete(db: Session, org_id, note_id):
        note = DashboardNotes.get(db, org_id, note_id)
        db.delete(note)
        db.commit()


def _invoice_totals(db: Session, org_id) -> dict:
    rows = (
        db.query(Invoice.status, func.count(Invoice.id), func.coalesce(func.sum(Invoice.total), 0))
        .filter(Invoice.org_id == coerce_uuid(org_id))
        .filter(Invoice.deleted_at.is_(None))
        .filter(
            Invoice.status.in_([InvoiceStatus.open, InvoiceStatus.overdue, InvoiceStatus.paid])
        )
        .group_by(Invoice.status)
        .all()
    )
    totals = {
        status.value: {"count": 0, "total": Decimal("0.00")}
        for status in (InvoiceStatus.open, InvoiceStatus.overdue, InvoiceStatus.paid)
    }
    for status, count, total in rows:
        totals[status.value] = {"count": count, "total": round_money(total or 0)}
    return totals


def get_dashboard_summary(db: Session, org_id, member_id=None, today: date | None = None) -> dict:
    today = today or date.today()
    client_rows = (
        db.query(Client.status, func.count(Client.id))
        .filter(Client.org_id == coerce_uuid(org_id))
        .filter(Client.deleted_at.is_(None))
        .group_by(Client.status)
        .all()
    )
    clients_by_status = {status.value: 0 for status in ClientStatus}
    for status, count in client_rows:
        clients_by_status[status.value] = count

    first, last = month_bounds(today)
    current_month = transactions.summary(db, org_id, first, last)

    series = []
    for offset in range(SUMMARY_SERIES_MONTHS - 1, -1, -1):
        reference = add_months(first, -offset)
        month_first, month_last = month_bounds(reference)
        totals = transactions.summary(db, org_id, month_first, month_last)
        series.append(
            {
                "month": month_key(reference),
                "income": totals["income"],
                "expense": totals["expense"],
                "net": totals["net"],
            }
        )

    return {
        "clients": {
            "total": sum(clients_by_status.values()),
            "by_status": clients_by_status,
        },
        "invoices": _invoice_totals(db, org_id),
        "current_month": {
            "month": month_key(today),
            "income": current_month["income"],
            "expense": current_month["expense"],
            "net": current_month["net"],
        },
        "financial_alerts": billing_automation.count_financial_alerts(db, org_id, member_id),
        "monthly_series": series,
    }


dashboard_events = DashboardEvents()
dashboard_notes = DashboardNotes()
