"""Common helper functions for the service layer.

This module provides reusable utilities for:
- UUID handling
- Query ordering and pagination
- Enum validation
- Organization-scoped entity retrieval with 404 handling
- Monetary and calendar calculations
"""

from __future__ import annotations

import uuid
from calendar import monthrange
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, TypeVar

from fastapi import HTTPException

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


def coerce_uuid(value):
    """Convert value to UUID, returning None if value is None."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Identificador inválido") from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    """Apply ordering to a query with validation.

    Raises:
        HTTPException: 400 if order_by is not in allowed_columns
    """
    if order_by not in allowed_columns:
        raise HTTPException(
            status_code=400,
            detail=f"Ordenação inválida. Permitidos: {', '.join(sorted(allowed_columns))}",
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Returns None when value is None.

    Raises:
        HTTPException: 400 if value is not a valid enum member
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=f"{label} inválido") from exc


def get_by_id(db: Session, model: type[T], value, **kwargs) -> T | None:
    if value is None:
        return None
    return db.get(model, coerce_uuid(value), **kwargs)


def get_org_entity(db: Session, model: type[T], org_id, entity_id, detail: str) -> T:
    """Fetch an entity owned by the organization or raise 404.

    Rows belonging to another organization are reported as missing.
    """
    entity = get_by_id(db, model, entity_id)
    if not entity or entity.org_id != coerce_uuid(org_id):
        raise HTTPException(status_code=404, detail=detail)
    if getattr(entity, "deleted_at", None) is not None:
        raise HTTPException(status_code=404, detail=detail)
    return entity


def round_money(value: Decimal | int | float | str) -> Decimal:
    """Round a monetary value to cents, half up."""
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_months(value: date, months: int) -> date:
    total = value.month - 1 + months
    year = value.year + total // 12
    month = total % 12 + 1
    day = min(value.day, monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping the day to the length of the month."""
    last_day = monthrange(year, month)[1]
    return date(year, month, max(1, min(day, last_day)))


def month_bounds(value: date) -> tuple[date, date]:
    first = value.replace(day=1)
    last = value.replace(day=monthrange(value.year, value.month)[1])
    return first, last


def month_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def parse_month_key(value: str) -> date:
    try:
        year_str, month_str = value.split("-", 1)
        return date(int(year_str), int(month_str), 1)
    except ValueError as exc:
        raise HTTPException(
            status_code=400, detail="Mês inválido. Use o formato AAAA-MM"
        ) from exc
