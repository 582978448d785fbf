from datetime import date
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.orm import Session

from clientdesk.models.analytics import AnalyticsMetric, MetricTrend, MetricType, TimeRange
from clientdesk.schemas.analytics import AnalyticsMetricCreate, AnalyticsMetricUpdate
from clientdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_org_entity,
    round_money,
)
from clientdesk.services.response import ListResponseMixin


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=400, detail=detail)


def _parse_enum(value, enum_cls, detail: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError as exc:
        raise _bad_request(detail) from exc


def validate_metric(payload: AnalyticsMetricCreate) -> tuple[MetricType, TimeRange]:
    if not payload.name or not payload.name.strip():
        raise _bad_request("Nome da métrica é obrigatório")
    metric_type = _parse_enum(payload.metric_type, MetricType, "Tipo de métrica inválido")
    time_range = _parse_enum(payload.time_range, TimeRange, "Período de tempo inválido")
    if payload.value < 0:
        raise _bad_request("Valor da métrica não pode ser negativo")
    if payload.trend_percentage < -100 or payload.trend_percentage > 100:
        raise _bad_request("Percentual de tendência deve estar entre -100 e 100")
    if payload.end_date < payload.start_date:
        raise _bad_request("Data final não pode ser anterior à data inicial")
    if not payload.source or not payload.source.strip():
        raise _bad_request("Fonte da métrica é obrigatória")
    return metric_type, time_range


def trend_between(new_value: Decimal, previous_value: Decimal) -> tuple[MetricTrend, Decimal]:
    if new_value > previous_value:
        trend = MetricTrend.up
    elif new_value < previous_value:
        trend = MetricTrend.down
    else:
        trend = MetricTrend.stable
    if previous_value == 0:
        return trend, Decimal("0.00")
    return trend, round_money((new_value - previous_value) / previous_value * 100)


def update_value(
    metric: AnalyticsMetric,
    new_value: Decimal,
    previous_value: Decimal,
    updated_by=None,
) -> AnalyticsMetric:
    """Set a new value and derive the trend from the previous one."""
    new_value = Decimal(str(new_value))
    previous_value = Decimal(str(previous_value))
    if new_value < 0:
        raise _bad_request("Novo valor não pode ser negativo")
    metric.previous_value = round_money(previous_value)
    metric.value = round_money(new_value)
    metric.trend, metric.trend_percentage = trend_between(new_value, previous_value)
    if updated_by:
        metric.updated_by = coerce_uuid(updated_by)
    return metric


def add_tag(metric: AnalyticsMetric, tag: str) -> AnalyticsMetric:
    if not tag or not tag.strip():
        raise _bad_request("Tag não pode ser vazia")
    tags = list(metric.tags or [])
    if tag in tags:
        raise HTTPException(status_code=409, detail="Tag duplicada")
    # Reassign so the JSON column is flagged dirty.
    metric.tags = [*tags, tag]
    return metric


def remove_tag(metric: AnalyticsMetric, tag: str) -> AnalyticsMetric:
    tags = list(metric.tags or [])
    if tag not in tags:
        raise HTTPException(status_code=404, detail="Tag não encontrada")
    metric.tags = [item for item in tags if item != tag]
    return metric


def calculate_comparison_percentage(value: Decimal, other_value: Decimal) -> Decimal:
    value = Decimal(str(value))
    other_value = Decimal(str(other_value))
    if value == 0 and other_value == 0:
        return Decimal("0")
    if other_value == 0:
        return Decimal("100") if value > 0 else Decimal("-100")
    return (value - other_value) / other_value * 100


def is_in_date_range(metric: AnalyticsMetric, value: date) -> bool:
    return metric.start_date <= value <= metric.end_date


class AnalyticsMetrics(ListResponseMixin):
    @staticmethod
    def create(db: Session, org_id, payload: AnalyticsMetricCreate, created_by=None):
        metric_type, time_range = validate_metric(payload)
        data = payload.model_dump()
        data.update(
            metric_type=metric_type,
            time_range=time_range,
            name=payload.name.strip(),
            source=payload.source.strip(),
            value=round_money(payload.value),
            trend_percentage=round_money(payload.trend_percentage),
        )
        metric = AnalyticsMetric(
            org_id=coerce_uuid(org_id),
            created_by=coerce_uuid(created_by),
            updated_by=coerce_uuid(created_by),
            **data,
        )
        db.add(metric)
        db.commit()
        db.refresh(metric)
        return metric

    @staticmethod
    def get(db: Session, org_id, metric_id):
        return get_org_entity(db, AnalyticsMetric, org_id, metric_id, "Métrica não encontrada")

    @staticmethod
    def list(
        db: Session,
        org_id,
        metric_type: str | None,
        time_range: str | None,
        source: str | None,
        tag: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = db.query(AnalyticsMetric).filter(AnalyticsMetric.org_id == coerce_uuid(org_id))
        if metric_type:
            query = query.filter(
                AnalyticsMetric.metric_type
                == _parse_enum(metric_type, MetricType, "Tipo de métrica inválido")
            )
        if time_range:
            query = query.filter(
                AnalyticsMetric.time_range
                == _parse_enum(time_range, TimeRange, "Período de tempo inválido")
            )
        if source:
            query = query.filter(AnalyticsMetric.source == source)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": AnalyticsMetric.created_at,
                "start_date": AnalyticsMetric.start_date,
                "value": AnalyticsMetric.value,
                "name": AnalyticsMetric.name,
            },
        )
        if tag:
            # JSON containment is not portable across backends.
            items = [metric for metric in query.all() if tag in (metric.tags or [])]
            return items[offset : offset + limit]
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, org_id, metric_id, payload: AnalyticsMetricUpdate, updated_by=None):
        metric = AnalyticsMetrics.get(db, org_id, metric_id)
        data = payload.model_dump(exclude_unset=True)
        new_value = data.pop("value", None)
        previous_value = data.pop("previous_value", None)
        for key, value in data.items():
            setattr(metric, key, value)
        if new_value is not None:
            update_value(
                metric,
                new_value,
                previous_value if previous_value is not None else metric.value,
                updated_by,
            )
        elif updated_by:
            metric.updated_by = coerce_uuid(updated_by)
        db.commit()
        db.refresh(metric)
        return metric

    @staticmethod
    def add_tag(db: Session, org_id, metric_id, tag: str):
        metric = add_tag(AnalyticsMetrics.get(db, org_id, metric_id), tag)
        db.commit()
        db.refresh(metric)
        return metric

    @staticmethod
    def remove_tag(db: Session, org_id, metric_id, tag: str):
        metric = remove_tag(AnalyticsMetrics.get(db, org_id, metric_id), tag)
        db.commit()
        db.refresh(metric)
        return metric

    @staticmethod
    def delete(db: Session, org_id, metric_id):
        metric = AnalyticsMetrics.get(db, org_id, metric_id)
        db.delete(metric)
        db.commit()


analytics_metrics = AnalyticsMetrics()
