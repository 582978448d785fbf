from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clientdesk.models.analytics import MetricTrend, MetricType, TimeRange


class AnalyticsMetricCreate(BaseModel):
    # Enum fields arrive as strings so the service can report its own messages.
    name: str = Field(max_length=160)
    metric_type: str
    value: Decimal = Decimal("0")
    unit: str = Field(default="", max_length=40)
    trend: MetricTrend = MetricTrend.stable
    trend_percentage: Decimal = Decimal("0")
    previous_value: Decimal | None = None
    time_range: str
    start_date: date
    end_date: date
    source: str = Field(max_length=120)
    tags: list[str] = Field(default_factory=list)
    description: str | None = None


class AnalyticsMetricUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    unit: str | None = Field(default=None, max_length=40)
    description: str | None = None
    value: Decimal | None = None
    previous_value: Decimal | None = None


class AnalyticsMetricTag(BaseModel):
    tag: str


class AnalyticsMetricRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    name: str
    metric_type: MetricType
    value: Decimal
    unit: str
    trend: MetricTrend
    trend_percentage: Decimal
    previous_value: Decimal | None = None
    time_range: TimeRange
    start_date: date
    end_date: date
    source: str
    tags: list[str] = Field(default_factory=list)
    description: str | None = None
    created_at: datetime
    updated_at: datetime
