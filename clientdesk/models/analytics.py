import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import JSON, Date, DateTime, Enum, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from clientdesk.db import Base


class MetricType(enum.Enum):
    revenue = "revenue"
    clients = "clients"
    invoices = "invoices"
    payments = "payments"
    conversion = "conversion"
    retention = "retention"
    engagement = "engagement"
    custom = "custom"


class TimeRange(enum.Enum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"
    custom = "custom"


class MetricTrend(enum.Enum):
    up = "up"
    down = "down"
    stable = "stable"


class AnalyticsMetric(Base):
    __tablename__ = "analytics_metrics"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    metric_type: Mapped[MetricType] = mapped_column(Enum(MetricType), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    unit: Mapped[str] = mapped_column(String(40), default="")
    trend: Mapped[MetricTrend] = mapped_column(
        Enum(MetricTrend), default=MetricTrend.stable
    )
    trend_percentage: Mapped[Decimal] = mapped_column(
        Numeric(8, 2), default=Decimal("0.00")
    )
    previous_value: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    time_range: Mapped[TimeRange] = mapped_column(Enum(TimeRange), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[str] = mapped_column(String(120), nullable=False)
    tags: Mapped[list | None] = mapped_column(JSON, default=list)
    description: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("members.id")
    )
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("members.id")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
