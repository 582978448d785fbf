import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clientdesk.db import Base


class ClientStatus(enum.Enum):
    new = "new"
    onboarding = "onboarding"
    active = "active"
    paused = "paused"
    closed = "closed"
    canceled = "canceled"


class ClientPlan(enum.Enum):
    gestao = "gestao"
    estrutura = "estrutura"
    freelancer = "freelancer"
    parceria = "parceria"
    consultoria = "consultoria"
    outro = "outro"


class ClientPaymentStatus(enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    late = "late"


class Client(Base):
    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(40))
    status: Mapped[ClientStatus] = mapped_column(
        Enum(ClientStatus), default=ClientStatus.new
    )
    plan: Mapped[ClientPlan | None] = mapped_column(Enum(ClientPlan))
    payment_status: Mapped[ClientPaymentStatus] = mapped_column(
        Enum(ClientPaymentStatus), default=ClientPaymentStatus.pending
    )
    contract_start: Mapped[date | None] = mapped_column(Date)
    contract_end: Mapped[date | None] = mapped_column(Date)
    contract_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    payment_day: Mapped[int | None] = mapped_column(Integer)
    is_installment: Mapped[bool] = mapped_column(Boolean, default=False)
    installment_count: Mapped[int | None] = mapped_column(Integer)
    installment_value: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    installment_payment_days: Mapped[list | None] = mapped_column(JSON)
    notes: Mapped[str | None] = mapped_column(Text)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    organization = relationship("Organization", back_populates="clients")
    invoices = relationship("Invoice", back_populates="client")
    installments = relationship(
        "Installment", back_populates="client", order_by="Installment.number"
    )
