from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clientdesk.models.billing import InstallmentStatus, InvoiceStatus, PaymentMethod


class InvoiceItemCreate(BaseModel):
    description: str = Field(min_length=1, max_length=255)
    quantity: Decimal = Field(default=Decimal("1"), gt=0)
    unit_amount: Decimal = Field(default=Decimal("0.00"), ge=0)


class InvoiceItemRead(InvoiceItemCreate):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    total: Decimal


class InvoiceCreate(BaseModel):
    client_id: UUID
    items: list[InvoiceItemCreate] = Field(default_factory=list)
    number: str | None = Field(default=None, max_length=40)
    issue_date: date | None = None
    due_date: date
    discount: Decimal = Field(default=Decimal("0.00"), ge=0)
    tax: Decimal = Field(default=Decimal("0.00"), ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = None
    internal_notes: str | None = None
    installment_id: UUID | None = None
    draft: bool = False


class InvoiceUpdate(BaseModel):
    items: list[InvoiceItemCreate] | None = None
    issue_date: date | None = None
    due_date: date | None = None
    discount: Decimal | None = Field(default=None, ge=0)
    tax: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    internal_notes: str | None = None


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    client_id: UUID
    installment_id: UUID | None = None
    number: str
    status: InvoiceStatus
    issue_date: date
    due_date: date
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    currency: str
    notes: str | None = None
    internal_notes: str | None = None
    paid_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime
    items: list[InvoiceItemRead] = Field(default_factory=list)


class InvoiceCancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class InvoicePaymentRequest(BaseModel):
    method: PaymentMethod = PaymentMethod.pix
    amount: Decimal | None = Field(default=None, gt=0)
    paid_at: datetime | None = None


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_id: UUID
    client_id: UUID
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime


class InvoiceMessageRead(BaseModel):
    invoice_id: UUID
    message: str


class InstallmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    client_id: UUID
    number: int
    amount: Decimal
    due_date: date
    status: InstallmentStatus
    paid_at: datetime | None = None
    notes: str | None = None


class InstallmentPlanCreate(BaseModel):
    count: int = Field(ge=1, le=120)
    start_date: date | None = None


class InstallmentListRead(BaseModel):
    installments: list[InstallmentRead]
    total_installments: int


class MonthlyPaymentConfirm(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)


class InstallmentDetails(BaseModel):
    total: int
    paid: int
    pending: int
    next_pending_id: UUID | None = None


class MonthlyPaymentStatusRead(BaseModel):
    mode: str
    month: str
    is_paid: bool
    is_late: bool
    due_date: date | None = None
    expected_amount: Decimal
    paid_amount: Decimal
    installments: InstallmentDetails | None = None
