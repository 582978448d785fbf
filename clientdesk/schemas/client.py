from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clientdesk.models.client import ClientPaymentStatus, ClientPlan, ClientStatus


class ClientBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=40)
    status: ClientStatus = ClientStatus.new
    plan: ClientPlan | None = None
    contract_start: date | None = None
    contract_end: date | None = None
    contract_value: Decimal | None = Field(default=None, ge=0)
    payment_day: int | None = Field(default=None, ge=1, le=31)
    is_installment: bool = False
    installment_count: int | None = Field(default=None, ge=1)
    installment_value: Decimal | None = Field(default=None, ge=0)
    installment_payment_days: list[int] | None = None
    notes: str | None = None


class ClientCreate(ClientBase):
    pass


class ClientUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=40)
    status: ClientStatus | None = None
    plan: ClientPlan | None = None
    payment_status: ClientPaymentStatus | None = None
    contract_start: date | None = None
    contract_end: date | None = None
    contract_value: Decimal | None = Field(default=None, ge=0)
    payment_day: int | None = Field(default=None, ge=1, le=31)
    is_installment: bool | None = None
    installment_count: int | None = Field(default=None, ge=1)
    installment_value: Decimal | None = Field(default=None, ge=0)
    installment_payment_days: list[int] | None = None
    notes: str | None = None


class ClientRead(ClientBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    payment_status: ClientPaymentStatus
    created_at: datetime
    updated_at: datetime
