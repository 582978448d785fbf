from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clientdesk.models.finance import (
    TransactionStatus,
    TransactionSubtype,
    TransactionType,
)


class TransactionBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: TransactionType
    subtype: TransactionSubtype = TransactionSubtype.other
    status: TransactionStatus = TransactionStatus.confirmed
    amount: Decimal
    description: str = Field(min_length=1, max_length=255)
    category: str | None = Field(default=None, max_length=80)
    transaction_date: date
    client_id: UUID | None = None
    invoice_id: UUID | None = None
    cost_item_id: UUID | None = None
    metadata_: dict | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
        serialization_alias="metadata",
    )


class TransactionCreate(TransactionBase):
    pass


class TransactionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subtype: TransactionSubtype | None = None
    status: TransactionStatus | None = None
    amount: Decimal | None = None
    description: str | None = Field(default=None, min_length=1, max_length=255)
    category: str | None = Field(default=None, max_length=80)
    transaction_date: date | None = None
    client_id: UUID | None = None
    metadata_: dict | None = Field(
        default=None,
        validation_alias=AliasChoices("metadata_", "metadata"),
        serialization_alias="metadata",
    )


class TransactionRead(TransactionBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    org_id: UUID
    created_at: datetime


class TransactionSummary(BaseModel):
    income: Decimal
    expense: Decimal
    net: Decimal
    count: int


class CostItemBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    description: str | None = None
    amount: Decimal
    category: str | None = Field(default=None, max_length=80)


class CostItemCreate(CostItemBase):
    pass


class CostItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    description: str | None = None
    amount: Decimal | None = None
    category: str | None = Field(default=None, max_length=80)
    active: bool | None = None


class CostItemRead(CostItemBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    active: bool
    created_at: datetime


class CostSubscriptionCreate(BaseModel):
    client_id: UUID
    cost_item_id: UUID
    start_date: date
    end_date: date | None = None
    notes: str | None = None


class CostSubscriptionUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    active: bool | None = None
    notes: str | None = None


class CostSubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    client_id: UUID
    cost_item_id: UUID
    start_date: date
    end_date: date | None = None
    active: bool
    notes: str | None = None
    created_at: datetime


class MaterializeResult(BaseModel):
    success: list[dict]
    skipped: list[dict]
    errors: list[dict]


class ClientMarginRead(BaseModel):
    client_id: UUID
    income: Decimal
    expenses: Decimal
    net_profit: Decimal
    profit_margin: Decimal
