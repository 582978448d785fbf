from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DashboardEventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    event_date: date
    color: str | None = Field(default=None, max_length=20)


class DashboardEventUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    event_date: date | None = None
    color: str | None = Field(default=None, max_length=20)


class DashboardEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None = None
    event_date: date
    color: str
    created_at: datetime


class DashboardNoteCreate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    content: str | None = None
    color: str | None = Field(default=None, max_length=20)


class DashboardNoteUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    content: str | None = None
    color: str | None = Field(default=None, max_length=20)
    position: int | None = Field(default=None, ge=0)


class DashboardNoteRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    content: str | None = None
    color: str
    position: int
    created_at: datetime
    updated_at: datetime
