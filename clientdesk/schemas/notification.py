from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clientdesk.models.notification import NotificationPriority, NotificationType


class NotificationCreate(BaseModel):
    type: NotificationType
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1)
    member_id: UUID | None = None
    client_id: UUID | None = None
    invoice_id: UUID | None = None
    link: str | None = Field(default=None, max_length=500)
    priority: NotificationPriority = NotificationPriority.normal


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    member_id: UUID
    client_id: UUID | None = None
    invoice_id: UUID | None = None
    type: NotificationType
    title: str
    message: str
    link: str | None = None
    priority: NotificationPriority
    read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationMarkRead(BaseModel):
    ids: list[UUID] = Field(min_length=1)
