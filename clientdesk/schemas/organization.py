from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from clientdesk.models.organization import MemberRole


class OrganizationBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    cnpj: str | None = Field(default=None, max_length=20)
    is_active: bool = True


class OrganizationCreate(OrganizationBase):
    pass


class OrganizationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    cnpj: str | None = Field(default=None, max_length=20)
    is_active: bool | None = None


class OrganizationRead(OrganizationBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


class MemberBase(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    email: str = Field(min_length=3, max_length=255)
    role: MemberRole = MemberRole.staff
    is_active: bool = True


class MemberCreate(MemberBase):
    pass


class MemberUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    email: str | None = Field(default=None, min_length=3, max_length=255)
    role: MemberRole | None = None
    is_active: bool | None = None


class MemberRead(MemberBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    org_id: UUID
    created_at: datetime


class MemberApiKeyRead(BaseModel):
    member: MemberRead
    api_key: str


class OrganizationSignup(OrganizationCreate):
    owner: MemberCreate


class OrganizationSignupRead(BaseModel):
    organization: OrganizationRead
    owner: MemberRead
    api_key: str
