"""Organization and member management services."""

from __future__ import annotations

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from clientdesk.models.organization import Member, MemberRole, Organization
from clientdesk.schemas.organization import (
    MemberCreate,
    MemberUpdate,
    OrganizationCreate,
    OrganizationUpdate,
)
from clientdesk.services.auth import generate_api_key, hash_api_key
from clientdesk.services.common import apply_pagination, coerce_uuid, get_org_entity
from clientdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


class Organizations:
    @staticmethod
    def create(db: Session, payload: OrganizationCreate, owner: MemberCreate):
        """Create an organization together with its first owner.

        Returns the organization, the owner and the owner's raw API key.
        """
        organization = Organization(**payload.model_dump())
        db.add(organization)
        db.flush()
        raw_key = generate_api_key()
        member = Member(
            org_id=organization.id,
            name=owner.name,
            email=owner.email.lower(),
            role=MemberRole.owner,
            api_key_hash=hash_api_key(raw_key),
        )
        db.add(member)
        db.commit()
        db.refresh(organization)
        db.refresh(member)
        logger.info(f"Organization {organization.id} created with owner {member.id}")
        return organization, member, raw_key

    @staticmethod
    def get(db: Session, org_id):
        organization = db.get(Organization, coerce_uuid(org_id))
        if not organization:
            raise HTTPException(status_code=404, detail="Organização não encontrada")
        return organization

    @staticmethod
    def update(db: Session, org_id, payload: OrganizationUpdate):
        organization = Organizations.get(db, org_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            setattr(organization, key, value)
        db.commit()
        db.refresh(organization)
        return organization

    @staticmethod
    def list_active(db: Session) -> list[Organization]:
        return (
            db.query(Organization)
            .filter(Organization.is_active.is_(True))
            .order_by(Organization.created_at.asc())
            .all()
        )


class Members(ListResponseMixin):
    @staticmethod
    def create(db: Session, org_id, payload: MemberCreate):
        email = payload.email.lower()
        existing = (
            db.query(Member)
            .filter(Member.org_id == coerce_uuid(org_id))
            .filter(Member.email == email)
            .first()
        )
        if existing:
            raise HTTPException(status_code=409, detail="Já existe um membro com este e-mail")
        raw_key = generate_api_key()
        data = payload.model_dump()
        data["email"] = email
        member = Member(
            org_id=coerce_uuid(org_id), api_key_hash=hash_api_key(raw_key), **data
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member, raw_key

    @staticmethod
    def get(db: Session, org_id, member_id):
        return get_org_entity(db, Member, org_id, member_id, "Membro não encontrado")

    @staticmethod
    def list(db: Session, org_id, is_active: bool | None, limit: int, offset: int):
        query = db.query(Member).filter(Member.org_id == coerce_uuid(org_id))
        if is_active is not None:
            query = query.filter(Member.is_active == is_active)
        query = query.order_by(Member.created_at.asc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, org_id, member_id, payload: MemberUpdate):
        member = Members.get(db, org_id, member_id)
        data = payload.model_dump(exclude_unset=True)
        if "email" in data and data["email"]:
            data["email"] = data["email"].lower()
        for key, value in data.items():
            setattr(member, key, value)
        db.commit()
        db.refresh(member)
        return member

    @staticmethod
    def deactivate(db: Session, org_id, member_id):
        member = Members.get(db, org_id, member_id)
        member.is_active = False
        db.commit()

    @staticmethod
    def active_members(db: Session, org_id) -> list[Member]:
        return (
            db.query(Member)
            .filter(Member.org_id == coerce_uuid(org_id))
            .filter(Member.is_active.is_(True))
            .all()
        )


organizations = Organizations()
members = Members()
