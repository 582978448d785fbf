import hashlib
import logging
import secrets

from fastapi import HTTPException
from sqlalchemy.orm import Session

from clientdesk.models.organization import Member, Organization
from clientdesk.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def hash_api_key(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_api_key() -> str:
    return secrets.token_urlsafe(32)


def issue_api_key(db: Session, member_id) -> str:
    """Rotate a member's API key and return the raw value.

    Only the hash is persisted; the raw key cannot be recovered later.
    """
    member = db.get(Member, coerce_uuid(member_id))
    if not member:
        raise HTTPException(status_code=404, detail="Membro não encontrado")
    raw_key = generate_api_key()
    member.api_key_hash = hash_api_key(raw_key)
    db.commit()
    logger.info(f"API key issued for member {member.id}")
    return raw_key


def authenticate(db: Session, api_key: str | None) -> Member:
    if not api_key:
        raise HTTPException(status_code=401, detail="Não autorizado")
    member = (
        db.query(Member)
        .filter(Member.api_key_hash == hash_api_key(api_key))
        .filter(Member.is_active.is_(True))
        .first()
    )
    if not member:
        raise HTTPException(status_code=401, detail="Não autorizado")
    organization = db.get(Organization, member.org_id)
    if not organization or not organization.is_active:
        raise HTTPException(status_code=401, detail="Não autorizado")
    return member
