import hmac

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from clientdesk.config import settings
from clientdesk.db import get_db as _get_db
from clientdesk.models.organization import MemberRole
from clientdesk.services.auth import authenticate


def _extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split(" ", 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip()
    return None


def require_org_context(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
    db: Session = Depends(_get_db),
):
    """Resolve the calling member from an API key.

    Returns a dict with org_id, member_id and role.
    """
    api_key = x_api_key or _extract_bearer_token(authorization)
    member = authenticate(db, api_key)
    return {
        "org_id": member.org_id,
        "member_id": member.id,
        "role": member.role.value,
    }


def require_role(*role_names: str):
    allowed = {MemberRole(name).value for name in role_names}

    def _require_role(auth=Depends(require_org_context)):
        if auth["role"] not in allowed:
            raise HTTPException(status_code=403, detail="Acesso negado")
        return auth

    return _require_role


def require_staff(auth=Depends(require_org_context)):
    """Members of the organization's team (owner or staff)."""
    if auth["role"] == MemberRole.client.value:
        raise HTTPException(status_code=403, detail="Acesso negado")
    return auth


def require_cron_secret(authorization: str | None = Header(default=None)):
    token = _extract_bearer_token(authorization)
    secret = settings.cron_secret
    if not secret or not token or not hmac.compare_digest(token, secret):
        raise HTTPException(status_code=401, detail="Não autorizado")
    return True
