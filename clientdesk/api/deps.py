from fastapi import Depends

from clientdesk.db import get_db
from clientdesk.services.auth_dependencies import (
    require_cron_secret,
    require_org_context,
    require_role,
    require_staff,
)


def get_current_member(auth=Depends(require_org_context)):
    """Get the authenticated member context.

    Returns a dict with org_id, member_id and role.
    """
    return auth


require_owner = require_role("owner")

__all__ = [
    "get_db",
    "get_current_member",
    "require_cron_secret",
    "require_org_context",
    "require_owner",
    "require_role",
    "require_staff",
]
