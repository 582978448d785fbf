from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_current_member, get_db, require_staff
from clientdesk.schemas.common import ListResponse
from clientdesk.schemas.notification import (
    NotificationCreate,
    NotificationMarkRead,
    NotificationRead,
)
from clientdesk.services import notifications as notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post(
    "", response_model=list[NotificationRead], status_code=status.HTTP_201_CREATED
)
def create_notification(
    payload: NotificationCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return notification_service.notifications.create(db, auth["org_id"], payload)


@router.get("", response_model=ListResponse[NotificationRead])
def list_notifications(
    unread_only: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(get_current_member),
    db: Session = Depends(get_db),
):
    return notification_service.notifications.list_response(
        db, auth["member_id"], unread_only, limit, offset
    )


@router.get("/unread-count")
def unread_count(auth=Depends(get_current_member), db: Session = Depends(get_db)):
    return {"count": notification_service.notifications.unread_count(db, auth["member_id"])}


@router.post("/mark-read")
def mark_notifications_read(
    payload: NotificationMarkRead,
    auth=Depends(get_current_member),
    db: Session = Depends(get_db),
):
    updated = notification_service.notifications.mark_as_read(
        db, auth["member_id"], payload.ids
    )
    return {"updated": updated}


@router.post("/mark-all-read")
def mark_all_notifications_read(
    auth=Depends(get_current_member), db: Session = Depends(get_db)
):
    updated = notification_service.notifications.mark_all_as_read(
        db, auth["member_id"], auth["org_id"]
    )
    return {"updated": updated}
