"""In-app notifications for organization members."""

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clientdesk.models.notification import (
    Notification,
    NotificationPriority,
    NotificationType,
)
from clientdesk.models.organization import Member
from clientdesk.services.common import (
    apply_pagination,
    coerce_uuid,
    utc_now,
    validate_enum,
)
from clientdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

READ_RETENTION_DAYS = 30


def _recipients(db: Session, org_id, member_id) -> list:
    if member_id:
        return [coerce_uuid(member_id)]
    rows = (
        db.query(Member.id)
        .filter(Member.org_id == coerce_uuid(org_id))
        .filter(Member.is_active.is_(True))
        .all()
    )
    return [row[0] for row in rows]


def create_notification(
    db: Session,
    org_id,
    type: NotificationType | str,
    title: str,
    message: str,
    member_id=None,
    client_id=None,
    invoice_id=None,
    link: str | None = None,
    priority: NotificationPriority | str = NotificationPriority.normal,
    commit: bool = True,
) -> list[Notification]:
    """Create a notification for one member or for every active member.

    Delivery problems are logged and never raised; a failed notification must
    not undo the billing operation that triggered it. With commit=False the
    rows are left in the session for the caller's transaction.
    """
    notification_type = validate_enum(type, NotificationType, "Tipo de notificação")
    notification_priority = validate_enum(
        priority, NotificationPriority, "Prioridade"
    )
    created: list[Notification] = []
    for recipient in _recipients(db, org_id, member_id):
        notification = Notification(
            org_id=coerce_uuid(org_id),
            member_id=recipient,
            client_id=coerce_uuid(client_id),
            invoice_id=coerce_uuid(invoice_id),
            type=notification_type,
            title=title,
            message=message,
            link=link,
            priority=notification_priority,
        )
        db.add(notification)
        created.append(notification)
    if not commit:
        return created
    try:
        db.commit()
    except SQLAlchemyError:
        logger.exception(f"Failed to create {notification_type.value} notification")
        db.rollback()
        return []
    return created


class Notifications(ListResponseMixin):
    @staticmethod
    def create(db: Session, org_id, payload):
        created = create_notification(
            db,
            org_id,
            payload.type,
            payload.title,
            payload.message,
            member_id=payload.member_id,
            client_id=payload.client_id,
            invoice_id=payload.invoice_id,
            link=payload.link,
            priority=payload.priority,
        )
        for notification in created:
            db.refresh(notification)
        return created

    @staticmethod
    def list(
        db: Session,
        member_id,
        unread_only: bool,
        limit: int,
        offset: int,
    ):
        query = db.query(Notification).filter(
            Notification.member_id == coerce_uuid(member_id)
        )
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc())
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def unread_count(db: Session, member_id) -> int:
        return (
            db.query(Notification)
            .filter(Notification.member_id == coerce_uuid(member_id))
            .filter(Notification.read.is_(False))
            .count()
        )

    @staticmethod
    def mark_as_read(db: Session, member_id, notification_ids: list) -> int:
        ids = [coerce_uuid(value) for value in notification_ids]
        if not ids:
            raise HTTPException(status_code=400, detail="Nenhuma notificação informada")
        updated = (
            db.query(Notification)
            .filter(Notification.member_id == coerce_uuid(member_id))
            .filter(Notification.id.in_(ids))
            .update(
                {Notification.read: True, Notification.read_at: utc_now()},
                synchronize_session=False,
            )
        )
        db.commit()
        return updated

    @staticmethod
    def mark_all_as_read(db: Session, member_id, org_id=None) -> int:
        query = (
            db.query(Notification)
            .filter(Notification.member_id == coerce_uuid(member_id))
            .filter(Notification.read.is_(False))
        )
        if org_id:
            query = query.filter(Notification.org_id == coerce_uuid(org_id))
        updated = query.update(
            {Notification.read: True, Notification.read_at: utc_now()},
            synchronize_session=False,
        )
        db.commit()
        return updated

    @staticmethod
    def clean_old_notifications(db: Session, now: datetime | None = None) -> int:
        """Delete read notifications older than the retention window."""
        cutoff = (now or utc_now()) - timedelta(days=READ_RETENTION_DAYS)
        deleted = (
            db.query(Notification)
            .filter(Notification.read.is_(True))
            .filter(Notification.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info(f"Removed {deleted} old notifications")
        return deleted


notifications = Notifications()
