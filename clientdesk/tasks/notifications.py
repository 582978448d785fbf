from clientdesk.celery_app import celery_app
from clientdesk.db import SessionLocal
from clientdesk.services.notifications import notifications


@celery_app.task(name="clientdesk.tasks.notifications.clean_old_notifications")
def clean_old_notifications():
    session = SessionLocal()
    try:
        return notifications.clean_old_notifications(session)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
