import logging
import time

from clientdesk.celery_app import celery_app
from clientdesk.db import SessionLocal
from clientdesk.metrics import observe_job
from clientdesk.services import jobs as jobs_service

logger = logging.getLogger(__name__)


def _run(task_name: str, runner):
    started = time.monotonic()
    session = SessionLocal()
    status = "success"
    try:
        result = runner(session)
        logger.info(
            f"{task_name} finished: organizations={result['organizations']} "
            f"errors={len(result['errors'])}"
        )
        return result
    except Exception:
        status = "error"
        session.rollback()
        raise
    finally:
        session.close()
        observe_job(task_name, status, time.monotonic() - started)


@celery_app.task(name="clientdesk.tasks.billing.run_daily_billing")
def run_daily_billing():
    return _run("run_daily_billing", jobs_service.run_daily_billing)


@celery_app.task(name="clientdesk.tasks.billing.process_monthly_payments")
def process_monthly_payments():
    return _run("process_monthly_payments", jobs_service.process_monthly_payments)


@celery_app.task(name="clientdesk.tasks.billing.check_overdue")
def check_overdue():
    return _run("check_overdue", jobs_service.check_overdue)
