import time

from clientdesk.celery_app import celery_app
from clientdesk.db import SessionLocal
from clientdesk.metrics import observe_job
from clientdesk.services import jobs as jobs_service


@celery_app.task(name="clientdesk.tasks.costs.materialize_costs")
def materialize_costs():
    started = time.monotonic()
    session = SessionLocal()
    status = "success"
    try:
        return jobs_service.materialize_costs(session)
    except Exception:
        status = "error"
        session.rollback()
        raise
    finally:
        session.close()
        observe_job("materialize_costs", status, time.monotonic() - started)
