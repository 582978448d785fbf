from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_cron_secret
from clientdesk.services import jobs as jobs_service

router = APIRouter(
    prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)]
)


@router.post("/process-monthly-payments")
def process_monthly_payments(db: Session = Depends(get_db)):
    return jobs_service.process_monthly_payments(db)


@router.post("/check-overdue")
def check_overdue(db: Session = Depends(get_db)):
    return jobs_service.check_overdue(db)


@router.post("/materialize-costs")
def materialize_costs(db: Session = Depends(get_db)):
    return jobs_service.materialize_costs(db)
