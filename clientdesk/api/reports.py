from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_owner
from clientdesk.services import billing_automation
from clientdesk.services import reporting as reporting_service

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/revenue-projection")
def revenue_projection(
    months: int = Query(default=12, ge=1, le=24),
    from_date: date | None = None,
    to_date: date | None = None,
    auth=Depends(require_owner),
    db: Session = Depends(get_db),
):
    return reporting_service.revenue_projection(
        db, auth["org_id"], months=months, from_date=from_date, to_date=to_date
    )


@router.get("/delinquency-analysis")
def delinquency_analysis(
    min_days_overdue: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
    auth=Depends(require_owner),
    db: Session = Depends(get_db),
):
    return reporting_service.delinquency_analysis(
        db, auth["org_id"], min_days_overdue=min_days_overdue, limit=limit
    )


@router.get("/billing-projection")
def billing_projection(
    months: int = Query(default=3, ge=1, le=12),
    auth=Depends(require_owner),
    db: Session = Depends(get_db),
):
    return billing_automation.calculate_projection(db, auth["org_id"], months=months)
