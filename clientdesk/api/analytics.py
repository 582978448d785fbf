from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_staff
from clientdesk.schemas.analytics import (
    AnalyticsMetricCreate,
    AnalyticsMetricRead,
    AnalyticsMetricTag,
    AnalyticsMetricUpdate,
)
from clientdesk.schemas.common import ListResponse
from clientdesk.services import analytics as analytics_service

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post(
    "/metrics", response_model=AnalyticsMetricRead, status_code=status.HTTP_201_CREATED
)
def create_metric(
    payload: AnalyticsMetricCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return analytics_service.analytics_metrics.create(
        db, auth["org_id"], payload, created_by=auth["member_id"]
    )


@router.get("/metrics", response_model=ListResponse[AnalyticsMetricRead])
def list_metrics(
    metric_type: str | None = None,
    time_range: str | None = None,
    source: str | None = None,
    tag: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return analytics_service.analytics_metrics.list_response(
        db,
        auth["org_id"],
        metric_type,
        time_range,
        source,
        tag,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/metrics/{metric_id}", response_model=AnalyticsMetricRead)
def get_metric(metric_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    return analytics_service.analytics_metrics.get(db, auth["org_id"], metric_id)


@router.patch("/metrics/{metric_id}", response_model=AnalyticsMetricRead)
def update_metric(
    metric_id: str,
    payload: AnalyticsMetricUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return analytics_service.analytics_metrics.update(
        db, auth["org_id"], metric_id, payload, updated_by=auth["member_id"]
    )


@router.post("/metrics/{metric_id}/tags", response_model=AnalyticsMetricRead)
def add_metric_tag(
    metric_id: str,
    payload: AnalyticsMetricTag,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return analytics_service.analytics_metrics.add_tag(db, auth["org_id"], metric_id, payload.tag)


@router.delete("/metrics/{metric_id}/tags/{tag}", response_model=AnalyticsMetricRead)
def remove_metric_tag(
    metric_id: str, tag: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return analytics_service.analytics_metrics.remove_tag(db, auth["org_id"], metric_id, tag)


@router.delete("/metrics/{metric_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_metric(metric_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    analytics_service.analytics_metrics.delete(db, auth["org_id"], metric_id)
