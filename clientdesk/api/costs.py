from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_owner, require_staff
from clientdesk.schemas.common import ListResponse
from clientdesk.schemas.finance import (
    ClientMarginRead,
    CostItemCreate,
    CostItemRead,
    CostItemUpdate,
    CostSubscriptionCreate,
    CostSubscriptionRead,
    CostSubscriptionUpdate,
    MaterializeResult,
)
from clientdesk.services import costs as cost_service

router = APIRouter()


@router.post(
    "/cost-items",
    response_model=CostItemRead,
    status_code=status.HTTP_201_CREATED,
    tags=["cost-items"],
)
def create_cost_item(
    payload: CostItemCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return cost_service.cost_items.create(db, auth["org_id"], payload)


@router.get("/cost-items", response_model=ListResponse[CostItemRead], tags=["cost-items"])
def list_cost_items(
    active: bool | None = None,
    category: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return cost_service.cost_items.list_response(
        db, auth["org_id"], active, category, limit, offset
    )


@router.get("/cost-items/{cost_item_id}", response_model=CostItemRead, tags=["cost-items"])
def get_cost_item(
    cost_item_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return cost_service.cost_items.get(db, auth["org_id"], cost_item_id)


@router.patch("/cost-items/{cost_item_id}", response_model=CostItemRead, tags=["cost-items"])
def update_cost_item(
    cost_item_id: str,
    payload: CostItemUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return cost_service.cost_items.update(db, auth["org_id"], cost_item_id, payload)


@router.delete(
    "/cost-items/{cost_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["cost-items"],
)
def delete_cost_item(
    cost_item_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    cost_service.cost_items.delete(db, auth["org_id"], cost_item_id)


@router.post(
    "/cost-subscriptions",
    response_model=CostSubscriptionRead,
    status_code=status.HTTP_201_CREATED,
    tags=["cost-subscriptions"],
)
def create_cost_subscription(
    payload: CostSubscriptionCreate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return cost_service.cost_subscriptions.create(
        db, auth["org_id"], payload, created_by=auth["member_id"]
    )


@router.get(
    "/cost-subscriptions",
    response_model=ListResponse[CostSubscriptionRead],
    tags=["cost-subscriptions"],
)
def list_cost_subscriptions(
    client_id: str | None = None,
    cost_item_id: str | None = None,
    active: bool | None = None,
    include_deleted: bool = False,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return cost_service.cost_subscriptions.list_response(
        db, auth["org_id"], client_id, cost_item_id, active, include_deleted, limit, offset
    )


@router.post(
    "/cost-subscriptions/materialize",
    response_model=MaterializeResult,
    tags=["cost-subscriptions"],
)
def materialize_cost_subscriptions(
    auth=Depends(require_owner), db: Session = Depends(get_db)
):
    return cost_service.materialize_monthly(db, auth["org_id"], created_by=auth["member_id"])


@router.get(
    "/cost-subscriptions/{subscription_id}",
    response_model=CostSubscriptionRead,
    tags=["cost-subscriptions"],
)
def get_cost_subscription(
    subscription_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return cost_service.cost_subscriptions.get(db, auth["org_id"], subscription_id)


@router.patch(
    "/cost-subscriptions/{subscription_id}",
    response_model=CostSubscriptionRead,
    tags=["cost-subscriptions"],
)
def update_cost_subscription(
    subscription_id: str,
    payload: CostSubscriptionUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return cost_service.cost_subscriptions.update(
        db, auth["org_id"], subscription_id, payload
    )


@router.delete(
    "/cost-subscriptions/{subscription_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["cost-subscriptions"],
)
def delete_cost_subscription(
    subscription_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    cost_service.cost_subscriptions.delete(db, auth["org_id"], subscription_id)


@router.get(
    "/clients/{client_id}/margin", response_model=ClientMarginRead, tags=["cost-subscriptions"]
)
def get_client_margin(
    client_id: str,
    date_from: date | None = None,
    date_to: date | None = None,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return cost_service.calculate_client_margin(
        db, auth["org_id"], client_id, date_from, date_to
    )
