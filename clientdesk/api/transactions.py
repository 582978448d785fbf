from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_staff
from clientdesk.schemas.common import ListResponse
from clientdesk.schemas.finance import (
    TransactionCreate,
    TransactionRead,
    TransactionSummary,
    TransactionUpdate,
)
from clientdesk.services import transactions as transaction_service

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("", response_model=TransactionRead, status_code=status.HTTP_201_CREATED)
def create_transaction(
    payload: TransactionCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return transaction_service.transactions.create(
        db, auth["org_id"], payload, created_by=auth["member_id"]
    )


@router.get("", response_model=ListResponse[TransactionRead])
def list_transactions(
    type: str | None = None,
    subtype: str | None = None,
    status: str | None = None,
    client_id: str | None = None,
    invoice_id: str | None = None,
    cost_item_id: str | None = None,
    category: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    include_deleted: bool = False,
    order_by: str = Query(default="date"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return transaction_service.transactions.list_response(
        db,
        auth["org_id"],
        type,
        subtype,
        status,
        client_id,
        invoice_id,
        cost_item_id,
        category,
        date_from,
        date_to,
        include_deleted,
        order_by,
        order_dir,
        limit,
        offset,
    )


@router.get("/summary", response_model=TransactionSummary)
def transaction_summary(
    date_from: date | None = None,
    date_to: date | None = None,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return transaction_service.transactions.summary(db, auth["org_id"], date_from, date_to)


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(
    transaction_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return transaction_service.transactions.get(db, auth["org_id"], transaction_id)


@router.patch("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: str,
    payload: TransactionUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return transaction_service.transactions.update(
        db, auth["org_id"], transaction_id, payload
    )


@router.delete("/{transaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_transaction(
    transaction_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    transaction_service.transactions.delete(db, auth["org_id"], transaction_id)
