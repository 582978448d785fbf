from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_staff
from clientdesk.schemas.client import ClientCreate, ClientRead, ClientUpdate
from clientdesk.schemas.common import ListResponse
from clientdesk.services import clients as client_service

router = APIRouter(prefix="/clients", tags=["clients"])


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return client_service.clients.create(db, auth["org_id"], payload)


@router.get("", response_model=ListResponse[ClientRead])
def list_clients(
    status: str | None = None,
    q: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return client_service.clients.list_response(
        db, auth["org_id"], status, q, order_by, order_dir, limit, offset
    )


@router.get("/{client_id}", response_model=ClientRead)
def get_client(client_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    return client_service.clients.get(db, auth["org_id"], client_id)


@router.patch("/{client_id}", response_model=ClientRead)
def update_client(
    client_id: str,
    payload: ClientUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return client_service.clients.update(db, auth["org_id"], client_id, payload)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(
    client_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    client_service.clients.delete(db, auth["org_id"], client_id)
