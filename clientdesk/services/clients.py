"""Client management services."""

import logging

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from clientdesk.models.client import Client, ClientStatus
from clientdesk.schemas.client import ClientCreate, ClientUpdate
from clientdesk.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_org_entity,
    utc_now,
    validate_enum,
)
from clientdesk.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def _validate_contract(data: dict) -> None:
    start = data.get("contract_start")
    end = data.get("contract_end")
    if start and end and end < start:
        raise HTTPException(
            status_code=400,
            detail="A data final do contrato não pode ser anterior à data inicial",
        )
    days = data.get("installment_payment_days") or []
    if any(day < 1 or day > 31 for day in days):
        raise HTTPException(
            status_code=400, detail="Dias de pagamento devem estar entre 1 e 31"
        )


def get_client(db: Session, org_id, client_id) -> Client:
    return get_org_entity(db, Client, org_id, client_id, "Cliente não encontrado")


class Clients(ListResponseMixin):
    @staticmethod
    def create(db: Session, org_id, payload: ClientCreate):
        data = payload.model_dump()
        _validate_contract(data)
        client = Client(org_id=coerce_uuid(org_id), **data)
        db.add(client)
        db.commit()
        db.refresh(client)
        logger.info(f"Client {client.id} created in org {org_id}")
        return client

    @staticmethod
    def get(db: Session, org_id, client_id):
        return get_client(db, org_id, client_id)

    @staticmethod
    def list(
        db: Session,
        org_id,
        status: str | None,
        q: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ):
        query = (
            db.query(Client)
            .filter(Client.org_id == coerce_uuid(org_id))
            .filter(Client.deleted_at.is_(None))
        )
        if status:
            query = query.filter(
                Client.status == validate_enum(status, ClientStatus, "Status")
            )
        if q:
            like = f"%{q.strip().lower()}%"
            query = query.filter(
                or_(func.lower(Client.name).like(like), func.lower(Client.email).like(like))
            )
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {
                "created_at": Client.created_at,
                "name": Client.name,
                "status": Client.status,
                "contract_value": Client.contract_value,
            },
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, org_id, client_id, payload: ClientUpdate):
        client = get_client(db, org_id, client_id)
        data = payload.model_dump(exclude_unset=True)
        merged = {
            "contract_start": data.get("contract_start", client.contract_start),
            "contract_end": data.get("contract_end", client.contract_end),
            "installment_payment_days": data.get(
                "installment_payment_days", client.installment_payment_days
            ),
        }
        _validate_contract(merged)
        for key, value in data.items():
            setattr(client, key, value)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def delete(db: Session, org_id, client_id):
        client = get_client(db, org_id, client_id)
        client.deleted_at = utc_now()
        client.status = ClientStatus.canceled
        db.commit()
        logger.info(f"Client {client.id} soft-deleted")


clients = Clients()
