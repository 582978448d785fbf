from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clientdesk.api.deps import get_db, require_staff
from clientdesk.schemas.billing import (
    InstallmentListRead,
    InstallmentPlanCreate,
    InstallmentRead,
    InvoiceCancelRequest,
    InvoiceCreate,
    InvoiceMessageRead,
    InvoicePaymentRequest,
    InvoiceRead,
    InvoiceUpdate,
    MonthlyPaymentConfirm,
    MonthlyPaymentStatusRead,
    PaymentRead,
)
from clientdesk.schemas.common import PagedResponse
from clientdesk.schemas.finance import TransactionRead
from clientdesk.services import billing as billing_service

router = APIRouter()


@router.post(
    "/invoices",
    response_model=InvoiceRead,
    status_code=status.HTTP_201_CREATED,
    tags=["invoices"],
)
def create_invoice(
    payload: InvoiceCreate, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return billing_service.invoices.create(
        db, auth["org_id"], payload, created_by=auth["member_id"]
    )


@router.get("/invoices", response_model=PagedResponse[InvoiceRead], tags=["invoices"])
def list_invoices(
    status: str | None = None,
    q: str | None = None,
    client_id: str | None = None,
    issue_from: date | None = None,
    issue_to: date | None = None,
    due_from: date | None = None,
    due_to: date | None = None,
    min_amount: Decimal | None = None,
    max_amount: Decimal | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return billing_service.invoices.list_org_invoices(
        db,
        auth["org_id"],
        status=status,
        q=q,
        issue_from=issue_from,
        issue_to=issue_to,
        due_from=due_from,
        due_to=due_to,
        min_amount=min_amount,
        max_amount=max_amount,
        client_id=client_id,
        page=page,
        page_size=page_size,
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceRead, tags=["invoices"])
def get_invoice(invoice_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    return billing_service.invoices.get(db, auth["org_id"], invoice_id)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceRead, tags=["invoices"])
def update_invoice(
    invoice_id: str,
    payload: InvoiceUpdate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return billing_service.invoices.update(db, auth["org_id"], invoice_id, payload)


@router.post("/invoices/{invoice_id}/open", response_model=InvoiceRead, tags=["invoices"])
def open_invoice(invoice_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)):
    return billing_service.invoices.open(db, auth["org_id"], invoice_id)


@router.post("/invoices/{invoice_id}/cancel", response_model=InvoiceRead, tags=["invoices"])
def cancel_invoice(
    invoice_id: str,
    payload: InvoiceCancelRequest,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return billing_service.invoices.cancel_invoice(
        db, auth["org_id"], invoice_id, payload.reason
    )


@router.post(
    "/invoices/{invoice_id}/payments",
    response_model=PaymentRead,
    status_code=status.HTTP_201_CREATED,
    tags=["invoices"],
)
def pay_invoice(
    invoice_id: str,
    payload: InvoicePaymentRequest,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return billing_service.invoices.mark_invoice_paid(
        db,
        auth["org_id"],
        invoice_id,
        method=payload.method,
        amount=payload.amount,
        paid_at=payload.paid_at,
        created_by=auth["member_id"],
    )


@router.get(
    "/invoices/{invoice_id}/payments", response_model=list[PaymentRead], tags=["invoices"]
)
def list_invoice_payments(
    invoice_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return billing_service.invoices.list_payments(db, auth["org_id"], invoice_id)


@router.get(
    "/invoices/{invoice_id}/whatsapp-message",
    response_model=InvoiceMessageRead,
    tags=["invoices"],
)
def get_invoice_whatsapp_message(
    invoice_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    message = billing_service.invoices.compose_invoice_whatsapp_message(
        db, auth["org_id"], invoice_id
    )
    return {"invoice_id": invoice_id, "message": message}


@router.get(
    "/clients/{client_id}/invoices", response_model=list[InvoiceRead], tags=["client-billing"]
)
def list_client_invoices(
    client_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return billing_service.invoices.list_client_invoices(db, auth["org_id"], client_id)


@router.get(
    "/clients/{client_id}/monthly-payment",
    response_model=MonthlyPaymentStatusRead,
    tags=["client-billing"],
)
def get_monthly_payment_status(
    client_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return billing_service.monthly_payments.get_monthly_payment_status(
        db, auth["org_id"], client_id
    )


@router.post(
    "/clients/{client_id}/monthly-payment/confirm",
    response_model=TransactionRead,
    status_code=status.HTTP_201_CREATED,
    tags=["client-billing"],
)
def confirm_monthly_payment(
    client_id: str,
    payload: MonthlyPaymentConfirm,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return billing_service.monthly_payments.confirm_monthly_payment(
        db, auth["org_id"], client_id, amount=payload.amount, created_by=auth["member_id"]
    )


@router.post(
    "/clients/{client_id}/installments",
    response_model=list[InstallmentRead],
    status_code=status.HTTP_201_CREATED,
    tags=["client-billing"],
)
def create_installment_plan(
    client_id: str,
    payload: InstallmentPlanCreate,
    auth=Depends(require_staff),
    db: Session = Depends(get_db),
):
    return billing_service.installments.create_installment_plan(
        db, auth["org_id"], client_id, payload.count, payload.start_date
    )


@router.get(
    "/clients/{client_id}/installments",
    response_model=InstallmentListRead,
    tags=["client-billing"],
)
def list_client_installments(
    client_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return billing_service.installments.get_client_installments(
        db, auth["org_id"], client_id
    )


@router.post(
    "/installments/{installment_id}/confirm",
    response_model=InstallmentRead,
    tags=["client-billing"],
)
def confirm_installment_payment(
    installment_id: str, auth=Depends(require_staff), db: Session = Depends(get_db)
):
    return billing_service.installments.confirm_installment_payment(
        db, auth["org_id"], installment_id, created_by=auth["member_id"]
    )
