from datetime import date
from decimal import Decimal

from fastapi import HTTPException

from clientdesk.models.billing import InvoiceStatus
from clientdesk.schemas.billing import InvoiceCreate, InvoiceItemCreate
from clientdesk.services import billing as billing_service
from clientdesk.services import email as email_service
from clientdesk.services import jobs as jobs_service


class _Response:
    status_code = 200
    content = b'{"id": "msg_1"}'

    def json(self):
        return {"id": "msg_1"}


def _overdue_candidate(db_session, organization, client, due_date):
    return billing_service.invoices.create(
        db_session,
        organization.id,
        InvoiceCreate(
            client_id=client.id,
            issue_date=date(2024, 4, 20),
            due_date=due_date,
            items=[InvoiceItemCreate(description="Mensalidade", unit_amount=Decimal("1000"))],
        ),
    )


def test_for_each_organization_isolates_failures(
    db_session, organization, other_organization
):
    def runner(org_id):
        if org_id == other_organization.id:
            raise HTTPException(status_code=400, detail="Falhou")
        return {"done": True}

    result = jobs_service._for_each_organization(db_session, "test_job", runner)
    assert result["organizations"] == 2
    assert result["results"] == [{"org_id": str(organization.id), "done": True}]
    assert result["errors"] == [{"org_id": str(other_organization.id), "error": "Falhou"}]


def test_check_overdue_marks_invoices_and_skips_email_when_disabled(
    db_session, organization, client, monkeypatch
):
    monkeypatch.setattr(
        email_service, "settings", email_service.settings.model_copy(update={"resend_api_key": None})
    )
    invoice = _overdue_candidate(db_session, organization, client, date(2024, 5, 1))

    result = jobs_service.check_overdue(db_session, today=date(2024, 5, 2))

    assert result["errors"] == []
    assert result["results"][0]["overdue_invoices"] == 1
    assert result["results"][0]["emails_sent"] == 0
    db_session.refresh(invoice)
    assert invoice.status == InvoiceStatus.overdue


def test_check_overdue_sends_weekly_reminders(
    db_session, organization, client, monkeypatch
):
    monkeypatch.setattr(
        email_service, "settings", email_service.settings.model_copy(update={"resend_api_key": "re_test"})
    )
    sent = []

    def fake_post(url, headers=None, json=None, timeout=None):
        sent.append(json)
        return _Response()

    monkeypatch.setattr(email_service.httpx, "post", fake_post)
    _overdue_candidate(db_session, organization, client, date(2024, 5, 1))
    _overdue_candidate(db_session, organization, client, date(2024, 4, 30))

    result = jobs_service.check_overdue(db_session, today=date(2024, 5, 2))

    assert result["results"][0]["overdue_invoices"] == 2
    assert result["results"][0]["emails_sent"] == 1
    assert sent[0]["to"] == [client.email]
    assert sent[0]["subject"] == "Fatura 2024-0001 em atraso"


def test_materialize_costs_runs_per_organization(db_session, organization, other_organization):
    result = jobs_service.materialize_costs(db_session, today=date(2024, 5, 1))
    assert result["organizations"] == 2
    assert all(entry["success"] == [] for entry in result["results"])


def test_process_monthly_payments_generates_invoices(db_session, organization, client):
    result = jobs_service.process_monthly_payments(db_session, today=date(2024, 5, 3))
    summary = result["results"][0]["summary"]
    assert summary["generated"] == 1
    assert summary["regular"] == 1
