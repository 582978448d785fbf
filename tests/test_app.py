import importlib


def test_application_modules_import():
    for name in (
        "clientdesk.main",
        "clientdesk.services.jobs",
        "clientdesk.services.organizations",
        "clientdesk.tasks.billing",
        "clientdesk.tasks.costs",
        "clientdesk.tasks.notifications",
        "clientdesk.api.cron",
    ):
        assert importlib.import_module(name) is not None


def test_application_registers_routes():
    from clientdesk.main import app

    paths = {route.path for route in app.routes}
    assert "/health" in paths
    assert "/metrics" in paths
    assert "/api/v1/clients" in paths
    assert "/api/v1/invoices/{invoice_id}/payments" in paths
    assert "/api/v1/cron/check-overdue" in paths
    assert "/api/v1/reports/billing-projection" in paths
