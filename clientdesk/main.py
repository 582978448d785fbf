import logging

from fastapi import Depends, FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from clientdesk.api.analytics import router as analytics_router
from clientdesk.api.billing import router as billing_router
from clientdesk.api.clients import router as clients_router
from clientdesk.api.costs import router as costs_router
from clientdesk.api.cron import router as cron_router
from clientdesk.api.dashboard import router as dashboard_router
from clientdesk.api.deps import require_org_context
from clientdesk.api.notifications import router as notifications_router
from clientdesk.api.organizations import public_router as organizations_public_router
from clientdesk.api.organizations import router as organizations_router
from clientdesk.api.reports import router as reports_router
from clientdesk.api.transactions import router as transactions_router
from clientdesk.errors import register_error_handlers
from clientdesk.logging import configure_logging
from clientdesk.observability import ObservabilityMiddleware

app = FastAPI(title="clientdesk API")
logger = logging.getLogger(__name__)
configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(organizations_public_router)
_include_api_router(organizations_router, dependencies=[Depends(require_org_context)])
_include_api_router(clients_router, dependencies=[Depends(require_org_context)])
_include_api_router(billing_router, dependencies=[Depends(require_org_context)])
_include_api_router(transactions_router, dependencies=[Depends(require_org_context)])
_include_api_router(costs_router, dependencies=[Depends(require_org_context)])
_include_api_router(notifications_router, dependencies=[Depends(require_org_context)])
_include_api_router(reports_router, dependencies=[Depends(require_org_context)])
_include_api_router(analytics_router, dependencies=[Depends(require_org_context)])
_include_api_router(dashboard_router, dependencies=[Depends(require_org_context)])
# Cron endpoints authenticate with the shared cron secret instead of a member key.
_include_api_router(cron_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
