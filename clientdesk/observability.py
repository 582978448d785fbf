import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from clientdesk.logging import request_id_var
from clientdesk.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

REQUEST_ID_HEADER = "X-Request-ID"


def _route_path(request: Request) -> str:
    # Use the route template so metric labels stay bounded.
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            duration = time.perf_counter() - start
            path = _route_path(request)
            labels = {
                "method": request.method,
                "path": path,
                "status": str(status_code),
            }
            REQUEST_COUNT.labels(**labels).inc()
            REQUEST_LATENCY.labels(**labels).observe(duration)
            if status_code >= 500:
                REQUEST_ERRORS.labels(**labels).inc()
            request_id_var.reset(token)
