from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "path", "status"],
)
REQUEST_ERRORS = Counter(
    "http_request_errors_total",
    "Total HTTP 5xx responses",
    ["method", "path", "status"],
)

JOB_DURATION = Histogram(
    "job_duration_seconds",
    "Background job duration",
    ["task", "status"],
)

INVOICES_GENERATED = Counter(
    "billing_invoices_generated_total",
    "Invoices created by billing jobs",
    ["kind"],
)
INVOICES_OVERDUE = Counter(
    "billing_invoices_overdue_total",
    "Invoices moved to overdue by billing jobs",
)
COSTS_MATERIALIZED = Counter(
    "costs_materialized_total",
    "Cost subscriptions turned into expense transactions",
    ["outcome"],
)


def observe_job(task_name: str, status: str, duration: float) -> None:
    JOB_DURATION.labels(task=task_name, status=status).observe(duration)


def record_invoices_generated(kind: str, count: int) -> None:
    if count:
        INVOICES_GENERATED.labels(kind=kind).inc(count)


def record_overdue(count: int) -> None:
    if count:
        INVOICES_OVERDUE.inc(count)
