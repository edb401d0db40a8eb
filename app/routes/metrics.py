"""
Prometheus metrics endpoint.

Exposes request, dispatch, delivery and plugin metrics for monitoring.
"""
from fastapi import APIRouter, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter()

# ============================================
# HTTP Request Metrics
# ============================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# ============================================
# Dispatch Metrics
# ============================================

events_dispatched = Counter(
    'events_dispatched_total',
    'Total events dispatched',
    ['event']
)

jobs_enqueued = Counter(
    'jobs_enqueued_total',
    'Total jobs placed on the queue',
    ['kind']
)

enqueue_failures = Counter(
    'enqueue_failures_total',
    'Total jobs that could not be enqueued',
    ['kind']
)

# ============================================
# Webhook Delivery Metrics
# ============================================

webhook_deliveries = Counter(
    'webhook_deliveries_total',
    'Webhook delivery attempts by outcome',
    ['outcome']
)

webhook_delivery_duration = Histogram(
    'webhook_delivery_duration_seconds',
    'Webhook delivery request duration in seconds',
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0]
)

# ============================================
# Plugin Metrics
# ============================================

plugin_invocations = Counter(
    'plugin_invocations_total',
    'Plugin action invocations by outcome',
    ['plugin', 'outcome']
)


# ============================================
# Metrics Helper Functions
# ============================================

def track_request(method: str, endpoint: str, status: int, duration_seconds: float):
    """
    Record HTTP request metrics.

    Call this after each request.
    """
    http_requests_total.labels(
        method=method,
        endpoint=endpoint,
        status=status
    ).inc()

    http_request_duration.labels(
        method=method,
        endpoint=endpoint
    ).observe(duration_seconds)


def track_event_dispatched(event: str):
    """Record an event entering the fan-out."""
    events_dispatched.labels(event=event).inc()


def track_job_enqueued(kind: str):
    """Record a delivery or plugin job being queued."""
    jobs_enqueued.labels(kind=kind).inc()


def track_enqueue_failure(kind: str):
    """Record a job that never reached the queue."""
    enqueue_failures.labels(kind=kind).inc()


def track_webhook_delivery(outcome: str, duration_seconds: float | None = None):
    """Record one delivery attempt: delivered, retrying or abandoned."""
    webhook_deliveries.labels(outcome=outcome).inc()
    if duration_seconds is not None:
        webhook_delivery_duration.observe(duration_seconds)


def track_plugin_invocation(plugin: str, outcome: str):
    """Record a plugin action result: succeeded or failed."""
    plugin_invocations.labels(plugin=plugin, outcome=outcome).inc()


# ============================================
# Prometheus Endpoint
# ============================================

@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Returns all registered metrics in Prometheus format.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
