"""
Prometheus metrics middleware for the WhatsApp Concierge API.

Exposes /metrics endpoint with request counters, latency histograms,
and conversation metrics.
"""

import logging
import time

from fastapi import Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Request metrics
REQUEST_COUNT = Counter(
    "bot_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "bot_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)
ACTIVE_REQUESTS = Gauge(
    "bot_http_active_requests",
    "Currently active HTTP requests",
)

# Conversation metrics
MESSAGES_RECEIVED = Counter(
    "bot_messages_received_total",
    "Inbound messages by input kind",
    ["kind"],
)
DUPLICATES = Counter(
    "bot_duplicate_messages_total",
    "Inbound messages dropped as already processed",
)
TRANSITIONS = Counter(
    "bot_state_transitions_total",
    "State changes by target state",
    ["state"],
)
RECORDS = Counter(
    "bot_records_total",
    "Completed flow records by kind",
    ["kind"],
)
SEND_FAILURES = Counter(
    "bot_send_failures_total",
    "Outbound replies that were not delivered",
)
ACTIVE_SESSIONS = Gauge(
    "bot_active_sessions",
    "Sessions currently held in the store",
)


class ConversationMetrics:
    """Processor hooks that feed the Prometheus counters."""

    def on_message(self, kind: str) -> None:
        MESSAGES_RECEIVED.labels(kind=kind).inc()

    def on_duplicate(self) -> None:
        DUPLICATES.inc()

    def on_transition(self, from_state: str, to_state: str) -> None:
        TRANSITIONS.labels(state=to_state).inc()

    def on_record(self, kind: str) -> None:
        RECORDS.labels(kind=kind).inc()

    def on_send_failure(self) -> None:
        SEND_FAILURES.inc()


def record_active_sessions(count: int):
    """Set the active sessions gauge."""
    ACTIVE_SESSIONS.set(count)


# Webhook paths carry no ids, admin paths do; keep label cardinality bounded
def _endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware that records HTTP request metrics."""

    async def dispatch(self, request: Request, call_next):
        ACTIVE_REQUESTS.inc()
        start = time.time()

        try:
            response = await call_next(request)
        except Exception:
            ACTIVE_REQUESTS.dec()
            raise

        duration = time.time() - start
        endpoint = _endpoint_label(request)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=endpoint,
        ).observe(duration)
        ACTIVE_REQUESTS.dec()

        return response


async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint."""
    services = getattr(request.app.state, "services", None)
    if services is not None:
        record_active_sessions(services.store.count())
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
