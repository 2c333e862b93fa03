"""Prometheus instruments for the storefront API."""

from __future__ import annotations

from typing import Any

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from storefront.core.config import settings

HTTP_LABELS = ("method", "path", "status_code")


class _Disabled:
    """Stands in for every instrument when METRICS_ENABLED is off."""

    def labels(self, *_: Any, **__: Any) -> "_Disabled":
        return self

    def inc(self, *_: Any, **__: Any) -> None:
        pass

    def observe(self, *_: Any, **__: Any) -> None:
        pass


def _counter(name: str, documentation: str, labels: tuple[str, ...]):
    if not settings.METRICS_ENABLED:
        return _Disabled()
    return Counter(f"{settings.METRICS_NAMESPACE}_{name}", documentation, labels)


def _histogram(name: str, documentation: str, labels: tuple[str, ...]):
    if not settings.METRICS_ENABLED:
        return _Disabled()
    return Histogram(
        f"{settings.METRICS_NAMESPACE}_{name}", documentation, labels, buckets=settings.METRICS_LATENCY_BUCKETS
    )


HTTP_DURATION = _histogram("http_request_duration_seconds", "HTTP request latency in seconds.", HTTP_LABELS)
HTTP_REQUESTS = _counter("http_requests_total", "HTTP requests served.", HTTP_LABELS)
HTTP_ERRORS = _counter("http_errors_total", "HTTP responses with a 4xx or 5xx status.", HTTP_LABELS)

LOGIN_ATTEMPTS = _counter("auth_login_attempts_total", "Sign-in attempts by outcome.", ("outcome",))
ORDER_MATERIALIZATIONS = _counter(
    "order_materializations_total", "Order materialization attempts by trigger and outcome.", ("trigger", "outcome")
)
WEBHOOK_EVENTS = _counter("stripe_webhook_events_total", "Stripe webhook deliveries by event type and outcome.", ("event_type", "outcome"))


def route_template(request) -> str:
    # plantilla de la ruta, no el path crudo, para no explotar la cardinalidad
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def record_request_metrics(request, status_code: int, elapsed: float) -> None:
    labels = (request.method, route_template(request), str(status_code))
    HTTP_REQUESTS.labels(*labels).inc()
    HTTP_DURATION.labels(*labels).observe(elapsed)
    if status_code >= 400:
        HTTP_ERRORS.labels(*labels).inc()


def record_login_attempt(outcome: str) -> None:
    LOGIN_ATTEMPTS.labels(outcome=outcome).inc()


def record_materialization(trigger: str, outcome: str) -> None:
    ORDER_MATERIALIZATIONS.labels(trigger=trigger, outcome=outcome).inc()


def record_webhook_event(event_type: str, outcome: str) -> None:
    WEBHOOK_EVENTS.labels(event_type=event_type, outcome=outcome).inc()


def export_metrics() -> tuple[bytes, str]:
    if not settings.METRICS_ENABLED:
        return b"", "text/plain; charset=utf-8"
    return generate_latest(), CONTENT_TYPE_LATEST
