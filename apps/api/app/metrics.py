from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

auth_failures_total = Counter(
    "auth_failures_total",
    "Rejected bearer credentials by reason",
    ["reason"],
)

authz_forbidden_total = Counter(
    "authz_forbidden_total",
    "Authenticated principals rejected by the role gate",
)

ownership_denied_total = Counter(
    "ownership_denied_total",
    "Entity-scoped operations rejected as not found or not owned",
    ["resource"],
)

cascade_deletes_total = Counter(
    "cascade_deletes_total",
    "Customer cascade deletes by outcome",
    ["outcome"],
)

cascade_deleted_leads_total = Counter(
    "cascade_deleted_leads_total",
    "Leads removed by customer cascade deletes",
)


_UUID_RE = re.compile(r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def resolve_http_path_label(request: Request) -> str:
    """Low-cardinality path label: the matched route template, ids collapsed to ``{id}``."""

    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if isinstance(template, str) and template:
        return _PATH_PARAM_RE.sub("{id}", template)
    return _UUID_RE.sub("{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_auth_failure(reason: str) -> None:
    auth_failures_total.labels(reason=reason).inc()


def observe_authz_forbidden() -> None:
    authz_forbidden_total.inc()


def observe_ownership_denied(resource: str) -> None:
    ownership_denied_total.labels(resource=resource).inc()


def observe_cascade_delete(outcome: str, deleted_leads: int = 0) -> None:
    cascade_deletes_total.labels(outcome=outcome).inc()
    if deleted_leads > 0:
        cascade_deleted_leads_total.inc(deleted_leads)


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
