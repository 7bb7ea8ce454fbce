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

tenant_denied_writes_total = Counter(
    "tenant_denied_writes_total",
    "Writes rejected because the row belongs to another tenant",
    ["resource"],
)

principal_provisioned_total = Counter(
    "principal_provisioned_total",
    "Self-heal provisioning outcomes",
    ["outcome"],
)

client_creation_steps_total = Counter(
    "client_creation_steps_total",
    "Best-effort client creation steps by outcome",
    ["step", "outcome"],
)

cascade_deleted_rows_total = Counter(
    "cascade_deleted_rows_total",
    "Rows removed by the client cascade",
    ["table"],
)

lead_transitions_total = Counter(
    "lead_transitions_total",
    "Lead stage moves and conversions",
    ["kind"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_tenant_denied_write(resource: str) -> None:
    tenant_denied_writes_total.labels(resource=resource).inc()


def observe_principal_provisioned(outcome: str) -> None:
    principal_provisioned_total.labels(outcome=outcome).inc()


def observe_client_creation_step(step: str, ok: bool) -> None:
    client_creation_steps_total.labels(step=step, outcome="ok" if ok else "failed").inc()


def observe_cascade_counts(counts: dict[str, int]) -> None:
    for table, count in counts.items():
        if count > 0:
            cascade_deleted_rows_total.labels(table=table).inc(count)


def observe_lead_transition(kind: str) -> None:
    lead_transitions_total.labels(kind=kind).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
