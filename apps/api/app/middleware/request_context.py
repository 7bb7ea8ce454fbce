from __future__ import annotations

import logging
import time
import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from app.context import reset_correlation_id, set_correlation_id
from app.metrics import observe_http_request, resolve_http_path_label


logger = logging.getLogger("app.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Propagates ``x-correlation-id`` and logs one structured line per request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = request.headers.get("x-correlation-id") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)
        span = trace.get_current_span()
        if span is not None and span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        method = request.method
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                self._observe(request, method, 500, started, failed=True)
                raise
            self._observe(request, method, response.status_code, started)
        finally:
            reset_correlation_id(token)

        response.headers["x-correlation-id"] = correlation_id
        return response

    @staticmethod
    def _observe(request: Request, method: str, status_code: int, started: float, failed: bool = False) -> None:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        path = resolve_http_path_label(request)
        observe_http_request(method=method, path=path, status=status_code, duration=duration_ms / 1000)
        fields = {"method": method, "path": path, "status_code": status_code, "duration_ms": duration_ms}
        if failed:
            logger.error("http.error", exc_info=True, extra=fields)
        else:
            logger.info("http.request", extra=fields)
