from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.context import get_correlation_id


logger = logging.getLogger("app.errors")


class CoreError(Exception):
    """Typed failure raised by the tenant core; mapped to a stable HTTP status."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(CoreError):
    """A non-privileged principal reached a tenant-scoped operation without a company."""

    status_code = status.HTTP_403_FORBIDDEN
    code = "tenant_context_missing"


class ForbiddenError(CoreError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"


class NotFoundError(CoreError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, resource: str, identifier: object | None = None) -> None:
        message = f"{resource} not found" if identifier is None else f"{resource} {identifier} not found"
        super().__init__(message)
        self.resource = resource


class BadRequestError(CoreError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "bad_request"


class InternalError(CoreError):
    code = "internal_error"


def _public_message(exc: CoreError) -> str:
    if isinstance(exc, InternalError):
        return "Internal error"
    return exc.message


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CoreError)
    async def core_error_handler(request: Request, exc: CoreError) -> JSONResponse:
        if isinstance(exc, InternalError):
            logger.error("core.internal_error", extra={"path": request.url.path, "error": exc.message})
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "code": exc.code,
                "message": _public_message(exc),
                "correlation_id": get_correlation_id(),
            },
        )
