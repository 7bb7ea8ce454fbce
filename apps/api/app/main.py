from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.errors import register_exception_handlers
from app.core.events import InternalEvent, event_bus
from app.events import NOTIFY_EVENT
from app.logging import configure_logging
from app.middleware.request_context import RequestContextMiddleware
from app.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("app.lifecycle")


def _log_broadcast(event: InternalEvent) -> None:
    logger.info(
        "realtime.broadcast",
        extra={"event_name": event.name, "resource": f"{event.payload.get('module')}:{event.payload.get('type')}"},
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe(NOTIFY_EVENT, _log_broadcast)
    logger.info("app.started", extra={"event_name": "system.started"})
    yield
    event_bus.unsubscribe(NOTIFY_EVENT, _log_broadcast)


settings = get_settings()

app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
app.add_middleware(RequestContextMiddleware)
app.include_router(api_router)
register_exception_handlers(app)

if settings.otel_enabled:
    setup_otel("weddingflo-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
