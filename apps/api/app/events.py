from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.context import get_correlation_id
from app.core.events import event_bus


logger = logging.getLogger("app.events")

NOTIFY_EVENT = "realtime.notify"
_PENDING_KEY = "pending_notifications"

published_events: list[dict[str, Any]] = []


def publish(envelope: dict[str, Any]) -> None:
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()
    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)


def notify(payload: dict[str, Any]) -> None:
    """Broadcast a change to connected clients. Best effort, never raises."""
    try:
        publish({"event_type": NOTIFY_EVENT, **payload})
    except Exception as exc:
        logger.warning("notify.failed", extra={"event_name": NOTIFY_EVENT, "error": str(exc)})


def queue_notification(
    session: Session,
    *,
    type: str,
    module: str,
    entity_id: uuid.UUID | str,
    company_id: uuid.UUID | str | None,
    affected_queries: list[str],
) -> None:
    """Hold a broadcast until the session's transaction commits."""
    session.info.setdefault(_PENDING_KEY, []).append(
        {
            "type": type,
            "module": module,
            "entityId": str(entity_id),
            "companyId": str(company_id) if company_id else None,
            "affectedQueries": affected_queries,
        }
    )


@event.listens_for(Session, "after_commit")
def _publish_pending(session: Session) -> None:
    # Savepoint releases fire this hook too; only the outermost commit publishes.
    if session.in_nested_transaction():
        return
    for payload in session.info.pop(_PENDING_KEY, []):
        notify(payload)


@event.listens_for(Session, "after_rollback")
def _discard_pending(session: Session) -> None:
    if session.in_nested_transaction():
        return
    session.info.pop(_PENDING_KEY, None)
