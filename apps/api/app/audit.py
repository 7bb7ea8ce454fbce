from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.context import get_company_id, get_correlation_id

audit_entries: list[dict[str, Any]] = []

_PENDING_KEY = "pending_audit"


def _entry(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None,
) -> dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "company_id": get_company_id(),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "correlation_id": correlation_id or get_correlation_id(),
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> None:
    """Append an entry now, whatever happens to the surrounding transaction."""
    audit_entries.append(_entry(actor_user_id, entity_type, entity_id, action, before, after, correlation_id))


def queue(
    session: Session,
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> None:
    """Hold an entry until the session's transaction commits.

    Company and correlation id are captured here, while the request context is still bound.
    """
    session.info.setdefault(_PENDING_KEY, []).append(
        _entry(actor_user_id, entity_type, entity_id, action, before, after, correlation_id)
    )


@event.listens_for(Session, "after_commit")
def _write_pending(session: Session) -> None:
    if session.in_nested_transaction():
        return
    audit_entries.extend(session.info.pop(_PENDING_KEY, []))


@event.listens_for(Session, "after_rollback")
def _discard_pending(session: Session) -> None:
    if session.in_nested_transaction():
        return
    session.info.pop(_PENDING_KEY, None)


def entries_for(entity_type: str, action: str | None = None) -> list[dict[str, Any]]:
    return [
        entry
        for entry in audit_entries
        if entry["entity_type"] == entity_type and (action is None or entry["action"] == action)
    ]
