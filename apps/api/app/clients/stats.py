from __future__ import annotations

import uuid
from collections.abc import Callable
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.clients.models import BudgetItem, Client, ClientVendor, Event, Guest, TimelineEntry


StatsRecalculator = Callable[[Session, uuid.UUID], dict[str, Any]]


def _count(session: Session, model: type, client_id: uuid.UUID) -> int:
    return session.scalar(select(func.count()).select_from(model).where(model.client_id == client_id)) or 0


def recalc_client_stats(session: Session, client_id: uuid.UUID) -> dict[str, Any]:
    """Recompute cached aggregates into ``client.metadata["stats"]`` inside the caller's transaction."""
    session.flush()
    client = session.get(Client, client_id)
    if client is None:
        return {}

    estimated, paid = session.execute(
        select(
            func.coalesce(func.sum(BudgetItem.estimated_cost), 0),
            func.coalesce(func.sum(BudgetItem.paid_amount), 0),
        ).where(BudgetItem.client_id == client_id)
    ).one()

    stats = {
        "budget_estimated_total": str(Decimal(str(estimated)).quantize(Decimal("0.01"))),
        "budget_paid_total": str(Decimal(str(paid)).quantize(Decimal("0.01"))),
        "budget_items": _count(session, BudgetItem, client_id),
        "events": _count(session, Event, client_id),
        "timeline_items": _count(session, TimelineEntry, client_id),
        "vendors": _count(session, ClientVendor, client_id),
        "guests": _count(session, Guest, client_id),
    }
    client.metadata_json = {**(client.metadata_json or {}), "stats": stats}
    session.flush()
    return stats
