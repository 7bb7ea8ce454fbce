from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from opentelemetry import trace
from sqlalchemy import ColumnElement, delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app import audit
from app.clients.models import (
    BudgetItem,
    Client,
    ClientActivity,
    ClientUser,
    ClientVendor,
    Document,
    Event,
    FloorPlan,
    FloorPlanGuest,
    FloorPlanTable,
    Gift,
    GiftEnhanced,
    Guest,
    GuestGift,
    GuestTransport,
    Hotel,
    Message,
    Payment,
    TimelineEntry,
    WeddingWebsite,
)
from app.clients.service import CLIENT_QUERIES
from app.core.errors import InternalError, NotFoundError
from app.events import queue_notification
from app.identity.models import utcnow
from app.metrics import observe_cascade_counts


logger = logging.getLogger("app.clients.cascade")
tracer = trace.get_tracer("app.clients")

Criteria = Callable[[uuid.UUID], ColumnElement[bool]]


@dataclass(frozen=True, slots=True)
class CascadeStep:
    table: str
    model: type[Any]
    criteria: Criteria
    mode: Literal["hard", "soft"] = "hard"


def _owned_by_client(model: type[Any]) -> Criteria:
    return lambda client_id: model.client_id == client_id


def _floor_plans_of(client_id: uuid.UUID):
    return select(FloorPlan.id).where(FloorPlan.client_id == client_id)


def _seat_assignments(client_id: uuid.UUID) -> ColumnElement[bool]:
    tables = select(FloorPlanTable.id).where(FloorPlanTable.floor_plan_id.in_(_floor_plans_of(client_id)))
    return FloorPlanGuest.table_id.in_(tables)


def _floor_plan_tables(client_id: uuid.UUID) -> ColumnElement[bool]:
    return FloorPlanTable.floor_plan_id.in_(_floor_plans_of(client_id))


# Leaves before parents; foreign keys do not cascade, so this order is load-bearing.
CASCADE_PLAN: tuple[CascadeStep, ...] = (
    CascadeStep("floor_plan_guests", FloorPlanGuest, _seat_assignments),
    CascadeStep("floor_plan_tables", FloorPlanTable, _floor_plan_tables),
    CascadeStep("floor_plans", FloorPlan, _owned_by_client(FloorPlan)),
    CascadeStep("timeline", TimelineEntry, _owned_by_client(TimelineEntry)),
    CascadeStep("hotels", Hotel, _owned_by_client(Hotel)),
    CascadeStep("guest_transport", GuestTransport, _owned_by_client(GuestTransport)),
    CascadeStep("guest_gifts", GuestGift, _owned_by_client(GuestGift)),
    CascadeStep("guests", Guest, _owned_by_client(Guest)),
    CascadeStep("client_vendors", ClientVendor, _owned_by_client(ClientVendor)),
    CascadeStep("budget", BudgetItem, _owned_by_client(BudgetItem)),
    CascadeStep("events", Event, _owned_by_client(Event)),
    CascadeStep("documents", Document, _owned_by_client(Document)),
    CascadeStep("gifts", Gift, _owned_by_client(Gift)),
    CascadeStep("gifts_enhanced", GiftEnhanced, _owned_by_client(GiftEnhanced)),
    CascadeStep("messages", Message, _owned_by_client(Message)),
    CascadeStep("payments", Payment, _owned_by_client(Payment)),
    CascadeStep("wedding_websites", WeddingWebsite, _owned_by_client(WeddingWebsite)),
    CascadeStep("activity", ClientActivity, _owned_by_client(ClientActivity)),
    CascadeStep("client_users", ClientUser, _owned_by_client(ClientUser)),
)


def _execute_step(session: Session, step: CascadeStep, client_id: uuid.UUID, company_id: uuid.UUID) -> int:
    where = (step.criteria(client_id), step.model.company_id == company_id)
    if step.mode == "soft":
        statement = update(step.model).where(*where, step.model.deleted_at.is_(None)).values(deleted_at=utcnow())
    else:
        statement = delete(step.model).where(*where)
    # Bulk statements; rows already loaded in this session are not synchronized.
    result = session.execute(statement.execution_options(synchronize_session=False))
    return result.rowcount or 0


def delete_client(
    session: Session,
    client_id: uuid.UUID,
    company_id: uuid.UUID,
    *,
    actor_user_id: str = "system",
    plan: tuple[CascadeStep, ...] = CASCADE_PLAN,
) -> dict[str, int]:
    """Remove every dependent row of a client in plan order, then soft-delete the client.

    Runs in the caller's transaction. Any failure propagates so the whole cascade rolls back.
    """
    with tracer.start_as_current_span("clients.cascade_delete") as span:
        span.set_attribute("client_id", str(client_id))
        span.set_attribute("company_id", str(company_id))

        client = session.scalar(
            select(Client).where(
                Client.id == client_id,
                Client.company_id == company_id,
                Client.deleted_at.is_(None),
            )
        )
        if client is None:
            raise NotFoundError("Client", client_id)

        counts: dict[str, int] = {}
        try:
            for step in plan:
                counts[step.table] = _execute_step(session, step, client_id, company_id)
            client.deleted_at = utcnow()
            session.flush()
        except SQLAlchemyError as exc:
            logger.error(
                "client.cascade_failed",
                extra={"client_id": str(client_id), "counts": counts, "error": str(exc)},
            )
            raise InternalError("Failed to delete client") from exc
        counts["clients"] = 1

        span.set_attribute("deleted_rows", sum(counts.values()))
        observe_cascade_counts(counts)
        audit.queue(
            session,
            actor_user_id=actor_user_id,
            entity_type="clients.client",
            entity_id=str(client_id),
            action="cascade_delete",
            before=None,
            after={"counts": counts},
        )
        queue_notification(
            session,
            type="delete",
            module="clients",
            entity_id=client_id,
            company_id=company_id,
            affected_queries=CLIENT_QUERIES,
        )
        logger.info("client.cascade_deleted", extra={"client_id": str(client_id), "counts": counts})
        return counts
