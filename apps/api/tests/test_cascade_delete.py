from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from app import audit, events
from app.clients import cascade
from app.clients.cascade import CASCADE_PLAN, delete_client
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
    Vendor,
    WeddingWebsite,
)
from app.clients.schemas import ClientCreate
from app.clients.service import client_lifecycle_service
from app.core.errors import InternalError, NotFoundError
from app.tenancy import tenant_scope


DEPENDENT_MODELS = (
    TimelineEntry,
    Hotel,
    GuestTransport,
    GuestGift,
    Guest,
    ClientVendor,
    BudgetItem,
    Event,
    Document,
    Gift,
    GiftEnhanced,
    Message,
    Payment,
    WeddingWebsite,
    ClientActivity,
    ClientUser,
    FloorPlan,
)


def _seed_client(session_factory, principal, user_id: uuid.UUID) -> uuid.UUID:
    """Create a fully populated client graph inside one tenant scope."""
    with tenant_scope(principal, session_factory) as session:
        result = client_lifecycle_service.create_client(
            session,
            principal.company_id,
            user_id,
            ClientCreate(
                partner1_first_name="Ava",
                wedding_date=date(2026, 9, 12),
                budget=Decimal("30000"),
                vendors="Venue: Grand Hall, Photographer: Lens",
            ),
        )
        client_id = result.client.id

        guest = Guest(client_id=client_id, first_name="Gus")
        plan = FloorPlan(client_id=client_id, name="Reception")
        session.add_all([guest, plan])
        session.flush()
        table = FloorPlanTable(floor_plan_id=plan.id, name="Table 1")
        session.add(table)
        session.flush()
        session.add_all(
            [
                FloorPlanGuest(table_id=table.id, guest_id=guest.id, seat_number=1),
                Hotel(client_id=client_id, guest_id=guest.id, hotel_name="Inn"),
                GuestTransport(client_id=client_id, guest_id=guest.id, vehicle="Shuttle"),
                GuestGift(client_id=client_id, guest_id=guest.id, name="Favor"),
                Document(client_id=client_id, name="Contract"),
                Gift(client_id=client_id, gift_name="Toaster"),
                GiftEnhanced(client_id=client_id, name="Blender", guest_name="Gus"),
                Message(client_id=client_id, body="Hello"),
                Payment(client_id=client_id, amount=Decimal("500")),
                WeddingWebsite(client_id=client_id, subdomain="ava"),
                ClientActivity(client_id=client_id, type="created"),
                ClientUser(client_id=client_id, user_id=user_id, is_primary=True),
            ]
        )
    return client_id


def _remaining(db_session, model, client_id: uuid.UUID) -> int:
    return db_session.scalar(select(func.count()).select_from(model).where(model.client_id == client_id))


def test_plan_runs_leaves_before_parents() -> None:
    tables = [step.table for step in CASCADE_PLAN]
    assert tables.index("floor_plan_guests") < tables.index("floor_plan_tables") < tables.index("floor_plans")
    assert tables.index("guests") > tables.index("hotels")
    assert tables.index("guests") > tables.index("guest_transport")
    assert tables.index("guests") > tables.index("guest_gifts")
    assert tables.index("events") > tables.index("budget")
    assert tables.index("events") > tables.index("client_vendors")
    assert tables[-1] == "client_users"


def test_delete_removes_every_dependent_and_soft_deletes_client(
    session_factory,
    db_session,
    make_company,
    make_user,
    principal_for,
) -> None:
    acme = make_company("Acme")
    planner = make_user("auth|planner", acme)
    principal = principal_for(acme)
    client_id = _seed_client(session_factory, principal, planner.id)
    keeper_id = _seed_client(session_factory, principal, planner.id)

    with tenant_scope(principal, session_factory) as session:
        counts = delete_client(session, client_id, acme.id, actor_user_id=principal.user_id)

    assert counts["floor_plan_guests"] == 1
    assert counts["floor_plan_tables"] == 1
    assert counts["floor_plans"] == 1
    assert counts["timeline"] == 13
    assert counts["budget"] == 8 + 2
    assert counts["client_vendors"] == 2
    assert counts["events"] == 1
    assert counts["gifts"] == 1
    assert counts["gifts_enhanced"] == 1
    assert counts["client_users"] == 1
    assert counts["clients"] == 1

    for model in DEPENDENT_MODELS:
        assert _remaining(db_session, model, client_id) == 0, model.__tablename__
    assert db_session.scalar(select(func.count()).select_from(FloorPlanGuest)) == 1
    assert db_session.scalar(select(func.count()).select_from(FloorPlanTable)) == 1

    deleted = db_session.get(Client, client_id)
    assert deleted is not None
    assert deleted.deleted_at is not None

    assert _remaining(db_session, TimelineEntry, keeper_id) == 13
    assert db_session.get(Client, keeper_id).deleted_at is None
    # The shared vendor catalog survives.
    assert db_session.scalar(select(func.count()).select_from(Vendor)) == 2

    cascades = audit.entries_for("clients.client", "cascade_delete")
    assert cascades[-1]["entity_id"] == str(client_id)
    assert cascades[-1]["after"]["counts"]["clients"] == 1
    assert any(
        item.get("type") == "delete" and item.get("entityId") == str(client_id) for item in events.published_events
    )


def test_deleted_client_cannot_be_deleted_again(session_factory, make_company, make_user, principal_for) -> None:
    acme = make_company("Acme")
    planner = make_user("auth|planner", acme)
    principal = principal_for(acme)
    client_id = _seed_client(session_factory, principal, planner.id)

    with tenant_scope(principal, session_factory) as session:
        delete_client(session, client_id, acme.id)

    with pytest.raises(NotFoundError):
        with tenant_scope(principal, session_factory) as session:
            delete_client(session, client_id, acme.id)


def test_other_tenants_client_is_not_found(session_factory, db_session, make_company, make_user, principal_for) -> None:
    acme = make_company("Acme")
    other = make_company("Other")
    outsider = make_user("auth|outsider", other)
    foreign_id = _seed_client(session_factory, principal_for(other, auth_id="auth|outsider"), outsider.id)

    with pytest.raises(NotFoundError):
        with tenant_scope(principal_for(acme), session_factory) as session:
            delete_client(session, foreign_id, acme.id)

    assert _remaining(db_session, TimelineEntry, foreign_id) == 13
    assert db_session.get(Client, foreign_id).deleted_at is None


def test_failure_mid_cascade_rolls_back_everything(
    session_factory,
    db_session,
    make_company,
    make_user,
    principal_for,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    acme = make_company("Acme")
    planner = make_user("auth|planner", acme)
    principal = principal_for(acme)
    client_id = _seed_client(session_factory, principal, planner.id)

    real_execute = cascade._execute_step

    def failing_execute(session, step, client_id, company_id):
        if step.table == "budget":
            raise OperationalError("DELETE FROM budget", {}, Exception("disk I/O error"))
        return real_execute(session, step, client_id, company_id)

    monkeypatch.setattr(cascade, "_execute_step", failing_execute)

    with pytest.raises(InternalError):
        with tenant_scope(principal, session_factory) as session:
            delete_client(session, client_id, acme.id)

    assert _remaining(db_session, TimelineEntry, client_id) == 13
    assert _remaining(db_session, Guest, client_id) == 1
    assert db_session.scalar(select(func.count()).select_from(FloorPlanGuest)) == 1
    assert db_session.get(Client, client_id).deleted_at is None
    assert not [item for item in events.published_events if item.get("type") == "delete"]


def test_cascade_abandoned_after_delete_leaves_no_audit_entry(
    session_factory,
    db_session,
    make_company,
    make_user,
    principal_for,
) -> None:
    acme = make_company("Acme")
    planner = make_user("auth|planner", acme)
    principal = principal_for(acme)
    client_id = _seed_client(session_factory, principal, planner.id)

    with pytest.raises(RuntimeError, match="request aborted"):
        with tenant_scope(principal, session_factory) as session:
            delete_client(session, client_id, acme.id, actor_user_id=principal.user_id)
            raise RuntimeError("request aborted")

    assert db_session.get(Client, client_id).deleted_at is None
    assert audit.entries_for("clients.client", "cascade_delete") == []

    with tenant_scope(principal, session_factory) as session:
        delete_client(session, client_id, acme.id, actor_user_id=principal.user_id)

    cascades = audit.entries_for("clients.client", "cascade_delete")
    assert [entry["entity_id"] for entry in cascades] == [str(client_id)]
    assert cascades[0]["company_id"] == str(acme.id)
