from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app import events
from app.clients import vendor_rules
from app.clients.models import BudgetItem, Client, ClientVendor, Event, TimelineEntry, Vendor
from app.clients.schemas import ClientCreate
from app.clients.service import ClientLifecycleService, client_lifecycle_service, vendor_budget_category, wedding_title
from app.core.errors import InternalError, NotFoundError
from app.tenancy import tenant_scope


def _count(db_session, model, **filters) -> int:
    query = select(func.count()).select_from(model)
    for key, value in filters.items():
        query = query.where(getattr(model, key) == value)
    return db_session.scalar(query)


def _create(session_factory, principal, data: ClientCreate, service: ClientLifecycleService = client_lifecycle_service):
    with tenant_scope(principal, session_factory) as session:
        result = service.create_client(session, principal.company_id, None, data)
        return result.client.id, [(step.step, step.ok, step.entry) for step in result.report]


def test_wedding_title_prefers_explicit_name() -> None:
    assert wedding_title(ClientCreate(partner1_first_name="Ava", wedding_name="Lakeside")) == "Lakeside"
    assert wedding_title(ClientCreate(partner1_first_name="Ava", partner2_first_name="Noah")) == "Ava & Noah's Wedding"
    assert wedding_title(ClientCreate(partner1_first_name="Ava")) == "Ava's Wedding"


def test_vendor_budget_category_leaves_partner_two_out() -> None:
    assert vendor_budget_category(ClientCreate(partner1_first_name="Ava", wedding_name="Lakeside")) == "Lakeside"
    assert vendor_budget_category(ClientCreate(partner1_first_name="Ava", partner2_first_name="Noah")) == "Ava's Wedding"


def test_create_client_derives_event_budget_and_timeline(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")
    data = ClientCreate(
        partner1_first_name="Ava",
        partner2_first_name="Noah",
        wedding_date=date(2026, 6, 20),
        venue="Lakeside Barn",
        budget=Decimal("10000"),
        guest_count=120,
        wedding_type="traditional",
    )

    client_id, report = _create(session_factory, principal_for(acme), data)

    assert report == [("event", True, "Ava & Noah's Wedding"), ("budget", True, "traditional"), ("timeline", True, "traditional")]

    client = db_session.get(Client, client_id)
    assert client.company_id == acme.id
    assert client.status == "planning"

    event = db_session.scalar(select(Event).where(Event.client_id == client_id))
    assert event.title == "Ava & Noah's Wedding"
    assert event.event_type == "Wedding"
    assert event.event_date == date(2026, 6, 20)
    assert event.venue_name == "Lakeside Barn"
    assert event.guest_count == 120
    assert event.company_id == acme.id

    lines = db_session.scalars(select(BudgetItem).where(BudgetItem.client_id == client_id)).all()
    assert len(lines) == 8
    assert sum(line.estimated_cost for line in lines) == Decimal("10000.00")
    venue_line = next(line for line in lines if line.category == "venue")
    assert venue_line.estimated_cost == Decimal("4000.00")
    assert all(line.payment_status == "pending" and line.paid_amount == Decimal("0") for line in lines)

    timeline = db_session.scalars(
        select(TimelineEntry).where(TimelineEntry.client_id == client_id).order_by(TimelineEntry.sort_order)
    ).all()
    assert len(timeline) == 13
    assert timeline[0].title == "Bride Getting Ready"
    assert timeline[0].location == "Bridal Suite"
    assert timeline[0].start_time.replace(tzinfo=None) == datetime(2026, 6, 20, 9, 0)
    assert timeline[4].title == "Ceremony"
    assert timeline[4].location == "Lakeside Barn"
    assert all(entry.event_id == event.id for entry in timeline)

    stats = client.metadata_json["stats"]
    assert stats["budget_items"] == 8
    assert stats["budget_estimated_total"] == "10000.00"
    assert stats["timeline_items"] == 13
    assert stats["events"] == 1


def test_create_client_without_date_or_budget_has_no_side_effects(
    session_factory,
    db_session,
    make_company,
    principal_for,
) -> None:
    acme = make_company("Acme")

    client_id, report = _create(session_factory, principal_for(acme), ClientCreate(partner1_first_name="Ava"))

    assert report == []
    assert _count(db_session, Event, client_id=client_id) == 0
    assert _count(db_session, BudgetItem, client_id=client_id) == 0
    assert _count(db_session, TimelineEntry, client_id=client_id) == 0


def test_unknown_wedding_type_uses_traditional_templates(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")

    client_id, _ = _create(
        session_factory,
        principal_for(acme),
        ClientCreate(partner1_first_name="Ava", budget=Decimal("5000"), wedding_type="space"),
    )

    assert _count(db_session, BudgetItem, client_id=client_id) == 8


def test_vendor_entries_are_classified_and_reused(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")
    db_session.add(Vendor(company_id=acme.id, name="Bloom House", category="florals"))
    db_session.commit()

    client_id, report = _create(
        session_factory,
        principal_for(acme),
        ClientCreate(
            partner1_first_name="Ava",
            wedding_date=date(2026, 6, 20),
            vendors="Photographer: Lens & Light, bloom house, DJ Spin",
        ),
    )

    vendor_steps = [entry for step, ok, entry in report if step == "vendor" and ok]
    assert vendor_steps == ["Photographer: Lens & Light", "bloom house", "DJ Spin"]

    vendors = {vendor.name: vendor.category for vendor in db_session.scalars(select(Vendor))}
    assert vendors == {"Bloom House": "florals", "Lens & Light": "photography", "DJ Spin": "dj"}
    assert _count(db_session, ClientVendor, client_id=client_id) == 3

    vendor_lines = db_session.scalars(
        select(BudgetItem).where(BudgetItem.client_id == client_id, BudgetItem.vendor_id.is_not(None))
    ).all()
    assert len(vendor_lines) == 3
    assert all(line.estimated_cost == Decimal("0") for line in vendor_lines)
    assert all(line.category == "Ava's Wedding" for line in vendor_lines)
    assert all(line.event_id is not None for line in vendor_lines)


def test_failing_vendor_entry_is_isolated(
    session_factory,
    db_session,
    make_company,
    principal_for,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.WARNING)
    acme = make_company("Acme")
    real_parse = vendor_rules.parse_vendor_entry

    def flaky_parse(raw: str):
        if raw == "Caterer: Broken Kitchen":
            raise RuntimeError("vendor parse exploded")
        return real_parse(raw)

    monkeypatch.setattr(vendor_rules, "parse_vendor_entry", flaky_parse)

    client_id, report = _create(
        session_factory,
        principal_for(acme),
        ClientCreate(
            partner1_first_name="Ava",
            wedding_date=date(2026, 6, 20),
            budget=Decimal("20000"),
            vendors="Venue: Grand Hall, Caterer: Broken Kitchen, Florist: Petals",
        ),
    )

    assert ("vendor", False, "Caterer: Broken Kitchen") in report
    assert ("vendor", True, "Venue: Grand Hall") in report
    assert ("vendor", True, "Florist: Petals") in report

    assert db_session.get(Client, client_id) is not None
    assert _count(db_session, Event, client_id=client_id) == 1
    assert _count(db_session, ClientVendor, client_id=client_id) == 2
    assert _count(db_session, BudgetItem, client_id=client_id) == 8 + 2
    assert sorted(db_session.scalars(select(Vendor.name))) == ["Grand Hall", "Petals"]

    failures = [record for record in caplog.records if record.getMessage() == "client.step_failed"]
    assert failures
    assert getattr(failures[0], "entry", None) == "Caterer: Broken Kitchen"
    assert getattr(failures[0], "step", None) == "vendor"


def test_failing_budget_step_keeps_client_and_event(
    session_factory,
    db_session,
    make_company,
    principal_for,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    acme = make_company("Acme")

    def broken_budget(self, session, client, total):
        session.add(BudgetItem(company_id=client.company_id, client_id=client.id, category="x", item="x"))
        session.flush()
        raise RuntimeError("template store offline")

    monkeypatch.setattr(ClientLifecycleService, "_expand_budget", broken_budget)

    client_id, report = _create(
        session_factory,
        principal_for(acme),
        ClientCreate(partner1_first_name="Ava", wedding_date=date(2026, 6, 20), budget=Decimal("1000")),
    )

    assert ("budget", False, "traditional") in report
    assert _count(db_session, Event, client_id=client_id) == 1
    assert _count(db_session, BudgetItem, client_id=client_id) == 0
    assert _count(db_session, TimelineEntry, client_id=client_id) == 13


def test_stats_failure_rolls_back_the_whole_creation(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")

    def broken_stats(session, client_id):
        raise RuntimeError("stats unavailable")

    service = ClientLifecycleService(recalc_stats=broken_stats)

    with pytest.raises(InternalError):
        _create(
            session_factory,
            principal_for(acme),
            ClientCreate(partner1_first_name="Ava", wedding_date=date(2026, 6, 20), budget=Decimal("1000")),
            service=service,
        )

    assert _count(db_session, Client) == 0
    assert _count(db_session, Event) == 0
    assert _count(db_session, BudgetItem) == 0
    assert not [item for item in events.published_events if item.get("module") == "clients"]


def test_notification_is_published_after_commit(session_factory, make_company, principal_for) -> None:
    acme = make_company("Acme")

    client_id, _ = _create(session_factory, principal_for(acme), ClientCreate(partner1_first_name="Ava"))

    notifications = [item for item in events.published_events if item.get("event_type") == "realtime.notify"]
    assert notifications == [
        {
            "event_type": "realtime.notify",
            "type": "create",
            "module": "clients",
            "entityId": str(client_id),
            "companyId": str(acme.id),
            "affectedQueries": ["clients.list", "clients.getById", "clients.getStats"],
            "correlation_id": None,
        }
    ]


def test_get_and_list_clients_are_tenant_scoped(session_factory, make_company, principal_for) -> None:
    acme = make_company("Acme")
    other = make_company("Other")
    ava_id, _ = _create(session_factory, principal_for(acme), ClientCreate(partner1_first_name="Ava", partner2_first_name="Noah"))
    _create(session_factory, principal_for(acme), ClientCreate(partner1_first_name="Mia"))
    foreign_id, _ = _create(session_factory, principal_for(other), ClientCreate(partner1_first_name="Zed"))

    with tenant_scope(principal_for(acme), session_factory) as session:
        assert client_lifecycle_service.get_client(session, acme.id, ava_id).partner1_first_name == "Ava"
        names = sorted(client.partner1_first_name for client in client_lifecycle_service.list_clients(session, acme.id))
        searched = [client.id for client in client_lifecycle_service.list_clients(session, acme.id, "noah")]
        with pytest.raises(NotFoundError):
            client_lifecycle_service.get_client(session, acme.id, foreign_id)

    assert names == ["Ava", "Mia"]
    assert searched == [ava_id]


def test_vendor_budget_lines_use_first_partner_category(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")

    client_id, _ = _create(
        session_factory,
        principal_for(acme),
        ClientCreate(
            partner1_first_name="Ava",
            partner2_first_name="Noah",
            wedding_date=date(2026, 6, 20),
            vendors="DJ Spin",
        ),
    )

    vendor_line = db_session.scalars(
        select(BudgetItem).where(BudgetItem.client_id == client_id, BudgetItem.vendor_id.is_not(None))
    ).one()
    event = db_session.scalars(select(Event).where(Event.client_id == client_id)).one()
    assert vendor_line.category == "Ava's Wedding"
    assert event.title == "Ava & Noah's Wedding"
