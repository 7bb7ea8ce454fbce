from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, TypeVar

from opentelemetry import trace
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.clients import templates, vendor_rules
from app.clients.models import BudgetItem, Client, ClientVendor, Event, TimelineEntry, Vendor
from app.clients.schemas import ClientCreate
from app.clients.stats import StatsRecalculator, recalc_client_stats
from app.core.errors import CoreError, InternalError, NotFoundError
from app.events import queue_notification
from app.metrics import observe_client_creation_step


logger = logging.getLogger("app.clients")
tracer = trace.get_tracer("app.clients")

T = TypeVar("T")

CLIENT_QUERIES = ["clients.list", "clients.getById", "clients.getStats"]


@dataclass(slots=True)
class StepResult:
    step: str
    ok: bool
    entry: str | None = None
    detail: str | None = None
    error: str | None = None


@dataclass(slots=True)
class ClientCreationResult:
    client: Client
    report: list[StepResult] = field(default_factory=list)

    @property
    def failures(self) -> list[StepResult]:
        return [result for result in self.report if not result.ok]


def wedding_title(data: ClientCreate) -> str:
    if data.wedding_name:
        return data.wedding_name
    if data.partner2_first_name:
        return f"{data.partner1_first_name} & {data.partner2_first_name}'s Wedding"
    return f"{data.partner1_first_name}'s Wedding"


def vendor_budget_category(data: ClientCreate) -> str:
    return data.wedding_name or f"{data.partner1_first_name}'s Wedding"


@dataclass(slots=True)
class ClientLifecycleService:
    recalc_stats: StatsRecalculator = recalc_client_stats

    def create_client(
        self,
        session: Session,
        company_id: uuid.UUID,
        creator_user_id: uuid.UUID | None,
        data: ClientCreate,
    ) -> ClientCreationResult:
        with tracer.start_as_current_span("clients.create") as span:
            span.set_attribute("company_id", str(company_id))

            client = Client(
                company_id=company_id,
                created_by=creator_user_id,
                status="planning",
                metadata_json={},
                **data.model_dump(exclude={"vendors"}),
            )
            session.add(client)
            try:
                session.flush()
            except SQLAlchemyError as exc:
                raise InternalError("Failed to create client") from exc
            span.set_attribute("client_id", str(client.id))

            result = ClientCreationResult(client=client)
            title = wedding_title(data)

            main_event: Event | None = None
            if data.wedding_date:
                main_event = self._run_step(
                    session,
                    result,
                    "event",
                    title,
                    lambda: self._create_main_event(session, client, data, title),
                )

            if data.budget is not None and data.budget > 0:
                self._run_step(
                    session,
                    result,
                    "budget",
                    templates.resolve_wedding_type(data.wedding_type),
                    lambda: self._expand_budget(session, client, data.budget),
                )

            if data.wedding_date:
                self._run_step(
                    session,
                    result,
                    "timeline",
                    templates.resolve_wedding_type(data.wedding_type),
                    lambda: self._create_timeline(session, client, main_event),
                )

            budget_category = vendor_budget_category(data) if main_event is not None else "Unassigned"
            for raw_entry in vendor_rules.split_vendor_list(data.vendors):
                self._run_step(
                    session,
                    result,
                    "vendor",
                    raw_entry,
                    lambda raw_entry=raw_entry: self._link_vendor(
                        session, client, raw_entry, main_event, budget_category
                    ),
                )

            try:
                self.recalc_stats(session, client.id)
            except CoreError:
                raise
            except Exception as exc:
                raise InternalError("Failed to recalculate client statistics") from exc

            queue_notification(
                session,
                type="create",
                module="clients",
                entity_id=client.id,
                company_id=company_id,
                affected_queries=CLIENT_QUERIES,
            )
            span.set_attribute("failed_steps", len(result.failures))
            logger.info(
                "client.created",
                extra={"client_id": str(client.id), "counts": {"steps": len(result.report), "failed": len(result.failures)}},
            )
            return result

    def _run_step(
        self,
        session: Session,
        result: ClientCreationResult,
        step: str,
        entry: str | None,
        action: Callable[[], T],
    ) -> T | None:
        try:
            with session.begin_nested():
                outcome = action()
        except Exception as exc:
            observe_client_creation_step(step, ok=False)
            logger.warning(
                "client.step_failed",
                extra={"client_id": str(result.client.id), "step": step, "entry": entry, "error": str(exc)},
            )
            result.report.append(StepResult(step=step, ok=False, entry=entry, error=str(exc)[:500]))
            return None

        observe_client_creation_step(step, ok=True)
        result.report.append(StepResult(step=step, ok=True, entry=entry, detail=_describe(outcome)))
        return outcome

    def _create_main_event(self, session: Session, client: Client, data: ClientCreate, title: str) -> Event:
        event = Event(
            company_id=client.company_id,
            client_id=client.id,
            title=title,
            event_type="Wedding",
            event_date=data.wedding_date,
            venue_name=data.venue,
            guest_count=data.guest_count,
            status="planned",
            notes=data.notes,
            description=f"Main wedding ceremony for {title}",
        )
        session.add(event)
        session.flush()
        return event

    def _expand_budget(self, session: Session, client: Client, total: Decimal) -> list[BudgetItem]:
        wedding_type = templates.resolve_wedding_type(client.wedding_type)
        items = [
            BudgetItem(
                company_id=client.company_id,
                client_id=client.id,
                category=line.category,
                segment=line.segment,
                item=line.item,
                estimated_cost=line.estimated_cost,
                paid_amount=Decimal("0"),
                payment_status="pending",
                client_visible=True,
                notes=f"Auto-generated based on {wedding_type} wedding budget allocation",
            )
            for line in templates.expand_budget(wedding_type, total)
        ]
        session.add_all(items)
        session.flush()
        return items

    def _create_timeline(self, session: Session, client: Client, main_event: Event | None) -> list[TimelineEntry]:
        wedding_type = templates.resolve_wedding_type(client.wedding_type)
        entries = [
            TimelineEntry(
                company_id=client.company_id,
                client_id=client.id,
                event_id=main_event.id if main_event is not None else None,
                title=slot.title,
                description=slot.description,
                start_time=slot.start_time,
                end_time=slot.end_time,
                duration_minutes=slot.duration_minutes,
                location=slot.location,
                completed=False,
                sort_order=index,
                notes=f"Auto-generated {wedding_type} wedding timeline",
            )
            for index, slot in enumerate(templates.build_timeline(wedding_type, client.wedding_date, client.venue))
        ]
        session.add_all(entries)
        session.flush()
        return entries

    def _link_vendor(
        self,
        session: Session,
        client: Client,
        raw_entry: str,
        main_event: Event | None,
        budget_category: str,
    ) -> Vendor | None:
        parsed = vendor_rules.parse_vendor_entry(raw_entry)
        if parsed is None:
            return None

        vendor = session.scalar(
            select(Vendor)
            .where(Vendor.company_id == client.company_id, func.lower(Vendor.name) == parsed.name.lower())
            .limit(1)
        )
        if vendor is None:
            vendor = Vendor(company_id=client.company_id, name=parsed.name, category=parsed.category, is_preferred=False)
            session.add(vendor)
            session.flush()

        event_id = main_event.id if main_event is not None else None
        session.add(
            ClientVendor(
                company_id=client.company_id,
                client_id=client.id,
                vendor_id=vendor.id,
                event_id=event_id,
                payment_status="pending",
                approval_status="pending",
            )
        )
        session.add(
            BudgetItem(
                company_id=client.company_id,
                client_id=client.id,
                vendor_id=vendor.id,
                event_id=event_id,
                category=budget_category,
                segment="vendors",
                item=parsed.name,
                estimated_cost=Decimal("0"),
                paid_amount=Decimal("0"),
                payment_status="pending",
                client_visible=True,
                notes=f"Auto-created from vendor: {parsed.name}",
            )
        )
        session.flush()
        return vendor

    def get_client(self, session: Session, company_id: uuid.UUID, client_id: uuid.UUID) -> Client:
        client = session.scalar(
            select(Client).where(
                Client.id == client_id,
                Client.company_id == company_id,
                Client.deleted_at.is_(None),
            )
        )
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    def list_clients(self, session: Session, company_id: uuid.UUID, search: str | None = None) -> list[Client]:
        query = select(Client).where(Client.company_id == company_id, Client.deleted_at.is_(None))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    Client.partner1_first_name.ilike(pattern),
                    Client.partner1_last_name.ilike(pattern),
                    Client.partner2_first_name.ilike(pattern),
                    Client.partner2_last_name.ilike(pattern),
                )
            )
        return list(session.scalars(query.order_by(Client.wedding_date.desc(), Client.created_at.desc())))


def _describe(outcome: Any) -> str | None:
    if outcome is None:
        return "skipped"
    if isinstance(outcome, list):
        return f"{len(outcome)} rows"
    return str(getattr(outcome, "id", "")) or None


client_lifecycle_service = ClientLifecycleService()
