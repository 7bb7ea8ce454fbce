from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import trace
from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app import audit
from app.clients.schemas import ClientCreate
from app.clients.service import ClientCreationResult, ClientLifecycleService, client_lifecycle_service
from app.core.errors import BadRequestError, NotFoundError
from app.events import queue_notification
from app.identity.models import utcnow
from app.metrics import observe_lead_transition
from app.pipeline.models import PipelineActivity, PipelineLead, PipelineStage
from app.pipeline.schemas import ActivityCreate, LeadConvertRequest, LeadCreate, StageCreate, StageUpdate
from app.tenancy import Principal


logger = logging.getLogger("app.pipeline")
tracer = trace.get_tracer("app.pipeline")

LEAD_QUERIES = ["pipeline.leads.list", "pipeline.leads.getById", "pipeline.stages.list"]

# name, color, is_default, is_won, is_lost
DEFAULT_PIPELINE_STAGES: tuple[tuple[str, str, bool, bool, bool], ...] = (
    ("New Inquiry", "#3B82F6", True, False, False),
    ("Contacted", "#8B5CF6", False, False, False),
    ("Meeting Scheduled", "#EC4899", False, False, False),
    ("Proposal Sent", "#F59E0B", False, False, False),
    ("Negotiating", "#10B981", False, False, False),
    ("Active Client", "#22C55E", False, True, False),
    ("Lost", "#EF4444", False, False, True),
)


@dataclass(slots=True)
class ConversionResult:
    lead: PipelineLead
    creation: ClientCreationResult


def _lead_defaults(lead: PipelineLead) -> dict[str, Any]:
    values: dict[str, Any] = {
        "partner1_first_name": lead.first_name,
        "partner1_last_name": lead.last_name,
        "partner1_email": lead.email,
        "partner1_phone": lead.phone,
        "partner2_first_name": lead.partner_first_name,
        "partner2_last_name": lead.partner_last_name,
        "partner2_email": lead.partner_email,
        "partner2_phone": lead.partner_phone,
        "wedding_date": lead.wedding_date,
        "venue": lead.venue,
        "budget": lead.estimated_budget,
        "guest_count": lead.estimated_guest_count,
        "wedding_type": lead.wedding_type,
        "notes": lead.notes,
    }
    return {key: value for key, value in values.items() if value is not None}


@dataclass(slots=True)
class PipelineService:
    clients: ClientLifecycleService = field(default_factory=lambda: client_lifecycle_service)

    def ensure_default_stages(self, session: Session, company_id: uuid.UUID) -> list[PipelineStage]:
        existing = self.list_stages(session, company_id, include_inactive=True)
        if existing:
            return existing
        stages = [
            PipelineStage(
                company_id=company_id,
                name=name,
                color=color,
                sort_order=index,
                is_default=is_default,
                is_won=is_won,
                is_lost=is_lost,
                is_active=True,
            )
            for index, (name, color, is_default, is_won, is_lost) in enumerate(DEFAULT_PIPELINE_STAGES)
        ]
        session.add_all(stages)
        session.flush()
        return stages

    def list_stages(
        self,
        session: Session,
        company_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> list[PipelineStage]:
        query = select(PipelineStage).where(PipelineStage.company_id == company_id)
        if not include_inactive:
            query = query.where(PipelineStage.is_active.is_(True))
        return list(session.scalars(query.order_by(PipelineStage.sort_order, PipelineStage.created_at)))

    def _get_stage(self, session: Session, company_id: uuid.UUID, stage_id: uuid.UUID) -> PipelineStage:
        stage = session.scalar(
            select(PipelineStage).where(
                PipelineStage.id == stage_id,
                PipelineStage.company_id == company_id,
                PipelineStage.is_active.is_(True),
            )
        )
        if stage is None:
            raise NotFoundError("Stage", stage_id)
        return stage

    def _validate_terminal_stages(
        self,
        session: Session,
        company_id: uuid.UUID,
        *,
        is_won: bool,
        is_lost: bool,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        if is_won and is_lost:
            raise BadRequestError("A stage cannot be both won and lost")
        for flag_name, enabled in (("is_won", is_won), ("is_lost", is_lost)):
            if not enabled:
                continue
            flag = getattr(PipelineStage, flag_name)
            query = select(func.count()).select_from(PipelineStage).where(
                PipelineStage.company_id == company_id,
                PipelineStage.is_active.is_(True),
                flag.is_(True),
            )
            if exclude_id is not None:
                query = query.where(PipelineStage.id != exclude_id)
            if (session.scalar(query) or 0) > 0:
                label = "won" if flag_name == "is_won" else "lost"
                raise BadRequestError(f"Pipeline already has an active {label} stage")

    def create_stage(self, session: Session, company_id: uuid.UUID, data: StageCreate) -> PipelineStage:
        self._validate_terminal_stages(session, company_id, is_won=data.is_won, is_lost=data.is_lost)
        sort_order = data.sort_order
        if sort_order is None:
            current_max = session.scalar(
                select(func.max(PipelineStage.sort_order)).where(PipelineStage.company_id == company_id)
            )
            sort_order = 0 if current_max is None else current_max + 1

        stage = PipelineStage(
            company_id=company_id,
            **data.model_dump(exclude={"sort_order"}),
            sort_order=sort_order,
            is_active=True,
        )
        session.add(stage)
        session.flush()
        queue_notification(
            session,
            type="create",
            module="pipeline",
            entity_id=stage.id,
            company_id=company_id,
            affected_queries=LEAD_QUERIES,
        )
        return stage

    def update_stage(
        self,
        session: Session,
        company_id: uuid.UUID,
        stage_id: uuid.UUID,
        data: StageUpdate,
    ) -> PipelineStage:
        stage = self._get_stage(session, company_id, stage_id)
        changes = data.model_dump(exclude_unset=True)
        self._validate_terminal_stages(
            session,
            company_id,
            is_won=changes.get("is_won", stage.is_won),
            is_lost=changes.get("is_lost", stage.is_lost),
            exclude_id=stage.id,
        )
        for key, value in changes.items():
            setattr(stage, key, value)
        session.flush()
        return stage

    def delete_stage(self, session: Session, company_id: uuid.UUID, stage_id: uuid.UUID) -> PipelineStage:
        """Deactivate a stage; refused while any active lead still sits in it."""
        stage = self._get_stage(session, company_id, stage_id)
        lead_count = session.scalar(
            select(func.count())
            .select_from(PipelineLead)
            .where(
                PipelineLead.company_id == company_id,
                PipelineLead.stage_id == stage.id,
                PipelineLead.deleted_at.is_(None),
            )
        )
        if lead_count:
            raise BadRequestError(f"Cannot delete stage with {lead_count} active lead(s)")

        stage.is_active = False
        session.flush()
        queue_notification(
            session,
            type="delete",
            module="pipeline",
            entity_id=stage.id,
            company_id=company_id,
            affected_queries=LEAD_QUERIES,
        )
        return stage

    def _default_stage(self, session: Session, company_id: uuid.UUID) -> PipelineStage | None:
        stages = self.ensure_default_stages(session, company_id)
        active = [stage for stage in stages if stage.is_active]
        for stage in active:
            if stage.is_default:
                return stage
        return active[0] if active else None

    def create_lead(self, session: Session, principal: Principal, company_id: uuid.UUID, data: LeadCreate) -> PipelineLead:
        if data.stage_id is not None:
            stage = self._get_stage(session, company_id, data.stage_id)
        else:
            stage = self._default_stage(session, company_id)

        lead = PipelineLead(
            company_id=company_id,
            **data.model_dump(exclude={"stage_id"}),
            stage_id=stage.id if stage is not None else None,
            status="new",
        )
        session.add(lead)
        session.flush()
        queue_notification(
            session,
            type="create",
            module="pipeline",
            entity_id=lead.id,
            company_id=company_id,
            affected_queries=LEAD_QUERIES,
        )
        logger.info("lead.created", extra={"lead_id": str(lead.id), "stage_id": str(lead.stage_id)})
        return lead

    def get_lead(
        self,
        session: Session,
        company_id: uuid.UUID,
        lead_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> PipelineLead:
        query = select(PipelineLead).where(
            PipelineLead.id == lead_id,
            PipelineLead.company_id == company_id,
            PipelineLead.deleted_at.is_(None),
        )
        if for_update:
            query = query.with_for_update()
        lead = session.scalar(query)
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        return lead

    def list_leads(
        self,
        session: Session,
        company_id: uuid.UUID,
        *,
        stage_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> list[PipelineLead]:
        query = select(PipelineLead).where(PipelineLead.company_id == company_id, PipelineLead.deleted_at.is_(None))
        if stage_id is not None:
            query = query.where(PipelineLead.stage_id == stage_id)
        if status is not None:
            query = query.where(PipelineLead.status == status)
        return list(session.scalars(query.order_by(PipelineLead.created_at.desc())))

    def _append_activity(self, session: Session, lead: PipelineLead, **values: Any) -> PipelineActivity:
        activity = PipelineActivity(company_id=lead.company_id, lead_id=lead.id, **values)
        session.add(activity)
        session.flush()
        return activity

    def add_activity(
        self,
        session: Session,
        principal: Principal,
        company_id: uuid.UUID,
        lead_id: uuid.UUID,
        data: ActivityCreate,
    ) -> PipelineActivity:
        lead = self.get_lead(session, company_id, lead_id)
        if data.type in {"call", "email", "meeting"}:
            lead.last_contacted_at = utcnow()
        return self._append_activity(
            session,
            lead,
            actor_id=principal.user_id,
            type=data.type,
            title=data.title,
            description=data.description,
        )

    def list_activities(self, session: Session, company_id: uuid.UUID, lead_id: uuid.UUID) -> list[PipelineActivity]:
        lead = self.get_lead(session, company_id, lead_id)
        return list(
            session.scalars(
                select(PipelineActivity)
                .where(PipelineActivity.lead_id == lead.id)
                .order_by(PipelineActivity.created_at, PipelineActivity.id)
            )
        )

    def move_stage(
        self,
        session: Session,
        principal: Principal,
        company_id: uuid.UUID,
        lead_id: uuid.UUID,
        stage_id: uuid.UUID,
        lost_reason: str | None = None,
    ) -> PipelineLead:
        lead = self.get_lead(session, company_id, lead_id)
        stage = self._get_stage(session, company_id, stage_id)

        previous_stage_id = lead.stage_id
        lead.stage_id = stage.id
        if stage.is_won:
            lead.status = "won"
        elif stage.is_lost:
            lead.status = "lost"
            lead.lost_reason = lost_reason or lead.lost_reason

        self._append_activity(
            session,
            lead,
            actor_id=principal.user_id,
            type="stage_change",
            title=f"Moved to {stage.name}",
            previous_stage_id=previous_stage_id,
            new_stage_id=stage.id,
            metadata_json={"status": lead.status},
        )
        observe_lead_transition("stage_change")
        audit.queue(
            session,
            actor_user_id=principal.user_id,
            entity_type="pipeline.lead",
            entity_id=str(lead.id),
            action="stage_change",
            before={"stage_id": str(previous_stage_id) if previous_stage_id else None},
            after={"stage_id": str(stage.id), "status": lead.status},
        )
        queue_notification(
            session,
            type="update",
            module="pipeline",
            entity_id=lead.id,
            company_id=company_id,
            affected_queries=LEAD_QUERIES,
        )
        return lead

    def _won_stage(self, session: Session, company_id: uuid.UUID) -> PipelineStage | None:
        # Lowest sort order wins if a tenant configured more than one.
        return session.scalar(
            select(PipelineStage)
            .where(
                PipelineStage.company_id == company_id,
                PipelineStage.is_active.is_(True),
                PipelineStage.is_won.is_(True),
            )
            .order_by(PipelineStage.sort_order, PipelineStage.created_at)
            .limit(1)
        )

    def convert_to_client(
        self,
        session: Session,
        principal: Principal,
        company_id: uuid.UUID,
        lead_id: uuid.UUID,
        overrides: LeadConvertRequest | None = None,
        creator_user_id: uuid.UUID | None = None,
    ) -> ConversionResult:
        with tracer.start_as_current_span("pipeline.lead.convert") as span:
            span.set_attribute("lead_id", str(lead_id))
            lead = self.get_lead(session, company_id, lead_id, for_update=True)
            if lead.converted_to_client_id is not None:
                raise BadRequestError("Lead has already been converted to a client")

            values = _lead_defaults(lead)
            if overrides is not None:
                values.update(overrides.model_dump(exclude_unset=True))
            try:
                client_input = ClientCreate.model_validate(values)
            except ValidationError as exc:
                raise BadRequestError(f"Lead cannot be converted: {exc.errors()[0]['msg']}") from exc

            creation = self.clients.create_client(session, company_id, creator_user_id, client_input)
            client = creation.client

            previous_stage_id = lead.stage_id
            won_stage = self._won_stage(session, company_id)
            if won_stage is not None:
                lead.stage_id = won_stage.id
            lead.converted_to_client_id = client.id
            lead.converted_at = utcnow()
            lead.status = "won"

            self._append_activity(
                session,
                lead,
                actor_id=principal.user_id,
                type="conversion",
                title="Converted to client",
                description=f"Lead converted to client {client.id}",
                previous_stage_id=previous_stage_id,
                new_stage_id=lead.stage_id,
                metadata_json={"client_id": str(client.id)},
            )
            span.set_attribute("client_id", str(client.id))
            observe_lead_transition("conversion")
            audit.queue(
                session,
                actor_user_id=principal.user_id,
                entity_type="pipeline.lead",
                entity_id=str(lead.id),
                action="converted",
                before={"converted_to_client_id": None},
                after={"converted_to_client_id": str(client.id)},
            )
            queue_notification(
                session,
                type="update",
                module="pipeline",
                entity_id=lead.id,
                company_id=company_id,
                affected_queries=LEAD_QUERIES,
            )
            logger.info("lead.converted", extra={"lead_id": str(lead.id), "client_id": str(client.id)})
            return ConversionResult(lead=lead, creation=creation)


pipeline_service = PipelineService()
