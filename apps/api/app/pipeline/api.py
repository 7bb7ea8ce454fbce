from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, sessionmaker

from app.clients.schemas import ClientRead, StepResultRead
from app.core.auth import get_current_principal
from app.core.database import get_session_factory
from app.identity.service import ensure_principal
from app.pipeline.schemas import (
    ActivityCreate,
    ActivityRead,
    LeadConversionResponse,
    LeadConvertRequest,
    LeadCreate,
    LeadRead,
    MoveStageRequest,
    StageCreate,
    StageRead,
    StageUpdate,
)
from app.pipeline.service import pipeline_service
from app.tenancy import Principal, tenant_scope


stages_router = APIRouter(prefix="/api/pipeline/stages", tags=["pipeline"])
leads_router = APIRouter(prefix="/api/pipeline/leads", tags=["pipeline"])


@stages_router.get("", response_model=list[StageRead])
def list_stages(
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> list[StageRead]:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        stages = pipeline_service.ensure_default_stages(session, resolved.company_id)
        return [StageRead.model_validate(stage) for stage in stages if stage.is_active]


@stages_router.post("", response_model=StageRead, status_code=status.HTTP_201_CREATED)
def create_stage(
    payload: StageCreate,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> StageRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        return StageRead.model_validate(pipeline_service.create_stage(session, resolved.company_id, payload))


@stages_router.patch("/{stage_id}", response_model=StageRead)
def update_stage(
    stage_id: uuid.UUID,
    payload: StageUpdate,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> StageRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        return StageRead.model_validate(pipeline_service.update_stage(session, resolved.company_id, stage_id, payload))


@stages_router.delete("/{stage_id}", response_model=StageRead)
def delete_stage(
    stage_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> StageRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        return StageRead.model_validate(pipeline_service.delete_stage(session, resolved.company_id, stage_id))


@leads_router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    payload: LeadCreate,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> LeadRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        return LeadRead.model_validate(pipeline_service.create_lead(session, principal, resolved.company_id, payload))


@leads_router.get("", response_model=list[LeadRead])
def list_leads(
    stage_id: uuid.UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> list[LeadRead]:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        leads = pipeline_service.list_leads(session, resolved.company_id, stage_id=stage_id, status=status_filter)
        return [LeadRead.model_validate(lead) for lead in leads]


@leads_router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    lead_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> LeadRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        return LeadRead.model_validate(pipeline_service.get_lead(session, resolved.company_id, lead_id))


@leads_router.post("/{lead_id}/move-stage", response_model=LeadRead)
def move_stage(
    lead_id: uuid.UUID,
    payload: MoveStageRequest,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> LeadRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        lead = pipeline_service.move_stage(
            session,
            principal,
            resolved.company_id,
            lead_id,
            payload.stage_id,
            lost_reason=payload.lost_reason,
        )
        return LeadRead.model_validate(lead)


@leads_router.post("/{lead_id}/convert", response_model=LeadConversionResponse)
def convert_lead(
    lead_id: uuid.UUID,
    payload: LeadConvertRequest,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> LeadConversionResponse:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        result = pipeline_service.convert_to_client(
            session,
            principal,
            resolved.company_id,
            lead_id,
            payload,
            creator_user_id=resolved.user_id,
        )
        return LeadConversionResponse(
            lead=LeadRead.model_validate(result.lead),
            client=ClientRead.model_validate(result.creation.client),
            report=[StepResultRead.model_validate(step) for step in result.creation.report],
        )


@leads_router.post("/{lead_id}/activities", response_model=ActivityRead, status_code=status.HTTP_201_CREATED)
def add_activity(
    lead_id: uuid.UUID,
    payload: ActivityCreate,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> ActivityRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        activity = pipeline_service.add_activity(session, principal, resolved.company_id, lead_id, payload)
        return ActivityRead.model_validate(activity)


@leads_router.get("/{lead_id}/activities", response_model=list[ActivityRead])
def list_activities(
    lead_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> list[ActivityRead]:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        activities = pipeline_service.list_activities(session, resolved.company_id, lead_id)
        return [ActivityRead.model_validate(activity) for activity in activities]
