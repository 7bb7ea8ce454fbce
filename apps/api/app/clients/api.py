from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session, sessionmaker

from app.clients.cascade import delete_client
from app.clients.schemas import ClientCreate, ClientCreateResponse, ClientDeleteResponse, ClientRead, StepResultRead
from app.clients.service import client_lifecycle_service
from app.core.auth import get_current_principal
from app.core.database import get_session_factory
from app.identity.service import ensure_principal
from app.tenancy import Principal, tenant_scope


router = APIRouter(prefix="/api/clients", tags=["clients"])


@router.post("", response_model=ClientCreateResponse, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    response: Response,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> ClientCreateResponse:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        result = client_lifecycle_service.create_client(session, resolved.company_id, resolved.user_id, payload)
        body = ClientCreateResponse(
            client=ClientRead.model_validate(result.client),
            report=[StepResultRead.model_validate(step) for step in result.report],
            credentials_stale=resolved.credentials_stale,
        )
    if resolved.credentials_stale:
        response.headers["x-credentials-stale"] = "true"
    return body


@router.get("", response_model=list[ClientRead])
def list_clients(
    search: str | None = None,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> list[ClientRead]:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        clients = client_lifecycle_service.list_clients(session, resolved.company_id, search)
        return [ClientRead.model_validate(client) for client in clients]


@router.get("/{client_id}", response_model=ClientRead)
def get_client(
    client_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> ClientRead:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        return ClientRead.model_validate(client_lifecycle_service.get_client(session, resolved.company_id, client_id))


@router.delete("/{client_id}", response_model=ClientDeleteResponse)
def delete_client_endpoint(
    client_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> ClientDeleteResponse:
    with tenant_scope(principal, session_factory) as session:
        resolved = ensure_principal(session, principal)
        counts = delete_client(session, client_id, resolved.company_id, actor_user_id=principal.user_id)
    return ClientDeleteResponse(client_id=client_id, counts=counts)
