from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, sessionmaker

from app.core.auth import get_current_principal
from app.core.database import get_session_factory
from app.identity.schemas import IdentitySyncResponse
from app.identity.service import ExternalIdentity, resolve_or_provision_user
from app.tenancy import Principal


router = APIRouter(prefix="/api/identity", tags=["identity"])


@router.post("/sync", response_model=IdentitySyncResponse)
def sync_identity(
    principal: Principal = Depends(get_current_principal),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
) -> IdentitySyncResponse:
    # Users and companies are global tables, so this runs outside a tenant scope.
    with session_factory() as session, session.begin():
        resolved = resolve_or_provision_user(session, ExternalIdentity.from_principal(principal))
    return IdentitySyncResponse(
        user_id=resolved.user_id,
        company_id=resolved.company_id,
        role=resolved.role,
        provisioned=resolved.provisioned,
        credentials_stale=resolved.credentials_stale,
    )
