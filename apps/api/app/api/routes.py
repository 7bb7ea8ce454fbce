from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from app.clients.api import router as clients_router
from app.core.auth import get_current_principal
from app.core.config import get_settings
from app.identity.api import router as identity_router
from app.metrics import generate_metrics_payload, metrics_content_type
from app.pipeline.api import leads_router, stages_router
from app.tenancy import Principal

router = APIRouter()
router.include_router(identity_router)
router.include_router(clients_router)
router.include_router(stages_router)
router.include_router(leads_router)


@router.get("/health", tags=["system"])
def health() -> dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.app_env,
    }


@router.get("/me", tags=["auth"])
async def me(principal: Principal = Depends(get_current_principal)) -> dict[str, str | None]:
    return {
        "sub": principal.user_id,
        "role": principal.role,
        "company_id": str(principal.company_id) if principal.company_id else None,
    }


@router.get("/metrics", tags=["system"])
def metrics(principal: Principal = Depends(get_current_principal)) -> Response:
    settings = get_settings()
    if not settings.metrics_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="not found")
    if not principal.is_super_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Metrics require super_admin")
    return Response(content=generate_metrics_payload(), media_type=metrics_content_type())
