import uuid
from typing import Any

from fastapi import HTTPException, status
from jose import JWTError, jwt
from starlette.requests import Request

from app.core.config import get_settings
from app.tenancy import COMPANY_ADMIN, Principal


def _parse_company_id(value: Any) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def principal_from_claims(claims: dict[str, Any], correlation_id: str | None = None) -> Principal:
    subject = claims.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")
    return Principal(
        user_id=str(subject),
        role=str(claims.get("role") or COMPANY_ADMIN),
        company_id=_parse_company_id(claims.get("company_id")),
        email=claims.get("email"),
        name=claims.get("name"),
        correlation_id=correlation_id,
    )


async def get_current_principal(request: Request) -> Principal:
    auth_header = request.headers.get("authorization", "")
    token = auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc
    return principal_from_claims(claims, getattr(request.state, "correlation_id", None))
