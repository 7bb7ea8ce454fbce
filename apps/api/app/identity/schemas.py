from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class IdentitySyncResponse(BaseModel):
    user_id: UUID
    company_id: UUID | None
    role: str
    provisioned: bool
    credentials_stale: bool
