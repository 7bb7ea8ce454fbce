from __future__ import annotations

import uuid
from dataclasses import dataclass


SUPER_ADMIN = "super_admin"
COMPANY_ADMIN = "company_admin"
STAFF = "staff"
CLIENT_USER = "client_user"
ROLES = frozenset({SUPER_ADMIN, COMPANY_ADMIN, STAFF, CLIENT_USER})


@dataclass(slots=True)
class Principal:
    """Authenticated caller: external identity, claimed tenant and role."""

    user_id: str
    role: str
    company_id: uuid.UUID | None = None
    email: str | None = None
    name: str | None = None
    correlation_id: str | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == SUPER_ADMIN


@dataclass(frozen=True, slots=True)
class TenantBinding:
    company_id: uuid.UUID | None
    role: str

    @property
    def bypass(self) -> bool:
        return self.role == SUPER_ADMIN
