from app.identity.service import (
    ExternalIdentity,
    ResolvedPrincipal,
    derive_role,
    ensure_principal,
    resolve_or_provision_user,
)

__all__ = [
    "ExternalIdentity",
    "ResolvedPrincipal",
    "derive_role",
    "ensure_principal",
    "resolve_or_provision_user",
]
