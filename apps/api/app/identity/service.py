from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.errors import InternalError
from app.identity.models import Company, User, utcnow
from app.metrics import observe_principal_provisioned
from app.tenancy import COMPANY_ADMIN, ROLES, SUPER_ADMIN, Principal, rebind_tenant


logger = logging.getLogger("app.identity")

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_PROVISION_ATTEMPTS = 3


@dataclass(slots=True)
class ExternalIdentity:
    auth_id: str
    email: str | None = None
    name: str | None = None
    claimed_company_id: uuid.UUID | None = None
    claimed_role: str | None = None

    @classmethod
    def from_principal(cls, principal: Principal) -> ExternalIdentity:
        return cls(
            auth_id=principal.user_id,
            email=principal.email,
            name=principal.name,
            claimed_company_id=principal.company_id,
            claimed_role=principal.role,
        )


@dataclass(slots=True)
class ResolvedPrincipal:
    user_id: uuid.UUID
    company_id: uuid.UUID | None
    role: str
    provisioned: bool = False
    # The caller's token names a different company and should be refreshed.
    credentials_stale: bool = False


def derive_role(identity: ExternalIdentity, settings: Settings) -> str:
    if settings.super_admin_email and identity.email:
        if identity.email.strip().lower() == settings.super_admin_email.strip().lower():
            return SUPER_ADMIN
    if identity.claimed_role in ROLES and identity.claimed_role != SUPER_ADMIN:
        return identity.claimed_role
    return COMPANY_ADMIN


def _split_name(name: str | None) -> tuple[str | None, str | None]:
    parts = (name or "").split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


def _subdomain_base(auth_id: str) -> str:
    return "company" + _NON_ALNUM_RE.sub("", auth_id)[:8].lower()


def _find_user(session: Session, auth_id: str) -> User | None:
    return session.scalar(
        select(User).where(User.auth_id == auth_id).execution_options(populate_existing=True)
    )


def _unique_subdomain(session: Session, base: str) -> str:
    candidate = base
    suffix = 1
    while session.scalar(select(Company.id).where(Company.subdomain == candidate)) is not None:
        suffix += 1
        candidate = f"{base}-{suffix}"
    return candidate


def _resolve_company(session: Session, identity: ExternalIdentity, settings: Settings) -> Company:
    if identity.claimed_company_id is not None:
        claimed = session.get(Company, identity.claimed_company_id)
        if claimed is not None:
            return claimed
        logger.info("identity.claimed_company_missing", extra={"user_id": identity.auth_id})

    company = session.scalar(select(Company).where(Company.provisioned_for_auth_id == identity.auth_id))
    if company is not None:
        return company

    first_name, _ = _split_name(identity.name)
    company = Company(
        name=f"{first_name or 'User'}'s Company",
        subdomain=_unique_subdomain(session, _subdomain_base(identity.auth_id)),
        subscription_tier=settings.default_subscription_tier,
        subscription_status=settings.default_subscription_status,
        trial_ends_at=utcnow() + timedelta(days=settings.trial_days),
        provisioned_for_auth_id=identity.auth_id,
    )
    session.add(company)
    session.flush()
    return company


def _provision(session: Session, identity: ExternalIdentity, settings: Settings) -> User:
    company = _resolve_company(session, identity, settings)
    first_name, last_name = _split_name(identity.name)
    user = User(
        auth_id=identity.auth_id,
        email=identity.email,
        first_name=first_name,
        last_name=last_name,
        role=derive_role(identity, settings),
        company_id=company.id,
        is_active=True,
    )
    session.add(user)
    session.flush()
    return user


def _resolved(user: User, identity: ExternalIdentity, *, provisioned: bool) -> ResolvedPrincipal:
    return ResolvedPrincipal(
        user_id=user.id,
        company_id=user.company_id,
        role=user.role,
        provisioned=provisioned,
        credentials_stale=user.company_id != identity.claimed_company_id,
    )


def resolve_or_provision_user(
    session: Session,
    identity: ExternalIdentity,
    settings: Settings | None = None,
) -> ResolvedPrincipal:
    """Return the user for an external identity, provisioning user and company once.

    Provisioning runs in a savepoint. Losing a concurrent race trips the unique
    constraints on ``users.auth_id``/``companies.provisioned_for_auth_id``; the
    winner's row is then read back and returned as already resolved. A conflict on
    ``companies.subdomain`` alone means another identity took the derived name, so the
    savepoint is retried with the next free suffix.
    """
    settings = settings or get_settings()

    existing = _find_user(session, identity.auth_id)
    if existing is not None:
        return _resolved(existing, identity, provisioned=False)

    for _ in range(_PROVISION_ATTEMPTS):
        try:
            with session.begin_nested():
                _provision(session, identity, settings)
        except IntegrityError:
            winner = _find_user(session, identity.auth_id)
            if winner is not None:
                observe_principal_provisioned("race_lost")
                logger.info("identity.provision_race_lost", extra={"user_id": identity.auth_id})
                return _resolved(winner, identity, provisioned=False)
            # Another identity claimed the generated subdomain; the next attempt derives a fresh one.
            observe_principal_provisioned("subdomain_conflict")
            logger.info("identity.subdomain_conflict", extra={"user_id": identity.auth_id})
            continue
        break
    else:
        raise InternalError("User could not be provisioned after repeated conflicts")

    user = _find_user(session, identity.auth_id)
    if user is None:
        raise InternalError("Failed to retrieve newly provisioned user")
    observe_principal_provisioned("created")
    logger.info("identity.provisioned", extra={"user_id": identity.auth_id})
    return _resolved(user, identity, provisioned=True)


def ensure_principal(session: Session, principal: Principal) -> ResolvedPrincipal:
    """Resolve the caller inside an open tenant scope and rebind it when the company changed."""
    resolved = resolve_or_provision_user(session, ExternalIdentity.from_principal(principal))
    if resolved.credentials_stale and resolved.company_id is not None:
        rebind_tenant(
            session,
            Principal(
                user_id=principal.user_id,
                role=resolved.role,
                company_id=resolved.company_id,
                email=principal.email,
                name=principal.name,
                correlation_id=principal.correlation_id,
            ),
        )
    return resolved
