from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session, sessionmaker

from app.context import reset_company_id, set_company_id
from app.core.database import get_session_factory
from app.core.errors import ConfigurationError
from app.tenancy.context import Principal, TenantBinding


logger = logging.getLogger("app.tenancy")

TENANT_BINDING_KEY = "tenant_binding"

_SET_COMPANY_SQL = "SELECT set_config('app.current_company_id', :value, :is_local)"
_SET_ROLE_SQL = "SELECT set_config('app.current_role', :value, :is_local)"
_RESET_SQL = ("RESET app.current_company_id", "RESET app.current_role")

T = TypeVar("T")


def _require_tenant(principal: Principal) -> TenantBinding:
    if not principal.is_super_admin and not principal.company_id:
        raise ConfigurationError(f"Company context is required for role '{principal.role}'")
    return TenantBinding(company_id=principal.company_id, role=principal.role)


def _is_postgres(target: Session | Connection) -> bool:
    bind = target.get_bind() if isinstance(target, Session) else target
    return bind.dialect.name == "postgresql"


def _run(target: Session | Connection, statement: str, params: dict[str, Any] | None = None) -> None:
    target.execute(text(statement), params or {})


def _apply_settings(target: Session | Connection, binding: TenantBinding, *, is_local: bool) -> None:
    if not _is_postgres(target):
        return
    if binding.company_id is not None:
        _run(target, _SET_COMPANY_SQL, {"value": str(binding.company_id), "is_local": is_local})
    _run(target, _SET_ROLE_SQL, {"value": binding.role, "is_local": is_local})


def get_binding(target: Session | Connection) -> TenantBinding | None:
    return target.info.get(TENANT_BINDING_KEY)


def rebind_tenant(session: Session, principal: Principal) -> TenantBinding:
    """Re-apply tenant settings inside the open transaction, e.g. after self-heal."""
    binding = _require_tenant(principal)
    _apply_settings(session, binding, is_local=True)
    session.info[TENANT_BINDING_KEY] = binding
    set_company_id(str(binding.company_id) if binding.company_id else None)
    return binding


@contextmanager
def tenant_scope(
    principal: Principal,
    session_factory: sessionmaker[Session] | None = None,
) -> Iterator[Session]:
    """Open one transaction bound to the principal's company and role.

    The PostgreSQL settings are transaction-local, so they are discarded on commit or
    rollback and never reach the next user of the pooled connection.
    """
    binding = _require_tenant(principal)
    factory = session_factory or get_session_factory()
    session = factory()
    token = set_company_id(str(binding.company_id) if binding.company_id else None)
    try:
        with session.begin():
            _apply_settings(session, binding, is_local=True)
            session.info[TENANT_BINDING_KEY] = binding
            yield session
    finally:
        session.info.pop(TENANT_BINDING_KEY, None)
        session.close()
        reset_company_id(token)


def with_tenant_scope(
    principal: Principal,
    fn: Callable[[Session], T],
    session_factory: sessionmaker[Session] | None = None,
) -> T:
    with tenant_scope(principal, session_factory) as session:
        return fn(session)


def clear_tenant_scope(connection: Connection) -> None:
    """Discard uncommitted work on the connection, then reset the session-level settings."""
    connection.info.pop(TENANT_BINDING_KEY, None)
    if connection.in_transaction():
        connection.rollback()
    if not _is_postgres(connection):
        return
    for statement in _RESET_SQL:
        _run(connection, statement)
    connection.commit()


@contextmanager
def tenant_session_scope(connection: Connection, principal: Principal) -> Iterator[Connection]:
    """Bind tenant settings to the connection session instead of a transaction.

    Only for long-lived read streams. The settings are cleared on every exit path,
    including a failed setup, and work the body left uncommitted is rolled back.
    """
    binding = _require_tenant(principal)
    try:
        _apply_settings(connection, binding, is_local=False)
        if _is_postgres(connection):
            connection.commit()
        connection.info[TENANT_BINDING_KEY] = binding
        logger.info("tenant.session_scope.bound", extra={"resource": "connection"})
        yield connection
    finally:
        clear_tenant_scope(connection)
