"""Shared fixtures: in-memory SQLite with working savepoints, tenants and token minting."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Generator
from typing import Any

import pytest
from jose import jwt
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import audit, events
from app.clients import models as clients_models  # noqa: F401
from app.core.config import get_settings
from app.core.database import Base
from app.identity.models import Company, User
from app.pipeline import models as pipeline_models  # noqa: F401
from app.tenancy import COMPANY_ADMIN, Principal


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite manages transactions itself and breaks SAVEPOINT; hand control back to SQLAlchemy.
    # Every session shares the one static connection, so only the outermost begin opens a transaction.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(connection: Any) -> None:
        if not connection.connection.dbapi_connection.in_transaction:
            connection.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Unscoped session for arranging and asserting rows across tenants."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def clear_side_effects() -> Generator[None, None, None]:
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()
    yield
    audit.audit_entries.clear()
    events.published_events.clear()
    get_settings.cache_clear()


@pytest.fixture()
def make_company(db_session: Session) -> Callable[..., Company]:
    def _make(name: str = "Acme Weddings", **values: Any) -> Company:
        company = Company(name=name, subdomain=f"acme-{uuid.uuid4().hex[:8]}", **values)
        db_session.add(company)
        db_session.commit()
        return company

    return _make


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    def _make(auth_id: str, company: Company | None, role: str = COMPANY_ADMIN, **values: Any) -> User:
        user = User(
            auth_id=auth_id,
            company_id=company.id if company is not None else None,
            role=role,
            **values,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def principal_for() -> Callable[..., Principal]:
    def _principal(company: Company | None, auth_id: str = "auth|planner", role: str = COMPANY_ADMIN) -> Principal:
        return Principal(user_id=auth_id, role=role, company_id=company.id if company is not None else None)

    return _principal


@pytest.fixture()
def mint_token() -> Callable[..., dict[str, str]]:
    """Return ``Authorization`` headers for a signed token with the given claims."""

    def _mint(
        sub: str = "auth|planner",
        *,
        role: str | None = None,
        company_id: uuid.UUID | str | None = None,
        email: str | None = None,
        name: str | None = None,
    ) -> dict[str, str]:
        settings = get_settings()
        claims: dict[str, Any] = {"sub": sub}
        if role is not None:
            claims["role"] = role
        if company_id is not None:
            claims["company_id"] = str(company_id)
        if email is not None:
            claims["email"] = email
        if name is not None:
            claims["name"] = name
        token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
        return {"Authorization": f"Bearer {token}"}

    return _mint
