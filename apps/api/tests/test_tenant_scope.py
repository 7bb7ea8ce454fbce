from __future__ import annotations

import uuid

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from app import audit
from app.clients.models import Client
from app.context import get_company_id
from app.core.errors import ConfigurationError, ForbiddenError
from app.tenancy import (
    STAFF,
    SUPER_ADMIN,
    Principal,
    TenantBinding,
    get_binding,
    rebind_tenant,
    tenant_scope,
    tenant_session_scope,
    with_tenant_scope,
)
from app.tenancy import scope


def test_missing_company_fails_before_a_session_is_opened() -> None:
    opened: list[bool] = []

    def factory() -> Session:
        opened.append(True)
        raise AssertionError("session factory must not be called")

    with pytest.raises(ConfigurationError):
        with tenant_scope(Principal(user_id="auth|staff", role=STAFF), factory):
            pass

    assert opened == []


def test_super_admin_may_run_without_company(session_factory: sessionmaker[Session]) -> None:
    with tenant_scope(Principal(user_id="auth|root", role=SUPER_ADMIN), session_factory) as session:
        binding = get_binding(session)
        assert binding == TenantBinding(company_id=None, role=SUPER_ADMIN)
        assert binding.bypass


def test_binding_and_log_context_are_released_on_exit(session_factory, make_company, principal_for) -> None:
    acme = make_company("Acme")

    with tenant_scope(principal_for(acme), session_factory) as session:
        assert get_binding(session) == TenantBinding(company_id=acme.id, role="company_admin")
        assert get_company_id() == str(acme.id)

    assert get_binding(session) is None
    assert get_company_id() is None


def test_binding_is_released_when_the_body_fails(session_factory, make_company, principal_for) -> None:
    acme = make_company("Acme")

    with pytest.raises(RuntimeError):
        with tenant_scope(principal_for(acme), session_factory) as session:
            raise RuntimeError("boom")

    assert get_binding(session) is None
    assert get_company_id() is None


def test_scoped_reads_only_see_bound_company(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")
    other = make_company("Other")
    db_session.add_all(
        [
            Client(company_id=acme.id, partner1_first_name="Ava"),
            Client(company_id=other.id, partner1_first_name="Noah"),
        ]
    )
    db_session.commit()

    with tenant_scope(principal_for(acme), session_factory) as session:
        visible = [client.partner1_first_name for client in session.scalars(select(Client))]

    assert visible == ["Ava"]


def test_super_admin_reads_across_companies(session_factory, db_session, make_company) -> None:
    acme = make_company("Acme")
    other = make_company("Other")
    db_session.add_all(
        [
            Client(company_id=acme.id, partner1_first_name="Ava"),
            Client(company_id=other.id, partner1_first_name="Noah"),
        ]
    )
    db_session.commit()

    root = Principal(user_id="auth|root", role=SUPER_ADMIN)
    names = with_tenant_scope(
        root,
        lambda session: sorted(client.partner1_first_name for client in session.scalars(select(Client))),
        session_factory,
    )

    assert names == ["Ava", "Noah"]


def test_new_rows_are_stamped_with_bound_company(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")

    with tenant_scope(principal_for(acme), session_factory) as session:
        client = Client(partner1_first_name="Ava")
        session.add(client)
        session.flush()
        client_id = client.id

    stored = db_session.get(Client, client_id)
    assert stored is not None
    assert stored.company_id == acme.id


def test_write_for_another_company_is_rejected_and_rolled_back(
    session_factory,
    db_session,
    make_company,
    principal_for,
) -> None:
    acme = make_company("Acme")
    other = make_company("Other")

    with pytest.raises(ForbiddenError):
        with tenant_scope(principal_for(acme), session_factory) as session:
            session.add(Client(company_id=acme.id, partner1_first_name="Ava"))
            session.add(Client(company_id=other.id, partner1_first_name="Mallory"))
            session.flush()

    assert db_session.scalar(select(func.count()).select_from(Client)) == 0
    denied = audit.entries_for("tenancy.write", "denied")
    assert denied
    assert denied[-1]["after"]["resource"] == "clients"
    assert denied[-1]["after"]["row_company_id"] == str(other.id)


def test_moving_a_row_to_another_company_is_rejected(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")
    other = make_company("Other")
    client = Client(company_id=acme.id, partner1_first_name="Ava")
    db_session.add(client)
    db_session.commit()
    client_id = client.id

    with pytest.raises(ForbiddenError):
        with tenant_scope(principal_for(acme), session_factory) as session:
            loaded = session.scalar(select(Client).where(Client.id == client_id))
            loaded.company_id = other.id
            session.flush()

    db_session.expire_all()
    assert db_session.get(Client, client_id).company_id == acme.id


def test_rebind_switches_the_filtering_company(session_factory, db_session, make_company, principal_for) -> None:
    acme = make_company("Acme")
    other = make_company("Other")
    db_session.add(Client(company_id=other.id, partner1_first_name="Noah"))
    db_session.commit()

    with tenant_scope(principal_for(acme), session_factory) as session:
        assert session.scalars(select(Client)).all() == []
        rebind_tenant(session, principal_for(other))
        assert get_binding(session).company_id == other.id
        assert [client.partner1_first_name for client in session.scalars(select(Client))] == ["Noah"]


def test_session_scope_applies_and_clears_connection_settings(engine: Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    statements: list[tuple[str, dict | None]] = []
    monkeypatch.setattr(scope, "_is_postgres", lambda target: True)
    monkeypatch.setattr(scope, "_run", lambda target, statement, params=None: statements.append((statement, params)))
    company_id = uuid.uuid4()

    with engine.connect() as connection:
        with pytest.raises(RuntimeError):
            with tenant_session_scope(connection, Principal(user_id="auth|stream", role=STAFF, company_id=company_id)):
                assert get_binding(connection) == TenantBinding(company_id=company_id, role=STAFF)
                raise RuntimeError("stream aborted")

        assert get_binding(connection) is None

    assert statements[0][1] == {"value": str(company_id), "is_local": False}
    assert statements[1][1] == {"value": STAFF, "is_local": False}
    assert [statement for statement, _ in statements[-2:]] == [
        "RESET app.current_company_id",
        "RESET app.current_role",
    ]


def test_session_scope_rolls_back_failed_body_before_reset(engine: Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    statements: list[tuple[str, bool]] = []
    monkeypatch.setattr(scope, "_is_postgres", lambda target: True)
    monkeypatch.setattr(
        scope,
        "_run",
        lambda target, statement, params=None: statements.append((statement, target.in_transaction())),
    )
    checkpoints = Table("stream_checkpoints", MetaData(), Column("id", Integer, primary_key=True))

    with engine.connect() as connection:
        checkpoints.create(connection)
        connection.commit()

        with pytest.raises(RuntimeError, match="stream aborted"):
            with tenant_session_scope(connection, Principal(user_id="auth|stream", role=STAFF, company_id=uuid.uuid4())):
                connection.execute(checkpoints.insert().values(id=1))
                raise RuntimeError("stream aborted")

        assert connection.scalar(select(func.count()).select_from(checkpoints)) == 0
        connection.rollback()

    resets = [(statement, open_tx) for statement, open_tx in statements if statement.startswith("RESET")]
    assert resets == [("RESET app.current_company_id", False), ("RESET app.current_role", False)]


def test_session_scope_clears_settings_when_setup_fails(engine: Engine, monkeypatch: pytest.MonkeyPatch) -> None:
    statements: list[str] = []

    def failing_run(target, statement, params=None) -> None:
        statements.append(statement)
        if statement == scope._SET_ROLE_SQL:
            raise RuntimeError("set_config failed")

    monkeypatch.setattr(scope, "_is_postgres", lambda target: True)
    monkeypatch.setattr(scope, "_run", failing_run)
    entered: list[bool] = []

    with engine.connect() as connection:
        with pytest.raises(RuntimeError, match="set_config failed"):
            with tenant_session_scope(connection, Principal(user_id="auth|stream", role=STAFF, company_id=uuid.uuid4())):
                entered.append(True)

        assert get_binding(connection) is None

    assert entered == []
    assert statements == [
        scope._SET_COMPANY_SQL,
        scope._SET_ROLE_SQL,
        "RESET app.current_company_id",
        "RESET app.current_role",
    ]


def test_transaction_scope_uses_transaction_local_settings(
    session_factory,
    make_company,
    principal_for,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    acme = make_company("Acme")
    statements: list[tuple[str, dict | None]] = []
    monkeypatch.setattr(scope, "_is_postgres", lambda target: True)
    monkeypatch.setattr(scope, "_run", lambda target, statement, params=None: statements.append((statement, params)))

    with tenant_scope(principal_for(acme), session_factory):
        pass

    assert statements == [
        (scope._SET_COMPANY_SQL, {"value": str(acme.id), "is_local": True}),
        (scope._SET_ROLE_SQL, {"value": "company_admin", "is_local": True}),
    ]
