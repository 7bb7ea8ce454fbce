from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.core.database import get_session_factory
from app.main import app


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def client(session_factory: sessionmaker[Session]) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_domain_metrics(client: TestClient, mint_token) -> None:
    health = client.get("/health")
    assert health.status_code == 200
    timeline_ok = {"step": "timeline", "outcome": "ok"}
    timeline_before = REGISTRY.get_sample_value("client_creation_steps_total", timeline_ok) or 0

    identity = client.post("/api/identity/sync", headers=mint_token("auth|metrics", name="Max")).json()
    headers = mint_token("auth|metrics", company_id=identity["company_id"])

    created = client.post(
        "/api/clients",
        json={"partner1_first_name": "Ava", "wedding_date": "2026-06-20", "budget": "5000"},
        headers=headers,
    )
    assert created.status_code == 201
    client_id = created.json()["client"]["id"]
    assert client.delete(f"/api/clients/{client_id}", headers=headers).status_code == 200

    lead_id = client.post("/api/pipeline/leads", json={"first_name": "Bo"}, headers=headers).json()["id"]
    assert client.post(f"/api/pipeline/leads/{lead_id}/convert", json={}, headers=headers).status_code == 200

    metrics = client.get("/metrics", headers=mint_token("auth|root", role="super_admin"))
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "principal_provisioned_total" in body
    assert "client_creation_steps_total" in body
    assert "cascade_deleted_rows_total" in body
    assert "lead_transitions_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/clients/{id}"' in body
    assert 'path="/api/pipeline/leads/{id}/convert"' in body
    assert REGISTRY.get_sample_value("client_creation_steps_total", timeline_ok) == timeline_before + 1
    assert 'table="timeline"' in body


def test_metrics_require_super_admin(client: TestClient, mint_token) -> None:
    response = client.get("/metrics", headers=mint_token("auth|planner", role="company_admin"))
    assert response.status_code == 403


def test_metrics_hidden_when_disabled(client: TestClient, mint_token, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics", headers=mint_token("auth|root", role="super_admin"))
    assert response.status_code == 404
