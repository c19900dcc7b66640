"""Unit tests for the content pipeline HTTP surface."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from app.api.content import routes
from app.api.content.dependencies import get_document_store
from app.config import settings
from app.core.exceptions import ItineraryNotFoundError
from app.integrations.document_store import DocumentStore
from app.main import create_app
from app.schemas.cascade import CascadeOptions, CascadeResult
from app.schemas.ideation import DecompositionResult

SECRET = "test-secret"


@pytest.fixture
def client(monkeypatch, store) -> TestClient:
    monkeypatch.setattr(settings, "content_system_secret", SECRET)
    app = create_app()

    async def _store() -> AsyncGenerator[DocumentStore, None]:
        yield store

    app.dependency_overrides[get_document_store] = _store
    return TestClient(app)


def _auth(token: str = SECRET) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health_needs_no_auth(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "version": settings.app_version}


def test_rejects_missing_or_wrong_secret(client: TestClient) -> None:
    assert client.post("/api/content/cascade", json={"itineraryId": 1}).status_code == 401
    assert (
        client.post("/api/content/cascade", json={"itineraryId": 1}, headers=_auth("nope")).status_code
        == 401
    )


def test_unconfigured_secret_returns_503(client: TestClient, monkeypatch) -> None:
    monkeypatch.setattr(settings, "content_system_secret", None)

    response = client.post("/api/content/cascade", json={"itineraryId": 1}, headers=_auth())

    assert response.status_code == 503


def test_cascade_passes_request_options(client: TestClient, monkeypatch, store) -> None:
    seen: dict[str, Any] = {}

    async def fake_run_cascade(options: CascadeOptions, store: DocumentStore | None = None) -> CascadeResult:
        seen["options"] = options
        seen["store"] = store
        return CascadeResult(itinerary_id=options.itinerary_id, dry_run=options.dry_run)

    monkeypatch.setattr(routes, "run_cascade", fake_run_cascade)

    response = client.post(
        "/api/content/cascade",
        json={"itineraryId": 42, "dryRun": True, "jobId": 7},
        headers=_auth(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["itineraryId"] == 42
    assert body["dryRun"] is True
    assert body["contentProjects"] == []
    assert "itinerary_id" not in body
    assert seen["options"] == CascadeOptions(itinerary_id=42, dry_run=True, job_id=7)
    assert seen["store"] is store


def test_cascade_rejects_invalid_itinerary_id(client: TestClient) -> None:
    response = client.post("/api/content/cascade", json={"itineraryId": 0}, headers=_auth())

    assert response.status_code == 422


def test_decompose_returns_result(client: TestClient, monkeypatch) -> None:
    async def fake_decompose(itinerary_id, job_id=None, dry_run=False, store=None):
        return DecompositionResult(itinerary_id=itinerary_id, total_candidates=3, passed=2, filtered=1)

    monkeypatch.setattr(routes, "decompose_itinerary", fake_decompose)

    response = client.post("/api/content/decompose", json={"itineraryId": 42}, headers=_auth())

    assert response.status_code == 200
    body = response.json()
    assert body["passed"] == 2
    assert body["totalCandidates"] == 3
    assert body["projectsCreated"] == []
    assert body["filteredProjectIds"] == []


def test_decompose_failure_maps_to_500(client: TestClient, monkeypatch) -> None:
    async def fake_decompose(itinerary_id, job_id=None, dry_run=False, store=None):
        raise ItineraryNotFoundError(itinerary_id)

    monkeypatch.setattr(routes, "decompose_itinerary", fake_decompose)

    response = client.post("/api/content/decompose", json={"itineraryId": 42}, headers=_auth())

    assert response.status_code == 500
    assert response.json()["detail"] == "Itinerary 42 not found"
