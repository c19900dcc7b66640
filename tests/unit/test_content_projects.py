"""Unit tests for cascade content project generation."""

from __future__ import annotations

import pytest

from app.schemas.cascade import ResolutionResult
from app.services.cascade.content_projects import ensure_project, generate_content_projects


def _resolution(name: str, entity_type: str, collection: str, resolved_id: int | None) -> ResolutionResult:
    return ResolutionResult(
        entity_name=name,
        entity_type=entity_type,
        action="found" if resolved_id else "skipped",
        resolved_id=resolved_id,
        collection=collection,
    )


@pytest.mark.asyncio
async def test_creates_idea_project_for_destinations_and_properties(store) -> None:
    actions = await generate_content_projects(
        store,
        [
            _resolution("Kenya", "country", "destinations", 10),
            _resolution("Masai Mara", "destination", "destinations", 20),
        ],
        [_resolution("Angama Mara", "property", "properties", 30)],
    )

    assert [(a.target_collection, a.target_record_id, a.action) for a in actions] == [
        ("destinations", 20, "created"),
        ("properties", 30, "created"),
    ]
    created = [data for _, data, _ in store.creates]
    assert created[0] == {
        "title": "Masai Mara",
        "slug": "masai-mara",
        "stage": "idea",
        "contentType": "destination_page",
        "originPathway": "cascade",
        "targetCollection": "destinations",
        "targetRecordId": "20",
    }
    assert created[1]["contentType"] == "property_page"


@pytest.mark.asyncio
async def test_existing_project_is_reused(store) -> None:
    store.seed(
        "content-projects",
        {"id": 501, "targetCollection": "destinations", "targetRecordId": "20"},
    )

    action = await ensure_project(store, "destinations", 20, "Masai Mara", "destination_page")

    assert action.action == "already_exists"
    assert action.project_id == 501
    assert store.creates == []


@pytest.mark.asyncio
async def test_unresolved_records_are_ignored(store) -> None:
    actions = await generate_content_projects(
        store, [_resolution("Amboseli", "destination", "destinations", None)], []
    )

    assert actions == []


@pytest.mark.asyncio
async def test_dry_run_writes_nothing(store) -> None:
    action = await ensure_project(
        store, "properties", 30, "Angama Mara", "property_page", dry_run=True
    )

    assert action.action == "already_exists"
    assert action.project_id is None
    assert store.write_count == 0
