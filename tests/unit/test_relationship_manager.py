"""Unit tests for relationship management."""

from __future__ import annotations

import pytest

from app.core.exceptions import DocumentStoreError
from app.services.cascade.relationship_manager import RelationshipManager


def _seed_records(store) -> None:
    store.seed("destinations", {"id": 20, "name": "Masai Mara", "relatedItineraries": [7]})
    store.seed("properties", {"id": 30, "name": "Angama Mara"})


@pytest.mark.asyncio
async def test_merges_new_edges_without_replacing_existing(store) -> None:
    _seed_records(store)

    actions = await RelationshipManager(store).manage(42, [20], [30], {30: 20})

    assert store.get("destinations", 20)["relatedItineraries"] == [7, 42]
    assert store.get("destinations", 20)["featuredProperties"] == [30]
    assert store.get("properties", 30)["relatedItineraries"] == [42]
    assert {a.action for a in actions} == {"created"}
    assert len(actions) == 3


@pytest.mark.asyncio
async def test_second_run_reports_existing_edges_only(store) -> None:
    _seed_records(store)
    manager = RelationshipManager(store)
    await manager.manage(42, [20], [30], {30: 20})
    writes = store.write_count

    actions = await manager.manage(42, [20], [30], {30: 20})

    assert {a.action for a in actions} == {"existed"}
    assert store.write_count == writes


@pytest.mark.asyncio
async def test_populated_references_count_as_existing(store) -> None:
    store.seed("destinations", {"id": 20, "relatedItineraries": [{"id": 42, "title": "Kenya"}]})

    actions = await RelationshipManager(store).manage(42, [20], [], {})

    assert [a.action for a in actions] == ["existed"]
    assert store.updates == []


@pytest.mark.asyncio
async def test_disabled_setting_skips_everything(store) -> None:
    _seed_records(store)
    store.globals["content-system-settings"] = {"autoPopulateRelationships": False}

    actions = await RelationshipManager(store).manage(42, [20], [30], {30: 20})

    assert len(actions) == 1
    assert actions[0].action == "skipped"
    assert store.write_count == 0


@pytest.mark.asyncio
async def test_dry_run_reports_would_link(store) -> None:
    _seed_records(store)

    actions = await RelationshipManager(store).manage(42, [20], [30], {30: 20}, dry_run=True)

    assert [a.action for a in actions] == ["skipped", "skipped", "skipped"]
    assert all(a.note == "Would link (dry run)" for a in actions)
    assert store.write_count == 0


@pytest.mark.asyncio
async def test_failed_record_does_not_block_other_edges(store) -> None:
    _seed_records(store)
    store.fail("update", "properties", DocumentStoreError("properties", "HTTP 500"))

    actions = await RelationshipManager(store).manage(42, [20], [30], {30: 20})

    by_field = {(a.source_collection, a.field): a.action for a in actions}
    assert by_field[("properties", "relatedItineraries")] == "failed"
    assert by_field[("destinations", "relatedItineraries")] == "created"
    assert by_field[("destinations", "featuredProperties")] == "created"


@pytest.mark.asyncio
async def test_missing_record_marks_edges_failed(store) -> None:
    actions = await RelationshipManager(store).manage(42, [999], [], {})

    assert actions[0].action == "failed"
    assert actions[0].note == "Record not found"
