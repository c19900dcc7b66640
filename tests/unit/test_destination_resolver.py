"""Unit tests for destination resolution."""

from __future__ import annotations

import pytest

from app.core.exceptions import DocumentStoreError
from app.schemas.cascade import CountryEntity, LocationEntity
from app.services.cascade.destination_resolver import DestinationResolver


def _country(name: str) -> CountryEntity:
    return CountryEntity(name=name, normalized_key=name.strip().lower())


def _location(name: str, country: str = "Kenya") -> LocationEntity:
    return LocationEntity(name=name, normalized_key=name.strip().lower(), country_name=country)


@pytest.mark.asyncio
async def test_creates_missing_location_under_resolved_country(store) -> None:
    kenya = store.seed("destinations", {"id": 10, "name": "Kenya", "type": "country"})

    results = await DestinationResolver(store).resolve(
        [_country("Kenya")], [_location("Masai Mara")], dry_run=False
    )

    assert store.creates == [
        (
            "destinations",
            {"name": "Masai Mara", "slug": "masai-mara", "type": "destination", "country": kenya["id"]},
            True,
        )
    ]
    assert [(r.entity_name, r.action) for r in results] == [
        ("Kenya", "found"),
        ("Masai Mara", "created"),
    ]
    assert results[1].resolved_id is not None


@pytest.mark.asyncio
async def test_alias_takes_precedence_over_exact_name(store) -> None:
    store.seed("destinations", {"id": 55, "name": "Masai Mara", "type": "destination"})
    store.globals["destination-name-mappings"] = {
        "mappings": [
            {"canonical": "Maasai Mara National Reserve", "aliases": ["Masai Mara"], "destination": {"id": 99}},
        ]
    }

    results = await DestinationResolver(store).resolve([], [_location("Masai Mara")])

    assert results[0].action == "found"
    assert results[0].resolved_id == 99
    assert results[0].note == "Matched via alias"


@pytest.mark.asyncio
async def test_countries_are_never_created(store) -> None:
    results = await DestinationResolver(store).resolve(
        [_country("Botswana"), _country("Zambia")], [], dry_run=False
    )

    assert all(r.action == "skipped" for r in results)
    assert store.creates == []


@pytest.mark.asyncio
async def test_dry_run_reports_would_create_without_writing(store) -> None:
    results = await DestinationResolver(store).resolve([], [_location("Amboseli")], dry_run=True)

    assert results[0].action == "skipped"
    assert "dry run" in (results[0].note or "")
    assert store.write_count == 0


@pytest.mark.asyncio
async def test_slug_conflict_adopts_existing_record(store) -> None:
    # Same slug, different name: exact lookup misses but create collides.
    store.seed("destinations", {"id": 31, "name": "Masai-Mara", "slug": "masai-mara", "type": "destination"})

    results = await DestinationResolver(store).resolve([], [_location("Masai Mara")])

    assert results[0].action == "found"
    assert results[0].resolved_id == 31


@pytest.mark.asyncio
async def test_lookup_error_skips_only_that_location(store) -> None:
    store.fail("find", "destinations", DocumentStoreError("destinations", "timeout"))

    results = await DestinationResolver(store).resolve(
        [], [_location("Laikipia"), _location("Samburu")]
    )

    assert [r.action for r in results] == ["skipped", "skipped"]
    assert all("Lookup failed" in (r.note or "") for r in results)


@pytest.mark.asyncio
async def test_other_create_failures_are_skipped_not_raised(store) -> None:
    store.fail("create", "destinations", DocumentStoreError("destinations", "HTTP 500"))

    results = await DestinationResolver(store).resolve([], [_location("Laikipia")])

    assert results[0].action == "skipped"
    assert results[0].resolved_id is None


@pytest.mark.asyncio
async def test_alias_map_load_failure_propagates(store) -> None:
    store.fail("find_global", "destination-name-mappings", DocumentStoreError("globals", "down"))

    with pytest.raises(DocumentStoreError):
        await DestinationResolver(store).resolve([], [_location("Laikipia")])


@pytest.mark.asyncio
async def test_string_record_ids_are_kept(store) -> None:
    store.seed("destinations", {"id": "65f0c0ffee", "name": "Kenya", "type": "country"})

    results = await DestinationResolver(store).resolve(
        [_country("Kenya")], [_location("Masai Mara")]
    )

    assert results[0].action == "found"
    assert results[0].resolved_id == "65f0c0ffee"
    assert store.creates[0][1]["country"] == "65f0c0ffee"
