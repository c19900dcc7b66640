"""Unit tests for alias map construction."""

from __future__ import annotations

import pytest

from app.core.exceptions import DocumentStoreError
from app.services.cascade.alias_map import build_alias_map, load_alias_map


def test_maps_canonical_and_aliases_case_insensitively() -> None:
    alias_map = build_alias_map(
        {
            "mappings": [
                {
                    "canonical": "Maasai Mara National Reserve",
                    "aliases": ["Masai Mara", " MARA "],
                    "destination": {"id": 20},
                },
                {"canonical": "Amboseli", "aliases": "Amboseli NP, Amboseli Park", "destination": 21},
            ]
        },
        "destination",
    )

    assert alias_map == {
        "maasai mara national reserve": 20,
        "masai mara": 20,
        "mara": 20,
        "amboseli": 21,
        "amboseli np": 21,
        "amboseli park": 21,
    }


def test_entries_without_target_are_ignored() -> None:
    alias_map = build_alias_map(
        {"mappings": [{"canonical": "Nowhere", "aliases": ["X"]}, "junk"]}, "property"
    )

    assert alias_map == {}


def test_empty_global_gives_empty_map() -> None:
    assert build_alias_map({}, "destination") == {}
    assert build_alias_map(None, "destination") == {}


@pytest.mark.asyncio
async def test_load_alias_map_propagates_store_errors(store) -> None:
    store.fail("find_global", "property-name-mappings", DocumentStoreError("globals", "down"))

    with pytest.raises(DocumentStoreError):
        await load_alias_map(store, "property-name-mappings", "property")
