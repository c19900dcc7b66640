"""Alias maps loaded from the name-mapping globals."""

from __future__ import annotations

from typing import Any

from app.integrations.document_store import DocumentStore
from app.schemas.cascade import RecordId
from app.services.cascade.normalization import extract_id, normalize

DESTINATION_MAPPINGS_GLOBAL = "destination-name-mappings"
PROPERTY_MAPPINGS_GLOBAL = "property-name-mappings"

AliasMap = dict[str, RecordId]


def build_alias_map(mappings_doc: dict[str, Any] | None, target_field: str) -> AliasMap:
    """Map normalized canonical names and aliases to the mapped record ID.

    Entries without a resolvable target are ignored. Later entries win when two
    entries claim the same name.
    """
    alias_map: AliasMap = {}
    for entry in (mappings_doc or {}).get("mappings") or []:
        if not isinstance(entry, dict):
            continue
        target_id = extract_id(entry.get(target_field))
        if target_id is None:
            continue

        canonical = normalize(entry.get("canonical"))
        if canonical:
            alias_map[canonical] = target_id

        aliases = entry.get("aliases")
        if isinstance(aliases, str):
            aliases = aliases.split(",")
        if not isinstance(aliases, list):
            continue
        for alias in aliases:
            if isinstance(alias, str) and alias.strip():
                alias_map[normalize(alias)] = target_id
    return alias_map


async def load_alias_map(
    store: DocumentStore,
    global_slug: str,
    target_field: str,
) -> AliasMap:
    """Read a mapping global once. Store errors propagate to the calling step."""
    return build_alias_map(await store.find_global(global_slug), target_field)
