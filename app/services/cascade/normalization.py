"""String and reference helpers shared by the cascade steps."""

from __future__ import annotations

import re
from typing import Any

_NON_ALNUM_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lowercase, `&` to `and`, runs of non-alphanumerics to one hyphen, trimmed."""
    lowered = (name or "").lower().replace("&", "and")
    return _NON_ALNUM_PATTERN.sub("-", lowered).strip("-")


def normalize(name: str | None) -> str:
    """Trim + lowercase key used for dedup and lookups."""
    return (name or "").strip().lower()


def extract_id(ref: Any) -> int | str | None:
    """Return the ID of a relationship value.

    Accepts a bare ID or a populated object carrying an `id` key. Digit strings
    become ints; any other non-empty string ID is returned as-is.
    """
    if ref is None or isinstance(ref, bool):
        return None
    if isinstance(ref, int):
        return ref
    if isinstance(ref, str):
        value = ref.strip()
        if not value:
            return None
        return int(value) if value.isdigit() else value
    if isinstance(ref, dict):
        return extract_id(ref.get("id"))
    return None


def extract_ids(value: Any) -> list[int | str]:
    """Return the IDs of a relationship array, skipping unresolvable items."""
    if not isinstance(value, list):
        return []
    ids: list[int | str] = []
    for item in value:
        item_id = extract_id(item)
        if item_id is not None:
            ids.append(item_id)
    return ids


def project_slug(title: str) -> str:
    """Slug for cascade content projects: no `&` expansion, otherwise as `slugify`."""
    return _NON_ALNUM_PATTERN.sub("-", (title or "").lower()).strip("-")
