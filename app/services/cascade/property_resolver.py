"""Resolve extracted accommodation names to property records."""

from __future__ import annotations

import logging

from app.core.exceptions import SlugConflictError
from app.integrations.document_store import DocumentStore
from app.schemas.cascade import PropertyEntity, RecordId, ResolutionResult
from app.services.cascade.alias_map import PROPERTY_MAPPINGS_GLOBAL, load_alias_map
from app.services.cascade.normalization import extract_id, normalize, slugify

logger = logging.getLogger(__name__)

PROPERTIES_COLLECTION = "properties"


def destination_ids_by_name(
    destination_resolutions: list[ResolutionResult],
    country_resolutions: list[ResolutionResult],
) -> dict[str, RecordId]:
    """Normalized entity name -> resolved destination ID.

    Destination names take precedence over a country with the same name.
    """
    ids: dict[str, RecordId] = {}
    for resolution in destination_resolutions:
        if resolution.resolved_id is not None and resolution.entity_type == "destination":
            ids.setdefault(normalize(resolution.entity_name), resolution.resolved_id)
    for resolution in country_resolutions:
        if resolution.resolved_id is not None and resolution.entity_type == "country":
            ids.setdefault(normalize(resolution.entity_name), resolution.resolved_id)
    return ids


class PropertyResolver:
    """Match property entities against the properties collection.

    Lookup order: the stay's existing property link, the property alias map,
    an exact name match. Missing properties are created as drafts under the
    destination matching their location, falling back to their country.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def resolve(
        self,
        properties: list[PropertyEntity],
        destination_resolutions: list[ResolutionResult],
        country_resolutions: list[ResolutionResult],
        dry_run: bool = False,
    ) -> list[ResolutionResult]:
        alias_map = await load_alias_map(self.store, PROPERTY_MAPPINGS_GLOBAL, "property")
        parent_ids = destination_ids_by_name(destination_resolutions, country_resolutions)

        results: list[ResolutionResult] = []
        for entity in properties:
            try:
                result = await self._resolve_one(entity, alias_map, parent_ids, dry_run)
            except Exception as e:
                logger.warning(
                    "Property lookup failed",
                    extra={"property": entity.name, "error": str(e)},
                )
                result = self._result(entity, "skipped", note=f"Lookup failed: {e}")
            results.append(result)
        return results

    async def _resolve_one(
        self,
        entity: PropertyEntity,
        alias_map: dict[str, RecordId],
        parent_ids: dict[str, RecordId],
        dry_run: bool,
    ) -> ResolutionResult:
        if entity.existing_ref_id is not None and await self._exists(entity.existing_ref_id):
            return self._result(
                entity, "found", entity.existing_ref_id, note="Already linked in stay"
            )

        alias_id = alias_map.get(entity.normalized_key)
        if alias_id is not None:
            return self._result(entity, "found", alias_id, note="Matched via alias")

        existing = await self.store.find_one(PROPERTIES_COLLECTION, {"name": entity.name})
        if existing:
            return self._result(entity, "found", extract_id(existing.get("id")))

        if dry_run:
            return self._result(entity, "skipped", note="Would create (dry run)")

        parent_id = parent_ids.get(normalize(entity.location_name))
        if parent_id is None:
            parent_id = parent_ids.get(normalize(entity.country_name))
        if parent_id is None:
            return self._result(
                entity,
                "skipped",
                note="No resolved destination to link; skipping creation",
            )

        return await self._create_property(entity, parent_id)

    async def _exists(self, property_id: RecordId) -> bool:
        try:
            return await self.store.find_by_id(PROPERTIES_COLLECTION, property_id) is not None
        except Exception as e:
            logger.warning(
                "Linked property lookup failed",
                extra={"property_id": property_id, "error": str(e)},
            )
            return False

    async def _create_property(
        self,
        entity: PropertyEntity,
        destination_id: RecordId,
    ) -> ResolutionResult:
        name = entity.name
        slug = slugify(name)
        try:
            created = await self.store.create(
                PROPERTIES_COLLECTION,
                {"name": name, "slug": slug, "destination": destination_id},
                draft=True,
            )
        except SlugConflictError:
            existing = await self.store.find_one(PROPERTIES_COLLECTION, {"slug": slug})
            if existing:
                return self._result(
                    entity,
                    "found",
                    extract_id(existing.get("id")),
                    note="Matched by slug after create conflict",
                )
            logger.warning(
                "Slug conflict but no property found by slug",
                extra={"property": name, "slug": slug},
            )
            return self._result(entity, "skipped", note="Failed to create")
        except Exception as e:
            logger.warning(
                "Failed to create property",
                extra={"property": name, "error": str(e)},
            )
            return self._result(entity, "skipped", note="Failed to create")

        logger.info(
            "Property created",
            extra={"property": name, "property_id": created.get("id")},
        )
        return self._result(entity, "created", extract_id(created.get("id")))

    @staticmethod
    def _result(
        entity: PropertyEntity,
        action: str,
        resolved_id: RecordId | None = None,
        note: str | None = None,
    ) -> ResolutionResult:
        return ResolutionResult(
            entity_name=entity.name,
            entity_type="property",
            action=action,
            resolved_id=resolved_id,
            collection=PROPERTIES_COLLECTION,
            note=note,
        )
