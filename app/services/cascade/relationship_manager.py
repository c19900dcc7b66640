"""Cross-link an itinerary with its resolved destinations and properties.

Every relationship array is read before it is written and merged, never
replaced. One `RelationshipAction` is reported per edge considered; a failing
record marks its own edges `failed` and the remaining edges still run.
"""

from __future__ import annotations

import logging

from app.integrations.document_store import DocumentStore
from app.schemas.cascade import RecordId, RelationshipAction
from app.services.cascade.normalization import extract_ids

logger = logging.getLogger(__name__)

SETTINGS_GLOBAL = "content-system-settings"
DESTINATIONS_COLLECTION = "destinations"
PROPERTIES_COLLECTION = "properties"
ITINERARIES_COLLECTION = "itineraries"


class RelationshipManager:
    """Idempotent edge upserts between itinerary, destination and property records."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def manage(
        self,
        itinerary_id: int,
        destination_ids: list[RecordId],
        property_ids: list[RecordId],
        property_to_destination: dict[RecordId, RecordId],
        dry_run: bool = False,
    ) -> list[RelationshipAction]:
        system_settings = await self.store.find_global(SETTINGS_GLOBAL)
        if system_settings.get("autoPopulateRelationships") is False:
            return [
                RelationshipAction(
                    source_collection="system",
                    source_id=0,
                    field="autoPopulateRelationships",
                    target_collection="system",
                    action="skipped",
                    note="Relationship auto-population disabled",
                )
            ]

        actions: list[RelationshipAction] = []

        for destination_id in _unique(destination_ids):
            actions.extend(
                await self._merge(
                    DESTINATIONS_COLLECTION,
                    destination_id,
                    "relatedItineraries",
                    ITINERARIES_COLLECTION,
                    [itinerary_id],
                    dry_run,
                )
            )

        for property_id in _unique(property_ids):
            actions.extend(
                await self._merge(
                    PROPERTIES_COLLECTION,
                    property_id,
                    "relatedItineraries",
                    ITINERARIES_COLLECTION,
                    [itinerary_id],
                    dry_run,
                )
            )

        properties_by_destination: dict[RecordId, list[RecordId]] = {}
        for property_id, destination_id in property_to_destination.items():
            properties_by_destination.setdefault(destination_id, []).append(property_id)

        for destination_id, featured in properties_by_destination.items():
            actions.extend(
                await self._merge(
                    DESTINATIONS_COLLECTION,
                    destination_id,
                    "featuredProperties",
                    PROPERTIES_COLLECTION,
                    featured,
                    dry_run,
                )
            )

        return actions

    async def _merge(
        self,
        collection: str,
        record_id: RecordId,
        field: str,
        target_collection: str,
        target_ids: list[RecordId],
        dry_run: bool,
    ) -> list[RelationshipAction]:
        def action(target_id: RecordId, kind: str, note: str | None = None) -> RelationshipAction:
            return RelationshipAction(
                source_collection=collection,
                source_id=record_id,
                field=field,
                target_collection=target_collection,
                target_id=target_id,
                action=kind,
                note=note,
            )

        target_ids = _unique(target_ids)
        try:
            # Newly created destinations and properties only exist as drafts.
            document = await self.store.find_by_id(collection, record_id, draft=True)
        except Exception as e:
            logger.warning(
                "Relationship read failed",
                extra={"collection": collection, "record_id": record_id, "error": str(e)},
            )
            return [action(target_id, "failed", str(e)) for target_id in target_ids]

        if document is None:
            return [action(target_id, "failed", "Record not found") for target_id in target_ids]

        current = extract_ids(document.get(field))
        current_set = set(current)
        missing = [target_id for target_id in target_ids if target_id not in current_set]
        results = [action(target_id, "existed") for target_id in target_ids if target_id in current_set]

        if not missing:
            return results

        if dry_run:
            return results + [action(target_id, "skipped", "Would link (dry run)") for target_id in missing]

        try:
            await self.store.update(collection, record_id, {field: current + missing})
        except Exception as e:
            logger.warning(
                "Relationship update failed",
                extra={
                    "collection": collection,
                    "record_id": record_id,
                    "field": field,
                    "error": str(e),
                },
            )
            return results + [action(target_id, "failed", str(e)) for target_id in missing]

        logger.debug(
            "Relationships linked",
            extra={"collection": collection, "record_id": record_id, "field": field, "added": missing},
        )
        return results + [action(target_id, "created") for target_id in missing]


def _unique(ids: list[RecordId]) -> list[RecordId]:
    return list(dict.fromkeys(ids))
