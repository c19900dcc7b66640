"""Resolve extracted countries and locations to destination records.

Countries must already exist and are never created. Locations are matched via
the alias map first, then by exact name, and are otherwise created as draft
destinations under their resolved country.
"""

from __future__ import annotations

import logging

from app.core.exceptions import SlugConflictError
from app.integrations.document_store import DocumentStore
from app.schemas.cascade import CountryEntity, LocationEntity, RecordId, ResolutionResult
from app.services.cascade.alias_map import (
    DESTINATION_MAPPINGS_GLOBAL,
    AliasMap,
    load_alias_map,
)
from app.services.cascade.normalization import extract_id, normalize, slugify

logger = logging.getLogger(__name__)

DESTINATIONS_COLLECTION = "destinations"


def _lookup_failed(name: str, entity_type: str, error: Exception) -> ResolutionResult:
    return ResolutionResult(
        entity_name=name,
        entity_type=entity_type,
        action="skipped",
        collection=DESTINATIONS_COLLECTION,
        note=f"Lookup failed: {error}",
    )


class DestinationResolver:
    """Match country and location entities against the destinations collection."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def resolve(
        self,
        countries: list[CountryEntity],
        locations: list[LocationEntity],
        dry_run: bool = False,
    ) -> list[ResolutionResult]:
        alias_map = await load_alias_map(
            self.store, DESTINATION_MAPPINGS_GLOBAL, "destination"
        )

        results: list[ResolutionResult] = []
        country_ids: dict[str, RecordId] = {}

        for country in countries:
            try:
                result = await self._resolve_country(country)
            except Exception as e:
                logger.warning(
                    "Country lookup failed", extra={"country": country.name, "error": str(e)}
                )
                result = _lookup_failed(country.name, "country", e)
            if result.resolved_id is not None:
                country_ids[country.normalized_key] = result.resolved_id
            results.append(result)

        for location in locations:
            try:
                result = await self._resolve_location(
                    location, alias_map, country_ids, dry_run
                )
            except Exception as e:
                logger.warning(
                    "Destination lookup failed",
                    extra={"destination": location.name, "error": str(e)},
                )
                result = _lookup_failed(location.name, "destination", e)
            results.append(result)

        return results

    async def _resolve_country(self, country: CountryEntity) -> ResolutionResult:
        existing = await self.store.find_one(
            DESTINATIONS_COLLECTION, {"name": country.name, "type": "country"}
        )
        if existing:
            return ResolutionResult(
                entity_name=country.name,
                entity_type="country",
                action="found",
                resolved_id=extract_id(existing.get("id")),
                collection=DESTINATIONS_COLLECTION,
            )

        logger.warning("Country not found", extra={"country": country.name})
        return ResolutionResult(
            entity_name=country.name,
            entity_type="country",
            action="skipped",
            collection=DESTINATIONS_COLLECTION,
            note="Country not found; countries must be created manually",
        )

    async def _resolve_location(
        self,
        location: LocationEntity,
        alias_map: AliasMap,
        country_ids: dict[str, RecordId],
        dry_run: bool,
    ) -> ResolutionResult:
        alias_id = alias_map.get(location.normalized_key)
        if alias_id is not None:
            return ResolutionResult(
                entity_name=location.name,
                entity_type="destination",
                action="found",
                resolved_id=alias_id,
                collection=DESTINATIONS_COLLECTION,
                note="Matched via alias",
            )

        existing = await self.store.find_one(
            DESTINATIONS_COLLECTION, {"name": location.name, "type": "destination"}
        )
        if existing:
            return ResolutionResult(
                entity_name=location.name,
                entity_type="destination",
                action="found",
                resolved_id=extract_id(existing.get("id")),
                collection=DESTINATIONS_COLLECTION,
            )

        if dry_run:
            return ResolutionResult(
                entity_name=location.name,
                entity_type="destination",
                action="skipped",
                collection=DESTINATIONS_COLLECTION,
                note="Would create (dry run)",
            )

        country_id = country_ids.get(normalize(location.country_name))
        if country_id is None:
            logger.warning(
                "Creating destination without a resolved country",
                extra={"destination": location.name, "country": location.country_name},
            )

        return await self._create_destination(location.name, country_id)

    async def _create_destination(self, name: str, country_id: RecordId | None) -> ResolutionResult:
        slug = slugify(name)
        data: dict[str, object] = {"name": name, "slug": slug, "type": "destination"}
        if country_id is not None:
            data["country"] = country_id

        def result(action: str, resolved_id: RecordId | None = None, note: str | None = None) -> ResolutionResult:
            return ResolutionResult(
                entity_name=name,
                entity_type="destination",
                action=action,
                resolved_id=resolved_id,
                collection=DESTINATIONS_COLLECTION,
                note=note,
            )

        try:
            created = await self.store.create(DESTINATIONS_COLLECTION, data, draft=True)
        except SlugConflictError:
            existing = await self._find_by_slug(slug)
            if existing is not None:
                logger.info(
                    "Destination slug already taken, adopting existing record",
                    extra={"destination": name, "slug": slug, "destination_id": existing},
                )
                return result("found", existing, note="Matched by slug after create conflict")
            logger.warning(
                "Slug conflict but no destination found by slug",
                extra={"destination": name, "slug": slug},
            )
            return result("skipped", note="Failed to create")
        except Exception as e:
            logger.warning(
                "Failed to create destination",
                extra={"destination": name, "error": str(e)},
            )
            return result("skipped", note="Failed to create")

        logger.info(
            "Destination created",
            extra={"destination": name, "destination_id": created.get("id")},
        )
        return result("created", extract_id(created.get("id")))

    async def _find_by_slug(self, slug: str) -> RecordId | None:
        try:
            existing = await self.store.find_one(DESTINATIONS_COLLECTION, {"slug": slug})
        except Exception as e:
            logger.warning(
                "Slug re-query failed", extra={"slug": slug, "error": str(e)}
            )
            return None
        return extract_id(existing.get("id")) if existing else None
