"""Deterministic entity extraction from an itinerary document.

One pass over `overview.countries` and `days[].segments[]`; no I/O. Entities
are deduplicated by normalized name with first occurrence winning.
"""

from __future__ import annotations

import logging
from typing import Any

from app.schemas.cascade import (
    CountryEntity,
    EntityMap,
    LocationEntity,
    PropertyEntity,
    RecordId,
)
from app.schemas.itinerary import (
    ActivitySegment,
    Itinerary,
    StaySegment,
    TransferSegment,
)
from app.services.cascade.normalization import extract_id, normalize

logger = logging.getLogger(__name__)

GENERIC_ACTIVITIES = frozenset(
    {
        "meet and assist",
        "meet & assist",
        "arrival",
        "departure",
        "check in",
        "check-in",
        "check out",
        "check-out",
        "transfer",
        "airport transfer",
        "road transfer",
        "flight",
        "domestic flight",
        "international flight",
        "free day",
        "day at leisure",
        "leisure",
        "rest day",
    }
)


def is_generic_activity(title: str) -> bool:
    return normalize(title) in GENERIC_ACTIVITIES


class _ExtractionState:
    """Insertion-ordered dedup buckets for a single extraction run."""

    def __init__(self) -> None:
        self.countries: dict[str, CountryEntity] = {}
        self.locations: dict[str, LocationEntity] = {}
        self.properties: dict[str, PropertyEntity] = {}
        self.activities: dict[str, None] = {}

    def add_country(self, name: str) -> None:
        key = normalize(name)
        if key and key not in self.countries:
            self.countries[key] = CountryEntity(name=name, normalized_key=key)

    def add_location(self, name: str, country_name: str) -> None:
        key = normalize(name)
        if key and key not in self.locations:
            self.locations[key] = LocationEntity(
                name=name,
                normalized_key=key,
                country_name=country_name,
            )

    def add_property(
        self,
        name: str,
        location_name: str,
        country_name: str,
        existing_ref_id: RecordId | None,
    ) -> None:
        key = normalize(name)
        if key and key not in self.properties:
            self.properties[key] = PropertyEntity(
                name=name,
                normalized_key=key,
                location_name=location_name,
                country_name=country_name,
                existing_ref_id=existing_ref_id,
            )

    def add_activity(self, title: str) -> None:
        self.activities.setdefault(title, None)


def _extract_stay(
    stay: StaySegment,
    day_location: str,
    fallback_country: str,
    state: _ExtractionState,
) -> None:
    country_name = (stay.country or "").strip() or fallback_country
    if country_name:
        state.add_country(country_name)

    location_name = (stay.location or "").strip() or day_location
    if location_name:
        state.add_location(location_name, country_name)

    property_name = stay.display_name
    if property_name:
        state.add_property(
            property_name,
            location_name=location_name,
            country_name=country_name,
            existing_ref_id=extract_id(stay.property_ref),
        )


def _extract_activity(activity: ActivitySegment, state: _ExtractionState) -> None:
    title = activity.display_title
    if not title or is_generic_activity(title):
        return
    state.add_activity(title)


def extract_entities(itinerary: Itinerary | dict[str, Any]) -> EntityMap:
    """Extract countries, locations, properties and notable activities.

    Locations whose normalized name equals a known country are dropped so the
    place resolves as a country rather than a second destination record.
    """
    document = Itinerary.from_document(itinerary)
    state = _ExtractionState()

    overview_countries = document.overview.country_names
    for name in overview_countries:
        state.add_country(name)
    fallback_country = overview_countries[0] if overview_countries else ""

    for day in document.days:
        day_location = (day.location or "").strip()
        for segment in day.segments:
            if isinstance(segment, StaySegment):
                _extract_stay(segment, day_location, fallback_country, state)
            elif isinstance(segment, ActivitySegment):
                _extract_activity(segment, state)
            elif isinstance(segment, TransferSegment):
                continue

    locations = [
        location
        for key, location in state.locations.items()
        if key not in state.countries
    ]

    entities = EntityMap(
        countries=list(state.countries.values()),
        locations=locations,
        properties=list(state.properties.values()),
        activities=list(state.activities),
    )
    logger.debug(
        "Entities extracted",
        extra={
            "itinerary_id": document.id,
            "countries": len(entities.countries),
            "locations": len(entities.locations),
            "properties": len(entities.properties),
            "activities": len(entities.activities),
        },
    )
    return entities
