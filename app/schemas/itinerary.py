"""Itinerary document schemas.

Itineraries are read-only input. Parsing is lenient: optional fields may be
missing or null, list fields may be null or hold stray scalars, and prices may
be free text such as "POA". Segments whose `blockType` is not recognised are
dropped rather than rejected.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

KNOWN_BLOCK_TYPES = frozenset({"stay", "activity", "transfer"})


def _coerce_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return None


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _coerce_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().replace(",", ""))
        except ValueError:
            return None
    return None


def _coerce_record_id(value: Any) -> int | str | None:
    if isinstance(value, bool):
        return None
    return value if isinstance(value, int | str) else None


def _object_items(value: Any) -> list[Any]:
    """Keep only the mapping (or already parsed) items of a list field."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict | BaseModel)]


def _object_or_none(value: Any) -> Any:
    return value if isinstance(value, dict | BaseModel) else None


def _country_items(value: Any) -> Any:
    if not isinstance(value, list):
        return []
    return [
        {"country": item} if isinstance(item, str) else item
        for item in value
        if isinstance(item, str | dict)
    ]


OptionalText = Annotated[str | None, BeforeValidator(_coerce_text)]
OptionalInt = Annotated[int | None, BeforeValidator(_coerce_int)]
OptionalFloat = Annotated[float | None, BeforeValidator(_coerce_float)]


class _Document(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)


class StaySegment(_Document):
    block_type: Literal["stay"] = Field(alias="blockType")
    accommodation_name_itrvl: OptionalText = Field(default=None, alias="accommodationNameItrvl")
    accommodation_name: OptionalText = Field(default=None, alias="accommodationName")
    location: OptionalText = None
    country: OptionalText = None
    property_ref: Any = Field(default=None, alias="property")
    nights: OptionalInt = None
    description: Any = None

    @property
    def display_name(self) -> str:
        """Accommodation name, preferring the imported iTrvl value."""
        return (self.accommodation_name_itrvl or self.accommodation_name or "").strip()


class ActivitySegment(_Document):
    block_type: Literal["activity"] = Field(alias="blockType")
    title_itrvl: OptionalText = Field(default=None, alias="titleItrvl")
    title: OptionalText = None

    @property
    def display_title(self) -> str:
        return (self.title_itrvl or self.title or "").strip()


class TransferSegment(_Document):
    block_type: Literal["transfer"] = Field(alias="blockType")
    title: OptionalText = None


Segment = Annotated[
    StaySegment | ActivitySegment | TransferSegment,
    Field(discriminator="block_type"),
]


class Day(_Document):
    day_number: OptionalInt = Field(default=None, alias="dayNumber")
    location: OptionalText = None
    segments: list[Segment] = Field(default_factory=list)

    @field_validator("segments", mode="before")
    @classmethod
    def _drop_unknown_segments(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        kept: list[Any] = []
        for segment in value:
            if isinstance(segment, StaySegment | ActivitySegment | TransferSegment):
                kept.append(segment)
            elif isinstance(segment, dict) and segment.get("blockType") in KNOWN_BLOCK_TYPES:
                kept.append(segment)
        return kept


class CountryItem(_Document):
    country: OptionalText = None


class HighlightItem(_Document):
    highlight: OptionalText = None


class Overview(_Document):
    countries: Annotated[list[CountryItem], BeforeValidator(_country_items)] = Field(
        default_factory=list
    )
    nights: OptionalInt = None
    summary: Any = None
    highlights: Annotated[list[HighlightItem], BeforeValidator(_object_items)] = Field(
        default_factory=list
    )

    @property
    def country_names(self) -> list[str]:
        return [item.country.strip() for item in self.countries if item.country and item.country.strip()]


class InvestmentLevel(_Document):
    from_price: OptionalFloat = Field(default=None, alias="fromPrice")
    to_price: OptionalFloat = Field(default=None, alias="toPrice")
    currency: OptionalText = None


class FaqItem(_Document):
    question: OptionalText = None


class Itinerary(_Document):
    id: Annotated[int | str | None, BeforeValidator(_coerce_record_id)] = None
    title: OptionalText = None
    overview: Overview = Field(default_factory=Overview)
    days: Annotated[list[Day], BeforeValidator(_object_items)] = Field(default_factory=list)
    investment_level: Annotated[
        InvestmentLevel | None, BeforeValidator(_object_or_none)
    ] = Field(default=None, alias="investmentLevel")
    faq_items: Annotated[list[FaqItem], BeforeValidator(_object_items)] = Field(
        default_factory=list, alias="faqItems"
    )

    @field_validator("overview", mode="before")
    @classmethod
    def _overview_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, dict | Overview) else {}

    @classmethod
    def from_document(cls, document: dict[str, Any] | Itinerary) -> Itinerary:
        if isinstance(document, Itinerary):
            return document
        return cls.model_validate(document)
