"""Schemas for itinerary ideation: candidates, directives and decomposition."""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.cascade import RecordId
from app.schemas.pipeline import PipelineStepResult

ContentType = Literal["itinerary_cluster", "authority"]
Audience = Literal["customer", "professional", "guide"]
FreshnessCategory = Literal["monthly", "quarterly", "annual", "evergreen"]

VALID_AUDIENCES: tuple[str, ...] = ("customer", "professional", "guide")
VALID_FRESHNESS: tuple[str, ...] = ("monthly", "quarterly", "annual", "evergreen")


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str) and item]


class RawCandidate(BaseModel):
    """A proposed content idea, as returned by the model.

    Accepts the camelCase keys the model is prompted with as well as field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    title: str = Field(min_length=1)
    content_type: ContentType = Field(alias="contentType")
    brief_summary: str = Field(min_length=1, alias="briefSummary")
    target_angle: str = Field(min_length=1, alias="targetAngle")
    target_audience: list[Audience] = Field(
        default_factory=lambda: ["customer"], alias="targetAudience"
    )
    destinations: list[str] = Field(default_factory=list)
    properties: list[str] = Field(default_factory=list)
    species: list[str] = Field(default_factory=list)
    freshness_category: FreshnessCategory = Field(default="evergreen", alias="freshnessCategory")
    competitive_notes: str = Field(default="", alias="competitiveNotes")

    @field_validator("title", "brief_summary", "target_angle", mode="before")
    @classmethod
    def _strip_required_text(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("target_audience", mode="before")
    @classmethod
    def _default_audience(cls, value: Any) -> list[str]:
        kept = [item for item in _string_list(value) if item in VALID_AUDIENCES]
        return kept or ["customer"]

    @field_validator("destinations", "properties", "species", mode="before")
    @classmethod
    def _clean_lists(cls, value: Any) -> list[str]:
        return _string_list(value)

    @field_validator("freshness_category", mode="before")
    @classmethod
    def _default_freshness(cls, value: Any) -> str:
        return value if isinstance(value, str) and value in VALID_FRESHNESS else "evergreen"

    @field_validator("competitive_notes", mode="before")
    @classmethod
    def _notes_text(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


class FilteredCandidate(RawCandidate):
    """A candidate plus the outcome of the filter checks."""

    passed: bool
    filter_reason: str | None = None
    matched_directives: list[str] = Field(default_factory=list)
    duplicate_score: float = 0.0
    duplicate_title: str | None = None

    @classmethod
    def from_raw(cls, candidate: RawCandidate, **outcome: Any) -> FilteredCandidate:
        return cls(**candidate.model_dump(), **outcome)


def _tag_list(value: Any) -> list[str]:
    """Tags are stored either as a list or as a JSON-encoded list string."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return [tag for tag in _string_list(value) if tag.strip()]


class Directive(BaseModel):
    """An active editorial rule with optional tags per dimension."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: int | str
    text: str = ""
    destination_tags: list[str] = Field(default_factory=list, alias="destinationTags")
    content_type_tags: list[str] = Field(default_factory=list, alias="contentTypeTags")
    topic_tags: list[str] = Field(default_factory=list, alias="topicTags")
    filter_count_30d: int = Field(default=0, alias="filterCount30d")

    @field_validator("destination_tags", "content_type_tags", "topic_tags", mode="before")
    @classmethod
    def _parse_tags(cls, value: Any) -> list[str]:
        return _tag_list(value)

    @field_validator("text", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("filter_count_30d", mode="before")
    @classmethod
    def _count_or_zero(cls, value: Any) -> int:
        return value if isinstance(value, int) and not isinstance(value, bool) else 0

    @property
    def declared_dimensions(self) -> int:
        return sum(
            1
            for tags in (self.destination_tags, self.content_type_tags, self.topic_tags)
            if tags
        )


class ShapeResult(BaseModel):
    passed_ids: list[RecordId] = Field(default_factory=list)
    filtered_ids: list[RecordId] = Field(default_factory=list)


class DecompositionResult(BaseModel):
    """Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    itinerary_id: int
    dry_run: bool = False
    total_candidates: int = 0
    passed: int = 0
    filtered: int = 0
    projects_created: list[RecordId] = Field(default_factory=list)
    filtered_project_ids: list[RecordId] = Field(default_factory=list)
    steps: list[PipelineStepResult] = Field(default_factory=list)
