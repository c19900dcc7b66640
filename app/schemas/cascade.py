"""Schemas for the itinerary cascade pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.schemas.pipeline import PipelineStepResult

RecordId = int | str

EntityType = Literal["country", "destination", "property"]
ResolutionAction = Literal["found", "created", "skipped"]
RelationshipActionType = Literal["existed", "created", "skipped", "failed"]
ContentProjectActionType = Literal["created", "already_exists"]


class _ValueObject(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


# --- Entity extraction ---


class CountryEntity(_ValueObject):
    name: str
    normalized_key: str


class LocationEntity(_ValueObject):
    name: str
    normalized_key: str
    country_name: str


class PropertyEntity(_ValueObject):
    name: str
    normalized_key: str
    location_name: str
    country_name: str
    existing_ref_id: RecordId | None = None


class EntityMap(_ValueObject):
    countries: list[CountryEntity] = Field(default_factory=list)
    locations: list[LocationEntity] = Field(default_factory=list)
    properties: list[PropertyEntity] = Field(default_factory=list)
    activities: list[str] = Field(default_factory=list)


# --- Resolution ---


class ResolutionResult(_ValueObject):
    """Outcome of matching one entity against the content store."""

    entity_name: str
    entity_type: EntityType
    action: ResolutionAction
    resolved_id: RecordId | None = None
    collection: str
    note: str | None = None


# --- Relationships ---


class RelationshipAction(_ValueObject):
    """One edge considered between two resolved records."""

    source_collection: str
    source_id: RecordId
    field: str
    target_collection: str
    target_id: RecordId | None = None
    action: RelationshipActionType
    note: str | None = None


# --- Content projects ---


class ContentProjectAction(_ValueObject):
    target_collection: str
    target_record_id: RecordId
    action: ContentProjectActionType
    project_id: RecordId | None = None


# --- Orchestration ---


class CascadeResult(BaseModel):
    """Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    itinerary_id: int
    dry_run: bool
    steps: list[PipelineStepResult] = Field(default_factory=list)
    entities: EntityMap | None = None
    resolutions: list[ResolutionResult] = Field(default_factory=list)
    relationships: list[RelationshipAction] = Field(default_factory=list)
    content_projects: list[ContentProjectAction] = Field(default_factory=list)
    error: str | None = None


class CascadeOptions(BaseModel):
    itinerary_id: int
    dry_run: bool = False
    job_id: int | None = None
