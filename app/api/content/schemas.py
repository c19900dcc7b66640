"""Request schemas for the content pipeline API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CascadeRequest(BaseModel):
    """Body of `POST /api/content/cascade`."""

    model_config = ConfigDict(populate_by_name=True)

    itinerary_id: int = Field(alias="itineraryId", gt=0)
    dry_run: bool = Field(default=False, alias="dryRun")
    job_id: int | None = Field(default=None, alias="jobId")


class DecomposeRequest(BaseModel):
    """Body of `POST /api/content/decompose`."""

    model_config = ConfigDict(populate_by_name=True)

    itinerary_id: int = Field(alias="itineraryId", gt=0)
    dry_run: bool = Field(default=False, alias="dryRun")
    job_id: int | None = Field(default=None, alias="jobId")


class HealthResponse(BaseModel):
    status: str
    version: str
