"""Persist filtered candidates as content projects."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from app.core.exceptions import SlugConflictError
from app.integrations.document_store import DocumentStore
from app.integrations.vector_search import ContentChunk
from app.schemas.cascade import RecordId
from app.schemas.ideation import FilteredCandidate, ShapeResult
from app.services.cascade.normalization import extract_id, slugify

logger = logging.getLogger(__name__)

CONTENT_PROJECTS_COLLECTION = "content-projects"


class ChunkIndexer(Protocol):
    async def upsert_chunk(self, chunk: ContentChunk) -> None: ...


def build_project_data(
    candidate: FilteredCandidate,
    itinerary_id: int,
    slug: str,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "title": candidate.title,
        "slug": slug,
        "stage": "brief" if candidate.passed else "filtered",
        "contentType": candidate.content_type,
        "originPathway": "itinerary",
        "originItinerary": itinerary_id,
        "targetCollection": "posts",
        "briefSummary": candidate.brief_summary,
        "destinations": list(candidate.destinations),
        "properties": list(candidate.properties),
        "species": list(candidate.species),
    }
    if candidate.passed:
        data.update(
            {
                "targetAngle": candidate.target_angle,
                "targetAudience": list(candidate.target_audience),
                "competitiveNotes": candidate.competitive_notes,
                "freshnessCategory": candidate.freshness_category,
            }
        )
    else:
        data["filterReason"] = candidate.filter_reason
    return data


def build_brief_chunk(project_id: RecordId, candidate: FilteredCandidate) -> ContentChunk:
    sections = [
        candidate.title,
        candidate.brief_summary,
        candidate.target_angle,
        f"Destinations: {', '.join(candidate.destinations)}" if candidate.destinations else "",
        f"Properties: {', '.join(candidate.properties)}" if candidate.properties else "",
        f"Species: {', '.join(candidate.species)}" if candidate.species else "",
    ]
    chunk_text = "\n\n".join(section for section in sections if section)
    return ContentChunk(
        id=f"brief-{project_id}",
        chunk_type="article_section",
        text=chunk_text,
        source_collection=CONTENT_PROJECTS_COLLECTION,
        source_id=str(project_id),
        # content_embeddings keys projects by integer; string IDs stay in source_id.
        content_project_id=project_id if isinstance(project_id, int) else None,
        content_type=candidate.content_type,
        destinations=list(candidate.destinations),
        properties=list(candidate.properties),
        species=list(candidate.species),
        metadata={
            "title": candidate.title,
            "freshnessCategory": candidate.freshness_category,
            "wordCount": len(chunk_text.split()),
        },
    )


class BriefShaper:
    """Create `brief` / `filtered` projects, reusing ones from earlier runs."""

    def __init__(
        self,
        store: DocumentStore,
        indexer: ChunkIndexer | None = None,
        *,
        dry_run: bool = False,
    ) -> None:
        self.store = store
        self.indexer = indexer
        self.dry_run = dry_run

    async def shape(
        self,
        candidates: list[FilteredCandidate],
        itinerary_id: int,
    ) -> ShapeResult:
        result = ShapeResult()
        for candidate in candidates:
            project_id = await self._existing_project_id(candidate, itinerary_id)
            if project_id is None:
                if self.dry_run:
                    continue
                project_id = await self._create_project(candidate, itinerary_id)
                if project_id is None:
                    continue
                if candidate.passed:
                    await self._index_brief(project_id, candidate)

            if candidate.passed:
                result.passed_ids.append(project_id)
            else:
                result.filtered_ids.append(project_id)

        logger.info(
            "Briefs shaped",
            extra={
                "itinerary_id": itinerary_id,
                "passed": len(result.passed_ids),
                "filtered": len(result.filtered_ids),
            },
        )
        return result

    async def _existing_project_id(
        self,
        candidate: FilteredCandidate,
        itinerary_id: int,
    ) -> RecordId | None:
        try:
            existing = await self.store.find_one(
                CONTENT_PROJECTS_COLLECTION,
                {"title": candidate.title, "originItinerary": itinerary_id},
            )
        except Exception as e:
            logger.warning(
                "Idempotency check failed",
                extra={"title": candidate.title, "error": str(e)},
            )
            return None
        return extract_id(existing.get("id")) if existing else None

    async def _create_project(
        self,
        candidate: FilteredCandidate,
        itinerary_id: int,
    ) -> RecordId | None:
        slug = slugify(candidate.title)
        for attempt_slug in (slug, f"{slug}-2"):
            try:
                created = await self.store.create(
                    CONTENT_PROJECTS_COLLECTION,
                    build_project_data(candidate, itinerary_id, attempt_slug),
                )
            except SlugConflictError:
                logger.info(
                    "Project slug taken",
                    extra={"title": candidate.title, "slug": attempt_slug},
                )
                continue
            except Exception as e:
                logger.warning(
                    "Failed to create content project",
                    extra={"title": candidate.title, "error": str(e)},
                )
                return None
            return extract_id(created.get("id"))

        logger.warning(
            "Dropping candidate after repeated slug conflicts",
            extra={"title": candidate.title, "slug": slug},
        )
        return None

    async def _index_brief(self, project_id: RecordId, candidate: FilteredCandidate) -> None:
        if self.indexer is None:
            return
        try:
            await self.indexer.upsert_chunk(build_brief_chunk(project_id, candidate))
        except Exception as e:
            logger.warning(
                "Failed to embed brief",
                extra={"project_id": project_id, "error": str(e)},
            )
