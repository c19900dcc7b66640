"""Filter content candidates against editorial directives and existing content.

Checks run in order and stop at the first rejection:

1. Editorial directives. A directive rejects a candidate only when every tag
   dimension it declares matches (destination, content type, topic).
2. Semantic duplicates. The best similarity match must not exceed
   `DUPLICATE_THRESHOLD`.
3. Existing projects. No non-filtered content project may share the title.
"""

from __future__ import annotations

import asyncio
import logging

from app.integrations.document_store import DocumentStore
from app.integrations.vector_search import SimilaritySearcher
from app.schemas.ideation import Directive, FilteredCandidate, RawCandidate

logger = logging.getLogger(__name__)

DIRECTIVES_COLLECTION = "editorial-directives"
CONTENT_PROJECTS_COLLECTION = "content-projects"

DUPLICATE_THRESHOLD = 0.85
DUPLICATE_SEARCH_TOP_K = 3
DUPLICATE_SEARCH_MIN_SCORE = 0.7
SNIPPET_LENGTH = 100

# Counter bumps from every filter instance, awaited at shutdown.
_pending_updates: set[asyncio.Task[None]] = set()


def directive_matches(directive: Directive, candidate: RawCandidate) -> bool:
    """True when every dimension the directive declares matches the candidate.

    Dimensions without tags are ignored. A directive with no tags at all never
    matches.
    """
    if directive.declared_dimensions == 0:
        return False

    if directive.destination_tags:
        destinations = [d.lower() for d in candidate.destinations]
        if not any(
            tag.lower() in destination
            for tag in directive.destination_tags
            for destination in destinations
        ):
            return False

    if directive.content_type_tags:
        content_type = candidate.content_type.lower()
        if not any(tag.lower() == content_type for tag in directive.content_type_tags):
            return False

    if directive.topic_tags:
        topic_text = f"{candidate.title} {candidate.brief_summary}".lower()
        if not any(tag.lower() in topic_text for tag in directive.topic_tags):
            return False

    return True


def first_matching_directive(
    directives: list[Directive],
    candidate: RawCandidate,
) -> Directive | None:
    for directive in directives:
        if directive_matches(directive, candidate):
            return directive
    return None


class CandidateFilter:
    """Apply directive, duplicate and existing-project checks to candidates."""

    def __init__(
        self,
        store: DocumentStore,
        search: SimilaritySearcher,
        *,
        dry_run: bool = False,
    ) -> None:
        self.store = store
        self.search = search
        self.dry_run = dry_run
        self.pending_updates: set[asyncio.Task[None]] = set()

    async def load_directives(self) -> list[Directive]:
        """Load active directives. Errors propagate to the calling step."""
        docs = await self.store.find_many(DIRECTIVES_COLLECTION, {"active": True}, limit=100)
        return [Directive.model_validate(doc) for doc in docs if doc.get("id") is not None]

    async def filter(self, candidates: list[RawCandidate]) -> list[FilteredCandidate]:
        directives = await self.load_directives()
        results = [await self._check(candidate, directives) for candidate in candidates]
        logger.info(
            "Candidates filtered",
            extra={
                "total": len(results),
                "passed": sum(1 for r in results if r.passed),
                "directives": len(directives),
            },
        )
        return results

    async def _check(
        self,
        candidate: RawCandidate,
        directives: list[Directive],
    ) -> FilteredCandidate:
        directive = first_matching_directive(directives, candidate)
        if directive is not None:
            self._increment_directive_count(directive)
            return FilteredCandidate.from_raw(
                candidate,
                passed=False,
                filter_reason=f"Filtered by directive: {directive.text}",
                matched_directives=[directive.text],
            )

        duplicate_score = 0.0
        try:
            matches = await self.search.search(
                f"{candidate.title} {candidate.brief_summary}",
                top_k=DUPLICATE_SEARCH_TOP_K,
                min_score=DUPLICATE_SEARCH_MIN_SCORE,
            )
        except Exception as e:
            logger.warning(
                "Similarity search failed, skipping duplicate check",
                extra={"title": candidate.title, "error": str(e)},
            )
        else:
            if matches:
                top = matches[0]
                duplicate_score = top.score
                if top.score > DUPLICATE_THRESHOLD:
                    snippet = top.text[:SNIPPET_LENGTH]
                    return FilteredCandidate.from_raw(
                        candidate,
                        passed=False,
                        duplicate_score=top.score,
                        duplicate_title=snippet,
                        filter_reason=(
                            f'Too similar to existing content: "{snippet}..." '
                            f"(score: {top.score:.3f})"
                        ),
                    )

        try:
            existing = await self.store.find_one(
                CONTENT_PROJECTS_COLLECTION,
                {"title": candidate.title, "stage": {"not_equals": "filtered"}},
            )
        except Exception as e:
            logger.warning(
                "Existing project check failed",
                extra={"title": candidate.title, "error": str(e)},
            )
            existing = None

        if existing:
            return FilteredCandidate.from_raw(
                candidate,
                passed=False,
                duplicate_score=duplicate_score,
                filter_reason=(
                    f'ContentProject already exists: "{existing.get("title")}" '
                    f'(ID: {existing.get("id")})'
                ),
            )

        return FilteredCandidate.from_raw(
            candidate, passed=True, duplicate_score=duplicate_score
        )

    def _increment_directive_count(self, directive: Directive) -> None:
        if self.dry_run:
            return
        task = asyncio.create_task(self._bump_filter_count(directive.id))
        self.pending_updates.add(task)
        task.add_done_callback(self.pending_updates.discard)
        _pending_updates.add(task)
        task.add_done_callback(_pending_updates.discard)

    async def _bump_filter_count(self, directive_id: int | str) -> None:
        # Read-then-write; concurrent increments may be lost.
        try:
            doc = await self.store.find_by_id(DIRECTIVES_COLLECTION, directive_id) or {}
            current = doc.get("filterCount30d")
            count = current if isinstance(current, int) else 0
            await self.store.update(
                DIRECTIVES_COLLECTION, directive_id, {"filterCount30d": count + 1}
            )
        except Exception as e:
            logger.warning(
                "Failed to increment directive filter count",
                extra={"directive_id": directive_id, "error": str(e)},
            )


async def wait_for_pending_updates() -> None:
    """Await in-flight directive counter bumps before the event loop shuts down."""
    if _pending_updates:
        await asyncio.gather(*list(_pending_updates), return_exceptions=True)
