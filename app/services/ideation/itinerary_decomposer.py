"""Three-step ideation pipeline: generate, filter and shape candidates."""

from __future__ import annotations

import logging

from app.core.exceptions import ContentSystemError, StepExecutionError
from app.integrations.document_store import DocumentStore, PayloadRestStore
from app.integrations.language_model import ModelCaller
from app.integrations.vector_search import SimilaritySearch, SimilaritySearcher
from app.schemas.ideation import (
    DecompositionResult,
    FilteredCandidate,
    RawCandidate,
    ShapeResult,
)
from app.schemas.pipeline import PipelineStepResult
from app.services.cascade.orchestrator import load_itinerary
from app.services.ideation.brief_shaper import BriefShaper, ChunkIndexer
from app.services.ideation.candidate_filter import CandidateFilter
from app.services.ideation.candidate_generator import CandidateGenerator, ModelClient
from app.services.job_tracker import JobTracker
from app.services.steps.base_step import run_step

logger = logging.getLogger(__name__)

TOTAL_STEPS = 3


class ItineraryDecomposer:
    """Turn one itinerary into content-project briefs."""

    def __init__(
        self,
        store: DocumentStore,
        model: ModelClient,
        search: SimilaritySearcher,
        indexer: ChunkIndexer | None = None,
    ) -> None:
        self.store = store
        self.model = model
        self.search = search
        self.indexer = indexer

    async def decompose(
        self,
        itinerary_id: int,
        job_id: int | None = None,
        dry_run: bool = False,
    ) -> DecompositionResult:
        """Run the pipeline.

        Raises:
            ContentSystemError: When the itinerary cannot be loaded or a step
                fails. The job, if any, is marked failed first.
        """
        result = DecompositionResult(itinerary_id=itinerary_id, dry_run=dry_run)
        tracker = JobTracker(
            self.store, job_id, total_steps=TOTAL_STEPS, enabled=not dry_run
        )
        context = {"itinerary_id": itinerary_id, "dry_run": dry_run}

        generator = CandidateGenerator(self.model, self.search)
        candidate_filter = CandidateFilter(self.store, self.search, dry_run=dry_run)
        shaper = BriefShaper(self.store, self.indexer, dry_run=dry_run)

        raw_candidates: list[RawCandidate] = []
        filtered: list[FilteredCandidate] = []
        shaped = ShapeResult()

        logger.info("Decomposition started", extra=context)
        await tracker.start()
        try:
            itinerary = await load_itinerary(self.store, itinerary_id)

            async def generate() -> dict[str, int]:
                nonlocal raw_candidates
                raw_candidates = await generator.generate(itinerary)
                return {"candidates": len(raw_candidates)}

            step1 = await run_step(1, "Generate Candidates", generate, context=context)
            result.steps.append(step1)
            result.total_candidates = len(raw_candidates)
            await tracker.record_step(step1, candidates_generated=len(raw_candidates))
            self._gate(step1)

            async def apply_filters() -> dict[str, int]:
                nonlocal filtered
                filtered = await candidate_filter.filter(raw_candidates)
                return {
                    "passed": sum(1 for c in filtered if c.passed),
                    "filtered": sum(1 for c in filtered if not c.passed),
                }

            step2 = await run_step(2, "Filter Candidates", apply_filters, context=context)
            result.steps.append(step2)
            await tracker.record_step(
                step2,
                candidates_passed=sum(1 for c in filtered if c.passed),
                candidates_filtered=sum(1 for c in filtered if not c.passed),
            )
            self._gate(step2)

            async def shape() -> dict[str, int]:
                nonlocal shaped
                shaped = await shaper.shape(filtered, itinerary_id)
                return {
                    "projects_created": len(shaped.passed_ids),
                    "filtered_projects_created": len(shaped.filtered_ids),
                }

            step3 = await run_step(3, "Shape Briefs", shape, context=context)
            result.steps.append(step3)
            await tracker.record_step(
                step3,
                projects_created=len(shaped.passed_ids),
                filtered_projects_created=len(shaped.filtered_ids),
            )
            self._gate(step3)

        except ContentSystemError as e:
            logger.warning("Decomposition failed", extra={**context, "error": e.message})
            await tracker.fail(e.message)
            raise
        except Exception as e:
            logger.exception("Decomposition failed", extra=context)
            await tracker.fail(str(e))
            raise

        result.passed = len(shaped.passed_ids)
        result.filtered = len(shaped.filtered_ids)
        result.projects_created = shaped.passed_ids
        result.filtered_project_ids = shaped.filtered_ids
        await tracker.complete()
        logger.info(
            "Decomposition completed",
            extra={**context, "passed": result.passed, "filtered": result.filtered},
        )
        return result

    @staticmethod
    def _gate(step: PipelineStepResult) -> None:
        if step.failed:
            raise StepExecutionError(step.step, f"{step.name} failed: {step.detail}")


async def decompose_itinerary(
    itinerary_id: int,
    job_id: int | None = None,
    dry_run: bool = False,
    store: DocumentStore | None = None,
) -> DecompositionResult:
    """Run the decomposer with the production collaborators."""
    search = SimilaritySearch()
    if store is not None:
        return await ItineraryDecomposer(store, ModelCaller(), search, search).decompose(
            itinerary_id, job_id, dry_run
        )
    async with PayloadRestStore() as payload_store:
        return await ItineraryDecomposer(
            payload_store, ModelCaller(), search, search
        ).decompose(itinerary_id, job_id, dry_run)
