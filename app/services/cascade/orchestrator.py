"""Five-step itinerary cascade.

1. Entity extraction
2. Destination resolution
3. Property resolution
4. Relationship management
5. Content project generation

Steps 1-4 gate the run: a failed step aborts everything after it. Step 5 is
recorded the same way but has no gate; a failed step 5 leaves
`content_projects` empty and the run still counts as successful.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from typing import Any

from app.core.exceptions import ItineraryNotFoundError, StepExecutionError
from app.integrations.document_store import DocumentStore, PayloadRestStore
from app.schemas.cascade import (
    CascadeOptions,
    CascadeResult,
    ContentProjectAction,
    EntityMap,
    RecordId,
    RelationshipAction,
    ResolutionResult,
)
from app.schemas.itinerary import Itinerary
from app.schemas.pipeline import PipelineStepResult
from app.services.cascade.content_projects import generate_content_projects
from app.services.cascade.destination_resolver import DestinationResolver
from app.services.cascade.entity_extractor import extract_entities
from app.services.cascade.normalization import normalize
from app.services.cascade.property_resolver import PropertyResolver
from app.services.cascade.relationship_manager import RelationshipManager
from app.services.decompose_trigger import trigger_decompose
from app.services.job_tracker import JobTracker
from app.services.steps.base_step import run_step

logger = logging.getLogger(__name__)

ITINERARIES_COLLECTION = "itineraries"
TOTAL_STEPS = 5


async def load_itinerary(store: DocumentStore, itinerary_id: int) -> Itinerary:
    document = await store.find_by_id(ITINERARIES_COLLECTION, itinerary_id)
    if document is None:
        raise ItineraryNotFoundError(itinerary_id)
    return Itinerary.from_document(document)


def build_property_destination_map(
    entities: EntityMap,
    property_results: list[ResolutionResult],
    destination_results: list[ResolutionResult],
) -> dict[RecordId, RecordId]:
    """Property ID -> destination ID for `featuredProperties`.

    Matches each property entity's location name, then its country name,
    against the normalized entity names of the destination resolutions.
    Property results are aligned with `entities.properties` by position.
    """
    destination_ids: dict[str, RecordId] = {}
    for resolution in destination_results:
        if resolution.resolved_id is not None:
            destination_ids[normalize(resolution.entity_name)] = resolution.resolved_id

    mapping: dict[RecordId, RecordId] = {}
    for entity, resolution in zip(entities.properties, property_results):
        if resolution.resolved_id is None:
            continue
        destination_id = destination_ids.get(normalize(entity.location_name))
        if destination_id is None:
            destination_id = destination_ids.get(normalize(entity.country_name))
        if destination_id is not None:
            mapping[resolution.resolved_id] = destination_id
    return mapping


def _action_counts(items: list[Any]) -> dict[str, int]:
    return dict(Counter(item.action for item in items))


class CascadeOrchestrator:
    """Sequence the cascade steps against one document store."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        trigger: Callable[[int], Any] = trigger_decompose,
    ) -> None:
        self.store = store
        self.trigger = trigger
        self.destination_resolver = DestinationResolver(store)
        self.property_resolver = PropertyResolver(store)
        self.relationship_manager = RelationshipManager(store)

    async def run(self, options: CascadeOptions) -> CascadeResult:
        itinerary_id = options.itinerary_id
        dry_run = options.dry_run
        result = CascadeResult(itinerary_id=itinerary_id, dry_run=dry_run)
        # Dry runs write nothing, job progress included.
        tracker = JobTracker(
            self.store, options.job_id, total_steps=TOTAL_STEPS, enabled=not dry_run
        )
        context = {"itinerary_id": itinerary_id, "dry_run": dry_run}

        entities = EntityMap()
        destination_results: list[ResolutionResult] = []
        property_results: list[ResolutionResult] = []
        relationship_actions: list[RelationshipAction] = []
        project_actions: list[ContentProjectAction] = []

        async def gate(step: PipelineStepResult) -> None:
            result.steps.append(step)
            if step.failed:
                raise StepExecutionError(step.step, f"{step.name} failed: {step.detail}")

        logger.info("Cascade started", extra=context)
        await tracker.start()
        try:
            async def extract() -> dict[str, int]:
                nonlocal entities
                itinerary = await load_itinerary(self.store, itinerary_id)
                entities = extract_entities(itinerary)
                return {
                    "countries": len(entities.countries),
                    "locations": len(entities.locations),
                    "properties": len(entities.properties),
                    "activities": len(entities.activities),
                }

            step1 = await run_step(
                1, "Entity Extraction", extract, tracker=tracker, context=context
            )
            if not step1.failed:
                result.entities = entities
            await gate(step1)

            async def resolve_destinations() -> dict[str, int]:
                nonlocal destination_results
                destination_results = await self.destination_resolver.resolve(
                    entities.countries, entities.locations, dry_run
                )
                return _action_counts(destination_results)

            step2 = await run_step(
                2, "Destination Resolution", resolve_destinations, tracker=tracker, context=context
            )
            result.resolutions.extend(destination_results)
            await gate(step2)

            async def resolve_properties() -> dict[str, int]:
                nonlocal property_results
                property_results = await self.property_resolver.resolve(
                    entities.properties,
                    [r for r in destination_results if r.entity_type == "destination"],
                    [r for r in destination_results if r.entity_type == "country"],
                    dry_run,
                )
                return _action_counts(property_results)

            step3 = await run_step(
                3, "Property Resolution", resolve_properties, tracker=tracker, context=context
            )
            result.resolutions.extend(property_results)
            await gate(step3)

            async def manage_relationships() -> dict[str, int]:
                nonlocal relationship_actions
                relationship_actions = await self.relationship_manager.manage(
                    itinerary_id,
                    [r.resolved_id for r in destination_results if r.resolved_id is not None],
                    [r.resolved_id for r in property_results if r.resolved_id is not None],
                    build_property_destination_map(
                        entities, property_results, destination_results
                    ),
                    dry_run,
                )
                return _action_counts(relationship_actions)

            step4 = await run_step(
                4, "Relationship Management", manage_relationships, tracker=tracker, context=context
            )
            result.relationships = relationship_actions
            await gate(step4)

            async def generate_projects() -> dict[str, int]:
                nonlocal project_actions
                project_actions = await generate_content_projects(
                    self.store, destination_results, property_results, dry_run
                )
                return _action_counts(project_actions)

            step5 = await run_step(
                5, "ContentProject Generation", generate_projects, tracker=tracker, context=context
            )
            result.steps.append(step5)
            result.content_projects = [] if step5.failed else project_actions

            if not dry_run and result.error is None:
                self.trigger(itinerary_id)
            await tracker.complete()
            logger.info("Cascade completed", extra=context)

        except StepExecutionError as e:
            result.error = e.message
            logger.warning(
                "Cascade aborted",
                extra={**context, "step": e.step_number, "error": e.message},
            )
            await tracker.fail(result.error)

        return result


async def run_cascade(
    options: CascadeOptions,
    store: DocumentStore | None = None,
) -> CascadeResult:
    """Run the cascade, opening a Payload REST store when none is given."""
    if store is not None:
        return await CascadeOrchestrator(store).run(options)
    async with PayloadRestStore() as payload_store:
        return await CascadeOrchestrator(payload_store).run(options)
