"""Ensure a content project stub exists per resolved destination and property."""

from __future__ import annotations

import logging

from app.integrations.document_store import DocumentStore
from app.schemas.cascade import ContentProjectAction, RecordId, ResolutionResult
from app.services.cascade.normalization import extract_id, project_slug

logger = logging.getLogger(__name__)

CONTENT_PROJECTS_COLLECTION = "content-projects"

CONTENT_TYPE_BY_COLLECTION = {
    "destinations": "destination_page",
    "properties": "property_page",
}


async def ensure_project(
    store: DocumentStore,
    target_collection: str,
    target_record_id: RecordId,
    title: str,
    content_type: str,
    dry_run: bool = False,
) -> ContentProjectAction:
    """Create an `idea` stage project unless one targets the record already.

    In dry run a missing project is reported as `already_exists` without a
    project ID, meaning "nothing written".
    """
    existing = await store.find_one(
        CONTENT_PROJECTS_COLLECTION,
        {
            "targetCollection": target_collection,
            "targetRecordId": str(target_record_id),
        },
    )
    if existing:
        return ContentProjectAction(
            target_collection=target_collection,
            target_record_id=target_record_id,
            action="already_exists",
            project_id=extract_id(existing.get("id")),
        )

    if dry_run:
        return ContentProjectAction(
            target_collection=target_collection,
            target_record_id=target_record_id,
            action="already_exists",
        )

    created = await store.create(
        CONTENT_PROJECTS_COLLECTION,
        {
            "title": title,
            "slug": project_slug(title),
            "stage": "idea",
            "contentType": content_type,
            "originPathway": "cascade",
            "targetCollection": target_collection,
            "targetRecordId": str(target_record_id),
        },
    )
    logger.info(
        "Content project created",
        extra={
            "target_collection": target_collection,
            "target_record_id": target_record_id,
            "project_id": created.get("id"),
        },
    )
    return ContentProjectAction(
        target_collection=target_collection,
        target_record_id=target_record_id,
        action="created",
        project_id=extract_id(created.get("id")),
    )


async def generate_content_projects(
    store: DocumentStore,
    destination_resolutions: list[ResolutionResult],
    property_resolutions: list[ResolutionResult],
    dry_run: bool = False,
) -> list[ContentProjectAction]:
    """One project per resolved destination (countries excluded) and property."""
    targets = [
        resolution
        for resolution in destination_resolutions
        if resolution.entity_type == "destination"
    ] + list(property_resolutions)

    actions: list[ContentProjectAction] = []
    for resolution in targets:
        if resolution.resolved_id is None:
            continue
        actions.append(
            await ensure_project(
                store,
                resolution.collection,
                resolution.resolved_id,
                resolution.entity_name,
                CONTENT_TYPE_BY_COLLECTION[resolution.collection],
                dry_run,
            )
        )
    return actions
