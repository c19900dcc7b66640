"""Routes that run the cascade and ideation pipelines."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.content.dependencies import get_document_store, require_content_secret
from app.api.content.schemas import CascadeRequest, DecomposeRequest
from app.integrations.document_store import DocumentStore
from app.schemas.cascade import CascadeOptions, CascadeResult
from app.schemas.ideation import DecompositionResult
from app.services.cascade.orchestrator import run_cascade
from app.services.ideation.itinerary_decomposer import decompose_itinerary

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/content",
    dependencies=[Depends(require_content_secret)],
)


@router.post(
    "/cascade",
    response_model=CascadeResult,
    summary="Run the itinerary cascade",
    description=(
        "Extract entities from an itinerary, resolve destinations and properties, "
        "link relationships and ensure content projects. Step failures are reported "
        "in the result, not as HTTP errors."
    ),
)
async def cascade(
    body: CascadeRequest,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> CascadeResult:
    return await run_cascade(
        CascadeOptions(
            itinerary_id=body.itinerary_id,
            dry_run=body.dry_run,
            job_id=body.job_id,
        ),
        store=store,
    )


@router.post(
    "/decompose",
    response_model=DecompositionResult,
    summary="Decompose an itinerary into content briefs",
)
async def decompose(
    body: DecomposeRequest,
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> DecompositionResult:
    try:
        return await decompose_itinerary(
            body.itinerary_id,
            job_id=body.job_id,
            dry_run=body.dry_run,
            store=store,
        )
    except Exception as e:
        logger.warning(
            "Decompose request failed",
            extra={"itinerary_id": body.itinerary_id, "error": str(e)},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        ) from e
