"""Fire-and-forget trigger of the ideation decompose endpoint after a cascade."""

from __future__ import annotations

import asyncio
import logging

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

# Strong references so pending triggers are not garbage collected mid-flight.
_pending_triggers: set[asyncio.Task[None]] = set()


async def post_decompose_request(
    itinerary_id: int,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """POST `{itineraryId}` to the decompose endpoint. Failures are logged only."""
    url = settings.decompose_endpoint_url
    try:
        async with httpx.AsyncClient(
            timeout=settings.decompose_trigger_timeout_seconds,
            transport=transport,
        ) as client:
            response = await client.post(
                url,
                json={"itineraryId": itinerary_id},
                headers={"Authorization": f"Bearer {settings.content_system_secret}"},
            )
        if not response.is_success:
            logger.warning(
                "Decompose trigger rejected",
                extra={
                    "itinerary_id": itinerary_id,
                    "status_code": response.status_code,
                    "response_excerpt": response.text[:300],
                },
            )
            return
        logger.info("Decompose triggered", extra={"itinerary_id": itinerary_id})
    except Exception as e:
        logger.warning(
            "Failed to trigger decompose",
            extra={"itinerary_id": itinerary_id, "url": url, "error": str(e)},
        )


def trigger_decompose(itinerary_id: int) -> asyncio.Task[None] | None:
    """Schedule the decompose request without awaiting it.

    Returns None when no shared secret is configured.
    """
    if not settings.content_system_secret:
        logger.info(
            "Decompose trigger skipped: no content system secret configured",
            extra={"itinerary_id": itinerary_id},
        )
        return None

    task = asyncio.create_task(
        post_decompose_request(itinerary_id),
        name=f"decompose-trigger-{itinerary_id}",
    )
    _pending_triggers.add(task)
    task.add_done_callback(_pending_triggers.discard)
    return task


async def wait_for_pending_triggers() -> None:
    """Await in-flight triggers before the event loop shuts down."""
    if _pending_triggers:
        await asyncio.gather(*list(_pending_triggers), return_exceptions=True)
