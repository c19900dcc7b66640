"""Timed, failure-isolated execution of a single pipeline step."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from app.schemas.pipeline import PipelineStepResult
from app.services.job_tracker import JobTracker

logger = logging.getLogger(__name__)


async def run_step(
    step: int,
    name: str,
    operation: Callable[[], Awaitable[Any]],
    *,
    tracker: JobTracker | None = None,
    context: dict[str, Any] | None = None,
) -> PipelineStepResult:
    """Run `operation` and capture its outcome as a step result.

    Exceptions are caught and stringified into a `failed` result, never raised.
    The result is pushed to the job tracker whether the step passed or not.
    """
    step_info = {"step": step, "step_name": name, **(context or {})}
    logger.info("Step started", extra=step_info)

    t0 = time.perf_counter()
    try:
        detail = await operation()
    except Exception as e:
        duration = _elapsed_ms(t0)
        logger.warning(
            "Step failed",
            extra={**step_info, "duration_ms": duration, "error": str(e)},
        )
        result = PipelineStepResult(
            step=step, name=name, status="failed", duration=duration, detail=str(e)
        )
    else:
        duration = _elapsed_ms(t0)
        logger.info("Step completed", extra={**step_info, "duration_ms": duration})
        result = PipelineStepResult(
            step=step, name=name, status="completed", duration=duration, detail=detail
        )

    if tracker is not None:
        await tracker.record_step(result)
    return result


def _elapsed_ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)
