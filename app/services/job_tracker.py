"""Job progress tracking against the `content-jobs` collection.

Every update is best-effort: failures are logged and never raised, so a flaky
job record cannot fail the pipeline it describes. Progress is written as a
whole-document overwrite, so concurrent runs sharing a job ID can clobber each
other's progress.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from app.integrations.document_store import DocumentStore
from app.schemas.pipeline import PipelineStepResult

logger = logging.getLogger(__name__)

JOBS_COLLECTION = "content-jobs"


class JobTracker:
    """Mirror pipeline progress into an external job record."""

    def __init__(
        self,
        store: DocumentStore,
        job_id: int | str | None,
        *,
        total_steps: int,
        enabled: bool = True,
    ) -> None:
        self.store = store
        self.job_id = job_id
        self.total_steps = total_steps
        self.enabled = enabled and job_id is not None

    async def start(self) -> None:
        await self._update({"status": "running", "startedAt": self._now_iso()})

    async def record_step(
        self,
        result: PipelineStepResult,
        **counters: Any,
    ) -> None:
        """Write `progress.step{n}` plus the current/total step counters."""
        if not self.enabled:
            return
        try:
            job = await self.store.find_by_id(JOBS_COLLECTION, self.job_id) or {}
            progress = job.get("progress")
            if not isinstance(progress, dict):
                progress = {}
            progress[f"step{result.step}"] = {
                "name": result.name,
                "status": result.status,
                "duration": result.duration,
            }
            progress["currentStep"] = result.step
            progress["totalSteps"] = self.total_steps
            progress.update(counters)
            await self.store.update(JOBS_COLLECTION, self.job_id, {"progress": progress})
        except Exception as e:
            logger.warning(
                "Failed to update job progress",
                extra={"job_id": self.job_id, "step": result.step, "error": str(e)},
            )

    async def complete(self) -> None:
        await self._update({"status": "completed", "completedAt": self._now_iso()})

    async def fail(self, error: str) -> None:
        await self._update(
            {"status": "failed", "error": error, "completedAt": self._now_iso()}
        )

    async def _update(self, data: dict[str, Any]) -> None:
        if not self.enabled:
            return
        try:
            await self.store.update(JOBS_COLLECTION, self.job_id, data)
        except Exception as e:
            logger.warning(
                "Failed to update job",
                extra={"job_id": self.job_id, "status": data.get("status"), "error": str(e)},
            )

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()
