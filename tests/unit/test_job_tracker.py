"""Unit tests for job progress tracking."""

from __future__ import annotations

import pytest

from app.core.exceptions import DocumentStoreError
from app.schemas.pipeline import PipelineStepResult
from app.services.job_tracker import JobTracker


def _step(step: int, status: str = "completed") -> PipelineStepResult:
    return PipelineStepResult(step=step, name=f"Step {step}", status=status, duration=12)


@pytest.mark.asyncio
async def test_record_step_merges_into_existing_progress(store) -> None:
    store.seed("content-jobs", {"id": 1, "progress": {"step1": {"name": "Step 1"}}})
    tracker = JobTracker(store, 1, total_steps=5)

    await tracker.record_step(_step(2), candidates_generated=4)

    progress = store.get("content-jobs", 1)["progress"]
    assert progress["step1"] == {"name": "Step 1"}
    assert progress["step2"] == {"name": "Step 2", "status": "completed", "duration": 12}
    assert progress["currentStep"] == 2
    assert progress["totalSteps"] == 5
    assert progress["candidates_generated"] == 4


@pytest.mark.asyncio
async def test_complete_and_fail_set_status(store) -> None:
    store.seed("content-jobs", {"id": 1})
    tracker = JobTracker(store, 1, total_steps=3)

    await tracker.start()
    assert store.get("content-jobs", 1)["status"] == "running"

    await tracker.fail("Generate Candidates failed: boom")
    job = store.get("content-jobs", 1)
    assert job["status"] == "failed"
    assert job["error"] == "Generate Candidates failed: boom"
    assert "completedAt" in job

    await tracker.complete()
    assert store.get("content-jobs", 1)["status"] == "completed"


@pytest.mark.asyncio
async def test_without_job_id_nothing_is_written(store) -> None:
    tracker = JobTracker(store, None, total_steps=3)

    await tracker.record_step(_step(1))
    await tracker.complete()

    assert store.calls == []


@pytest.mark.asyncio
async def test_disabled_tracker_writes_nothing(store) -> None:
    store.seed("content-jobs", {"id": 1})
    tracker = JobTracker(store, 1, total_steps=3, enabled=False)

    await tracker.record_step(_step(1))
    await tracker.fail("x")

    assert store.write_count == 0


@pytest.mark.asyncio
async def test_store_errors_are_swallowed(store) -> None:
    store.fail("find_by_id", "content-jobs", DocumentStoreError("content-jobs", "down"))
    store.fail("update", "content-jobs", DocumentStoreError("content-jobs", "down"))
    tracker = JobTracker(store, 1, total_steps=3)

    await tracker.record_step(_step(1, "failed"))
    await tracker.fail("boom")
