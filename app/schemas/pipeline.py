"""Shared pipeline step schemas."""

from typing import Any, Literal

from pydantic import BaseModel, Field

StepStatus = Literal["completed", "failed"]


class PipelineStepResult(BaseModel):
    """Outcome of one timed pipeline step."""

    step: int
    name: str
    status: StepStatus
    duration: int = Field(description="Wall-clock duration in milliseconds")
    detail: Any = None

    @property
    def failed(self) -> bool:
        return self.status == "failed"
