"""Text-in / text-out language model calls built on Pydantic AI.

Structured output is deliberately not requested from the model here; callers
parse and validate the returned text themselves.
"""

from __future__ import annotations

import logging
import time
from typing import Literal, TypedDict

from pydantic import BaseModel
from pydantic_ai import Agent

from app.config import settings

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]


class ChatMessage(TypedDict):
    role: Role
    content: str


class ModelUsage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ModelResponse(BaseModel):
    """Raw model output plus accounting."""

    text: str
    model: str
    usage: ModelUsage


class ModelCaller:
    """Invoke the model configured for a call purpose.

    Model resolution priority:
    1. model_override parameter (explicit runtime override)
    2. settings.get_model(purpose) (environment-aware purpose default)
    """

    def __init__(self, model_override: str | None = None) -> None:
        self._model_override = model_override

    def resolve_model(self, purpose: str) -> str:
        return self._model_override or settings.get_model(purpose)

    @staticmethod
    def split_messages(messages: list[ChatMessage]) -> tuple[str, str]:
        """Split chat messages into (system prompt, flattened user prompt)."""
        system_parts: list[str] = []
        prompt_parts: list[str] = []
        for msg in messages:
            role = msg.get("role", "user")
            content = msg.get("content", "")
            if role == "system":
                system_parts.append(content)
            elif role == "assistant":
                prompt_parts.append(f"Assistant: {content}")
            else:
                prompt_parts.append(content)

        # A lone user turn is passed through verbatim.
        if len(prompt_parts) > 1:
            prompt_parts = [
                part if part.startswith("Assistant: ") else f"User: {part}"
                for part in prompt_parts
            ]
        return "\n\n".join(system_parts), "\n\n".join(prompt_parts)

    async def call(
        self,
        purpose: str,
        messages: list[ChatMessage],
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> ModelResponse:
        """Run one completion and return the raw text."""
        model = self.resolve_model(purpose)
        system_prompt, prompt = self.split_messages(messages)
        agent: Agent[None, str] = Agent(
            model=model,
            output_type=str,
            system_prompt=system_prompt,
            retries=settings.llm_max_retries,
        )

        logger.info(
            "Model call started",
            extra={"purpose": purpose, "model": model, "prompt_length": len(prompt)},
        )
        t0 = time.perf_counter()
        result = await agent.run(
            prompt,
            model_settings={
                "max_tokens": max_tokens,
                "temperature": temperature,
                "timeout": float(settings.llm_timeout_seconds),
            },
        )
        elapsed = time.perf_counter() - t0

        usage = result.usage()
        model_usage = ModelUsage(
            prompt_tokens=usage.input_tokens or 0,
            completion_tokens=usage.output_tokens or 0,
            total_tokens=usage.total_tokens or 0,
        )
        logger.info(
            "Model call completed",
            extra={
                "purpose": purpose,
                "model": model,
                "duration_s": round(elapsed, 2),
                "total_tokens": model_usage.total_tokens,
            },
        )
        return ModelResponse(text=result.output, model=model, usage=model_usage)
