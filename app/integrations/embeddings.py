"""Embeddings integration used by the semantic duplicate check.

Texts are embedded through the OpenRouter embeddings endpoint; vectors are
stored and compared in pgvector (see `app.integrations.vector_search`).
"""

import logging
from typing import Any

import httpx

from app.config import settings
from app.core.exceptions import APIKeyMissingError, ExternalAPIError

logger = logging.getLogger(__name__)


class EmbeddingsClient:
    """Client for generating text embeddings in fixed-size batches."""

    EMBEDDING_URL = "https://openrouter.ai/api/v1/embeddings"
    MAX_BATCH_SIZE = 20

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key or settings.openrouter_api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            raise APIKeyMissingError("OpenRouter (for embeddings)")

    async def __aenter__(self) -> "EmbeddingsClient":
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client must be used as async context manager")
        return self._client

    async def get_embeddings(
        self,
        texts: list[str],
        model: str | None = None,
    ) -> list[list[float]]:
        """Generate embeddings for a list of texts, preserving input order."""
        if not texts:
            return []

        effective_model = model or settings.embeddings_model
        logger.info(
            "Generating embeddings",
            extra={"text_count": len(texts), "model": effective_model},
        )

        all_embeddings: list[list[float]] = []
        for i in range(0, len(texts), self.MAX_BATCH_SIZE):
            batch = texts[i:i + self.MAX_BATCH_SIZE]

            try:
                response = await self.client.post(
                    self.EMBEDDING_URL,
                    json={
                        "model": effective_model,
                        "input": batch,
                        "dimensions": settings.embeddings_dimensions,
                    },
                )
            except httpx.HTTPError as e:
                logger.warning("Embeddings HTTP error", extra={"error": str(e)})
                raise ExternalAPIError("OpenRouter Embeddings", str(e)) from e

            if response.status_code != 200:
                logger.warning("Embeddings API error", extra={"status": response.status_code})
                raise ExternalAPIError(
                    "OpenRouter Embeddings",
                    f"API error: {response.status_code} - {response.text}",
                )

            data = response.json().get("data", [])
            sorted_data = sorted(data, key=lambda item: item.get("index", 0))
            all_embeddings.extend(item["embedding"] for item in sorted_data)

        return all_embeddings

    async def embed_text(self, text: str) -> list[float]:
        """Embed a single text."""
        vectors = await self.get_embeddings([text])
        if not vectors:
            raise ExternalAPIError("OpenRouter Embeddings", "empty embedding response")
        return vectors[0]
