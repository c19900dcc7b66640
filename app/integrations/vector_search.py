"""Semantic similarity search over the pgvector `content_embeddings` table."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

from pydantic import BaseModel, Field
from sqlalchemy import text

from app.config import settings
from app.core.database import get_session_context, run_with_transient_db_retry
from app.integrations.embeddings import EmbeddingsClient

logger = logging.getLogger(__name__)


class SimilarityMatch(BaseModel):
    """One ranked match returned by a similarity search."""

    id: str
    chunk_type: str
    text: str
    score: float = Field(ge=0.0, le=1.0)
    content_project_id: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ContentChunk(BaseModel):
    """A unit of text to embed and index."""

    id: str
    chunk_type: str
    text: str
    source_collection: str
    source_id: str
    content_project_id: int | None = None
    content_type: str | None = None
    destinations: list[str] = Field(default_factory=list)
    properties: list[str] = Field(default_factory=list)
    species: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SimilaritySearcher(Protocol):
    """Anything that ranks stored content against query text."""

    async def search(
        self,
        query_text: str,
        *,
        top_k: int = 10,
        min_score: float = 0.0,
    ) -> list[SimilarityMatch]: ...


def _vector_literal(vector: list[float]) -> str:
    return "[" + ",".join(str(float(value)) for value in vector) + "]"


class SimilaritySearch:
    """Embed query text and rank stored chunks by cosine similarity."""

    def __init__(self, embeddings_api_key: str | None = None) -> None:
        self._embeddings_api_key = embeddings_api_key

    async def _embed(self, value: str) -> list[float]:
        async with EmbeddingsClient(api_key=self._embeddings_api_key) as client:
            return await client.embed_text(value)

    async def search(
        self,
        query_text: str,
        *,
        top_k: int = 10,
        min_score: float = 0.0,
        exclude_project_id: int | None = None,
        chunk_types: list[str] | None = None,
    ) -> list[SimilarityMatch]:
        """Return up to `top_k` matches with score >= `min_score`, best first."""
        embedding = _vector_literal(await self._embed(query_text))
        dimensions = settings.embeddings_dimensions

        conditions = ["1=1"]
        params: dict[str, Any] = {"embedding": embedding, "top_k": top_k}
        if chunk_types:
            conditions.append("chunk_type = ANY(:chunk_types)")
            params["chunk_types"] = chunk_types
        if exclude_project_id is not None:
            conditions.append(
                "(content_project_id IS NULL OR content_project_id != :exclude_project_id)"
            )
            params["exclude_project_id"] = exclude_project_id

        query_vector = f"CAST(CAST(:embedding AS text) AS halfvec({dimensions}))"
        stored_vector = f"embedding::halfvec({dimensions})"
        statement = text(
            f"""
            SELECT id, chunk_type, chunk_text, content_project_id, metadata,
                   1 - ({stored_vector} <=> {query_vector}) AS similarity
            FROM content_embeddings
            WHERE {' AND '.join(conditions)}
            ORDER BY {stored_vector} <=> {query_vector}
            LIMIT :top_k
            """
        )

        async def _run() -> list[Any]:
            async with get_session_context() as session:
                result = await session.execute(statement, params)
                return list(result.mappings())

        rows = await run_with_transient_db_retry(_run, operation_name="similarity_search")

        matches: list[SimilarityMatch] = []
        for row in rows:
            score = min(max(float(row["similarity"]), 0.0), 1.0)
            if score < min_score:
                continue
            metadata = row["metadata"]
            if isinstance(metadata, str):
                metadata = json.loads(metadata)
            matches.append(
                SimilarityMatch(
                    id=str(row["id"]),
                    chunk_type=row["chunk_type"],
                    text=row["chunk_text"],
                    score=score,
                    content_project_id=row["content_project_id"],
                    metadata=metadata or {},
                )
            )
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches

    async def upsert_chunk(self, chunk: ContentChunk) -> None:
        """Embed a chunk and insert or replace it by ID."""
        embedding = _vector_literal(await self._embed(chunk.text))
        statement = text(
            f"""
            INSERT INTO content_embeddings (
                id, chunk_type, chunk_text, embedding, source_collection, source_id,
                content_project_id, content_type, destinations, properties, species,
                metadata, updated_at
            ) VALUES (
                :id, :chunk_type, :chunk_text,
                CAST(CAST(:embedding AS text) AS vector({settings.embeddings_dimensions})),
                :source_collection, :source_id, :content_project_id, :content_type,
                :destinations, :properties, :species, CAST(:metadata AS jsonb), now()
            )
            ON CONFLICT (id) DO UPDATE SET
                chunk_text = EXCLUDED.chunk_text,
                embedding = EXCLUDED.embedding,
                content_type = EXCLUDED.content_type,
                destinations = EXCLUDED.destinations,
                properties = EXCLUDED.properties,
                species = EXCLUDED.species,
                metadata = EXCLUDED.metadata,
                updated_at = now()
            """
        )
        params = {
            "id": chunk.id,
            "chunk_type": chunk.chunk_type,
            "chunk_text": chunk.text,
            "embedding": embedding,
            "source_collection": chunk.source_collection,
            "source_id": chunk.source_id,
            "content_project_id": chunk.content_project_id,
            "content_type": chunk.content_type,
            "destinations": chunk.destinations,
            "properties": chunk.properties,
            "species": chunk.species,
            "metadata": json.dumps(chunk.metadata, default=str),
        }

        async def _run() -> None:
            async with get_session_context(commit_on_exit=True) as session:
                await session.execute(statement, params)

        await run_with_transient_db_retry(_run, operation_name="upsert_chunk")
        logger.info("Indexed content chunk", extra={"chunk_id": chunk.id, "chunk_type": chunk.chunk_type})
