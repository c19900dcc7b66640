"""Shared in-memory collaborators for pipeline tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from app.core.exceptions import DocumentNotFoundError, SlugConflictError
from app.integrations.document_store import DocumentStore
from app.integrations.language_model import ChatMessage, ModelResponse, ModelUsage
from app.integrations.vector_search import ContentChunk, SimilarityMatch


def _lookup(document: dict[str, Any], dotted_key: str) -> Any:
    value: Any = document
    for part in dotted_key.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _matches(document: dict[str, Any], where: dict[str, Any] | None) -> bool:
    for key, condition in (where or {}).items():
        actual = _lookup(document, key)
        if isinstance(condition, dict):
            if "equals" in condition and actual != condition["equals"]:
                return False
            if "not_equals" in condition and actual == condition["not_equals"]:
                return False
        elif actual != condition:
            return False
    return True


class InMemoryStore(DocumentStore):
    """Document store over plain dicts that records every call.

    `create` rejects a duplicate `slug` within a collection with
    `SlugConflictError`. Errors can be injected per `(operation, collection)`.
    """

    def __init__(self) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = {}
        self.globals: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, str]] = []
        self.creates: list[tuple[str, dict[str, Any], bool]] = []
        self.updates: list[tuple[str, Any, dict[str, Any]]] = []
        self.errors: dict[tuple[str, str], Exception] = {}
        self._next_id = 1000

    # --- test helpers ---

    def seed(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        doc = copy.deepcopy(document)
        if "id" not in doc:
            doc["id"] = self._allocate_id()
        self.collections.setdefault(collection, []).append(doc)
        return doc

    def get(self, collection: str, record_id: Any) -> dict[str, Any] | None:
        for doc in self.collections.get(collection, []):
            if doc.get("id") == record_id:
                return doc
        return None

    def fail(self, operation: str, collection: str, error: Exception) -> None:
        self.errors[(operation, collection)] = error

    @property
    def write_count(self) -> int:
        return len(self.creates) + len(self.updates)

    def _allocate_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _check(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        error = self.errors.get((operation, collection))
        if error is not None:
            raise error

    # --- DocumentStore ---

    async def find_one(self, collection: str, where: dict[str, Any]) -> dict[str, Any] | None:
        docs = await self.find_many(collection, where, limit=1)
        return docs[0] if docs else None

    async def find_many(
        self,
        collection: str,
        where: dict[str, Any] | None = None,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        self._check("find", collection)
        found = [
            copy.deepcopy(doc)
            for doc in self.collections.get(collection, [])
            if _matches(doc, where)
        ]
        return found[:limit]

    async def find_by_id(
        self,
        collection: str,
        record_id: Any,
        *,
        draft: bool = False,
    ) -> dict[str, Any] | None:
        self._check("find_by_id", collection)
        doc = self.get(collection, record_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def create(
        self,
        collection: str,
        data: dict[str, Any],
        *,
        draft: bool = False,
    ) -> dict[str, Any]:
        self._check("create", collection)
        slug = data.get("slug")
        if slug and any(doc.get("slug") == slug for doc in self.collections.get(collection, [])):
            raise SlugConflictError(collection, slug)
        self.creates.append((collection, copy.deepcopy(data), draft))
        return copy.deepcopy(self.seed(collection, data))

    async def update(
        self,
        collection: str,
        record_id: Any,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        self._check("update", collection)
        doc = self.get(collection, record_id)
        if doc is None:
            raise DocumentNotFoundError(collection, record_id)
        self.updates.append((collection, record_id, copy.deepcopy(data)))
        doc.update(copy.deepcopy(data))
        return copy.deepcopy(doc)

    async def find_global(self, slug: str) -> dict[str, Any]:
        self._check("find_global", slug)
        return copy.deepcopy(self.globals.get(slug, {}))


class FakeSearch:
    """Similarity search returning canned matches per query (or a default)."""

    def __init__(
        self,
        matches: list[SimilarityMatch] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.matches = matches or []
        self.by_query: dict[str, list[SimilarityMatch]] = {}
        self.error = error
        self.queries: list[tuple[str, int, float]] = []
        self.upserted: list[ContentChunk] = []

    async def search(
        self,
        query_text: str,
        *,
        top_k: int = 10,
        min_score: float = 0.0,
    ) -> list[SimilarityMatch]:
        self.queries.append((query_text, top_k, min_score))
        if self.error is not None:
            raise self.error
        return list(self.by_query.get(query_text, self.matches))

    async def upsert_chunk(self, chunk: ContentChunk) -> None:
        self.upserted.append(chunk)


class FakeModel:
    """Model caller returning a fixed text and recording the request."""

    def __init__(self, text: str = "[]") -> None:
        self.text = text
        self.calls: list[dict[str, Any]] = []

    async def call(
        self,
        purpose: str,
        messages: list[ChatMessage],
        *,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> ModelResponse:
        self.calls.append(
            {
                "purpose": purpose,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        return ModelResponse(text=self.text, model="test/model", usage=ModelUsage())


def match(score: float, text: str = "Existing article", chunk_type: str = "article_section") -> SimilarityMatch:
    return SimilarityMatch(id=f"chunk-{score}", chunk_type=chunk_type, text=text, score=score)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def kenya_itinerary() -> dict[str, Any]:
    return {
        "id": 42,
        "title": "Kenya Highlights",
        "overview": {"countries": [{"country": "Kenya"}], "nights": 5},
        "days": [
            {
                "dayNumber": 1,
                "location": "Nairobi",
                "segments": [
                    {
                        "blockType": "stay",
                        "accommodationNameItrvl": "Angama Mara",
                        "location": "Masai Mara",
                        "country": "Kenya",
                        "nights": 3,
                    },
                    {"blockType": "activity", "titleItrvl": "Check-in"},
                ],
            }
        ],
    }


@pytest.fixture
def search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def make_match():
    return match
