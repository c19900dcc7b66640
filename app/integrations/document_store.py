"""Document store contract and the Payload CMS REST implementation.

Filters are plain dicts. A scalar value means equality; a dict value may use
the `equals` / `not_equals` operators. Dotted keys address nested fields:

    {"title": "Masai Mara", "stage": {"not_equals": "filtered"}}
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from app.config import settings
from app.core.exceptions import (
    APIKeyMissingError,
    DocumentStoreError,
    SlugConflictError,
)

logger = logging.getLogger(__name__)

Document = dict[str, Any]
Filter = dict[str, Any]

FILTER_OPERATORS = ("equals", "not_equals")
_UNIQUE_VIOLATION_MARKERS = ("unique", "duplicate", "already exists")


class DocumentStore(ABC):
    """Async CRUD access to collections of JSON documents."""

    @abstractmethod
    async def find_one(self, collection: str, where: Filter) -> Document | None:
        """Return the first document matching `where`, or None."""

    @abstractmethod
    async def find_many(
        self,
        collection: str,
        where: Filter | None = None,
        limit: int = 100,
    ) -> list[Document]:
        """Return up to `limit` documents matching `where`."""

    @abstractmethod
    async def find_by_id(
        self,
        collection: str,
        record_id: int | str,
        *,
        draft: bool = False,
    ) -> Document | None:
        """Return the document with `record_id`, or None when absent."""

    @abstractmethod
    async def create(
        self,
        collection: str,
        data: Document,
        *,
        draft: bool = False,
    ) -> Document:
        """Create a document and return it with its assigned `id`.

        Raises:
            SlugConflictError: If a unique slug constraint rejects the record.
        """

    @abstractmethod
    async def update(
        self,
        collection: str,
        record_id: int | str,
        data: Document,
    ) -> Document:
        """Patch the given fields of a document and return the result."""

    @abstractmethod
    async def find_global(self, slug: str) -> Document:
        """Return a singleton settings document (empty dict when unset)."""


def encode_where(where: Filter | None) -> dict[str, str]:
    """Encode a filter dict into Payload's `where[field][op]=value` params."""
    params: dict[str, str] = {}
    for field, condition in (where or {}).items():
        if isinstance(condition, dict):
            operators = {op: condition[op] for op in FILTER_OPERATORS if op in condition}
            unknown = set(condition) - set(FILTER_OPERATORS)
            if unknown:
                raise ValueError(f"Unsupported filter operator(s): {sorted(unknown)}")
        else:
            operators = {"equals": condition}

        for op, value in operators.items():
            params[f"where[{field}][{op}]"] = _encode_value(value)
    return params


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def is_unique_violation(status_code: int, body: str) -> bool:
    if status_code not in (400, 409):
        return False
    lowered = body.lower()
    return any(marker in lowered for marker in _UNIQUE_VIOLATION_MARKERS)


class PayloadRestStore(DocumentStore):
    """Document store backed by the Payload CMS REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.payload_api_url).rstrip("/")
        self.api_key = api_key or settings.payload_api_key
        self.timeout = timeout or settings.payload_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

        if not self.api_key:
            raise APIKeyMissingError("Payload")

    async def __aenter__(self) -> "PayloadRestStore":
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/api",
            timeout=self.timeout,
            transport=self._transport,
            headers={
                "Authorization": f"users API-Key {self.api_key}",
                "Content-Type": "application/json",
            },
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Store must be used as async context manager")
        return self._client

    async def _request(
        self,
        collection: str,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(
                "Document store HTTP error",
                extra={"collection": collection, "method": method, "error": str(e)},
            )
            raise DocumentStoreError(collection, str(e)) from e

    @staticmethod
    def _raise_for_status(collection: str, response: httpx.Response) -> None:
        if response.is_success:
            return
        raise DocumentStoreError(
            collection,
            f"HTTP {response.status_code}: {response.text[:500]}",
            details={"status_code": response.status_code},
        )

    async def find_many(
        self,
        collection: str,
        where: Filter | None = None,
        limit: int = 100,
    ) -> list[Document]:
        params = {"limit": str(limit), "depth": "0", **encode_where(where)}
        response = await self._request(collection, "GET", f"/{collection}", params=params)
        self._raise_for_status(collection, response)
        docs = response.json().get("docs", [])
        return [doc for doc in docs if isinstance(doc, dict)]

    async def find_one(self, collection: str, where: Filter) -> Document | None:
        docs = await self.find_many(collection, where, limit=1)
        return docs[0] if docs else None

    async def find_by_id(
        self,
        collection: str,
        record_id: int | str,
        *,
        draft: bool = False,
    ) -> Document | None:
        params = {"depth": "0"}
        if draft:
            params["draft"] = "true"
        response = await self._request(
            collection, "GET", f"/{collection}/{record_id}", params=params
        )
        if response.status_code == 404:
            return None
        self._raise_for_status(collection, response)
        return response.json()

    async def create(
        self,
        collection: str,
        data: Document,
        *,
        draft: bool = False,
    ) -> Document:
        params = {"depth": "0"}
        if draft:
            params["draft"] = "true"
        response = await self._request(
            collection, "POST", f"/{collection}", params=params, json=data
        )
        if is_unique_violation(response.status_code, response.text):
            raise SlugConflictError(collection, data.get("slug"))
        self._raise_for_status(collection, response)
        body = response.json()
        return body.get("doc", body)

    async def update(
        self,
        collection: str,
        record_id: int | str,
        data: Document,
    ) -> Document:
        response = await self._request(
            collection,
            "PATCH",
            f"/{collection}/{record_id}",
            params={"depth": "0"},
            json=data,
        )
        self._raise_for_status(collection, response)
        body = response.json()
        return body.get("doc", body)

    async def find_global(self, slug: str) -> Document:
        response = await self._request(
            f"globals/{slug}", "GET", f"/globals/{slug}", params={"depth": "0"}
        )
        if response.status_code == 404:
            return {}
        self._raise_for_status(f"globals/{slug}", response)
        return response.json() or {}
