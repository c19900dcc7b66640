"""Dependencies for the content pipeline API."""

from __future__ import annotations

import hmac
import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import settings
from app.integrations.document_store import DocumentStore, PayloadRestStore

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def require_content_secret(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
) -> None:
    """Validate the shared bearer secret for pipeline routes."""
    secret = settings.content_system_secret
    if not secret:
        logger.error("Content API auth failed: no secret configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content system secret is not configured",
        )

    candidate = (credentials.credentials if credentials else "").strip()
    if candidate and hmac.compare_digest(candidate.encode(), secret.encode()):
        return

    logger.warning("Content API auth failed: invalid secret")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing bearer token",
    )


async def get_document_store() -> AsyncGenerator[DocumentStore, None]:
    """Yield a Payload REST store for the duration of one request."""
    async with PayloadRestStore() as store:
        yield store
