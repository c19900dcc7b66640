"""Create the pgvector extension and the content_embeddings table."""

from __future__ import annotations

import asyncio

from app.core.database import close_db, init_vector_store
from app.core.logging import setup_logging


async def _init() -> None:
    try:
        await init_vector_store()
    finally:
        await close_db()


def main() -> int:
    setup_logging()
    asyncio.run(_init())
    print("Vector store ready")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
