"""Run the cascade or ideation pipeline for one itinerary from the command line."""

from __future__ import annotations

import argparse
import asyncio
import sys

from app.core.database import close_db
from app.core.logging import setup_logging
from app.schemas.cascade import CascadeOptions
from app.services.cascade.orchestrator import run_cascade
from app.services.decompose_trigger import wait_for_pending_triggers
from app.services.ideation.candidate_filter import wait_for_pending_updates
from app.services.ideation.itinerary_decomposer import decompose_itinerary


def parse_args() -> argparse.Namespace:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("pipeline", choices=["cascade", "decompose"])
    parser.add_argument("itinerary_id", type=int)
    parser.add_argument("--job-id", type=int, default=None)
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Resolve and filter without writing to the document store",
    )
    return parser.parse_args()


async def _run(args: argparse.Namespace) -> int:
    try:
        if args.pipeline == "cascade":
            result = await run_cascade(
                CascadeOptions(
                    itinerary_id=args.itinerary_id,
                    dry_run=args.dry_run,
                    job_id=args.job_id,
                )
            )
            print(result.model_dump_json(indent=2, by_alias=True))
            return 1 if result.error else 0

        decomposition = await decompose_itinerary(
            args.itinerary_id, job_id=args.job_id, dry_run=args.dry_run
        )
        print(decomposition.model_dump_json(indent=2, by_alias=True))
        return 0
    finally:
        await wait_for_pending_triggers()
        await wait_for_pending_updates()
        await close_db()


def main() -> int:
    setup_logging()
    args = parse_args()
    try:
        return asyncio.run(_run(args))
    except Exception as e:
        print(f"{args.pipeline} failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
