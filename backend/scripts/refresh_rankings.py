#!/usr/bin/env python3
"""
Refresh Materia Rankings

Recomputes rankings outside the API process, e.g. from cron or after a
bulk import. With the Redis cache backend the API serves the refreshed
rankings immediately.

Usage (from backend directory):
    # Refresh every materia
    python scripts/refresh_rankings.py

    # Print one materia's ranking (bypasses the cache)
    python scripts/refresh_rankings.py --materia mat-1 --viewer user-1

    # JSON output
    python scripts/refresh_rankings.py --materia mat-1 --viewer user-1 --json
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from simonkey.config import settings
from simonkey.db.redis import close_redis_pool
from simonkey.services.progress.engine import ProgressEngine

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh materia rankings")
    parser.add_argument("--materia", help="Only compute this materia")
    parser.add_argument("--teacher", help="Teacher of the materia (default: owner)")
    parser.add_argument("--viewer", help="Viewer to flag in the printed ranking")
    parser.add_argument("--json", action="store_true", help="Print the ranking as JSON")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, engine: Optional[ProgressEngine] = None) -> int:
    """
    Refresh rankings and print a summary.

    Returns:
        Process exit code
    """
    engine = engine or ProgressEngine.create()

    if not args.materia:
        count = await engine.rankings.refresh_all_rankings()
        print(f"Refreshed {count} materia rankings")
        return 0

    ranking = await engine.rankings.get_materia_ranking(
        args.materia, args.viewer, args.teacher, force_refresh=True
    )
    if args.json:
        print(json.dumps(ranking.model_dump(mode="json"), indent=2))
        return 0

    print(f"Materia {ranking.materia_id} (teacher: {ranking.teacher_id or '-'}, {ranking.status.value})")
    for entry in ranking.entries:
        marker = "*" if entry.is_current_user else " "
        print(f"{marker}{entry.position:>4}  {entry.score:>8}  {entry.name}")
    return 0


async def main_async(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    try:
        return await run(args)
    finally:
        await close_redis_pool()


def main():
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(main_async()))


if __name__ == "__main__":
    main()
