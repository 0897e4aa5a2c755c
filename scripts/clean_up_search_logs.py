#!/usr/bin/env python3
"""Periodic search log clean-up. Run from cron or a scheduler.

Usage:
  python scripts/clean_up_search_logs.py              # cap at SEARCH_QUERY_LOG_MAX_SIZE
  python scripts/clean_up_search_logs.py --max-size 50000
"""

import argparse
import asyncio
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from searchlog.config import settings  # noqa: E402

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("searchlog.clean_up")


async def main(max_size: int | None) -> int:
    from searchlog.database import async_session_factory, close_db, init_db
    from searchlog.service import SearchLogService

    if not await init_db():
        logger.error("Clean-up aborted | database unavailable")
        return 1

    service = SearchLogService(async_session_factory)
    try:
        deleted = await service.clean_up(max_size)
        remaining = await service.store.count()
        logger.info("Clean-up finished | deleted=%d | remaining=%d", deleted, remaining)
    finally:
        await close_db()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delete the oldest search logs above the size cap.")
    parser.add_argument("--max-size", type=int, default=None, help="rows to keep (default: configured cap)")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.max_size)))
