#!/usr/bin/env python3
"""Entry point for the listing assistant.

Usage:
  python run_assistant.py <search-url> [--reset] [--headless]
  python run_assistant.py --list
  python run_assistant.py --remove <job-id>
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from job_assistant.log import get_logger

log = get_logger(__name__)


def _list_cached() -> None:
    from job_assistant.assistant import open_cache

    cache = open_cache()
    for heading, entries in (("Matching", cache.matching()), ("Rejected", cache.rejected())):
        print(f"\n  {heading} ({len(entries)})")
        for e in entries:
            print(f"    {e.id:>12}  {e.title} @ {e.company}  [{e.timestamp[:10]}]")
    print()


def _remove(listing_id: str) -> int:
    from job_assistant.assistant import open_cache

    if open_cache().remove(listing_id):
        log.info("Removed %s", listing_id)
        return 0
    log.warning("No cached result for %s", listing_id)
    return 1


def _usage() -> int:
    print(__doc__)
    return 2


def main(argv: list[str]) -> int:
    if "--list" in argv:
        _list_cached()
        return 0
    if "--remove" in argv:
        i = argv.index("--remove")
        if i + 1 >= len(argv):
            return _usage()
        return _remove(argv[i + 1])

    urls = [a for a in argv if not a.startswith("--")]
    if not urls:
        return _usage()

    from job_assistant.assistant import run

    result = asyncio.run(
        run(urls[0], headless=True if "--headless" in argv else None, reset_processed="--reset" in argv)
    )
    log.info("Run complete.")
    log.info("  State: %s", result.get("state", "-"))
    log.info("  Evaluated: %s/%s", result.get("consumed", 0), result.get("budget", 0))
    log.info("  Pages visited: %s", result.get("pages_visited", 0))
    log.info("  Listings: %s", result.get("listings", {}))
    if result.get("error"):
        log.error("  Error: %s", result["error"])
    return 0 if result.get("success") else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
