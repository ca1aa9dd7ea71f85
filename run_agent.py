#!/usr/bin/env python3
"""Entry point to run one job search from the command line.

    python run_agent.py --title "data engineer" --title "analytics engineer" --remote-only
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from jobdigest.log import configure_logging, get_logger
from jobdigest.models import DATE_POSTED_OPTIONS, SearchCriteria

log = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Search JSearch and filter the results.")
    p.add_argument("--title", action="append", default=[], help="job title (repeatable)")
    p.add_argument("--remote-only", action="store_true", help="only genuinely remote postings")
    p.add_argument(
        "--location-type", action="append", default=[],
        choices=["remote", "onsite", "hybrid"], help="location type (repeatable)",
    )
    p.add_argument("--location", default="", help="city or region for onsite/hybrid searches")
    p.add_argument("--min-salary", type=int)
    p.add_argument("--max-salary", type=int)
    p.add_argument("--date-posted", default="week", choices=DATE_POSTED_OPTIONS)
    p.add_argument("--skip-scraping", action="store_true", help="do not scrape job pages for salary")
    p.add_argument("--json", action="store_true", help="print the full result as JSON")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging (every page and rejection)")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if args.verbose:
        configure_logging("DEBUG")
    criteria = SearchCriteria(
        job_titles=args.title,
        location_type=["remote"] if args.remote_only else args.location_type,
        location=args.location,
        min_salary=args.min_salary,
        max_salary=args.max_salary,
        date_posted=args.date_posted,
        skip_scraping=args.skip_scraping,
    )

    from jobdigest.search import search

    result = search(criteria)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 1 if result.debug.error else 0

    if result.debug.error:
        log.error("Search failed: %s", result.debug.error)
        return 1
    log.info("Stage counts: %s", " -> ".join(str(c) for c in result.debug.counts()))
    for reason in result.debug.remote_reasons[:10]:
        log.info("  not remote: %s (%s)", reason["title"], reason["reason"])
    for job in result.jobs:
        log.info("%s @ %s | %s | %s | %s", job.title, job.company, job.location, job.salary, job.link)
    log.info("%d job(s) found", len(result.jobs))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
