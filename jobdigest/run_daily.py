"""
Run due saved searches and email new jobs.

Usage:
  - Cron (recommended): install with ``python setup_cron.py``, which runs
      python -m jobdigest.run_daily --once
    every day at RUN_HOUR (in RUN_TZ).
  - Or keep this running in the background: ``python -m jobdigest.run_daily``
"""
from __future__ import annotations

import sys
import time
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable
from zoneinfo import ZoneInfo

from jobdigest.config import get_env, load_settings
from jobdigest.email_report import send_job_alert_email
from jobdigest.log import get_logger
from jobdigest.models import SavedSearch, SearchCriteria, SearchResult
from jobdigest.search import search
from jobdigest.store import DAYS, SavedSearchStore, SeenJobStore

log = get_logger(__name__)

TARGET_HOUR = int(get_env("RUN_HOUR", "9") or 9)
TZ = ZoneInfo(get_env("RUN_TZ", "UTC") or "UTC")

# Window applied when the saved search leaves the date filter at "all".
FREQUENCY_WINDOWS: dict[str, str] = {"daily": "3days", "weekly": "week"}


def due_searches(searches: list[SavedSearch], now: datetime) -> list[SavedSearch]:
    today = DAYS[now.weekday()]
    due: list[SavedSearch] = []
    for s in searches:
        if not s.is_active:
            continue
        if s.frequency == "daily" or (s.frequency == "weekly" and s.day_of_week == today):
            due.append(s)
    return due


def scheduled_criteria(saved: SavedSearch) -> SearchCriteria:
    criteria = SearchCriteria.from_dict(saved.search_criteria)
    date_posted = criteria.date_posted
    if date_posted == "all":
        date_posted = FREQUENCY_WINDOWS.get(saved.frequency, "week")
    return replace(criteria, date_posted=date_posted, skip_scraping=True)


def run_scheduled_search(
    saved: SavedSearch,
    *,
    searches: SavedSearchStore,
    seen: SeenJobStore,
    search_fn: Callable[[SearchCriteria], SearchResult] = search,
    send_email: Callable[..., None] = send_job_alert_email,
) -> int:
    """Returns the number of new jobs mailed; errors are logged, not raised."""
    log.info("Running scheduled search %s", saved.id)
    try:
        criteria = scheduled_criteria(saved)
        result = search_fn(criteria)
        if result.debug.error:
            log.error("Scheduled search %s failed: %s", saved.id, result.debug.error)
            return 0

        new_jobs = seen.filter_new_jobs(result.jobs)
        log.info("Found %d new jobs for search %s", len(new_jobs), saved.id)
        if new_jobs:
            send_email(saved.user_email, new_jobs, criteria)
            seen.mark_jobs_seen(new_jobs, saved.id)
        searches.update_last_run(saved.id)
        return len(new_jobs)
    except Exception as exc:
        log.error("Error running scheduled search %s: %s", saved.id, exc)
        return 0


def run_due_searches(
    now: datetime | None = None,
    *,
    searches: SavedSearchStore | None = None,
    seen: SeenJobStore | None = None,
    **kwargs: Any,
) -> dict[str, int]:
    now = now or datetime.now(TZ)
    searches = searches or SavedSearchStore()
    seen = seen or SeenJobStore()

    results: dict[str, int] = {}
    due = due_searches(searches.list_searches(), now)
    log.info("Running %d due search(es) for %s", len(due), DAYS[now.weekday()])
    for saved in due:
        results[saved.id] = run_scheduled_search(saved, searches=searches, seen=seen, **kwargs)

    seen.cleanup_old(load_settings().seen_retention_days)
    return results


def next_run(now: datetime) -> datetime:
    target = now.replace(hour=TARGET_HOUR, minute=0, second=0, microsecond=0)
    if now >= target:
        target = target + timedelta(days=1)
    return target


def main() -> None:
    log.info("Scheduler: run due searches daily at %d:00 %s", TARGET_HOUR, TZ.key)
    while True:
        now = datetime.now(TZ)
        target = next_run(now)
        wait_secs = (target - now).total_seconds()
        log.info("Next run at %s (in %.1f hours)", target, wait_secs / 3600)
        time.sleep(min(wait_secs, 86400))
        now = datetime.now(TZ)
        if now.hour == TARGET_HOUR and now.minute < 30:
            run_due_searches(now)
            log.info("Done. Next run tomorrow.")


if __name__ == "__main__":
    if "--once" in sys.argv:
        run_due_searches()
        sys.exit(0)
    main()
