"""Record upstream API calls in a CSV log (with file locking) and summarize usage."""
from __future__ import annotations

import calendar
import csv
import fcntl
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import IO, Any, Iterator

from jobdigest.config import DATA_DIR, get_env
from jobdigest.log import get_logger

log = get_logger(__name__)

USAGE_CSV: Path = DATA_DIR / "api_usage.csv"
HEADERS: list[str] = ["timestamp", "pages", "status", "error_type"]

SUCCESS = "success"
FAILED = "failed"


@contextmanager
def _flock(f: IO[str], exclusive: bool = True) -> Iterator[IO[str]]:
    fcntl.flock(f.fileno(), fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH)
    try:
        yield f
    finally:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)


class UsageLog:
    """Append-only record of page requests made against the search API."""

    def __init__(self, path: Path | None = None, monthly_quota: int = 200) -> None:
        self.path = path or USAGE_CSV
        self.monthly_quota = monthly_quota

    def record_api_call(
        self,
        pages_requested: int,
        status: str,
        error_type: str | None = None,
        *,
        now: datetime | None = None,
    ) -> None:
        """Never raises: losing a usage row must not break a search."""
        row = {
            "timestamp": (now or datetime.now(timezone.utc)).isoformat(timespec="seconds"),
            "pages": pages_requested,
            "status": status,
            "error_type": error_type or "",
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "a", newline="", encoding="utf-8") as f, _flock(f):
                writer = csv.DictWriter(f, fieldnames=HEADERS)
                if f.tell() == 0:
                    writer.writeheader()
                writer.writerow(row)
        except OSError as exc:
            log.warning("Could not record API usage: %s", exc)
            return
        log.debug("API call recorded: %s %s", status, error_type or "")

    def calls(self) -> list[dict[str, str]]:
        if not self.path.exists():
            return []
        with open(self.path, "r", newline="", encoding="utf-8") as f, _flock(f, exclusive=False):
            return list(csv.DictReader(f))

    def get_usage_stats(self, now: datetime | None = None) -> dict[str, Any]:
        now = now or datetime.now(timezone.utc)
        month_prefix = now.strftime("%Y-%m")
        month_rows = [r for r in self.calls() if r.get("timestamp", "").startswith(month_prefix)]

        def count(status: str | None = None, error_type: str | None = None) -> int:
            return sum(
                1
                for r in month_rows
                if (status is None or r.get("status") == status)
                and (error_type is None or r.get("error_type") == error_type)
            )

        pages = sum(int(r.get("pages") or 0) for r in month_rows)
        used = round(pages / self.monthly_quota * 100, 1) if self.monthly_quota else 0.0
        days_in_month = calendar.monthrange(now.year, now.month)[1]

        return {
            "has_api_key": bool(get_env("JSEARCH_API_KEY")),
            "current_month": {
                "month_name": now.strftime("%B %Y"),
                "calls": len(month_rows),
                "pages": pages,
                "successes": count(SUCCESS),
                "failures": count(FAILED),
                "rate_limits": count(error_type="rate_limit"),
                "quota_exceeded": count(error_type="quota_exceeded"),
                "timeouts": count(error_type="timeout"),
                "last_call": month_rows[-1]["timestamp"] if month_rows else None,
            },
            "estimated_limit": {
                "monthly_limit": self.monthly_quota,
                "used_percentage": used,
                "remaining": max(self.monthly_quota - pages, 0),
                "note": "Estimate from locally recorded page requests; check your RapidAPI dashboard for exact usage.",
            },
            "days_until_reset": days_in_month - now.day + 1,
            "recent_calls": list(reversed(month_rows[-10:])),
        }
