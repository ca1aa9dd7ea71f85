"""Saved searches and seen jobs, persisted as YAML files under data/."""
from __future__ import annotations

import fcntl
import re
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterator

import yaml

from jobdigest.config import DATA_DIR
from jobdigest.log import get_logger
from jobdigest.models import NormalizedJob, SavedSearch

log = get_logger(__name__)

SEARCHES_PATH: Path = DATA_DIR / "saved_searches.yaml"
SEEN_JOBS_PATH: Path = DATA_DIR / "seen_jobs.yaml"

FREQUENCIES = ("daily", "weekly")
DAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

_thread_lock = threading.Lock()


class SavedSearchNotFound(LookupError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@contextmanager
def _locked(path: Path) -> Iterator[None]:
    """Exclusive lock across threads and processes for a read-modify-write."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with _thread_lock, open(path.with_suffix(path.suffix + ".lock"), "w") as lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


def _read(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def _write(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    tmp.replace(path)


class SavedSearchStore:
    def __init__(self, path: Path | None = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self.path = path or SEARCHES_PATH
        self.clock = clock

    def save_search(
        self,
        search_criteria: dict[str, Any],
        frequency: str,
        day_of_week: str | None = None,
        user_email: str | None = None,
    ) -> SavedSearch:
        frequency = (frequency or "").lower()
        if not search_criteria or frequency not in FREQUENCIES:
            raise ValueError("Search criteria and a daily/weekly frequency are required")
        if frequency == "weekly":
            day_of_week = (day_of_week or "").lower()
            if day_of_week not in DAYS:
                raise ValueError("Day of week is required for weekly searches")
        else:
            day_of_week = None

        search = SavedSearch(
            id=str(uuid.uuid4()),
            search_criteria=dict(search_criteria),
            frequency=frequency,
            day_of_week=day_of_week,
            user_email=user_email or None,
            created_at=self.clock().isoformat(),
        )
        with _locked(self.path):
            data = _read(self.path)
            data[search.id] = search.to_dict()
            _write(self.path, data)
        log.info("Saved %s search %s", frequency, search.id)
        return search

    def get_search(self, search_id: str) -> SavedSearch | None:
        record = _read(self.path).get(search_id)
        return SavedSearch.from_dict(record) if record else None

    def list_searches(self) -> list[SavedSearch]:
        return [SavedSearch.from_dict(r) for r in _read(self.path).values()]

    def _update(self, search_id: str, **changes: Any) -> bool:
        with _locked(self.path):
            data = _read(self.path)
            if search_id not in data:
                return False
            data[search_id].update(changes)
            _write(self.path, data)
        return True

    def delete_search(self, search_id: str) -> bool:
        with _locked(self.path):
            data = _read(self.path)
            if data.pop(search_id, None) is None:
                return False
            _write(self.path, data)
        log.info("Deleted search %s", search_id)
        return True

    def set_active(self, search_id: str, is_active: bool) -> bool:
        return self._update(search_id, is_active=bool(is_active))

    def update_last_run(self, search_id: str) -> bool:
        return self._update(search_id, last_run=self.clock().isoformat())


def job_key(job: NormalizedJob) -> str:
    title = re.sub(r"[^\w\s]", "", job.title.lower()).strip()
    company = re.sub(r"[^\w\s]", "", job.company.lower()).strip()
    return f"{title}|{company}"


class SeenJobStore:
    """Jobs already sent in a digest, so scheduled runs only mail new ones."""

    def __init__(self, path: Path | None = None, clock: Callable[[], datetime] = _utcnow) -> None:
        self.path = path or SEEN_JOBS_PATH
        self.clock = clock

    def filter_new_jobs(self, jobs: list[NormalizedJob]) -> list[NormalizedJob]:
        seen = _read(self.path)
        return [j for j in jobs if job_key(j) not in seen]

    def mark_jobs_seen(self, jobs: list[NormalizedJob], search_id: str) -> None:
        seen_at = self.clock().isoformat()
        with _locked(self.path):
            data = _read(self.path)
            for job in jobs:
                data[job_key(job)] = {
                    "title": job.title,
                    "company": job.company,
                    "link": job.link,
                    "seen_at": seen_at,
                    "search_id": search_id,
                }
            _write(self.path, data)

    def cleanup_old(self, days: int = 30) -> int:
        cutoff = self.clock() - timedelta(days=days)
        with _locked(self.path):
            data = _read(self.path)
            keep = {
                k: v for k, v in data.items()
                if datetime.fromisoformat(v["seen_at"]) >= cutoff
            }
            removed = len(data) - len(keep)
            if removed:
                _write(self.path, keep)
        log.info("Removed %d seen job(s) older than %d days", removed, days)
        return removed
