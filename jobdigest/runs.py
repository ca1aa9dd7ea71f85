"""
"Run now" for saved searches: a detached worker thread per run, tracked by token.

The worker is the only writer of its status record; pollers read copies.
Records are swept once they are older than the retention window, so a
missing token means "unknown", not failure.
"""
from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Any, Callable

from jobdigest.email_report import send_job_alert_email
from jobdigest.log import get_logger
from jobdigest.models import COMPLETED, ERROR, TIMEOUT, RunStatus, SavedSearch, SearchCriteria, SearchResult
from jobdigest.search import search
from jobdigest.store import SavedSearchNotFound, SavedSearchStore

log = get_logger(__name__)


class RunStatusStore:
    def __init__(self, retention: float = 600.0, clock: Callable[[], float] = time.time) -> None:
        self.retention = retention
        self.clock = clock
        self._records: dict[str, RunStatus] = {}
        self._lock = threading.Lock()

    def _sweep(self, now: float) -> None:
        expired = [t for t, r in self._records.items() if now - r.start_time > self.retention]
        for token in expired:
            del self._records[token]
        if expired:
            log.debug("Swept %d expired run status record(s)", len(expired))

    def register(self, search_id: str) -> str:
        """New ``running`` record; expired records are swept first."""
        now = self.clock()
        with self._lock:
            self._sweep(now)
            token = base = f"{search_id}-{int(now * 1000)}"
            n = 1
            while token in self._records:
                token = f"{base}-{n}"
                n += 1
            self._records[token] = RunStatus(search_id=search_id, start_time=now, message="Search started")
        return token

    def get(self, token: str) -> RunStatus | None:
        with self._lock:
            record = self._records.get(token)
            return replace(record) if record else None

    def update(self, token: str, **changes: Any) -> None:
        with self._lock:
            record = self._records.get(token)
            if record is None:
                return
            for key, value in changes.items():
                setattr(record, key, value)

    def all(self) -> dict[str, RunStatus]:
        with self._lock:
            return {t: replace(r) for t, r in self._records.items()}


class BackgroundRunner:
    def __init__(
        self,
        searches: SavedSearchStore,
        statuses: RunStatusStore | None = None,
        *,
        search_fn: Callable[[SearchCriteria], SearchResult] = search,
        send_email: Callable[..., None] = send_job_alert_email,
    ) -> None:
        self.searches = searches
        self.statuses = statuses or RunStatusStore()
        self.search_fn = search_fn
        self.send_email = send_email
        self._workers: dict[str, threading.Thread] = {}

    def start_background_run(self, search_id: str) -> str:
        """Kick off the saved search and return its status token immediately."""
        saved = self.searches.get_search(search_id)
        if saved is None:
            raise SavedSearchNotFound(search_id)

        self._workers = {t: w for t, w in self._workers.items() if w.is_alive()}
        token = self.statuses.register(search_id)
        worker = threading.Thread(
            target=self._run, args=(token, saved), name=f"run-now-{token}", daemon=True
        )
        self._workers[token] = worker
        worker.start()
        log.info("Started background run %s", token)
        return token

    def get_run_status(self, token: str) -> RunStatus | None:
        return self.statuses.get(token)

    def wait(self, token: str, timeout: float | None = None) -> RunStatus | None:
        worker = self._workers.get(token)
        if worker is not None:
            worker.join(timeout)
        return self.statuses.get(token)

    def _run(self, token: str, saved: SavedSearch) -> None:
        try:
            self.statuses.update(token, message="Searching for jobs...")
            criteria = replace(SearchCriteria.from_dict(saved.search_criteria), skip_scraping=True)
            result = self.search_fn(criteria)
            debug = result.debug.to_dict()
            if result.debug.error:
                self.statuses.update(
                    token, status=ERROR, error=result.debug.error, debug=debug, message="Search failed"
                )
                log.warning("Background run %s failed: %s", token, result.debug.error)
                return

            jobs = result.jobs
            if jobs:
                self.statuses.update(token, message=f"Found {len(jobs)} jobs, sending email...")
                self.send_email(saved.user_email, jobs, criteria)
                message = f"Found {len(jobs)} jobs and sent the email"
            else:
                message = "No jobs found"
            self.searches.update_last_run(saved.id)
            self.statuses.update(
                token, status=COMPLETED, jobs_found=len(jobs), debug=debug, message=message
            )
            log.info("Background run %s completed: %s", token, message)
        except Exception as exc:
            log.exception("Background run %s failed", token)
            self.statuses.update(token, status=ERROR, error=str(exc), message="Run failed")


def poll_run_status(
    get_status: Callable[[str], RunStatus | None],
    token: str,
    *,
    timeout: float = 300.0,
    interval: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> RunStatus | None:
    """Poll until the run finishes; label it ``timeout`` if we stop waiting first.

    The ``timeout`` label is the caller's view only and is never stored.
    """
    deadline = clock() + timeout
    while True:
        status = get_status(token)
        if status is None or status.finished:
            return status
        if clock() >= deadline:
            return replace(status, status=TIMEOUT, message="Still running; stopped waiting")
        sleep(interval)
