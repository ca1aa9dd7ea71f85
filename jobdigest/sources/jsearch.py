"""JSearch API (RapidAPI): paginated search across job titles.

Pages within a title and titles themselves are fetched strictly in order.
The whole multi-title fetch runs under a wall-clock budget checked before
every request; once it is spent, whatever was collected is returned.
"""
from __future__ import annotations

import time
from typing import Any, Callable

import requests

from jobdigest.config import Settings, get_env
from jobdigest.log import get_logger
from jobdigest.models import FilterTrace, SearchCriteria
from jobdigest.retry import retry
from jobdigest.sources.base import JobSearchBase
from jobdigest.usage import FAILED, SUCCESS, UsageLog

log = get_logger(__name__)

_QUOTA_WORDS = ("exceeded", "quota")


class UpstreamError(Exception):
    """The search API failed in a way that ends the whole search."""

    def __init__(self, message: str, error_type: str = "other") -> None:
        super().__init__(message)
        self.error_type = error_type


class QuotaExceededError(UpstreamError):
    def __init__(self, message: str) -> None:
        super().__init__(message, "quota_exceeded")


class EmptyFirstPage(Exception):
    pass


class BudgetExhausted(Exception):
    pass


def build_query(title: str, criteria: SearchCriteria) -> str:
    title = title.strip()
    types = set(criteria.location_type)
    if criteria.location and types & {"onsite", "hybrid"}:
        return f"{title} in {criteria.location}"
    if criteria.remote_only:
        return f"{title} remote"
    return title


def posting_key(posting: dict[str, Any]) -> str:
    """Stable identity: upstream id, else apply link, else title|employer."""
    if posting.get("job_id"):
        return f"id:{posting['job_id']}"
    if posting.get("job_apply_link"):
        return f"link:{posting['job_apply_link']}"
    title = (posting.get("job_title") or "").strip().lower()
    employer = (posting.get("employer_name") or "").strip().lower()
    return f"te:{title}|{employer}"


class JSearchSource(JobSearchBase):
    BASE = "https://jsearch.p.rapidapi.com"

    def __init__(
        self,
        api_key: str,
        *,
        settings: Settings | None = None,
        session: Any = None,
        usage: UsageLog | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_key = api_key
        self.settings = settings or Settings()
        self.session = session or requests.Session()
        self.usage = usage or UsageLog(monthly_quota=self.settings.monthly_quota)
        self.clock = clock
        self._started: float | None = None

    @classmethod
    def from_env(cls, env_getter=get_env, **kwargs: Any) -> "JSearchSource | None":
        api_key = env_getter("JSEARCH_API_KEY")
        if not api_key:
            return None
        return cls(api_key, **kwargs)

    def _check_budget(self) -> None:
        if self._started is None:
            return
        elapsed = self.clock() - self._started
        if elapsed >= self.settings.fetch_budget:
            raise BudgetExhausted(f"{elapsed:.1f}s elapsed")

    def fetch_page(
        self,
        query: str,
        page: int,
        criteria: SearchCriteria,
        trace: FilterTrace | None = None,
    ) -> list[dict]:
        """One page request; every attempt is recorded in the usage log."""
        self._check_budget()
        try:
            r = self.session.get(
                f"{self.BASE}/search",
                params={
                    "query": query,
                    "page": str(page),
                    "num_pages": "1",
                    "date_posted": criteria.date_posted,
                    "remote_jobs_only": "true" if criteria.remote_only else "false",
                },
                headers={
                    "X-RapidAPI-Key": self.api_key,
                    "X-RapidAPI-Host": self.settings.api_host,
                },
                timeout=self.settings.page_timeout,
            )
        except requests.Timeout:
            self.usage.record_api_call(1, FAILED, "timeout")
            if trace is not None:
                trace.page_timeouts += 1
            log.warning("JSearch query=%r page=%d timed out", query, page)
            raise
        except requests.RequestException as exc:
            self.usage.record_api_call(1, FAILED, "other")
            raise UpstreamError(f"JSearch API request failed: {exc}") from exc

        if r.status_code == 403:
            self.usage.record_api_call(1, FAILED, "quota_exceeded")
            raise UpstreamError("JSearch API: invalid API key or quota exceeded", "quota_exceeded")
        if r.status_code == 429:
            self.usage.record_api_call(1, FAILED, "rate_limit")
            raise UpstreamError("JSearch API: rate limit exceeded", "rate_limit")
        if r.status_code >= 400:
            self.usage.record_api_call(1, FAILED, "other")
            raise UpstreamError(f"JSearch API returned HTTP {r.status_code}")

        try:
            body = r.json()
        except ValueError as exc:
            self.usage.record_api_call(1, FAILED, "other")
            raise UpstreamError("JSearch API returned a malformed response") from exc

        message = body.get("message") if isinstance(body, dict) else None
        if isinstance(message, str) and any(w in message.lower() for w in _QUOTA_WORDS):
            self.usage.record_api_call(1, FAILED, "quota_exceeded")
            raise QuotaExceededError(message)

        self.usage.record_api_call(1, SUCCESS)
        data = body.get("data") if isinstance(body, dict) else None
        return list(data or [])

    def _first_page(self, query: str, criteria: SearchCriteria, trace: FilterTrace) -> list[dict]:
        batch = self.fetch_page(query, 1, criteria, trace)
        if not batch:
            raise EmptyFirstPage(f"no results for {query!r}")
        return batch

    def fetch_all_pages(
        self,
        titles: list[str],
        criteria: SearchCriteria,
        trace: FilterTrace | None = None,
    ) -> list[dict]:
        """Postings for every title, deduplicated across titles.

        Raises UpstreamError (including QuotaExceededError) for failures that
        end the search; timeouts only end the current title.
        """
        trace = trace if trace is not None else FilterTrace()
        if not titles:
            return []

        per_title = max(1, self.settings.max_total_pages // len(titles))
        # An empty or slow first page is often transient upstream, so retry once.
        # This cannot tell "slow" apart from "genuinely no results".
        first_page = retry(
            max_attempts=2,
            base_delay=self.settings.first_page_retry_delay,
            jitter=False,
            retryable=(EmptyFirstPage, requests.Timeout),
        )(self._first_page)

        seen: set[str] = set()
        postings: list[dict] = []
        self._started = self.clock()
        try:
            for title in titles:
                query = build_query(title, criteria)
                trace.titles_searched.append(query)
                for page in range(1, per_title + 1):
                    try:
                        if page == 1:
                            batch = first_page(query, criteria, trace)
                        else:
                            batch = self.fetch_page(query, page, criteria, trace)
                    except EmptyFirstPage:
                        log.info("JSearch query=%r returned nothing after retry", query)
                        break
                    except requests.Timeout:
                        break

                    trace.pages_fetched += 1
                    if not batch:
                        break
                    added = 0
                    for posting in batch:
                        key = posting_key(posting)
                        if key in seen:
                            continue
                        seen.add(key)
                        postings.append(posting)
                        added += 1
                    log.debug(
                        "JSearch query=%r page=%d returned %d (%d new)",
                        query, page, len(batch), added,
                    )
        except BudgetExhausted as exc:
            trace.budget_exhausted = True
            log.warning(
                "JSearch fetch budget of %.0fs spent (%s); keeping %d postings",
                self.settings.fetch_budget, exc, len(postings),
            )
        finally:
            self._started = None

        log.info(
            "JSearch returned %d unique postings from %d page(s) across %d title(s)",
            len(postings), trace.pages_fetched, len(titles),
        )
        return postings
