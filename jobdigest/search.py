"""
Search pipeline: fetch → remote → salary → source → date → employment type → salary backfill.

Every stage records its survivors and rejections on one FilterTrace so a zero
result can be explained. Upstream failures come back as an empty job list with
``debug.error`` set; they are never raised to the caller.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable

from jobdigest.config import Settings, load_settings
from jobdigest.filters import (
    is_acceptable_employment,
    is_blocked_source,
    is_genuinely_remote,
    is_within_window,
    normalize_employment_type,
    parse_posting_date,
    remote_text,
)
from jobdigest.log import get_logger
from jobdigest.models import FilterTrace, NormalizedJob, SearchCriteria, SearchResult
from jobdigest.salary import NOT_SPECIFIED, normalize_salary, salary_for_posting, salary_in_range
from jobdigest.scraper import SalaryPageScraper
from jobdigest.sources import JobSearchBase, JSearchSource, UpstreamError

log = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _posting_date(posting: dict[str, Any]) -> str:
    value = posting.get("job_posted_at_datetime_utc")
    parsed = parse_posting_date(value)
    if parsed:
        return parsed.isoformat()
    timestamp = posting.get("job_posted_at_timestamp")
    if timestamp:
        try:
            return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).isoformat()
        except (TypeError, ValueError, OverflowError, OSError):
            pass
    return str(value or "")


def _location(posting: dict[str, Any]) -> str:
    city = posting.get("job_city")
    state = posting.get("job_state")
    if city and state:
        return f"{city}, {state}"
    return posting.get("job_country") or "Remote"


def to_normalized_job(
    posting: dict[str, Any],
    salary: str | None,
    settings: Settings,
    now: datetime,
) -> NormalizedJob:
    publisher = posting.get("job_publisher")
    description = (posting.get("job_description") or "")[: settings.description_chars]
    return NormalizedJob(
        title=posting.get("job_title") or "No title",
        company=posting.get("employer_name") or "Unknown",
        location=_location(posting),
        link=posting.get("job_apply_link") or posting.get("job_google_link") or "#",
        description=description or "No description available",
        salary=salary or NOT_SPECIFIED,
        employment_type=normalize_employment_type(posting.get("job_employment_type")),
        company_type=posting.get("employer_company_type"),
        posting_date=_posting_date(posting),
        date_pulled=now.strftime("%Y-%m-%d %H:%M:%S"),
        source=f"JSearch ({publisher})" if publisher else "JSearch",
    )


class JobSearch:
    def __init__(
        self,
        source: JobSearchBase | None,
        *,
        scraper: SalaryPageScraper | None = None,
        settings: Settings | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.source = source
        self.settings = settings or Settings()
        self.scraper = scraper
        self.now = now

    def search(self, criteria: SearchCriteria | dict[str, Any]) -> SearchResult:
        if isinstance(criteria, dict):
            criteria = SearchCriteria.from_dict(criteria)
        trace = FilterTrace()

        if self.source is None:
            log.warning("JSearch API key not configured; nothing to search")
            trace.error = "JSEARCH_API_KEY is not configured"
            return SearchResult([], trace)

        titles = criteria.titles
        log.info("Searching %d title(s): %s", len(titles), ", ".join(titles))
        try:
            postings = self.source.fetch_all_pages(titles, criteria, trace)
        except UpstreamError as exc:
            log.error("Search aborted (%s): %s", exc.error_type, exc)
            trace.error = str(exc)
            return SearchResult([], trace)

        trace.api_returned = len(postings)
        if not postings and trace.page_timeouts and not trace.pages_fetched:
            trace.error = "JSearch API request timed out"
            return SearchResult([], trace)

        now = self.now()
        jobs = self._transform(postings, criteria, trace, now)
        jobs = self._filter_sources(jobs, trace)
        jobs = self._filter_dates(jobs, criteria, trace, now)
        jobs = self._filter_employment(jobs, trace)

        if criteria.skip_scraping:
            log.debug("Salary scraping skipped by caller")
        else:
            jobs = self._backfill_salaries(jobs, criteria, trace)

        log.info(
            "Search done: %s -> %d jobs (%d with salary)",
            " -> ".join(str(c) for c in trace.counts()),
            len(jobs),
            sum(1 for j in jobs if j.salary != NOT_SPECIFIED),
        )
        return SearchResult(jobs, trace)

    def _transform(
        self,
        postings: list[dict],
        criteria: SearchCriteria,
        trace: FilterTrace,
        now: datetime,
    ) -> list[NormalizedJob]:
        jobs: list[NormalizedJob] = []
        for posting in postings:
            title = posting.get("job_title") or "No title"
            salary = salary_for_posting(posting, self.settings.salary_floor)

            if criteria.remote_only:
                verdict = is_genuinely_remote(posting, remote_text(posting))
                if not verdict.remote:
                    trace.remote_filtered += 1
                    trace.remote_reasons.append({"title": title, "reason": verdict.reason or ""})
                    log.debug("Dropped %r: not remote (%s)", title, verdict.reason)
                    continue
            trace.after_remote_filter += 1

            if not salary_in_range(salary, criteria.min_salary, criteria.max_salary):
                trace.salary_filtered += 1
                log.debug("Dropped %r: salary %s outside requested range", title, salary)
                continue
            trace.after_salary_filter += 1

            jobs.append(to_normalized_job(posting, salary, self.settings, now))
        return jobs

    def _filter_sources(self, jobs: list[NormalizedJob], trace: FilterTrace) -> list[NormalizedJob]:
        kept = [j for j in jobs if not is_blocked_source(j.source, j.link)]
        trace.source_filtered = len(jobs) - len(kept)
        trace.after_source_filter = len(kept)
        return kept

    def _filter_dates(
        self,
        jobs: list[NormalizedJob],
        criteria: SearchCriteria,
        trace: FilterTrace,
        now: datetime,
    ) -> list[NormalizedJob]:
        kept = [j for j in jobs if is_within_window(j.posting_date, criteria.date_posted, now)]
        trace.date_filtered = len(jobs) - len(kept)
        trace.after_date_filter = len(kept)
        return kept

    def _filter_employment(self, jobs: list[NormalizedJob], trace: FilterTrace) -> list[NormalizedJob]:
        kept: list[NormalizedJob] = []
        for job in jobs:
            if is_acceptable_employment(job.employment_type):
                kept.append(job)
                continue
            trace.employment_filtered += 1
            trace.employment_reasons.append({"title": job.title, "reason": job.employment_type or ""})
        trace.after_employment_filter = len(kept)
        return kept

    def _backfill_salaries(
        self,
        jobs: list[NormalizedJob],
        criteria: SearchCriteria,
        trace: FilterTrace,
    ) -> list[NormalizedJob]:
        """Fill missing salaries from job pages; an out-of-range find is discarded, the job kept."""
        missing = [
            i for i, j in enumerate(jobs)
            if j.salary == NOT_SPECIFIED and j.link.startswith(("http://", "https://"))
        ][: self.settings.scrape_limit]
        if not missing:
            return jobs

        scraper = self.scraper or SalaryPageScraper(self.settings)
        found = scraper.scrape_many([jobs[i].link for i in missing])
        jobs = list(jobs)
        for i, raw in zip(missing, found):
            salary = normalize_salary(raw, self.settings.salary_floor)
            if salary and not salary_in_range(salary, criteria.min_salary, criteria.max_salary):
                log.debug("Ignoring scraped salary %s for %r: outside requested range", salary, jobs[i].title)
                continue
            if salary:
                jobs[i] = replace(jobs[i], salary=salary)
                trace.salary_scraped += 1
        log.info("Salary backfill: %d of %d pages yielded a salary", trace.salary_scraped, len(missing))
        return jobs


def search(
    criteria: SearchCriteria | dict[str, Any],
    *,
    source: JobSearchBase | None = None,
    settings: Settings | None = None,
    **kwargs: Any,
) -> SearchResult:
    """Run one search with the configured JSearch source unless one is given."""
    settings = settings or load_settings()
    if source is None:
        source = JSearchSource.from_env(settings=settings)
    return JobSearch(source, settings=settings, **kwargs).search(criteria)
