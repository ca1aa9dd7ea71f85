"""Data models for search criteria, jobs, filter traces and background runs."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any

DEFAULT_TITLE = "software engineer"
DATE_POSTED_OPTIONS = ("all", "today", "3days", "week", "month")

RUNNING = "running"
COMPLETED = "completed"
ERROR = "error"
TIMEOUT = "timeout"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _pick(data: dict, *keys: str) -> Any:
    for key in keys:
        if data.get(key) not in (None, ""):
            return data[key]
    return None


def _money(value: Any) -> int | None:
    if value in (None, ""):
        return None
    try:
        amount = int(float(str(value).replace(",", "").replace("$", "")))
    except ValueError:
        return None
    return amount or None


@dataclass
class SearchCriteria:
    job_titles: list[str] = field(default_factory=list)
    location_type: list[str] = field(default_factory=list)
    location: str = ""
    min_salary: int | None = None
    max_salary: int | None = None
    date_posted: str = "all"
    skip_scraping: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchCriteria":
        """Accepts the camelCase shape a web client sends as well as snake_case."""
        titles = _pick(data, "jobTitles", "job_titles") or []
        if isinstance(titles, str):
            titles = [titles]
        single = _pick(data, "jobTitle", "job_title")
        if single and not titles:
            titles = [single]

        location_type = _pick(data, "locationType", "location_type") or []
        if isinstance(location_type, str):
            location_type = [location_type]

        date_posted = str(_pick(data, "datePosted", "date_posted") or "all").lower()
        if date_posted not in DATE_POSTED_OPTIONS:
            date_posted = "all"

        return cls(
            job_titles=[str(t) for t in titles],
            location_type=[str(t).lower() for t in location_type],
            location=str(data.get("location") or "").strip(),
            min_salary=_money(_pick(data, "minSalary", "min_salary")),
            max_salary=_money(_pick(data, "maxSalary", "max_salary")),
            date_posted=date_posted,
            skip_scraping=bool(_pick(data, "skipScraping", "skip_scraping")),
        )

    @property
    def titles(self) -> list[str]:
        """Cleaned, case-insensitively unique titles; never empty."""
        seen: set[str] = set()
        out: list[str] = []
        for title in self.job_titles:
            t = title.strip()
            if t and t.lower() not in seen:
                seen.add(t.lower())
                out.append(t)
        return out or [DEFAULT_TITLE]

    @property
    def remote_only(self) -> bool:
        return set(self.location_type) == {"remote"}

    def to_dict(self) -> dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class NormalizedJob:
    title: str
    company: str
    location: str
    link: str
    description: str
    salary: str
    employment_type: str | None
    company_type: str | None
    posting_date: str
    date_pulled: str
    source: str

    def to_dict(self) -> dict[str, Any]:
        return {_camel(k): v for k, v in asdict(self).items()}


@dataclass
class FilterTrace:
    """Per-stage survival counts and rejection reasons for one search."""

    api_returned: int = 0
    after_remote_filter: int = 0
    after_salary_filter: int = 0
    after_source_filter: int = 0
    after_date_filter: int = 0
    after_employment_filter: int = 0

    remote_filtered: int = 0
    salary_filtered: int = 0
    source_filtered: int = 0
    date_filtered: int = 0
    employment_filtered: int = 0

    remote_reasons: list[dict[str, str]] = field(default_factory=list)
    employment_reasons: list[dict[str, str]] = field(default_factory=list)

    titles_searched: list[str] = field(default_factory=list)
    pages_fetched: int = 0
    page_timeouts: int = 0
    budget_exhausted: bool = False
    salary_scraped: int = 0
    error: str | None = None

    def counts(self) -> list[int]:
        """Stage counts in pipeline order."""
        return [
            self.api_returned,
            self.after_remote_filter,
            self.after_salary_filter,
            self.after_source_filter,
            self.after_date_filter,
            self.after_employment_filter,
        ]

    def to_dict(self) -> dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}


@dataclass
class SearchResult:
    jobs: list[NormalizedJob]
    debug: FilterTrace

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs": [j.to_dict() for j in self.jobs],
            "debug": self.debug.to_dict(),
        }


@dataclass
class RunStatus:
    search_id: str
    status: str = RUNNING
    start_time: float = 0.0
    message: str = ""
    debug: dict[str, Any] | None = None
    error: str | None = None
    jobs_found: int | None = None

    @property
    def finished(self) -> bool:
        return self.status in (COMPLETED, ERROR)

    def to_dict(self) -> dict[str, Any]:
        return {_camel(k): v for k, v in asdict(self).items()}


@dataclass
class SavedSearch:
    id: str
    search_criteria: dict[str, Any]
    frequency: str
    day_of_week: str | None = None
    user_email: str | None = None
    is_active: bool = True
    last_run: str | None = None
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SavedSearch":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


HIGHLIGHT_SECTIONS = ("Qualifications", "Responsibilities", "Benefits")


def highlights_text(posting: dict[str, Any]) -> str:
    """All highlight sections of a raw posting joined into one string."""
    highlights = posting.get("job_highlights") or {}
    parts: list[str] = []
    for section in HIGHLIGHT_SECTIONS:
        parts.extend(str(item) for item in highlights.get(section) or [])
    return " ".join(parts)
