"""Heuristic filters applied to every posting after it comes back from the API.

The upstream's own remote, date and employment-type filters are unreliable,
so each stage here is authoritative and re-applied regardless of what was
requested upstream.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jobdigest.models import highlights_text

# ── Remote-only classification ───────────────────────────────────────────

NON_REMOTE_KEYWORDS: list[str] = [
    "hybrid",
    "onsite",
    "on-site",
    "office-based",
    "office based",
    "return to office",
]

# Context-dependent signals where a plain substring would false-positive.
NON_REMOTE_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    (
        "days per week in office",
        re.compile(r"\b\d+\s*(?:days?|x)\s*(?:per|a|each|/)\s*week\s*(?:in|at)\b", re.I),
    ),
    ("return to office", re.compile(r"\brto\b|\breturn(?:ing)?[\s-]to[\s-](?:the\s+)?office\b", re.I)),
    ("in office", re.compile(r"\bin[\s-]office\b", re.I)),
    ("in person", re.compile(r"\bin[\s-]person\b", re.I)),
    ("commuting distance", re.compile(r"\b(?:commutable|commuting)\s+distance\b", re.I)),
    ("relocation required", re.compile(r"\brelocation\s+(?:is\s+)?required\b", re.I)),
]

_REMOTE_LOCATION_WORDS = ("remote", "anywhere", "worldwide")


@dataclass(frozen=True)
class RemoteVerdict:
    remote: bool
    reason: str | None = None


def remote_text(posting: dict[str, Any]) -> str:
    """Title, description and highlight sections, the text the classifier reads."""
    return " ".join(
        [
            posting.get("job_title") or "",
            posting.get("job_description") or "",
            highlights_text(posting),
        ]
    )


def is_genuinely_remote(posting: dict[str, Any], all_text: str | None = None) -> RemoteVerdict:
    if all_text is None:
        all_text = remote_text(posting)
    lowered = all_text.lower()

    for keyword in NON_REMOTE_KEYWORDS:
        if keyword in lowered:
            return RemoteVerdict(False, f'keyword "{keyword}"')

    for label, pattern in NON_REMOTE_PATTERNS:
        match = pattern.search(all_text)
        if match:
            return RemoteVerdict(False, f'pattern {label}: "{match.group(0)}"')

    city = (posting.get("job_city") or "").strip()
    state = (posting.get("job_state") or "").strip()
    if city and state and not posting.get("job_is_remote"):
        place = f"{city}, {state}".lower()
        if not any(word in place for word in _REMOTE_LOCATION_WORDS):
            return RemoteVerdict(False, f"specific location: {city}, {state}")

    return RemoteVerdict(True)


# ── Source quality ───────────────────────────────────────────────────────

BLOCKED_SOURCES: list[str] = [
    "upwork",
    "fiverr",
    "freelancer.com",
    "craigslist",
    "jooble",
    "guru.com",
    "peopleperhour",
    "jobrapido",
    "jobsora",
    "talent.com",
]


def is_blocked_source(source_label: str | None, apply_link: str | None) -> bool:
    haystacks = [(source_label or "").lower(), (apply_link or "").lower()]
    return any(blocked in h for blocked in BLOCKED_SOURCES for h in haystacks)


# ── Posting date window ──────────────────────────────────────────────────

_WINDOW_DAYS: dict[str, int] = {"today": 0, "3days": 3, "week": 7}


def _minus_one_month(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_cutoff(date_posted: str, now: datetime | None = None) -> datetime | None:
    """UTC-midnight cutoff for a date option; None means no cutoff."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    midnight = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    if date_posted in _WINDOW_DAYS:
        return midnight - timedelta(days=_WINDOW_DAYS[date_posted])
    if date_posted == "month":
        return _minus_one_month(midnight)
    return None


def parse_posting_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_within_window(posting_date: str | None, date_posted: str, now: datetime | None = None) -> bool:
    """Unparseable dates are kept."""
    cutoff = window_cutoff(date_posted, now)
    if cutoff is None:
        return True
    posted = parse_posting_date(posting_date)
    if posted is None:
        return True
    return posted >= cutoff


# ── Employment type ──────────────────────────────────────────────────────

EMPLOYMENT_LABELS: dict[str, str] = {
    "FULLTIME": "Full-Time",
    "PARTTIME": "Part-Time",
    "CONTRACTOR": "Contract",
    "CONTRACT": "Contract",
    "TEMPORARY": "Temporary",
    "INTERN": "Internship",
    "INTERNSHIP": "Internship",
    "OTHER": "Other",
}

REJECTED_EMPLOYMENT = {"Part-Time", "Contract", "Temporary", "Internship"}


def normalize_employment_type(raw: str | None) -> str | None:
    if not raw:
        return None
    key = re.sub(r"[\s_-]", "", str(raw)).upper()
    return EMPLOYMENT_LABELS.get(key)


def is_acceptable_employment(employment_type: str | None) -> bool:
    """Unclassified postings pass; the upstream leaves many full-time roles untyped."""
    return employment_type not in REJECTED_EMPLOYMENT
