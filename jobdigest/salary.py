"""Salary extraction and normalization to an annualized display string.

Text mining runs an ordered rule table; the first rule that matches anywhere
in the text wins. Normalization annualizes hourly figures at 2080 hours/year
and drops anything that lands below the configured floor.
"""
from __future__ import annotations

import re
from typing import Any

from jobdigest.models import highlights_text

HOURS_PER_YEAR = 2080
DEFAULT_FLOOR = 5000
NOT_SPECIFIED = "Not specified"

PERIOD_MULTIPLIERS: dict[str, int] = {
    "HOURLY": HOURS_PER_YEAR,
    "HOUR": HOURS_PER_YEAR,
    "DAILY": 260,
    "WEEKLY": 52,
    "MONTHLY": 12,
    "MONTH": 12,
    "YEARLY": 1,
    "YEAR": 1,
    "ANNUAL": 1,
}

# bounds of a figure that is probably an hourly rate even without a marker
_HOURLY_LOW, _HOURLY_HIGH = 10, 150

_NUM = r"(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?(?:\s?k\b)?"
_DOLLAR = r"\$\s?" + _NUM
_SEP = r"\s*(?:-|to)\s*"
_SECOND = r"\$?\s?" + _NUM
_PER_HOUR = r"\s*(?:/\s?|per\s+|an?\s+)?(?:hourly|hour|hr)\b"
_PER_YEAR = r"\s*(?:(?:/\s?|per\s+|an?\s+)?(?:year|yr|annum)|annually)\b"
_PREFIX = r"\b(?:base\s+)?(?:salary|compensation|pay)(?:\s+range)?(?:\s*:\s*\$?|\s+\$)\s?"

SALARY_RULES: list[tuple[str, re.Pattern[str]]] = [
    ("hourly range", re.compile(_DOLLAR + _SEP + _SECOND + _PER_HOUR, re.I)),
    ("annual range", re.compile(_DOLLAR + _SEP + _SECOND + f"(?:{_PER_YEAR})?", re.I)),
    ("hourly", re.compile(_DOLLAR + _PER_HOUR, re.I)),
    ("annual", re.compile(_DOLLAR + _PER_YEAR, re.I)),
    ("labelled range", re.compile(_PREFIX + _NUM + _SEP + _SECOND, re.I)),
    ("labelled amount", re.compile(_PREFIX + _NUM + r"(?:\s?\+)?", re.I)),
    ("open-ended", re.compile(_DOLLAR + r"\s?\+", re.I)),
    ("k range", re.compile(r"\b\d{2,3}\s?k" + _SEP + r"\d{2,3}\s?k\b", re.I)),
    ("dollar amount", re.compile(_DOLLAR, re.I)),
]

_DASHES = re.compile("[‐‑‒–—―−]")
_HOURLY_MARK = re.compile(r"\b(?:hour|hr|hourly)\b", re.I)
_TOKEN = re.compile(r"(\d+(?:\.\d+)?)\s?(k\b)?", re.I)


def _clean_dashes(text: str) -> str:
    return _DASHES.sub("-", text)


def extract_salary_text(text: str | None) -> str | None:
    """First salary-looking fragment in ``text``, by rule priority."""
    if not text:
        return None
    text = _clean_dashes(text)
    for _name, pattern in SALARY_RULES:
        match = pattern.search(text)
        if match:
            return match.group(0).strip()
    return None


def _fmt(value: float) -> str:
    return f"${int(round(value)):,}"


def format_annual(low: float, high: float | None = None, *, open_ended: bool = False) -> str:
    if high is None or int(round(low)) == int(round(high)):
        return f"{_fmt(low)}+/yr" if open_ended else f"{_fmt(low)}/yr"
    return f"{_fmt(low)} - {_fmt(high)}/yr"


def normalize_salary(raw: str | None, floor: int = DEFAULT_FLOOR) -> str | None:
    """Annualized display string for a mined salary fragment, or None."""
    if not raw:
        return None
    text = _clean_dashes(raw).replace(",", "").replace("$", "")
    values: list[float] = []
    for number, k in _TOKEN.findall(text):
        value = float(number) * (1000 if k else 1)
        if value > 0:
            values.append(value)
    if not values:
        return None

    low, high = min(values), max(values)
    hourly = bool(_HOURLY_MARK.search(text))
    if not hourly and _HOURLY_LOW <= low < _HOURLY_HIGH and _HOURLY_LOW <= high < _HOURLY_HIGH:
        hourly = True
    if hourly:
        low, high = low * HOURS_PER_YEAR, high * HOURS_PER_YEAR

    if low < floor:
        return None
    return format_annual(low, high, open_ended="+" in text)


def _number(value: Any) -> float | None:
    if value in (None, ""):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def salary_from_fields(
    min_salary: Any,
    max_salary: Any,
    period: str | None,
    floor: int = DEFAULT_FLOOR,
) -> str | None:
    """Annualized display string from structured min/max/period fields."""
    low, high = _number(min_salary), _number(max_salary)
    if low is None and high is None:
        return None
    if low is not None and high is not None and low > high:
        low, high = high, low

    present = [v for v in (low, high) if v is not None]
    multiplier = PERIOD_MULTIPLIERS.get((period or "").upper())
    if multiplier is None:
        looks_hourly = all(_HOURLY_LOW <= v < _HOURLY_HIGH for v in present)
        multiplier = HOURS_PER_YEAR if looks_hourly else 1
    low = low * multiplier if low is not None else None
    high = high * multiplier if high is not None else None

    if any(v < floor for v in (low, high) if v is not None):
        return None
    if low is not None and high is not None:
        return format_annual(low, high)
    if low is not None:
        return format_annual(low, open_ended=True)
    return f"Up to {_fmt(high)}/yr"


def salary_for_posting(posting: dict[str, Any], floor: int = DEFAULT_FLOOR) -> str | None:
    """Structured fields first, then highlights, description and title."""
    salary = salary_from_fields(
        posting.get("job_min_salary"),
        posting.get("job_max_salary"),
        posting.get("job_salary_period"),
        floor,
    )
    if salary:
        return salary

    candidates = (
        highlights_text(posting),
        posting.get("job_description") or "",
        posting.get("job_title") or "",
    )
    for text in candidates:
        salary = normalize_salary(extract_salary_text(text), floor)
        if salary:
            return salary
    return None


def salary_bounds(salary: str | None) -> tuple[int, int | None] | None:
    """(low, high) in dollars for a normalized string; high is None when open-ended."""
    if not salary or salary == NOT_SPECIFIED:
        return None
    numbers = [int(n.replace(",", "")) for n in re.findall(r"\d[\d,]*", salary)]
    if not numbers:
        return None
    if salary.startswith("Up to"):
        return 0, numbers[0]
    if "+" in salary:
        return numbers[0], None
    return min(numbers), max(numbers)


def salary_in_range(salary: str | None, min_salary: int | None, max_salary: int | None) -> bool:
    """Postings without a salary always pass."""
    bounds = salary_bounds(salary)
    if bounds is None:
        return True
    low, high = bounds
    if min_salary and high is not None and high < min_salary:
        return False
    if max_salary and low > max_salary:
        return False
    return True
