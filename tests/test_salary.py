from __future__ import annotations

import pytest

from jobdigest.salary import (
    extract_salary_text,
    normalize_salary,
    salary_bounds,
    salary_for_posting,
    salary_from_fields,
    salary_in_range,
)


def test_compensation_range_extracted_and_normalized():
    found = extract_salary_text("Compensation: $90k - $110k annually")
    assert found is not None
    assert "90" in found and "110" in found
    assert normalize_salary(found) == "$90,000 - $110,000/yr"


@pytest.mark.parametrize("rate", [15, 42, 50, 99, 140])
def test_single_hourly_rate_is_annualized(rate):
    found = extract_salary_text(f"Pay is ${rate}/hr plus benefits")
    assert normalize_salary(found) == f"${rate * 2080:,}/yr"


def test_hourly_word_marks_rate():
    found = extract_salary_text("Paid $160 hourly, fully remote")
    assert found == "$160 hourly"
    assert normalize_salary(found) == "$332,800/yr"


def test_hourly_range_wins_over_annual_range():
    text = "Range $40 - $60 per hour, or $120,000 - $150,000 for salaried staff"
    assert extract_salary_text(text) == "$40 - $60 per hour"
    assert normalize_salary("$40 - $60 per hour") == "$83,200 - $124,800/yr"


def test_en_dash_is_treated_as_hyphen():
    found = extract_salary_text("Salary band $120,000 – $150,000")
    assert found == "$120,000 - $150,000"
    assert normalize_salary(found) == "$120,000 - $150,000/yr"


def test_open_ended_amount():
    found = extract_salary_text("Base pay $150k+ with equity")
    assert normalize_salary(found) == "$150,000+/yr"


def test_bare_k_range():
    assert extract_salary_text("We pay 120k-140k depending on level") == "120k-140k"
    assert normalize_salary("120k-140k") == "$120,000 - $140,000/yr"


def test_unmarked_small_range_treated_as_hourly():
    assert normalize_salary("$25 - $35") == "$52,000 - $72,800/yr"


def test_garbage_below_floor_is_rejected():
    assert normalize_salary("$2 years experience") is None
    assert normalize_salary("Requires 5+ years") is None


def test_floor_is_configurable():
    assert normalize_salary("$4,000", floor=5000) is None
    assert normalize_salary("$4,000", floor=1000) == "$4,000/yr"


def test_no_match_returns_none():
    assert extract_salary_text("Great team, great culture") is None
    assert extract_salary_text("") is None
    assert normalize_salary(None) is None


def test_structured_hourly_fields():
    assert salary_from_fields(50, 70, "HOURLY") == "$104,000 - $145,600/yr"


def test_structured_monthly_and_single_bounds():
    assert salary_from_fields(8000, None, "MONTHLY") == "$96,000+/yr"
    assert salary_from_fields(None, 120000, "YEARLY") == "Up to $120,000/yr"
    assert salary_from_fields(None, None, "YEARLY") is None


def test_structured_fields_below_floor_dropped():
    assert salary_from_fields(100, 200, "MONTHLY") is None


def test_structured_fields_take_precedence_over_text():
    posting = {
        "job_min_salary": 100000,
        "job_max_salary": 130000,
        "job_salary_period": "YEAR",
        "job_description": "Salary: $60,000 - $70,000",
    }
    assert salary_for_posting(posting) == "$100,000 - $130,000/yr"


def test_text_fallback_order_prefers_highlights():
    posting = {
        "job_highlights": {"Benefits": ["Salary range $95,000 - $105,000"]},
        "job_description": "Pays $50/hr",
    }
    assert salary_for_posting(posting) == "$95,000 - $105,000/yr"


def test_bounds_and_range_check():
    assert salary_bounds("$90,000 - $110,000/yr") == (90000, 110000)
    assert salary_bounds("$150,000+/yr") == (150000, None)
    assert salary_bounds("Up to $80,000/yr") == (0, 80000)
    assert salary_bounds("Not specified") is None

    assert salary_in_range("$90,000 - $110,000/yr", 100000, None)
    assert not salary_in_range("$90,000 - $110,000/yr", 120000, None)
    assert not salary_in_range("$90,000 - $110,000/yr", None, 80000)
    assert salary_in_range("Not specified", 120000, 130000)
    assert salary_in_range("$150,000+/yr", 200000, None)
