from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import make_posting
from jobdigest.filters import (
    is_acceptable_employment,
    is_blocked_source,
    is_genuinely_remote,
    is_within_window,
    normalize_employment_type,
    window_cutoff,
)

NOW = datetime(2026, 10, 18, 15, 30, tzinfo=timezone.utc)


class TestRemoteClassifier:
    def test_clean_remote_posting_passes(self):
        verdict = is_genuinely_remote(make_posting())
        assert verdict.remote
        assert verdict.reason is None

    def test_keyword_in_highlights_rejects(self):
        posting = make_posting(job_highlights={"Benefits": ["Hybrid schedule with flexible hours"]})
        verdict = is_genuinely_remote(posting)
        assert not verdict.remote
        assert "hybrid" in verdict.reason

    def test_days_per_week_pattern_rejects_with_reason(self):
        posting = make_posting(job_description="Remote friendly, but 3 days a week in the office.")
        verdict = is_genuinely_remote(posting)
        assert not verdict.remote
        assert "days per week" in verdict.reason
        assert "3 days a week in" in verdict.reason

    @pytest.mark.parametrize("text", ["Must be able to RTO by March", "Meet in-person quarterly"])
    def test_context_patterns(self, text):
        assert not is_genuinely_remote(make_posting(job_description=text)).remote

    def test_personal_and_personnel_do_not_trigger_in_person(self):
        posting = make_posting(job_description="Grow in personal ways; work with personnel worldwide.")
        assert is_genuinely_remote(posting).remote

    @pytest.mark.parametrize(
        "description",
        ["Fully remote, work from anywhere.", "100% remote role with async culture.", ""],
    )
    def test_specific_city_state_without_remote_flag_always_rejected(self, description):
        posting = make_posting(
            job_city="Austin", job_state="TX", job_is_remote=False, job_description=description
        )
        verdict = is_genuinely_remote(posting)
        assert not verdict.remote
        assert "Austin, TX" in verdict.reason

    def test_city_state_with_remote_flag_passes(self):
        posting = make_posting(job_city="Austin", job_state="TX", job_is_remote=True)
        assert is_genuinely_remote(posting).remote

    @pytest.mark.parametrize("text", ["Work in office on Mondays", "An in-office role"])
    def test_in_office_rejects(self, text):
        verdict = is_genuinely_remote(make_posting(job_description=text))
        assert not verdict.remote
        assert verdict.reason.startswith("pattern in office")

    def test_within_office_hours_is_still_remote(self):
        posting = make_posting(job_description="Fully remote; reachable within office hours in your time zone.")
        assert is_genuinely_remote(posting).remote

    def test_explicit_all_text_is_used(self):
        assert not is_genuinely_remote(make_posting(), "Onsite role").remote


def test_blocked_sources_match_label_or_link():
    assert is_blocked_source("JSearch (Upwork)", "https://example.com/job")
    assert is_blocked_source("JSearch (LinkedIn)", "https://www.craigslist.org/job/1")
    assert not is_blocked_source("JSearch (LinkedIn)", "https://careers.acme.example/1")
    assert not is_blocked_source(None, None)


class TestDateWindow:
    def test_cutoffs_are_utc_midnight_based(self):
        assert window_cutoff("today", NOW) == datetime(2026, 10, 18, tzinfo=timezone.utc)
        assert window_cutoff("3days", NOW) == datetime(2026, 10, 15, tzinfo=timezone.utc)
        assert window_cutoff("week", NOW) == datetime(2026, 10, 11, tzinfo=timezone.utc)
        assert window_cutoff("month", NOW) == datetime(2026, 9, 18, tzinfo=timezone.utc)
        assert window_cutoff("all", NOW) is None

    def test_month_cutoff_clamps_to_short_month(self):
        march_31 = datetime(2026, 3, 31, 8, tzinfo=timezone.utc)
        assert window_cutoff("month", march_31) == datetime(2026, 2, 28, tzinfo=timezone.utc)

    def test_old_posting_dropped_recent_kept(self):
        assert is_within_window("2026-10-18T01:00:00Z", "today", NOW)
        assert not is_within_window("2026-10-17T23:59:00Z", "today", NOW)
        assert is_within_window("2026-10-12T00:00:00+00:00", "week", NOW)
        assert not is_within_window("2026-10-01", "week", NOW)
        assert is_within_window("2020-01-01", "all", NOW)

    @pytest.mark.parametrize("option", ["all", "today", "3days", "week", "month"])
    @pytest.mark.parametrize("value", ["", None, "yesterday", "not a date"])
    def test_unparseable_dates_always_kept(self, option, value):
        assert is_within_window(value, option, NOW)


class TestEmploymentType:
    @pytest.mark.parametrize(
        "raw, label",
        [
            ("FULLTIME", "Full-Time"),
            ("FULL_TIME", "Full-Time"),
            ("PARTTIME", "Part-Time"),
            ("CONTRACTOR", "Contract"),
            ("TEMPORARY", "Temporary"),
            ("INTERN", "Internship"),
            ("OTHER", "Other"),
            (None, None),
            ("", None),
        ],
    )
    def test_normalize(self, raw, label):
        assert normalize_employment_type(raw) == label

    def test_only_listed_types_rejected(self):
        for label in ("Part-Time", "Contract", "Temporary", "Internship"):
            assert not is_acceptable_employment(label)
        for label in ("Full-Time", "Other", None):
            assert is_acceptable_employment(label)
