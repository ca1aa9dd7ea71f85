from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from jobdigest.models import NormalizedJob
from jobdigest.store import SavedSearchStore, SeenJobStore, job_key


class Clock:
    def __init__(self):
        self.now = datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


def _job(title="Senior Engineer", company="Acme, Inc."):
    return NormalizedJob(
        title=title, company=company, location="Remote", link="https://acme.example/1",
        description="", salary="Not specified", employment_type=None, company_type=None,
        posting_date="", date_pulled="", source="JSearch",
    )


def test_save_and_reload_search(tmp_path):
    store = SavedSearchStore(tmp_path / "s.yaml", clock=Clock())
    saved = store.save_search({"jobTitles": ["engineer"]}, "Weekly", "Friday", "me@example.com")

    loaded = SavedSearchStore(tmp_path / "s.yaml").get_search(saved.id)
    assert loaded.frequency == "weekly"
    assert loaded.day_of_week == "friday"
    assert loaded.search_criteria == {"jobTitles": ["engineer"]}
    assert loaded.is_active is True
    assert loaded.created_at.startswith("2026-10-18T09:00")


def test_daily_search_drops_day_of_week(tmp_path):
    saved = SavedSearchStore(tmp_path / "s.yaml").save_search({"jobTitles": ["x"]}, "daily", "monday")
    assert saved.day_of_week is None


@pytest.mark.parametrize(
    "criteria, frequency, day",
    [({}, "daily", None), ({"jobTitles": ["x"]}, "hourly", None), ({"jobTitles": ["x"]}, "weekly", None)],
)
def test_invalid_searches_rejected(tmp_path, criteria, frequency, day):
    with pytest.raises(ValueError):
        SavedSearchStore(tmp_path / "s.yaml").save_search(criteria, frequency, day)


def test_toggle_delete_and_last_run(tmp_path):
    store = SavedSearchStore(tmp_path / "s.yaml", clock=Clock())
    saved = store.save_search({"jobTitles": ["x"]}, "daily")

    assert store.set_active(saved.id, False)
    assert store.get_search(saved.id).is_active is False
    assert store.update_last_run(saved.id)
    assert store.get_search(saved.id).last_run == "2026-10-18T09:00:00+00:00"
    assert store.delete_search(saved.id)
    assert store.get_search(saved.id) is None
    assert not store.delete_search(saved.id)
    assert not store.set_active("missing", True)


def test_job_key_ignores_case_and_punctuation():
    assert job_key(_job("Senior Engineer!", "ACME Inc")) == job_key(_job("senior engineer", "Acme, Inc."))


def test_seen_jobs_filtered_and_cleaned(tmp_path):
    clock = Clock()
    seen = SeenJobStore(tmp_path / "seen.yaml", clock=clock)
    first, second = _job("Engineer A"), _job("Engineer B")

    seen.mark_jobs_seen([first], "search-1")
    assert seen.filter_new_jobs([first, second]) == [second]

    clock.now += timedelta(days=31)
    seen.mark_jobs_seen([second], "search-1")
    assert seen.cleanup_old(30) == 1
    assert seen.filter_new_jobs([first, second]) == [first]
