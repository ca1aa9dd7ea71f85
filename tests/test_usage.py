from __future__ import annotations

from datetime import datetime, timezone

from jobdigest.usage import FAILED, SUCCESS, UsageLog

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _at(day, month=10):
    return datetime(2026, month, day, 9, 0, tzinfo=timezone.utc)


def test_monthly_stats(tmp_path, monkeypatch):
    monkeypatch.setenv("JSEARCH_API_KEY", "abc")
    usage = UsageLog(tmp_path / "usage.csv", monthly_quota=200)
    usage.record_api_call(1, SUCCESS, now=_at(30, month=9))
    usage.record_api_call(1, SUCCESS, now=_at(1))
    usage.record_api_call(1, FAILED, "rate_limit", now=_at(5))
    usage.record_api_call(1, FAILED, "timeout", now=_at(6))

    stats = usage.get_usage_stats(NOW)
    month = stats["current_month"]

    assert stats["has_api_key"] is True
    assert month["month_name"] == "October 2026"
    assert month["calls"] == 3
    assert month["successes"] == 1
    assert month["failures"] == 2
    assert month["rate_limits"] == 1
    assert month["timeouts"] == 1
    assert month["quota_exceeded"] == 0
    assert month["last_call"].startswith("2026-10-06")
    assert stats["estimated_limit"]["used_percentage"] == 1.5
    assert stats["estimated_limit"]["remaining"] == 197
    assert stats["days_until_reset"] == 14
    assert [c["error_type"] for c in stats["recent_calls"]] == ["timeout", "rate_limit", ""]


def test_empty_log(tmp_path, monkeypatch):
    monkeypatch.delenv("JSEARCH_API_KEY", raising=False)
    stats = UsageLog(tmp_path / "usage.csv").get_usage_stats(NOW)
    assert stats["has_api_key"] is False
    assert stats["current_month"]["calls"] == 0
    assert stats["current_month"]["last_call"] is None
    assert stats["recent_calls"] == []


def test_recording_never_raises(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    usage = UsageLog(blocker / "usage.csv")
    usage.record_api_call(1, SUCCESS)
    assert usage.calls() == []
