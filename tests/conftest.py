from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any

import pytest
import requests

os.environ.setdefault("JOBDIGEST_NO_LOG_FILE", "1")
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from jobdigest.config import Settings  # noqa: E402
from jobdigest.usage import UsageLog  # noqa: E402


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text
        self.encoding = "utf-8"
        self.closed = False

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no json")
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def iter_content(self, chunk_size: int = 1024):
        data = self.text.encode("utf-8")
        for i in range(0, len(data), chunk_size):
            yield data[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class FakeSession:
    """Replays queued responses per query; records every request made."""

    def __init__(self, responses: dict[str, list[Any]] | None = None, default: Any = None) -> None:
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.default = default if default is not None else FakeResponse(200, {"data": []})
        self.calls: list[dict[str, Any]] = []

    def get(self, url: str, params: dict | None = None, headers: dict | None = None,
            timeout: float | None = None, **kwargs: Any) -> Any:
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        key = (params or {}).get("query", url)
        queue = self.responses.get(key)
        outcome = queue.pop(0) if queue else self.default
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def queries(self) -> list[tuple[str, str]]:
        return [(c["params"].get("query"), c["params"].get("page")) for c in self.calls]


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_posting(job_id: str = "1", **overrides: Any) -> dict[str, Any]:
    posting: dict[str, Any] = {
        "job_id": job_id,
        "job_title": f"Software Engineer {job_id}",
        "employer_name": "Acme",
        "job_city": None,
        "job_state": None,
        "job_country": "US",
        "job_is_remote": True,
        "job_description": "Build things from anywhere. Fully distributed team.",
        "job_employment_type": "FULLTIME",
        "job_apply_link": f"https://careers.acme.example/jobs/{job_id}",
        "job_publisher": "LinkedIn",
        "job_posted_at_datetime_utc": "2026-10-17T12:00:00.000Z",
        "job_highlights": {},
    }
    posting.update(overrides)
    return posting


def page(*postings: dict[str, Any]) -> FakeResponse:
    return FakeResponse(200, {"status": "OK", "data": list(postings)})


@pytest.fixture
def settings() -> Settings:
    return Settings(first_page_retry_delay=0.0)


@pytest.fixture
def usage(tmp_path: Path) -> UsageLog:
    return UsageLog(tmp_path / "usage.csv")
