from __future__ import annotations

import requests

from conftest import FakeResponse, FakeSession
from jobdigest.salary import normalize_salary
from jobdigest.scraper import SalaryPageScraper

URL = "https://jobs.example.com/view/1"


def _scraper(settings, pages):
    return SalaryPageScraper(settings, session=FakeSession(pages))


def test_salary_block_preferred_over_page_text(settings):
    html = """<html><body>
      <p>Our customers save $5,000 a year.</p>
      <div class="salary-snippet">$120,000 - $150,000 a year</div>
    </body></html>"""
    found = _scraper(settings, {URL: [FakeResponse(text=html)]}).scrape_salary(URL)
    assert found == "$120,000 - $150,000 a year"
    assert normalize_salary(found) == "$120,000 - $150,000/yr"


def test_falls_back_to_page_text_and_ignores_scripts(settings):
    html = """<html><head><script>var budget = "$999,999";</script></head>
      <body><p>The pay for this role is $45/hour.</p></body></html>"""
    found = _scraper(settings, {URL: [FakeResponse(text=html)]}).scrape_salary(URL)
    assert found == "$45/hour"


def test_download_is_capped(settings):
    settings.scrape_max_bytes = 50
    html = "<p>" + "x" * 100 + " Salary: $120,000</p>"
    assert _scraper(settings, {URL: [FakeResponse(text=html)]}).scrape_salary(URL) is None


def test_failures_return_none(settings):
    scraper = _scraper(settings, {
        URL: [FakeResponse(500, text="oops")],
        "https://down.example.com/": [requests.ConnectionError("refused")],
    })
    assert scraper.scrape_salary(URL) is None
    assert scraper.scrape_salary("https://down.example.com/") is None
    assert scraper.scrape_salary("#") is None
    assert scraper.scrape_salary(None) is None


def test_scrape_many_keeps_order(settings):
    pages = {
        f"https://jobs.example.com/{n}": [FakeResponse(text=f"<div class='salary'>${n}0,000</div>")]
        for n in (9, 7)
    }
    pages["https://jobs.example.com/none"] = [FakeResponse(text="<p>No pay listed</p>")]
    scraper = _scraper(settings, pages)
    urls = ["https://jobs.example.com/9", "https://jobs.example.com/none", "https://jobs.example.com/7"]
    assert scraper.scrape_many(urls) == ["$90,000", None, "$70,000"]
    assert scraper.scrape_many([]) == []


def test_response_closed_when_download_fails(settings):
    error_page = FakeResponse(503, text="unavailable")
    ok_page = FakeResponse(text="<div class='salary'>$90,000</div>")
    scraper = _scraper(settings, {URL: [error_page, ok_page]})

    assert scraper.scrape_salary(URL) is None
    assert error_page.closed
    assert scraper.scrape_salary(URL) == "$90,000"
    assert ok_page.closed
