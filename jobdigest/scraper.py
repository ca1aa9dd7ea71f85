"""Best-effort salary backfill from individual job pages."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests
from bs4 import BeautifulSoup

from jobdigest.config import Settings
from jobdigest.log import get_logger
from jobdigest.salary import extract_salary_text

log = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)

# Blocks that job boards commonly use to display pay, most specific first.
SALARY_SELECTORS: list[str] = [
    "#salaryInfoAndJobType",
    "[data-testid*='salary']",
    "[data-testid*='compensation']",
    ".salary",
    ".salary-snippet",
    ".compensation",
    ".pay-range",
    "[class*='salary']",
    "[class*='Salary']",
    "[class*='compensation']",
    "[class*='Compensation']",
    "[class*='pay-range']",
    "[id*='salary']",
]


class SalaryPageScraper:
    def __init__(self, settings: Settings | None = None, session: Any = None) -> None:
        self.settings = settings or Settings()
        self.session = session or requests.Session()

    def _download(self, url: str) -> str:
        chunks: list[bytes] = []
        size = 0
        with self.session.get(
            url,
            headers={"User-Agent": USER_AGENT},
            timeout=self.settings.scrape_timeout,
            stream=True,
        ) as r:
            r.raise_for_status()
            for chunk in r.iter_content(chunk_size=16_384):
                chunks.append(chunk)
                size += len(chunk)
                if size >= self.settings.scrape_max_bytes:
                    break
            encoding = r.encoding or "utf-8"
        raw = b"".join(chunks)[: self.settings.scrape_max_bytes]
        return raw.decode(encoding, errors="replace")

    def candidates(self, html: str) -> list[str]:
        """Texts worth mining, in priority order; full page text last."""
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        texts: list[str] = []
        for selector in SALARY_SELECTORS:
            for el in soup.select(selector):
                text = el.get_text(" ", strip=True)
                if text:
                    texts.append(text)
        texts.append(soup.get_text(" ", strip=True)[: self.settings.scrape_text_chars])
        return texts

    def scrape_salary(self, url: str | None) -> str | None:
        """Raw salary fragment from the page, or None on any failure."""
        if not url or not url.startswith(("http://", "https://")):
            return None
        try:
            html = self._download(url)
            for text in self.candidates(html):
                found = extract_salary_text(text)
                if found:
                    log.debug("Scraped salary %r from %s", found, url)
                    return found
        except Exception as exc:
            log.debug("Salary scrape failed for %s: %s", url, exc)
        return None

    def scrape_many(self, urls: list[str]) -> list[str | None]:
        """Scrape all URLs concurrently; results line up with ``urls``."""
        if not urls:
            return []
        with ThreadPoolExecutor(max_workers=len(urls)) as pool:
            return list(pool.map(self.scrape_salary, urls))
