"""Load env configuration and tunable settings."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from jobdigest.log import get_logger

log = get_logger(__name__)

load_dotenv()

ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = ROOT / "data"


@dataclass
class Settings:
    # upstream search API
    api_host: str = "jsearch.p.rapidapi.com"
    page_timeout: float = 25.0
    fetch_budget: float = 45.0
    max_total_pages: int = 10
    first_page_retry_delay: float = 1.0
    # salary backfill scraping
    scrape_timeout: float = 8.0
    scrape_max_bytes: int = 500_000
    scrape_text_chars: int = 20_000
    scrape_limit: int = 5
    # normalization
    salary_floor: int = 5000
    description_chars: int = 300
    # bookkeeping
    run_retention: float = 600.0
    monthly_quota: int = 200
    seen_retention_days: int = 30


def load_settings(path: Path | None = None) -> Settings:
    """Settings from YAML, falling back to defaults for anything missing."""
    path = path or SETTINGS_PATH
    settings = Settings()
    if not path.exists():
        return settings

    with open(path, "r", encoding="utf-8") as f:
        data: dict[str, Any] = yaml.safe_load(f) or {}

    known = {f.name for f in fields(Settings)}
    for key, value in data.items():
        if key not in known:
            log.warning("Ignoring unknown setting %r in %s", key, path.name)
            continue
        if value is None:
            continue
        default = getattr(settings, key)
        setattr(settings, key, type(default)(value))
    return settings


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
