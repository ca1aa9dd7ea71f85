"""Logging setup shared by the CLI, the scheduler and the Streamlit app.

Console output goes to stdout. A daily file under ``logs/`` is kept as well,
and files older than LOG_RETENTION_DAYS are pruned when logging starts.
"""
from __future__ import annotations

import logging
import os
import sys
from datetime import date, timedelta
from pathlib import Path

LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_PREFIX = "jobdigest_"

# chatty at INFO/DEBUG on every request
QUIET_LOGGERS = ("urllib3", "charset_normalizer")

_configured = False


def log_file_for(day: date, log_dir: Path = LOG_DIR) -> Path:
    return log_dir / f"{FILE_PREFIX}{day.isoformat()}.log"


def prune_old_logs(log_dir: Path, keep_days: int, today: date | None = None) -> int:
    """Delete daily log files older than ``keep_days``; returns how many went."""
    cutoff = (today or date.today()) - timedelta(days=keep_days)
    removed = 0
    for path in log_dir.glob(f"{FILE_PREFIX}*.log"):
        try:
            day = date.fromisoformat(path.stem[len(FILE_PREFIX):])
        except ValueError:
            continue
        if day < cutoff:
            path.unlink(missing_ok=True)
            removed += 1
    return removed


def configure_logging(level: str | None = None, *, log_dir: Path = LOG_DIR) -> None:
    """Install root handlers on first call; later calls only change the level."""
    global _configured
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level_name, logging.INFO))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if _configured:
        return
    _configured = True
    if root.handlers:
        return

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if os.environ.get("JOBDIGEST_NO_LOG_FILE"):
        return
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file_for(date.today(), log_dir), encoding="utf-8")
        fh.setFormatter(formatter)
        root.addHandler(fh)
        prune_old_logs(log_dir, int(os.environ.get("LOG_RETENTION_DAYS") or 14))
    except (OSError, ValueError):
        pass


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
