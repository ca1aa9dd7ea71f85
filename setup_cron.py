#!/usr/bin/env python3
"""
Install the cron entry for the daily scheduled-search pass.

The pass runs at RUN_HOUR in RUN_TZ (both from .env; without RUN_TZ cron uses
the machine's local time) and mails every due saved search. Run once:

    python setup_cron.py            # install
    python setup_cron.py --print    # only show the entry
"""
from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parent
load_dotenv(ROOT / ".env")

VENV_PYTHON = ROOT / ".venv" / "bin" / "python"
CRONTAB_FILE = ROOT / "crontab.txt"


def cron_entry() -> str:
    """The crontab line, preceded by CRON_TZ when RUN_TZ is set."""
    hour = int(os.environ.get("RUN_HOUR", "9"))
    line = f"0 {hour} * * * cd {ROOT} && {VENV_PYTHON} -m jobdigest.run_daily --once"
    tz = os.environ.get("RUN_TZ", "").strip()
    return f"CRON_TZ={tz}\n{line}" if tz else line


def current_crontab() -> str:
    out = subprocess.run(["crontab", "-l"], capture_output=True, text=True, timeout=5)
    return (out.stdout or "").strip() if out.returncode == 0 else ""


def _fallback(content: str, why: str) -> int:
    CRONTAB_FILE.write_text(content + "\n", encoding="utf-8")
    print(why)
    print(f"Wrote {CRONTAB_FILE}; install it manually with:")
    print(f"  crontab {CRONTAB_FILE}")
    return 1


def main() -> int:
    entry = cron_entry()
    if "--print" in sys.argv:
        print(entry)
        return 0
    if not VENV_PYTHON.exists():
        print("Error: .venv not found. Run: python -m venv .venv && .venv/bin/pip install -e .")
        return 1

    try:
        existing = current_crontab()
    except FileNotFoundError:
        return _fallback(entry, "crontab not found. On Windows use Task Scheduler instead.")
    except subprocess.TimeoutExpired:
        return _fallback(entry, "Reading the crontab timed out.")

    if entry in existing:
        print("Cron entry already present. No change.")
        return 0

    new_crontab = f"{existing}\n{entry}".strip()
    try:
        proc = subprocess.run(["crontab", "-"], input=new_crontab, capture_output=True, text=True, timeout=5)
    except subprocess.TimeoutExpired:
        return _fallback(new_crontab, "Writing the crontab timed out.")
    if proc.returncode != 0:
        return _fallback(new_crontab, f"crontab rejected the update: {proc.stderr.strip()}")

    print(f"Cron installed: {entry}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
