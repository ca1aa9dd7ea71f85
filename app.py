"""Streamlit UI for the job digest: search, saved searches with run-now, API usage."""
from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(ROOT))

from jobdigest.config import ensure_dirs, get_env, load_settings
from jobdigest.log import get_logger
from jobdigest.models import DATE_POSTED_OPTIONS, SearchCriteria
from jobdigest.runs import BackgroundRunner, RunStatusStore
from jobdigest.store import DAYS, SavedSearchStore
from jobdigest.usage import UsageLog

log = get_logger(__name__)

# ── Constants ────────────────────────────────────────────────────────────

LOCATION_TYPES: list[str] = ["remote", "onsite", "hybrid"]
DATE_LABELS: dict[str, str] = {
    "all": "Any time",
    "today": "Today",
    "3days": "Last 3 days",
    "week": "Last week",
    "month": "Last month",
}
STATUS_ICONS: dict[str, str] = {"running": "⏳", "completed": "✅", "error": "❌", "timeout": "⌛"}

# ── Shared state ─────────────────────────────────────────────────────────


@st.cache_resource
def _runner() -> BackgroundRunner:
    """One runner per server process so tokens survive reruns."""
    settings = load_settings()
    return BackgroundRunner(SavedSearchStore(), RunStatusStore(retention=settings.run_retention))


def _criteria_form(prefix: str) -> dict:
    titles = st.text_input("Job titles (comma-separated)", key=f"{prefix}_titles")
    c1, c2 = st.columns(2)
    with c1:
        location_type = st.multiselect("Location type", LOCATION_TYPES, key=f"{prefix}_loctype")
        min_salary = st.number_input("Min salary ($/yr)", 0, 1_000_000, 0, step=5000, key=f"{prefix}_min")
    with c2:
        location = st.text_input("Location (onsite/hybrid)", key=f"{prefix}_loc")
        max_salary = st.number_input("Max salary ($/yr)", 0, 1_000_000, 0, step=5000, key=f"{prefix}_max")
    date_posted = st.selectbox(
        "Date posted", DATE_POSTED_OPTIONS, index=3,
        format_func=DATE_LABELS.get, key=f"{prefix}_date",
    )
    return {
        "jobTitles": [t.strip() for t in titles.split(",") if t.strip()],
        "locationType": location_type,
        "location": location,
        "minSalary": min_salary or None,
        "maxSalary": max_salary or None,
        "datePosted": date_posted,
    }


def _show_trace(debug: dict) -> None:
    stages = [
        ("API returned", "apiReturned"),
        ("Remote", "afterRemoteFilter"),
        ("Salary", "afterSalaryFilter"),
        ("Source", "afterSourceFilter"),
        ("Date", "afterDateFilter"),
        ("Employment", "afterEmploymentFilter"),
    ]
    cols = st.columns(len(stages))
    for col, (label, key) in zip(cols, stages):
        col.metric(label, debug.get(key, 0))
    if debug.get("remoteReasons"):
        with st.expander(f"Not remote ({len(debug['remoteReasons'])})"):
            st.dataframe(debug["remoteReasons"], hide_index=True, use_container_width=True)
    if debug.get("employmentReasons"):
        with st.expander(f"Wrong employment type ({len(debug['employmentReasons'])})"):
            st.dataframe(debug["employmentReasons"], hide_index=True, use_container_width=True)
    if debug.get("budgetExhausted"):
        st.caption("Search time budget ran out; results may be incomplete.")


# ── Page: Search ─────────────────────────────────────────────────────────


def page_search() -> None:
    st.header("Search Jobs")
    if not get_env("JSEARCH_API_KEY"):
        st.warning("JSEARCH_API_KEY is not set in `.env`; searches will return nothing.")

    with st.form("search"):
        criteria = _criteria_form("search")
        skip = st.checkbox("Skip salary scraping (faster)", value=False)
        submitted = st.form_submit_button("Search", type="primary", use_container_width=True)

    if submitted:
        from jobdigest.search import search

        with st.spinner("Searching…"):
            result = search(SearchCriteria.from_dict({**criteria, "skipScraping": skip}))
        st.session_state["last_search"] = result.to_dict()

    result = st.session_state.get("last_search")
    if not result:
        return
    debug = result["debug"]
    if debug.get("error"):
        st.error(debug["error"])
    st.subheader(f"{len(result['jobs'])} jobs")
    _show_trace(debug)
    if result["jobs"]:
        st.dataframe(
            result["jobs"],
            column_order=["title", "company", "location", "salary", "employmentType", "postingDate", "link"],
            column_config={"link": st.column_config.LinkColumn("Apply")},
            hide_index=True,
            use_container_width=True,
        )


# ── Page: Saved searches ─────────────────────────────────────────────────


def page_saved() -> None:
    st.header("Recurring Searches")
    runner = _runner()
    store = runner.searches

    with st.expander("New recurring search"):
        with st.form("new_saved"):
            criteria = _criteria_form("saved")
            c1, c2, c3 = st.columns(3)
            frequency = c1.selectbox("Frequency", ["daily", "weekly"])
            day = c2.selectbox("Day (weekly)", DAYS)
            email = c3.text_input("Email")
            if st.form_submit_button("Save", type="primary"):
                try:
                    store.save_search(criteria, frequency, day, email)
                    st.success("Recurring search created")
                except ValueError as exc:
                    st.error(str(exc))

    tokens: dict[str, str] = st.session_state.setdefault("run_tokens", {})
    searches = store.list_searches()
    if not searches:
        st.info("No recurring searches yet.")
        return

    for saved in searches:
        titles = ", ".join(saved.search_criteria.get("jobTitles") or []) or "Any title"
        when = saved.frequency if saved.frequency == "daily" else f"weekly on {saved.day_of_week}"
        with st.container(border=True):
            st.markdown(f"**{titles}** · {when} · {saved.user_email or 'admin only'}")
            st.caption(f"Last run: {saved.last_run or 'never'}")
            c1, c2, c3 = st.columns(3)
            if c1.button("Run now", key=f"run_{saved.id}"):
                tokens[saved.id] = runner.start_background_run(saved.id)
            label = "Pause" if saved.is_active else "Resume"
            if c2.button(label, key=f"toggle_{saved.id}"):
                store.set_active(saved.id, not saved.is_active)
                st.rerun()
            if c3.button("Delete", key=f"delete_{saved.id}"):
                store.delete_search(saved.id)
                tokens.pop(saved.id, None)
                st.rerun()

            token = tokens.get(saved.id)
            if token:
                status = runner.get_run_status(token)
                if status is None:
                    st.caption("Run status expired.")
                else:
                    icon = STATUS_ICONS.get(status.status, "")
                    st.markdown(f"{icon} {status.message}")
                    if status.error:
                        st.error(status.error)
                    if not status.finished and st.button("Refresh status", key=f"refresh_{saved.id}"):
                        st.rerun()


# ── Page: Settings ───────────────────────────────────────────────────────


def page_settings() -> None:
    st.header("Settings")
    settings = load_settings()
    stats = UsageLog(monthly_quota=settings.monthly_quota).get_usage_stats()
    month = stats["current_month"]
    limit = stats["estimated_limit"]

    st.subheader(f"API usage · {month['month_name']}")
    if not stats["has_api_key"]:
        st.error("No API key. Add JSEARCH_API_KEY to `.env`.")
    st.progress(min(limit["used_percentage"], 100) / 100, text=f"{limit['used_percentage']}% of {limit['monthly_limit']} pages")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Calls", month["calls"])
    c2.metric("Pages", month["pages"])
    c3.metric("Successes", month["successes"])
    c4.metric("Failures", month["failures"])
    if month["rate_limits"] or month["quota_exceeded"]:
        st.warning(
            f"Rate limited {month['rate_limits']}x, quota exceeded {month['quota_exceeded']}x; check your RapidAPI plan."
        )
    st.caption(f"{limit['note']} Resets in {stats['days_until_reset']} days.")
    if stats["recent_calls"]:
        st.dataframe(stats["recent_calls"], hide_index=True, use_container_width=True)

    st.subheader("Email")
    st.markdown(f"SMTP host: `{get_env('SMTP_HOST') or 'not set'}` · admin: `{get_env('ADMIN_EMAIL') or 'not set'}`")
    with st.form("test_email"):
        to = st.text_input("Send a test email to")
        if st.form_submit_button("Send test email") and to:
            from jobdigest.email_report import EmailError, send_test_email

            try:
                send_test_email(to)
                st.success("Test email sent")
            except EmailError as exc:
                st.error(str(exc))


# ── Main ─────────────────────────────────────────────────────────────────

ensure_dirs()

pages = [
    st.Page(page_search, title="Search", icon="🔎", url_path="search", default=True),
    st.Page(page_saved, title="Recurring", icon="🔁", url_path="recurring"),
    st.Page(page_settings, title="Settings", icon="⚙️", url_path="settings"),
]

nav = st.navigation(pages)
nav.run()
