"""Send job alert digests by email (HTML with a plain-text alternative)."""
from __future__ import annotations

import html
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from jobdigest.config import get_env
from jobdigest.log import get_logger
from jobdigest.models import NormalizedJob, SearchCriteria
from jobdigest.retry import retry
from jobdigest.salary import NOT_SPECIFIED

log = get_logger(__name__)

_ACCENT = "#667eea"


class EmailError(Exception):
    pass


def _plural(n: int) -> str:
    return "" if n == 1 else "s"


def alert_subject(jobs: list[NormalizedJob]) -> str:
    return f"Job Alert: {len(jobs)} New Job{_plural(len(jobs))} Found"


def _job_html(index: int, job: NormalizedJob) -> str:
    e = html.escape
    rows = [
        f'<h3 style="margin:0 0 10px;color:{_ACCENT}">{index}. {e(job.title)}</h3>',
        f'<p style="margin:4px 0"><strong>Company:</strong> {e(job.company)}</p>',
        f'<p style="margin:4px 0"><strong>Location:</strong> {e(job.location)}</p>',
    ]
    if job.salary and job.salary != NOT_SPECIFIED:
        rows.append(f'<p style="margin:4px 0"><strong>Salary:</strong> {e(job.salary)}</p>')
    if job.posting_date:
        rows.append(f'<p style="margin:4px 0"><strong>Posted:</strong> {e(job.posting_date[:10])}</p>')
    rows.append(f'<p style="margin:4px 0"><strong>Source:</strong> {e(job.source)}</p>')
    if job.description:
        rows.append(f'<p style="margin:10px 0;color:#666">{e(job.description[:200])}...</p>')
    rows.append(
        f'<a href="{e(job.link, quote=True)}" style="display:inline-block;background:{_ACCENT};'
        f'color:#fff;padding:10px 20px;text-decoration:none;border-radius:5px;margin-top:10px">View Job</a>'
    )
    body = "\n".join(rows)
    return f'<div style="border:1px solid #ddd;padding:15px;margin-bottom:15px;border-radius:8px">\n{body}\n</div>'


def _criteria_lines(criteria: SearchCriteria) -> list[str]:
    lines = [f"Job Title: {', '.join(criteria.job_titles) or 'Any'}"]
    if criteria.location_type:
        lines.append(f"Location Type: {', '.join(criteria.location_type)}")
    if criteria.location:
        lines.append(f"Location: {criteria.location}")
    if criteria.min_salary or criteria.max_salary:
        high = f"${criteria.max_salary:,}" if criteria.max_salary else "∞"
        lines.append(f"Salary Range: ${criteria.min_salary or 0:,} - {high}")
    if criteria.date_posted != "all":
        lines.append(f"Date Posted: {criteria.date_posted}")
    return lines


def build_alert_html(jobs: list[NormalizedJob], criteria: SearchCriteria) -> str:
    criteria_html = "\n".join(
        f"<p style='margin:4px 0'>{html.escape(line)}</p>" for line in _criteria_lines(criteria)
    )
    jobs_html = "\n".join(_job_html(i, j) for i, j in enumerate(jobs, 1))
    n = len(jobs)
    return f"""<div style="font-family:Arial,sans-serif;max-width:800px;margin:0 auto;color:#333">
<div style="background:{_ACCENT};color:#fff;padding:30px;text-align:center;border-radius:10px 10px 0 0">
<h1 style="margin:0">Job Search Alert</h1>
<p style="margin:10px 0 0">We found {n} new job{_plural(n)} matching your criteria!</p>
</div>
<div style="padding:20px;background:#f9f9f9">
<h2>Search Criteria</h2>
{criteria_html}
</div>
<div style="padding:20px">
<h2>Job Listings</h2>
{jobs_html}
</div>
<p style="font-size:11px;color:#999;text-align:center">Automated job alert from your job digest</p>
</div>"""


def build_alert_text(jobs: list[NormalizedJob], criteria: SearchCriteria) -> str:
    lines = ["Search criteria:"]
    lines.extend(f"  {line}" for line in _criteria_lines(criteria))
    lines.append("")
    for i, job in enumerate(jobs, 1):
        lines.append(f"{i}. {job.title} @ {job.company} ({job.location})")
        if job.salary != NOT_SPECIFIED:
            lines.append(f"   Salary: {job.salary}")
        lines.append(f"   {job.link}")
    return "\n".join(lines)


@retry(max_attempts=3, base_delay=3.0, retryable=(smtplib.SMTPException, OSError))
def _smtp_send(
    host: str, port: int, user: str, password: str,
    from_addr: str, to_addrs: list[str], msg: MIMEMultipart,
) -> None:
    with smtplib.SMTP(host, port, timeout=30) as server:
        server.starttls()
        server.login(user, password)
        server.sendmail(from_addr, to_addrs, msg.as_string())


def _send(subject: str, text_body: str, html_body: str, recipients: list[str]) -> None:
    host = get_env("SMTP_HOST")
    user = get_env("SMTP_USER")
    password = get_env("SMTP_PASSWORD")
    from_addr = get_env("FROM_EMAIL", user) or user
    if not all([host, user, password]):
        raise EmailError("SMTP not configured (set SMTP_HOST, SMTP_USER, SMTP_PASSWORD in .env)")
    if not recipients:
        raise EmailError("No recipients (set ADMIN_EMAIL or give the saved search an email)")
    try:
        port = int(get_env("SMTP_PORT", "587"))
    except ValueError:
        port = 587

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = ", ".join(recipients)
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))

    try:
        _smtp_send(host, port, user, password, from_addr, recipients, msg)
    except (smtplib.SMTPException, OSError) as exc:
        log.error("Email failed: %s", exc)
        raise EmailError(f"Email delivery failed: {str(exc)[:150]}") from exc
    log.info("Email sent to %s", ", ".join(recipients))


def alert_recipients(recipient_email: str | None) -> list[str]:
    recipients: list[str] = []
    for addr in (get_env("ADMIN_EMAIL"), (recipient_email or "").strip()):
        if addr and addr.lower() not in (r.lower() for r in recipients):
            recipients.append(addr)
    return recipients


def send_job_alert_email(
    recipient_email: str | None,
    jobs: list[NormalizedJob],
    search_criteria: SearchCriteria | dict[str, Any],
) -> None:
    """Mail the digest to ADMIN_EMAIL and the search owner; raises EmailError."""
    if isinstance(search_criteria, dict):
        search_criteria = SearchCriteria.from_dict(search_criteria)
    _send(
        alert_subject(jobs),
        build_alert_text(jobs, search_criteria),
        build_alert_html(jobs, search_criteria),
        alert_recipients(recipient_email),
    )


def send_test_email(recipient_email: str) -> None:
    _send(
        "Job Digest - Test Email",
        "Email configuration successful. Your job alerts are ready to go.",
        "<div style='font-family:Arial,sans-serif;padding:20px'><h1>Email Configuration Successful!</h1>"
        "<p>Your job alerts are ready to go.</p></div>",
        [recipient_email],
    )
