"""HTML rendering of report records and trend analysis."""

import logging
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from collection_runner.models.report import ReportRecord
from collection_runner.trends import TrendAnalysis

log = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
EMAIL_FAILURE_LIMIT = 3


def _seconds(milliseconds: float | None) -> str:
    if milliseconds is None:
        return "n/a"
    return f"{milliseconds / 1000:.2f}s"


def _number(value: float | None) -> str:
    return "n/a" if value is None else f"{value:.2f}"


def _create_environment() -> Environment:
    env = Environment(
        loader=FileSystemLoader(TEMPLATES_DIR),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["seconds"] = _seconds
    env.filters["number"] = _number
    return env


_environment = _create_environment()


def status_label(record: ReportRecord) -> str:
    """``PASSED`` when no assertion failed, ``FAILED`` otherwise."""
    return "PASSED" if record.passed else "FAILED"


def render_report(record: ReportRecord, trend: TrendAnalysis) -> str:
    """Render the enhanced HTML report."""
    return _environment.get_template("report.html").render(
        record=record, trend=trend, status=status_label(record)
    )


def render_email(record: ReportRecord, trend: TrendAnalysis) -> str:
    """Render the HTML body of the summary email."""
    return _environment.get_template("email.html").render(
        record=record,
        trend=trend,
        status=status_label(record),
        failures=record.failures[:EMAIL_FAILURE_LIMIT],
        hidden_failures=max(len(record.failures) - EMAIL_FAILURE_LIMIT, 0),
    )


def render_failure_email(error: BaseException, when: datetime) -> str:
    """Render the HTML body sent when the suite could not run."""
    return _environment.get_template("failure.html").render(error=error, when=when)


def email_subject(record: ReportRecord) -> str:
    """Subject line summarizing the run outcome."""
    if record.success_rate is None:
        return f"API Tests {status_label(record)} - {record.success_rate_display}"
    return f"API Tests {status_label(record)} - {record.success_rate}% Success Rate"


def save_report(html: str, path: Path) -> Path:
    """Write a rendered report, creating its directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(html, encoding="utf-8")
    log.info("Enhanced report saved: %s", path)
    return path
