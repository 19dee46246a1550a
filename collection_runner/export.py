"""Timestamped snapshots of the run history."""

import csv
import io
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, TypeAlias

from collection_runner.history import serialize_history
from collection_runner.models.report import ReportRecord

log = logging.getLogger(__name__)

ExportFormat: TypeAlias = Literal["json", "csv"]

DEFAULT_EXPORT_PREFIX = "test-export-"

CSV_HEADERS = (
    "timestamp",
    "duration",
    "successRate",
    "totalAssertions",
    "failedAssertions",
    "totalRequests",
    "failedRequests",
)


def to_csv(history: Sequence[ReportRecord]) -> str:
    """Render one CSV row per run."""
    if not history:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for record in history:
        writer.writerow(
            (
                record.timestamp.isoformat(),
                record.duration,
                "" if record.success_rate is None else str(record.success_rate),
                record.stats.assertions.total,
                record.stats.assertions.failed,
                record.stats.requests.total,
                record.stats.requests.failed,
            )
        )
    return buffer.getvalue()


def export_filename(
    export_format: ExportFormat,
    now: datetime,
    prefix: str = DEFAULT_EXPORT_PREFIX,
) -> str:
    """Snapshot file name, e.g. ``test-export-2024-01-02T03-04-05-000Z.csv``."""
    stamp = now.astimezone(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")[:-3]
    return f"{prefix}{stamp}Z.{export_format}"


def export_history(
    history: Sequence[ReportRecord],
    data_dir: Path,
    export_format: ExportFormat = "json",
    *,
    prefix: str = DEFAULT_EXPORT_PREFIX,
    now: datetime | None = None,
) -> Path:
    """Write a snapshot of the history and return its path.

    Raises:
        FileNotFoundError: If there is no history to export

    """
    if not history:
        raise FileNotFoundError("No historical data available for export")

    if now is None:
        now = datetime.now(timezone.utc)
    content = (
        to_csv(history) if export_format == "csv" else serialize_history(history)
    )

    data_dir.mkdir(parents=True, exist_ok=True)
    export_path = data_dir / export_filename(export_format, now, prefix)
    export_path.write_text(content, encoding="utf-8")
    log.info("Test data exported to: %s", export_path)
    return export_path
