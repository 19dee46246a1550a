"""Housekeeping of reports, history and exported snapshots."""

import logging
from dataclasses import dataclass

from collection_runner.config import Settings
from collection_runner.history import HistoryStore, StoreCorruptError
from collection_runner.retention import (
    PruneResult,
    RetentionPolicy,
    directory_size,
    prune,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class CleanupSummary:
    """Outcome of a cleanup pass."""

    reports: PruneResult | None = None
    exports: PruneResult | None = None
    history_trimmed: bool = False
    history_error: str | None = None
    bytes_before: int = 0
    bytes_after: int = 0
    dry_run: bool = False

    @property
    def error_count(self) -> int:
        """Number of individual failures across all steps."""
        count = 1 if self.history_error else 0
        for result in (self.reports, self.exports):
            if result is not None:
                count += len(result.errors)
        return count


def storage_usage(settings: Settings) -> int:
    """Bytes used by the data and reports directories."""
    reporting = settings.reporting
    return directory_size(reporting.data_dir) + directory_size(reporting.reports_dir)


def run_cleanup(
    settings: Settings,
    *,
    reports: bool = True,
    history: bool = True,
    exports: bool = True,
    dry_run: bool = False,
) -> CleanupSummary:
    """Prune old reports, trim history and keep only the newest exports."""
    retention = settings.retention
    reporting = settings.reporting
    bytes_before = storage_usage(settings)

    reports_result = None
    if reports:
        log.info("Cleaning up old reports...")
        reports_result = prune(
            reporting.reports_dir,
            RetentionPolicy(max_age_days=retention.report_max_age_days),
            dry_run=dry_run,
        )

    history_trimmed = False
    history_error = None
    if history:
        log.info("Trimming historical data...")
        store = HistoryStore(
            path=reporting.history_path, max_entries=retention.max_history_entries
        )
        try:
            if dry_run:
                history_trimmed = len(store.load()) > store.max_entries
            else:
                history_trimmed = store.trim()
        except StoreCorruptError as exc:
            log.error("Historical data cleanup failed: %s", exc)
            history_error = str(exc)

    exports_result = None
    if exports:
        log.info("Cleaning up old exports...")
        exports_result = prune(
            reporting.data_dir,
            RetentionPolicy(
                max_count=retention.max_exports,
                pattern=f"{retention.export_prefix}*",
            ),
            dry_run=dry_run,
        )

    return CleanupSummary(
        reports=reports_result,
        exports=exports_result,
        history_trimmed=history_trimmed,
        history_error=history_error,
        bytes_before=bytes_before,
        bytes_after=storage_usage(settings),
        dry_run=dry_run,
    )
