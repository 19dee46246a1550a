"""Run pipeline coordinating execution, history, trends and notifications."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from jinja2 import TemplateError

from collection_runner.config import Settings
from collection_runner.executor import RunExecutor
from collection_runner.extractor import extract
from collection_runner.history import History, HistoryStore, StoreCorruptError
from collection_runner.models.report import ReportRecord
from collection_runner.notifications.dispatcher import (
    DeliveryOutcome,
    NotificationDispatcher,
)
from collection_runner.rendering import render_report, save_report
from collection_runner.retention import RetentionPolicy, prune
from collection_runner.runners.base import RunOptions
from collection_runner.trends import TrendAnalysis, analyze

log = logging.getLogger(__name__)

TRENDS_DISABLED_MESSAGE = "Trend analysis disabled"


def exit_code_for(record: ReportRecord) -> int:
    """0 when no assertion failed, 1 otherwise."""
    return 0 if record.passed else 1


@dataclass(frozen=True, kw_only=True)
class PipelineResult:
    """Everything produced by one pipeline run."""

    record: ReportRecord
    trend: TrendAnalysis
    history_size: int
    report_path: Path | None = None
    deliveries: Sequence[DeliveryOutcome] = ()

    @property
    def exit_code(self) -> int:
        """Process exit code reflecting the test outcome."""
        return exit_code_for(self.record)


def run_options(settings: Settings) -> RunOptions:
    """Build runner options from the collection settings."""
    newman = settings.newman
    return RunOptions(
        collection=newman.collection,
        environment=newman.environment,
        iteration_count=newman.iteration_count,
        timeout=newman.timeout,
        delay_request=newman.delay_request,
        html_export=newman.html_export,
    )


@dataclass(frozen=True, kw_only=True)
class RunPipeline:
    """Executes one collection run end to end."""

    settings: Settings
    executor: RunExecutor
    history: HistoryStore
    dispatcher: NotificationDispatcher

    @property
    def report_path(self) -> Path:
        """Location of the enhanced HTML report."""
        reporting = self.settings.reporting
        return reporting.reports_dir / reporting.enhanced_report_name

    def prepare(self) -> None:
        """Bootstrap directories and prune stale artifacts before a run.

        Housekeeping failures are logged and never prevent the run.
        """
        reporting = self.settings.reporting
        try:
            for directory in (reporting.data_dir, reporting.reports_dir):
                directory.mkdir(parents=True, exist_ok=True)

            result = prune(
                reporting.reports_dir,
                RetentionPolicy(
                    max_age_days=self.settings.retention.report_max_age_days
                ),
            )
        except OSError as exc:
            log.error("Failed to prepare output directories: %s", exc)
        else:
            if result.removed:
                log.info("Cleaned up %d old report file(s)", len(result.removed))

        try:
            self.history.initialize()
            self.history.trim()
        except StoreCorruptError as exc:
            log.warning("Skipping history trim: %s", exc)
        except OSError as exc:
            log.error("Failed to prepare history store: %s", exc)

    async def run(self) -> PipelineResult:
        """Run the collection and process its results.

        Returns:
            The report record, trend analysis and delivery outcomes

        Raises:
            ExecutionError: If the collection could not be run
            MalformedOutputError: If the run output could not be normalized

        """
        self.prepare()

        raw = await self.executor.execute(run_options(self.settings))
        record = extract(raw)
        log.info(
            "Run completed: success_rate=%s assertions=%d failed=%d",
            record.success_rate_display,
            record.stats.assertions.total,
            record.stats.assertions.failed,
        )

        history = self.record_history(record)

        if self.settings.reporting.generate_trends:
            trend = analyze(history)
        else:
            trend = TrendAnalysis(sufficient=False, message=TRENDS_DISABLED_MESSAGE)

        report_path = self.write_report(record, trend)
        deliveries = await self.dispatcher.deliver_all(record, trend)

        return PipelineResult(
            record=record,
            trend=trend,
            history_size=len(history),
            report_path=report_path,
            deliveries=deliveries,
        )

    def record_history(self, record: ReportRecord) -> History:
        """Append the record, starting a fresh history if the store is corrupt.

        When the store cannot be written the record is kept in memory only,
        on top of whatever history could still be read.
        """
        try:
            try:
                return self.history.append(record)
            except StoreCorruptError as exc:
                log.warning("History is corrupt, starting fresh: %s", exc)
                self.history.reset()
                return self.history.append(record)
        except OSError as exc:
            log.error("Failed to save history, continuing unsaved: %s", exc)
            return (*self.readable_history(), record)[-self.history.max_entries :]

    def readable_history(self) -> History:
        """Persisted records, or nothing when the store cannot be read."""
        try:
            return self.history.load()
        except (StoreCorruptError, OSError):
            return ()

    def write_report(self, record: ReportRecord, trend: TrendAnalysis) -> Path | None:
        """Render and save the enhanced report, None if that failed."""
        try:
            return save_report(render_report(record, trend), self.report_path)
        except (OSError, TemplateError) as exc:
            log.error("Failed to write enhanced report: %s", exc)
            return None
