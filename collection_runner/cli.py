"""CLI entry point for the collection runner."""

import argparse
import asyncio
import json
import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import asdict
from pathlib import Path
from typing import Any

from collection_runner.cleanup import CleanupSummary, run_cleanup
from collection_runner.config import Profile, Settings, load_settings
from collection_runner.executor import ExecutionError, RunExecutor
from collection_runner.export import export_history
from collection_runner.extractor import MalformedOutputError
from collection_runner.history import HistoryStore, StoreCorruptError
from collection_runner.models.report import ReportRecord
from collection_runner.notifications.dispatcher import NotificationDispatcher
from collection_runner.pipeline import PipelineResult, RunPipeline
from collection_runner.retention import format_bytes
from collection_runner.runners.loading import (
    RunnerNotFoundError,
    load_runner_manifest,
)
from collection_runner.trends import TrendAnalysis, summarize_history
from collection_runner.validation import ValidationReport, validate_setup

STATUS_SYMBOLS = {
    "PASSED": "✅",
    "FAILED": "❌",
    "WARNING": "⚠️",
}


def log_run_summary(
    log: logging.Logger, record: ReportRecord, trend: TrendAnalysis
) -> None:
    """Log a formatted summary of the run and its trend signals."""
    status = "PASSED" if record.passed else "FAILED"
    stats = record.stats

    log.info("=" * 80)
    log.info("Test Execution Summary:")
    log.info("=" * 80)
    log.info(
        "%s %s: %s (%.2fs)",
        STATUS_SYMBOLS[status],
        status,
        record.success_rate_display,
        record.duration / 1000,
    )
    log.info("  Iterations: %d", stats.iterations)
    log.info("  Requests: %d (%d failed)", stats.requests.total, stats.requests.failed)
    log.info(
        "  Test Scripts: %d (%d failed)",
        stats.test_scripts.total,
        stats.test_scripts.failed,
    )
    log.info(
        "  Assertions: %d (%d failed)",
        stats.assertions.total,
        stats.assertions.failed,
    )
    for index, failure in enumerate(record.failures, start=1):
        log.info("    %d. %s: %s", index, failure.source, failure.error)

    if trend.sufficient:
        log.info("Trend: %s", " | ".join(trend.summary))
    elif trend.message:
        log.info("Trend: %s", trend.message)


def format_output(result: PipelineResult) -> dict[str, Any]:
    """Format a pipeline result for JSON output."""
    record = result.record
    return {
        "status": "passed" if record.passed else "failed",
        "successRate": (
            None if record.success_rate is None else str(record.success_rate)
        ),
        "duration": record.duration,
        "assertions": {
            "total": record.stats.assertions.total,
            "failed": record.stats.assertions.failed,
        },
        "requests": {
            "total": record.stats.requests.total,
            "failed": record.stats.requests.failed,
        },
        "failures": len(record.failures),
        "historySize": result.history_size,
        "trend": list(trend_messages(result.trend)),
        "report": str(result.report_path) if result.report_path else None,
        "notifications": [
            {
                "channel": outcome.channel,
                "status": outcome.status,
                "message": outcome.message,
            }
            for outcome in result.deliveries
        ],
    }


def trend_messages(trend: TrendAnalysis) -> tuple[str, ...]:
    """Summary signals, or the reason there are none."""
    if trend.sufficient:
        return tuple(trend.summary)
    return (trend.message,) if trend.message else ()


async def run(settings: Settings) -> int:
    """Run the collection pipeline and return exit code."""
    log = logging.getLogger("collection_runner")
    log.info("Environment: %s", settings.environment)

    try:
        manifest = load_runner_manifest(settings.runner)
    except RunnerNotFoundError as exc:
        log.error("%s", exc)
        return 1

    reporting = settings.reporting
    attachments = [reporting.reports_dir / reporting.enhanced_report_name]
    if settings.newman.html_export is not None:
        attachments.append(settings.newman.html_export)

    async with (
        manifest.runner_factory(settings.newman) as runner,
        NotificationDispatcher.from_settings(settings, attachments) as dispatcher,
    ):
        pipeline = RunPipeline(
            settings=settings,
            executor=RunExecutor(runner=runner, retry=settings.retry),
            history=HistoryStore(
                path=reporting.history_path,
                max_entries=settings.retention.max_history_entries,
            ),
            dispatcher=dispatcher,
        )
        try:
            result = await pipeline.run()
        except (ExecutionError, MalformedOutputError) as exc:
            log.error("Test suite failed: %s", exc)
            await dispatcher.deliver_failure(exc)
            return 1

    log_run_summary(log, result.record, result.trend)
    print(json.dumps(format_output(result), indent=2))
    return result.exit_code


def log_cleanup_summary(log: logging.Logger, summary: CleanupSummary) -> None:
    """Log what a cleanup pass removed."""
    verb = "would be" if summary.dry_run else "were"

    log.info("Cleanup Summary:")
    if summary.dry_run:
        log.info("DRY RUN - no files were deleted")
    if summary.reports is not None:
        log.info(
            "Reports: %d old file(s) %s removed", len(summary.reports.removed), verb
        )
    log.info(
        "History: %s", "trimmed" if summary.history_trimmed else "no trimming needed"
    )
    if summary.exports is not None:
        log.info(
            "Exports: %d old file(s) %s removed", len(summary.exports.removed), verb
        )
    log.info("Storage before: %s", format_bytes(summary.bytes_before))
    if not summary.dry_run:
        log.info("Storage after: %s", format_bytes(summary.bytes_after))
        if (saved := summary.bytes_before - summary.bytes_after) > 0:
            log.info("Storage saved: %s", format_bytes(saved))
    if summary.error_count:
        log.warning("%d error(s) occurred during cleanup", summary.error_count)


def cleanup(settings: Settings, args: argparse.Namespace) -> int:
    """Run housekeeping and return exit code."""
    log = logging.getLogger("collection_runner")
    summary = run_cleanup(
        settings,
        reports=not args.no_reports,
        history=not args.no_history,
        exports=not args.no_exports,
        dry_run=args.dry_run,
    )
    log_cleanup_summary(log, summary)
    return 1 if summary.error_count else 0


def log_validation_report(log: logging.Logger, report: ValidationReport) -> None:
    """Log each check category with its issues and warnings."""
    log.info("Setup Validation:")
    for check in report.checks:
        status = "PASSED" if check.valid else "FAILED"
        log.info("%s %s", STATUS_SYMBOLS[status], check.category.upper())
        for issue in check.issues:
            log.error("   %s %s", STATUS_SYMBOLS["FAILED"], issue)
        for warning in check.warnings:
            log.warning("   %s %s", STATUS_SYMBOLS["WARNING"], warning)

    if report.valid:
        log.info("Setup validation completed successfully")
    else:
        log.error("Setup validation found %d issue(s)", report.issue_count)


def validate(settings: Settings, environ: Mapping[str, str]) -> int:
    """Check the setup and return exit code."""
    log = logging.getLogger("collection_runner")
    report = validate_setup(settings, environ)
    log_validation_report(log, report)
    return 0 if report.valid else 1


def export(settings: Settings, export_format: str) -> int:
    """Export the history snapshot and return exit code."""
    log = logging.getLogger("collection_runner")
    store = HistoryStore(path=settings.reporting.history_path)
    try:
        path = export_history(
            store.load(),
            settings.reporting.data_dir,
            "csv" if export_format == "csv" else "json",
            prefix=settings.retention.export_prefix,
        )
    except (FileNotFoundError, StoreCorruptError) as exc:
        log.error("Error exporting test data: %s", exc)
        return 1
    print(json.dumps({"export": str(path)}))
    return 0


def print_history_summary(settings: Settings) -> int:
    """Print aggregate history statistics and return exit code."""
    log = logging.getLogger("collection_runner")
    try:
        history = HistoryStore(path=settings.reporting.history_path).load()
    except StoreCorruptError as exc:
        log.error("%s", exc)
        return 1

    history_summary = summarize_history(history)
    if history_summary is None:
        print(json.dumps({"message": "No test runs recorded"}))
        return 0
    print(json.dumps(asdict(history_summary), indent=2, default=str))
    return 0


def cli_overrides(args: argparse.Namespace) -> Profile:
    """Settings layer built from command line options."""
    newman: dict[str, Any] = {}
    if getattr(args, "collection", None) is not None:
        newman["collection"] = args.collection
    if getattr(args, "postman_environment", None) is not None:
        newman["environment"] = args.postman_environment
    if getattr(args, "iterations", None) is not None:
        newman["iteration_count"] = args.iterations
    return {"newman": newman} if newman else {}


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with its sub-commands."""
    parser = argparse.ArgumentParser(
        description="Run API test collections and track results over time"
    )
    parser.add_argument(
        "--environment",
        help="Configuration profile (default, development, staging, production)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML file with configuration profiles",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run_parser = commands.add_parser("run", help="Run the collection")
    run_parser.add_argument("--collection", type=Path, help="Collection file")
    run_parser.add_argument(
        "--postman-environment", type=Path, help="Postman environment file"
    )
    run_parser.add_argument("--iterations", type=int, help="Iteration count")

    cleanup_parser = commands.add_parser("cleanup", help="Remove stale artifacts")
    cleanup_parser.add_argument("--no-reports", action="store_true")
    cleanup_parser.add_argument("--no-history", action="store_true")
    cleanup_parser.add_argument("--no-exports", action="store_true")
    cleanup_parser.add_argument("--dry-run", action="store_true")

    export_parser = commands.add_parser("export", help="Export run history")
    export_parser.add_argument("--format", choices=("json", "csv"), default="json")

    commands.add_parser("summary", help="Print history statistics")
    commands.add_parser("validate", help="Check the setup before running")
    return parser


def main() -> None:
    """CLI entry point."""
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    log = logging.getLogger("collection_runner")

    try:
        settings = load_settings(
            args.environment, args.config, None, cli_overrides(args)
        )
    except (OSError, ValueError) as exc:
        log.error("Invalid configuration: %s", exc)
        sys.exit(1)

    if args.command == "run":
        exit_code = asyncio.run(run(settings))
    elif args.command == "cleanup":
        exit_code = cleanup(settings, args)
    elif args.command == "export":
        exit_code = export(settings, args.format)
    elif args.command == "validate":
        exit_code = validate(settings, os.environ)
    else:
        exit_code = print_history_summary(settings)
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    main()
