"""Pre-flight checks of the environment a run depends on."""

import json
import logging
import re
import shutil
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from collection_runner.config import Settings, parse_recipients
from collection_runner.history import HistoryStore, StoreCorruptError
from collection_runner.runners.loading import (
    RunnerNotFoundError,
    load_runner_manifest,
)

log = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

OPTIONAL_VARIABLES = (
    "EMAIL_CC",
    "EMAIL_BCC",
    "SLACK_WEBHOOK_URL",
    "TEAMS_WEBHOOK_URL",
)

RECIPIENT_VARIABLES = {
    "development": ("DEV_EMAIL_TO", "EMAIL_TO"),
    "staging": ("STAGING_EMAIL_TO", "EMAIL_TO"),
}


@dataclass(frozen=True, kw_only=True)
class CheckResult:
    """Issues and warnings found by one category of checks."""

    category: str
    issues: Sequence[str] = ()
    warnings: Sequence[str] = ()

    @property
    def valid(self) -> bool:
        return not self.issues


@dataclass(frozen=True, kw_only=True)
class ValidationReport:
    """Outcome of every check category, in the order they ran."""

    checks: Sequence[CheckResult]

    @property
    def valid(self) -> bool:
        """The setup is ready to run when no category found an issue."""
        return all(check.valid for check in self.checks)

    @property
    def issue_count(self) -> int:
        return sum(len(check.issues) for check in self.checks)


def is_valid_email(address: str) -> bool:
    return EMAIL_PATTERN.match(address) is not None


def recipient_variables(environment: str) -> tuple[str, ...]:
    """Variables holding the recipient list, most specific first."""
    return RECIPIENT_VARIABLES.get(environment, ("EMAIL_TO",))


def check_environment(environ: Mapping[str, str], environment: str) -> CheckResult:
    """Check the variables that carry credentials, recipients and webhooks."""
    issues: list[str] = []
    warnings: list[str] = []

    for name in ("EMAIL_USER", "EMAIL_PASS"):
        if not environ.get(name):
            issues.append(f"Missing required environment variable: {name}")

    candidates = recipient_variables(environment)
    recipient_variable = next((name for name in candidates if environ.get(name)), None)
    if recipient_variable is None:
        issues.append(
            f"Missing required environment variable: {' or '.join(candidates)}"
        )

    for name in OPTIONAL_VARIABLES:
        if not environ.get(name):
            warnings.append(f"Optional environment variable not set: {name}")

    user = environ.get("EMAIL_USER")
    if user and not is_valid_email(user):
        issues.append("EMAIL_USER is not a valid email format")

    for name in (recipient_variable, "EMAIL_CC", "EMAIL_BCC"):
        if name is None:
            continue
        for address in parse_recipients(environ.get(name)):
            if not is_valid_email(address):
                issues.append(f"{name} contains an invalid address: {address}")

    return CheckResult(category="environment", issues=issues, warnings=warnings)


def check_files(settings: Settings) -> CheckResult:
    """Check that the collection and environment files exist and parse as JSON."""
    issues: list[str] = []
    newman = settings.newman
    files = [newman.collection]
    if newman.environment is not None:
        files.append(newman.environment)

    for path in files:
        if not path.is_file():
            issues.append(f"Missing required file: {path}")
            continue
        try:
            json.loads(path.read_text(encoding="utf-8"))
        except ValueError as exc:
            issues.append(f"Invalid JSON in {path}: {exc}")
        except OSError as exc:
            issues.append(f"Cannot read {path}: {exc}")

    return CheckResult(category="files", issues=issues)


def _check_writable(directory: Path) -> str | None:
    """Create ``directory`` if needed and write a scratch file into it."""
    try:
        directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=directory, prefix=".write-test-"):
            pass
    except OSError as exc:
        return str(exc)
    return None


def check_directories(settings: Settings) -> CheckResult:
    """Check that results and reports can be written."""
    issues: list[str] = []
    reporting = settings.reporting
    for label, directory in (
        ("Data", reporting.data_dir),
        ("Reports", reporting.reports_dir),
    ):
        if (error := _check_writable(directory)) is not None:
            issues.append(f"{label} directory not writable: {directory} ({error})")

    return CheckResult(category="directories", issues=issues)


def check_dependencies(settings: Settings) -> CheckResult:
    """Check that the runner and its executable are available."""
    issues: list[str] = []

    try:
        load_runner_manifest(settings.runner)
    except RunnerNotFoundError as exc:
        issues.append(str(exc))

    command = settings.newman.command
    if not command:
        issues.append("Newman command is not configured")
    elif shutil.which(command[0]) is None:
        issues.append(f"Executable not found on PATH: {command[0]}")

    return CheckResult(category="dependencies", issues=issues)


def check_configuration(settings: Settings) -> CheckResult:
    """Check the resolved settings and the persisted history."""
    issues: list[str] = []
    warnings: list[str] = []

    email = settings.email
    if not email.enabled and (email.username or email.password or email.to):
        issues.append(
            "Email is partially configured: "
            "username, password and recipients are all required"
        )

    channels = (email, settings.notifications.slack, settings.notifications.teams)
    if not any(channel.enabled for channel in channels):
        warnings.append("No notification channel is enabled")

    store = HistoryStore(path=settings.reporting.history_path)
    try:
        store.load()
    except StoreCorruptError as exc:
        issues.append(str(exc))
    except OSError as exc:
        issues.append(f"History file cannot be read: {exc}")

    return CheckResult(category="configuration", issues=issues, warnings=warnings)


def validate_setup(settings: Settings, environ: Mapping[str, str]) -> ValidationReport:
    """Run every check category against the resolved settings.

    Args:
        settings: Resolved process settings
        environ: Process environment the settings were resolved from

    Returns:
        The result of each category, environment first

    """
    log.info("Validating setup for environment: %s", settings.environment)
    return ValidationReport(
        checks=(
            check_environment(environ, settings.environment),
            check_files(settings),
            check_directories(settings),
            check_dependencies(settings),
            check_configuration(settings),
        )
    )
