"""Configuration schema and layered profile resolution.

Settings are resolved once at process start and passed into each component.
Layers are applied in this order, later layers winning:

1. built-in ``default`` profile
2. ``default`` profile of the optional YAML config file
3. built-in profile for the selected environment
4. profile for the selected environment in the YAML config file
5. secrets and addresses read from the process environment
6. explicit overrides such as command line options

Nested mappings merge key by key, keys absent from an override are inherited
unchanged, and lists or scalars in an override replace the inherited value.
"""

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, TypeAlias

import yaml
from pydantic import Field, SecretStr

from collection_runner.models.base import Model

log = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "default"
ENVIRONMENT_VARIABLE = "COLLECTION_RUNNER_ENV"


class NewmanSettings(Model):
    """Options passed to the collection runner."""

    command: Sequence[str] = ("newman",)
    collection: Path = Path("Collection.json")
    environment: Path | None = Path("Environment.json")
    iteration_count: int = Field(default=1, ge=1)
    timeout: int = Field(default=30000, ge=0, description="Per-request timeout (ms)")
    delay_request: int = Field(
        default=1000, ge=0, description="Delay between requests (ms)"
    )
    html_export: Path | None = Path("reports/report.html")


class RetrySettings(Model):
    """Bounded fixed-delay retry of failed runs."""

    max_retries: int = Field(default=3, ge=0)
    retry_delay: int = Field(default=5000, ge=0, description="Milliseconds")
    retry_on_failure: bool = True


class ReportingSettings(Model):
    """Where results, history and reports are written."""

    generate_trends: bool = True
    history_path: Path = Path("data/test-history.json")
    data_dir: Path = Path("data")
    reports_dir: Path = Path("reports")
    enhanced_report_name: str = "enhanced-report.html"


class RetentionSettings(Model):
    """Limits applied to on-disk artifacts."""

    max_history_entries: int = Field(default=100, ge=1)
    report_max_age_days: int = Field(default=30, ge=0)
    max_exports: int = Field(default=5, ge=0)
    export_prefix: str = "test-export-"


class EmailSettings(Model):
    """SMTP delivery of the run summary."""

    host: str = "smtp.gmail.com"
    port: int = 465
    use_ssl: bool = True
    username: str | None = None
    password: SecretStr | None = None
    sender: str | None = None
    to: Sequence[str] = ()
    cc: Sequence[str] = ()
    bcc: Sequence[str] = ()

    @property
    def enabled(self) -> bool:
        """Email is sent only with credentials and at least one recipient."""
        return bool(self.username and self.password and self.to)


class SlackSettings(Model):
    """Slack incoming webhook."""

    webhook_url: SecretStr | None = None
    channel: str = "#api-testing"

    @property
    def enabled(self) -> bool:
        """The channel is enabled when a webhook URL is configured."""
        return self.webhook_url is not None


class TeamsSettings(Model):
    """Microsoft Teams incoming webhook."""

    webhook_url: SecretStr | None = None

    @property
    def enabled(self) -> bool:
        """The channel is enabled when a webhook URL is configured."""
        return self.webhook_url is not None


class NotificationSettings(Model):
    """Chat notification channels."""

    slack: SlackSettings = Field(default_factory=SlackSettings)
    teams: TeamsSettings = Field(default_factory=TeamsSettings)


class Settings(Model):
    """Complete, immutable process configuration."""

    environment: str = DEFAULT_ENVIRONMENT
    runner: str = "newman"
    newman: NewmanSettings = Field(default_factory=NewmanSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    retention: RetentionSettings = Field(default_factory=RetentionSettings)
    email: EmailSettings = Field(default_factory=EmailSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


Profile: TypeAlias = Mapping[str, Any]

PROFILES: Mapping[str, Profile] = {
    DEFAULT_ENVIRONMENT: {},
    "development": {
        "newman": {"timeout": 60000, "delay_request": 2000},
    },
    "staging": {
        "newman": {"iteration_count": 2, "timeout": 45000},
    },
    "production": {
        "newman": {"timeout": 30000, "delay_request": 500},
        "retry": {"max_retries": 5, "retry_delay": 10000},
    },
}


def merge_layers(base: Profile, override: Profile) -> dict[str, Any]:
    """Merge ``override`` on top of ``base`` without mutating either."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        inherited = merged.get(key)
        if isinstance(value, Mapping) and isinstance(inherited, Mapping):
            merged[key] = merge_layers(inherited, value)
        else:
            merged[key] = value
    return merged


def select_profile(profiles: Mapping[str, Profile], environment: str) -> Profile:
    """Return the ``default`` profile with the environment profile layered on top."""
    if environment not in profiles:
        log.warning(
            "Unknown environment '%s', using %s profile only",
            environment,
            DEFAULT_ENVIRONMENT,
        )
    return merge_layers(
        profiles.get(DEFAULT_ENVIRONMENT, {}), profiles.get(environment, {})
    )


def resolve_settings(
    profiles: Mapping[str, Profile],
    environment: str,
    *overrides: Profile,
) -> Settings:
    """Resolve settings for an environment, applying extra overrides last."""
    layer = select_profile(profiles, environment)
    for override in overrides:
        layer = merge_layers(layer, override)
    return Settings.model_validate({**layer, "environment": environment})


def load_profiles_file(path: Path) -> Mapping[str, Profile]:
    """Load environment profiles from a YAML file.

    The file has the same layout as ``PROFILES``: a mapping of environment
    names to partial settings.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file is not a mapping of mappings

    """
    with path.open(encoding="utf-8") as stream:
        data = yaml.safe_load(stream)

    if data is None:
        return {}
    if not isinstance(data, Mapping) or not all(
        isinstance(profile, Mapping) for profile in data.values()
    ):
        raise ValueError(f"Config file {path} must map environments to settings")
    return data


def parse_recipients(value: str | None) -> Sequence[str]:
    """Parse a comma-separated recipient list."""
    if not value or not value.strip():
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def environ_overrides(environ: Mapping[str, str], environment: str) -> Profile:
    """Collect secrets and addresses from the process environment."""
    to = environ.get("EMAIL_TO")
    if environment == "development":
        to = environ.get("DEV_EMAIL_TO") or to
    elif environment == "staging":
        to = environ.get("STAGING_EMAIL_TO") or to

    email: dict[str, Any] = {}
    if user := environ.get("EMAIL_USER"):
        email["username"] = user
        email["sender"] = user
    if password := environ.get("EMAIL_PASS"):
        email["password"] = password
    if host := environ.get("SMTP_HOST"):
        email["host"] = host
    if port := environ.get("SMTP_PORT"):
        email["port"] = int(port)
    for key, value in (
        ("to", to),
        ("cc", environ.get("EMAIL_CC")),
        ("bcc", environ.get("EMAIL_BCC")),
    ):
        if recipients := parse_recipients(value):
            email[key] = recipients

    notifications: dict[str, Any] = {}
    if slack_url := environ.get("SLACK_WEBHOOK_URL"):
        notifications["slack"] = {"webhook_url": slack_url}
        if channel := environ.get("SLACK_CHANNEL"):
            notifications["slack"]["channel"] = channel
    if teams_url := environ.get("TEAMS_WEBHOOK_URL"):
        notifications["teams"] = {"webhook_url": teams_url}

    overrides: dict[str, Any] = {}
    if email:
        overrides["email"] = email
    if notifications:
        overrides["notifications"] = notifications
    return overrides


def load_settings(
    environment: str | None = None,
    config_file: Path | None = None,
    environ: Mapping[str, str] | None = None,
    *overrides: Profile,
) -> Settings:
    """Build the process settings from profiles, config file and environment.

    ``overrides`` (e.g. command line options) are applied after every other
    layer.
    """
    if environ is None:
        environ = os.environ
    if environment is None:
        environment = environ.get(ENVIRONMENT_VARIABLE, DEFAULT_ENVIRONMENT)

    profiles: dict[str, Profile] = dict(PROFILES)
    if config_file is not None:
        for name, profile in load_profiles_file(config_file).items():
            profiles[name] = merge_layers(profiles.get(name, {}), profile)

    return resolve_settings(
        profiles, environment, environ_overrides(environ, environment), *overrides
    )
