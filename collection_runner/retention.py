"""Age and count based pruning of on-disk artifacts."""

import logging
import math
import os
import stat
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path

log = logging.getLogger(__name__)

BYTE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


@dataclass(frozen=True, kw_only=True)
class RetentionPolicy:
    """Which artifacts of a directory to keep.

    Both limits are optional and apply together: a file is removed when it is
    older than ``max_age_days`` or falls outside the ``max_count`` most
    recently modified files matching ``pattern``.
    """

    max_age_days: float | None = None
    max_count: int | None = None
    pattern: str = "*"

    def __post_init__(self) -> None:
        if self.max_age_days is not None and self.max_age_days < 0:
            raise ValueError("max_age_days must not be negative")
        if self.max_count is not None and self.max_count < 0:
            raise ValueError("max_count must not be negative")


@dataclass(frozen=True, kw_only=True)
class PruneError:
    """A file that could not be removed."""

    path: Path
    message: str


@dataclass(frozen=True, kw_only=True)
class PruneResult:
    """Outcome of a prune pass."""

    removed: Sequence[Path] = field(default_factory=tuple)
    retained: Sequence[Path] = field(default_factory=tuple)
    errors: Sequence[PruneError] = field(default_factory=tuple)
    dry_run: bool = False


@dataclass(frozen=True)
class _Artifact:
    path: Path
    mtime: float


def _regular_files(paths: Iterable[Path]) -> Iterator[tuple[Path, os.stat_result]]:
    """Regular files among ``paths`` with their stat, skipping vanished ones."""
    for path in paths:
        try:
            info = path.stat()
        except FileNotFoundError:
            continue
        if stat.S_ISREG(info.st_mode):
            yield path, info


def _collect(target: Path, pattern: str) -> list[_Artifact]:
    """Regular files matching the pattern, most recently modified first."""
    artifacts = [
        _Artifact(path=path, mtime=info.st_mtime)
        for path, info in _regular_files(target.glob(pattern))
    ]
    return sorted(artifacts, key=lambda artifact: artifact.mtime, reverse=True)


def prune(
    target: Path,
    policy: RetentionPolicy,
    *,
    now: datetime | None = None,
    dry_run: bool = False,
) -> PruneResult:
    """Remove artifacts of ``target`` that the policy does not retain.

    Deletion errors are collected and the remaining files are still
    processed.

    Args:
        target: Directory holding the artifacts
        policy: Age and count limits
        now: Reference instant for age pruning (defaults to the current time)
        dry_run: Report what would be removed without deleting anything

    Returns:
        Removed and retained paths plus any deletion errors

    """
    if not target.is_dir():
        return PruneResult(dry_run=dry_run)

    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = (
        (now - timedelta(days=policy.max_age_days)).timestamp()
        if policy.max_age_days is not None
        else -math.inf
    )

    removed: list[Path] = []
    retained: list[Path] = []
    errors: list[PruneError] = []

    for index, artifact in enumerate(_collect(target, policy.pattern)):
        expired = artifact.mtime < cutoff
        overflow = policy.max_count is not None and index >= policy.max_count
        if not (expired or overflow):
            retained.append(artifact.path)
            continue

        if dry_run:
            removed.append(artifact.path)
            continue

        try:
            artifact.path.unlink()
        except FileNotFoundError:
            removed.append(artifact.path)
        except OSError as exc:
            log.error("Failed to remove %s: %s", artifact.path, exc)
            errors.append(PruneError(path=artifact.path, message=str(exc)))
            retained.append(artifact.path)
        else:
            log.info("Removed old artifact: %s", artifact.path.name)
            removed.append(artifact.path)

    return PruneResult(
        removed=tuple(removed),
        retained=tuple(retained),
        errors=tuple(errors),
        dry_run=dry_run,
    )


def directory_size(path: Path) -> int:
    """Total size in bytes of all files below ``path``."""
    if not path.is_dir():
        return 0
    return sum(info.st_size for _, info in _regular_files(path.rglob("*")))


def format_bytes(size: int) -> str:
    """Render a byte count with a binary unit, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"
    exponent = 0
    while size >= 1024 ** (exponent + 1) and exponent < len(BYTE_UNITS) - 1:
        exponent += 1
    value = round(size / 1024**exponent, 2)
    return f"{value:g} {BYTE_UNITS[exponent]}"
