"""Abstract base class for collection runners."""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias

RawRunOutput: TypeAlias = Mapping[str, Any]


class RunnerError(Exception):
    """Raised when a runner could not produce run output."""


@dataclass(frozen=True, kw_only=True)
class RunOptions:
    """Options for a single collection run."""

    collection: Path
    environment: Path | None = None
    iteration_count: int = 1
    timeout: int = 30000
    delay_request: int = 0
    html_export: Path | None = None
    insecure: bool = True
    # Assertion failures must not turn into a non-zero runner exit
    suppress_exit_code: bool = True


@dataclass(frozen=True, kw_only=True)
class CollectionRunner(ABC):
    """Capability that executes an API test collection once."""

    @abstractmethod
    async def run(self, options: RunOptions) -> RawRunOutput:
        """Execute the collection and return the raw run summary.

        Args:
            options: Collection, environment and execution options

        Returns:
            The raw summary as produced by the runner's JSON reporter

        Raises:
            RunnerError: If the run could not complete

        """
