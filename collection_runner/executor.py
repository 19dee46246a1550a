"""Retry-driven execution of a collection run."""

import asyncio
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from collection_runner.config import RetrySettings
from collection_runner.runners.base import CollectionRunner, RawRunOutput, RunOptions

log = logging.getLogger(__name__)


class ExecutionError(Exception):
    """Raised when a run could not complete after all attempts."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(
            f"Collection run failed after {attempts} attempt(s): {message}"
        )
        self.message = message
        self.attempts = attempts


def find_run_error(raw: RawRunOutput) -> str | None:
    """Return the terminal run error reported inside raw output, if any.

    Assertion failures are not run errors: the collection ran and some
    checks failed.
    """
    run = raw.get("run")
    if not isinstance(run, Mapping):
        return None
    error = run.get("error")
    if not error:
        return None
    if isinstance(error, str):
        return error
    return json.dumps(error, default=str)


@dataclass(frozen=True, kw_only=True)
class RunExecutor:
    """Executes a collection with bounded, fixed-delay retries."""

    runner: CollectionRunner
    retry: RetrySettings

    @property
    def max_attempts(self) -> int:
        """Total number of attempts a single ``execute`` call may make."""
        if not self.retry.retry_on_failure:
            return 1
        return self.retry.max_retries + 1

    async def execute(self, options: RunOptions) -> RawRunOutput:
        """Run the collection, retrying runs that could not complete.

        Args:
            options: Options for the collection run

        Returns:
            Raw output of the first attempt that completed

        Raises:
            ExecutionError: If every attempt failed

        """
        max_attempts = self.max_attempts
        last_error = "no attempt made"

        for attempt in range(1, max_attempts + 1):
            try:
                raw = await self.runner.run(options)
            except Exception as exc:
                last_error = str(exc) or type(exc).__name__
            else:
                if (run_error := find_run_error(raw)) is None:
                    if attempt > 1:
                        log.info("Collection run succeeded on attempt %d", attempt)
                    return raw
                last_error = f"Run execution errors: {run_error}"

            if attempt < max_attempts:
                log.warning(
                    "Attempt %d of %d failed: %s. Retrying in %dms...",
                    attempt,
                    max_attempts,
                    last_error,
                    self.retry.retry_delay,
                )
                await asyncio.sleep(self.retry.retry_delay / 1000)

        log.error("Collection run failed after %d attempt(s)", max_attempts)
        raise ExecutionError(last_error, attempts=max_attempts)
