"""Newman CLI runner implementation."""

import asyncio
import json
import logging
import tempfile
import uuid
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from collection_runner.config import NewmanSettings
from collection_runner.runners.base import (
    CollectionRunner,
    RawRunOutput,
    RunnerError,
    RunOptions,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class NewmanRunner(CollectionRunner):
    """Runs a collection with the ``newman`` command line tool."""

    command: Sequence[str]
    export_dir: Path

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, settings: NewmanSettings
    ) -> AsyncGenerator["NewmanRunner", None]:
        """Create runner with a managed directory for JSON summaries."""
        with tempfile.TemporaryDirectory(prefix="collection-runner-") as tmp:
            yield cls(command=tuple(settings.command), export_dir=Path(tmp))

    def build_arguments(self, options: RunOptions, summary_path: Path) -> list[str]:
        """Build the newman command line for one run."""
        reporters = ["cli", "json"]
        if options.html_export is not None:
            reporters.append("htmlextra")

        args = [
            *self.command,
            "run",
            str(options.collection),
            "--iteration-count",
            str(options.iteration_count),
            "--timeout-request",
            str(options.timeout),
            "--delay-request",
            str(options.delay_request),
            "--reporters",
            ",".join(reporters),
            "--reporter-json-export",
            str(summary_path),
        ]
        if options.environment is not None:
            args += ["--environment", str(options.environment)]
        if options.html_export is not None:
            args += ["--reporter-htmlextra-export", str(options.html_export)]
        if options.insecure:
            args.append("--insecure")
        if options.suppress_exit_code:
            args.append("--suppress-exit-code")
        return args

    async def run(self, options: RunOptions) -> RawRunOutput:
        """Run newman and return the parsed JSON reporter export."""
        summary_path = self.export_dir / f"summary-{uuid.uuid4().hex}.json"
        if options.html_export is not None:
            options.html_export.parent.mkdir(parents=True, exist_ok=True)

        args = self.build_arguments(options, summary_path)
        log.info("Running collection: %s", options.collection)
        log.debug("Command: %s", " ".join(args))

        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise RunnerError(f"Runner executable not found: {args[0]}") from exc

        stdout, stderr = await process.communicate()
        if stdout:
            log.debug("newman output:\n%s", stdout.decode(errors="replace"))

        if process.returncode != 0:
            raise RunnerError(
                f"newman exited with status {process.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

        try:
            text = summary_path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise RunnerError(
                f"newman did not write a summary to {summary_path}"
            ) from exc
        finally:
            summary_path.unlink(missing_ok=True)

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RunnerError(f"newman summary is not valid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise RunnerError("newman summary is not a JSON object")
        return data
