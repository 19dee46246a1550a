"""Integration tests for the newman runner using a stand-in executable."""

import json
import sys
import textwrap
from pathlib import Path

import pytest

from collection_runner.config import NewmanSettings, RetrySettings
from collection_runner.executor import RunExecutor
from collection_runner.extractor import extract
from collection_runner.runners.base import RunnerError, RunOptions
from collection_runner.runners.newman import NewmanRunner
from collection_runner.testing.newman.payloads import run_summary

SCRIPT_TEMPLATE = """
import json
import sys

args = sys.argv[1:]
summary_path = args[args.index("--reporter-json-export") + 1]
with open({args_log!r}, "w") as stream:
    json.dump(args, stream)
{body}
"""


def write_script(tmp_path: Path, body: str) -> Path:
    """Write a stand-in for newman that records its arguments."""
    script = tmp_path / "fake_newman.py"
    script.write_text(
        SCRIPT_TEMPLATE.format(
            args_log=str(tmp_path / "args.json"), body=textwrap.dedent(body)
        )
    )
    return script


@pytest.fixture
def options(tmp_path: Path) -> RunOptions:
    """Run options pointing below the temporary directory."""
    return RunOptions(
        collection=tmp_path / "Collection.json",
        html_export=tmp_path / "reports" / "report.html",
    )


def script_settings(script: Path) -> NewmanSettings:
    """Settings executing the script with the current interpreter."""
    return NewmanSettings(command=(sys.executable, str(script)))


async def run_script(tmp_path: Path, body: str, options: RunOptions) -> dict:
    """Run the script through a runner and return the parsed output."""
    settings = script_settings(write_script(tmp_path, body))
    async with NewmanRunner.from_config(settings) as runner:
        return dict(await runner.run(options))


async def test_returns_json_summary(tmp_path: Path, options: RunOptions) -> None:
    """Parses the summary written by the JSON reporter."""
    summary = run_summary(assertions=(4, 1))
    body = f"""
    with open(summary_path, "w") as stream:
        stream.write({json.dumps(summary)!r})
    """

    raw = await run_script(tmp_path, body, options)

    assert raw == summary
    args = json.loads((tmp_path / "args.json").read_text())
    assert args[:2] == ["run", str(options.collection)]
    assert "--suppress-exit-code" in args
    assert not Path(args[args.index("--reporter-json-export") + 1]).exists()
    assert (tmp_path / "reports").is_dir()
    assert extract(raw).stats.assertions.failed == 1


async def test_raises_on_nonzero_exit(tmp_path: Path, options: RunOptions) -> None:
    """Reports the exit status and stderr."""
    body = """
    sys.stderr.write("collection could not be loaded")
    sys.exit(3)
    """

    with pytest.raises(RunnerError, match="status 3: collection could not be loaded"):
        await run_script(tmp_path, body, options)


async def test_raises_without_summary(tmp_path: Path, options: RunOptions) -> None:
    """Fails when the JSON reporter wrote nothing."""
    with pytest.raises(RunnerError, match="did not write a summary"):
        await run_script(tmp_path, "pass", options)


@pytest.mark.parametrize(
    ("content", "message"),
    [("not json", "not valid JSON"), ("[1, 2]", "not a JSON object")],
)
async def test_raises_on_invalid_summary(
    tmp_path: Path, options: RunOptions, content: str, message: str
) -> None:
    """Fails when the summary is not a JSON object."""
    body = f"""
    with open(summary_path, "w") as stream:
        stream.write({content!r})
    """

    with pytest.raises(RunnerError, match=message):
        await run_script(tmp_path, body, options)


async def test_raises_when_executable_missing(
    tmp_path: Path, options: RunOptions
) -> None:
    """Fails cleanly when the command does not exist."""
    settings = NewmanSettings(command=(str(tmp_path / "missing-newman"),))

    async with NewmanRunner.from_config(settings) as runner:
        with pytest.raises(RunnerError, match="executable not found"):
            await runner.run(options)


async def test_executor_retries_flaky_runner(
    tmp_path: Path, options: RunOptions
) -> None:
    """Retries a run that failed once and returns the second output."""
    marker = tmp_path / "attempted"
    summary = run_summary()
    script = write_script(
        tmp_path,
        f"""
        import os
        if not os.path.exists({str(marker)!r}):
            open({str(marker)!r}, "w").close()
            sys.exit(1)
        with open(summary_path, "w") as stream:
            stream.write({json.dumps(summary)!r})
        """,
    )

    async with NewmanRunner.from_config(script_settings(script)) as runner:
        executor = RunExecutor(
            runner=runner, retry=RetrySettings(max_retries=1, retry_delay=0)
        )
        raw = await executor.execute(options)

    assert raw == summary
