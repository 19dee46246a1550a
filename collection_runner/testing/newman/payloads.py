"""Payload helpers for Newman JSON reporter summaries in tests."""

from collections.abc import Sequence
from typing import Any

STARTED = 1704110400000


def counter(total: int, failed: int = 0) -> dict[str, int]:
    """Create a stats counter."""
    return {"total": total, "pending": 0, "failed": failed}


def execution(
    *,
    name: str = "Get users",
    code: int | None = 200,
    response_time: int = 120,
    assertions: Sequence[tuple[str, str | None]] = (("Status code is 200", None),),
) -> dict[str, Any]:
    """Create an execution entry; ``code=None`` means no response arrived."""
    results: list[dict[str, Any]] = []
    for assertion, error in assertions:
        result: dict[str, Any] = {"assertion": assertion, "skipped": False}
        if error is not None:
            result["error"] = {"name": "AssertionError", "message": error}
        results.append(result)

    payload: dict[str, Any] = {
        "cursor": {"position": 0, "iteration": 0},
        "item": {"id": "item-1", "name": name},
        "assertions": results,
    }
    if code is not None:
        payload["response"] = {
            "id": "response-1",
            "status": "OK",
            "code": code,
            "responseTime": response_time,
            "responseSize": 512,
        }
    return payload


def failure(
    *, source: str = "Get users", message: str = "expected 500 to equal 200"
) -> dict[str, Any]:
    """Create a failure entry."""
    return {
        "error": {"name": "AssertionError", "message": message, "test": "Status"},
        "source": {"id": "item-1", "name": source},
        "parent": {"name": "Users"},
        "cursor": {"position": 0, "iteration": 0},
        "at": "assertion:0 in test-script",
    }


def run_summary(
    *,
    assertions: tuple[int, int] = (10, 0),
    requests: tuple[int, int] = (5, 0),
    test_scripts: tuple[int, int] = (5, 0),
    iterations: int = 1,
    started: int = STARTED,
    completed: int = STARTED + 2500,
    executions: Sequence[dict[str, Any]] | None = None,
    failures: Sequence[dict[str, Any]] = (),
    error: Any = None,
) -> dict[str, Any]:
    """Create a run summary as exported by the Newman JSON reporter.

    Returns a realistic ``newman run --reporters json`` export structure.
    """
    return {
        "collection": {
            "info": {"name": "API Collection", "schema": "v2.1.0"},
            "item": [],
        },
        "environment": {"name": "Test", "values": []},
        "run": {
            "stats": {
                "iterations": counter(iterations),
                "items": counter(requests[0]),
                "scripts": counter(test_scripts[0]),
                "prerequests": counter(requests[0]),
                "requests": counter(*requests),
                "tests": counter(test_scripts[0]),
                "assertions": counter(*assertions),
                "testScripts": counter(*test_scripts),
                "prerequestScripts": counter(0),
            },
            "timings": {
                "responseAverage": 120,
                "responseMin": 80,
                "responseMax": 200,
                "started": started,
                "completed": completed,
            },
            "executions": [execution()] if executions is None else list(executions),
            "transfers": {"responseTotal": 2560},
            "failures": list(failures),
            "error": error,
        },
    }
