"""Tests for runner manifest resolution."""

from collections.abc import Generator
from importlib.metadata import EntryPoint
from unittest.mock import Mock, patch

import pytest

from collection_runner.runners.loading import (
    ENTRY_POINT_GROUP,
    RunnerNotFoundError,
    available_runners,
    load_runner_manifest,
)
from collection_runner.runners.manifest import RunnerManifest
from collection_runner.runners.newman import newman_manifest


def plugin(name: str, value: str) -> EntryPoint:
    """Create an entry point in the runner group."""
    return EntryPoint(name=name, value=value, group=ENTRY_POINT_GROUP)


@pytest.fixture
def installed_mock() -> Generator[Mock, None, None]:
    """Replace the installed entry points, none by default."""
    with patch(
        "collection_runner.runners.loading.entry_points", return_value=[]
    ) as mock_entry_points:
        yield mock_entry_points


def test_resolves_builtin_runner_without_metadata(installed_mock: Mock) -> None:
    """Finds the newman runner when no entry points are installed."""
    assert load_runner_manifest("newman") is newman_manifest
    installed_mock.assert_called_once_with(group=ENTRY_POINT_GROUP)


def test_resolves_installed_plugin(installed_mock: Mock) -> None:
    """Finds runners registered by installed packages."""
    installed_mock.return_value = [
        plugin("custom", "collection_runner.runners.newman:newman_manifest")
    ]

    manifest = load_runner_manifest("custom")

    assert isinstance(manifest, RunnerManifest)
    assert sorted(available_runners()) == ["custom", "newman"]


def test_installed_plugin_shadows_builtin(installed_mock: Mock) -> None:
    """Prefers an installed runner over the built-in one of the same key."""
    installed = plugin("newman", "collection_runner.runners.newman:NewmanRunner")
    installed_mock.return_value = [installed]

    assert available_runners()["newman"] is installed


def test_unknown_runner_lists_available_keys(installed_mock: Mock) -> None:
    """Names the unknown key and the registered runners."""
    with pytest.raises(RunnerNotFoundError) as exc_info:
        load_runner_manifest("postman-cloud")

    message = str(exc_info.value)
    assert "'postman-cloud' not found" in message
    assert "Available runners: ['newman']" in message


def test_rejects_object_that_is_not_a_manifest(installed_mock: Mock) -> None:
    """Refuses entry points that do not point at a RunnerManifest."""
    installed_mock.return_value = [
        plugin("broken", "collection_runner.runners.newman:NewmanRunner")
    ]

    with pytest.raises(RunnerNotFoundError, match="not a RunnerManifest"):
        load_runner_manifest("broken")


def test_wraps_import_failures(installed_mock: Mock) -> None:
    """Reports plugins whose module cannot be imported."""
    installed_mock.return_value = [
        plugin("missing", "collection_runner.runners.missing:manifest")
    ]

    with pytest.raises(RunnerNotFoundError, match="could not be loaded"):
        load_runner_manifest("missing")
