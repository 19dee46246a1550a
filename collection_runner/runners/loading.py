"""Resolution of runner manifests by key.

Runners registered under the ``collection_runner.runners`` entry point group
shadow the built-in runners, which stay resolvable from a source checkout
without installed package metadata.
"""

import logging
from collections.abc import Mapping
from importlib.metadata import EntryPoint, entry_points

from collection_runner.runners.manifest import RunnerManifest

log = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "collection_runner.runners"

BUILTIN_RUNNERS = (
    EntryPoint(
        name="newman",
        value="collection_runner.runners.newman:newman_manifest",
        group=ENTRY_POINT_GROUP,
    ),
)


class RunnerNotFoundError(Exception):
    """Raised when no usable runner is registered under a key."""


def available_runners() -> Mapping[str, EntryPoint]:
    """Runner entry points by key, installed plugins replacing built-in ones."""
    runners = {entry.name: entry for entry in BUILTIN_RUNNERS}
    for entry in entry_points(group=ENTRY_POINT_GROUP):
        runners[entry.name] = entry
    return runners


def load_runner_manifest(key: str) -> RunnerManifest:
    """Load a runner manifest by key.

    Args:
        key: The runner key, e.g. "newman"

    Returns:
        The runner manifest instance

    Raises:
        RunnerNotFoundError: If no runner is registered under the key, or the
            registered object cannot be imported or is not a RunnerManifest

    """
    runners = available_runners()
    entry = runners.get(key)
    if entry is None:
        raise RunnerNotFoundError(
            f"Runner '{key}' not found. Available runners: {sorted(runners)}"
        )

    try:
        manifest = entry.load()
    except (ImportError, AttributeError) as exc:
        raise RunnerNotFoundError(
            f"Runner '{key}' could not be loaded from {entry.value}: {exc}"
        ) from exc

    if not isinstance(manifest, RunnerManifest):
        raise RunnerNotFoundError(
            f"Runner '{key}' ({entry.value}) is a {type(manifest).__name__}, "
            "not a RunnerManifest"
        )

    log.debug("Loaded runner '%s' from %s", key, entry.value)
    return manifest
