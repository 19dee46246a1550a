"""Runner manifest definition for the plugin system."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from collection_runner.config import NewmanSettings
from collection_runner.runners.base import CollectionRunner


@dataclass(frozen=True, kw_only=True)
class RunnerManifest:
    """Manifest describing a runner plugin.

    The manifest holds the factory that builds a runner from the collection
    settings, so runners are loaded lazily by key.
    """

    runner_factory: Callable[
        [NewmanSettings], AbstractAsyncContextManager[CollectionRunner]
    ]
