"""Newman runner module."""

from collection_runner.runners.newman.manifest import newman_manifest
from collection_runner.runners.newman.runner import NewmanRunner

__all__ = ["NewmanRunner", "newman_manifest"]
