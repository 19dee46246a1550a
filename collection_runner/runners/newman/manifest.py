"""Newman runner manifest."""

from collection_runner.runners.manifest import RunnerManifest
from collection_runner.runners.newman.runner import NewmanRunner

newman_manifest = RunnerManifest(runner_factory=NewmanRunner.from_config)
