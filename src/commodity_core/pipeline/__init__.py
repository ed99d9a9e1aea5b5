"""Signal pipeline: context building and the pass runner."""

from commodity_core.pipeline.runner import PassResult, Pipeline
from commodity_core.pipeline.snapshot import build_context

__all__ = ["PassResult", "Pipeline", "build_context"]
