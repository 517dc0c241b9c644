"""Adapter for sources whose output is produced outside the pipeline."""

from __future__ import annotations

from ..logging import get_logger
from ..models import BuildResult, DocSource
from .base import SourceBuildAdapter


class StaticAdapter(SourceBuildAdapter):
    """Reports an already-built output directory without running anything."""

    def __init__(self) -> None:
        self.logger = get_logger("adapters.static")

    def run(self, source: DocSource) -> BuildResult:
        output = source.output_path
        if not output.is_dir():
            return BuildResult(
                source=source,
                success=False,
                diagnostics=f"Prebuilt output directory not found: {output}",
            )
        self.logger.debug("Using prebuilt output for %s at %s", source.name, output)
        return BuildResult(source=source, success=True, output=output)


__all__ = ["StaticAdapter"]
