"""Base class for documentation build adapters."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import BuildResult, DocSource


class SourceBuildAdapter(ABC):
    """Contract for adapters that turn a DocSource into a directory of static files."""

    @abstractmethod
    def run(self, source: DocSource) -> BuildResult:
        """Build ``source`` and report its output; failures are returned, never raised."""
