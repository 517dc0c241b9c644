"""Error taxonomy for pipeline stages."""

from __future__ import annotations

from typing import Optional, Sequence

from .models import Stage


class DocMergeError(RuntimeError):
    """Base error carrying the stage that failed and the sources involved."""

    stage: Stage = Stage.PENDING

    def __init__(self, cause: str, *, sources: Optional[Sequence[str]] = None) -> None:
        super().__init__(cause)
        self.cause = cause
        self.sources = tuple(sources or ())

    def __str__(self) -> str:
        label = self.stage.label
        if self.sources:
            label = f"{label} failed ({', '.join(self.sources)})"
        else:
            label = f"{label} failed"
        return f"{label}: {self.cause}"


class BuildError(DocMergeError):
    """One or more external documentation builds failed or timed out."""

    stage = Stage.BUILDING_SOURCES


class PlanningError(DocMergeError):
    """Mount collision, missing primary or required source failure."""

    stage = Stage.PLANNING


class AssemblyError(DocMergeError):
    """Copying a mount failed or the assembled tree violates its post-conditions."""

    stage = Stage.ASSEMBLING


class PublishError(DocMergeError):
    """Transport, authentication or push rejection while publishing."""

    stage = Stage.PUBLISHING


__all__ = [
    "AssemblyError",
    "BuildError",
    "DocMergeError",
    "PlanningError",
    "PublishError",
]
