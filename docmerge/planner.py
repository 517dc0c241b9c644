"""Mount planning: place every successful build output in the unified site tree."""

from __future__ import annotations

from typing import List, Sequence

from .errors import PlanningError
from .logging import get_logger
from .models import BuildResult, DocSource, Mount, MountPlan, Policy

ROOT_INDEX = "index.html"


def normalize_mount(mount: str, *, source: str = "") -> str:
    """Return ``mount`` as a relative POSIX path; ``""`` denotes the site root."""
    text = mount.strip()
    sources = [source] if source else None
    if "\\" in text:
        raise PlanningError(f"mount path {mount!r} must use forward slashes", sources=sources)
    parts: List[str] = []
    for segment in text.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            raise PlanningError(
                f"mount path {mount!r} must not contain parent traversal", sources=sources
            )
        parts.append(segment)
    return "/".join(parts)


class AggregationPlanner:
    """Computes a collision-free MountPlan from build results without touching disk."""

    def __init__(self, policy: Policy = Policy.REQUIRED) -> None:
        self.policy = policy
        self.logger = get_logger("planner")

    def plan(self, results: Sequence[BuildResult]) -> MountPlan:
        primaries = [result.source for result in results if result.source.primary]
        if not primaries:
            raise PlanningError("no source is marked primary")
        if len(primaries) > 1:
            raise PlanningError(
                "exactly one source may be marked primary",
                sources=[source.name for source in primaries],
            )
        primary_source = primaries[0]

        failed = [result for result in results if not result.success]
        if failed and self.policy is Policy.REQUIRED:
            raise PlanningError(
                "required sources failed to build",
                sources=[result.name for result in failed],
            )
        if any(result.source == primary_source for result in failed):
            raise PlanningError("primary source failed to build", sources=[primary_source.name])
        for result in failed:
            self.logger.warning("Skipping failed source %s (best-effort policy)", result.name)

        mounts: List[Mount] = []
        for result in results:
            if not result.success:
                continue
            if result.output is None:
                raise PlanningError("build reported success without an output path", sources=[result.name])
            destination = normalize_mount(result.source.mount, source=result.name)
            if destination == ROOT_INDEX:
                raise PlanningError(
                    f"mount path collides with the generated {ROOT_INDEX}", sources=[result.name]
                )
            mounts.append(Mount(source=result.source, origin=result.output, destination=destination))

        ordered = self._check_collisions(mounts)
        primary = next(mount for mount in ordered if mount.source == primary_source)
        plan = MountPlan(mounts=tuple(ordered), primary=primary, skipped=tuple(failed))
        if plan.redirect_url.strip("/") == ROOT_INDEX:
            raise PlanningError(
                f"primary entry point would be overwritten by the generated {ROOT_INDEX}; "
                f"set `entry` on source '{primary_source.name}' to the page the root should "
                "open (for example polars/index.html)",
                sources=[primary_source.name],
            )

        for mount in plan.mounts:
            self.logger.debug("Planned %s -> /%s", mount.source.name, mount.destination)
        return plan

    def plan_sources(self, sources: Sequence[DocSource]) -> MountPlan:
        """Plan as if every source built successfully; used to vet configuration."""
        return self.plan(
            [BuildResult(source=source, success=True, output=source.output_path) for source in sources]
        )

    @staticmethod
    def _check_collisions(mounts: Sequence[Mount]) -> List[Mount]:
        # Sorting by path segments keeps every descendant directly after its
        # ancestor, so adjacent comparison finds any nesting.
        indexed = sorted(enumerate(mounts), key=lambda item: (item[1].parts, item[0]))
        ordered = [mount for _, mount in indexed]
        for (left_index, left), (right_index, right) in zip(indexed, indexed[1:]):
            first, second = (left, right) if left_index < right_index else (right, left)
            if left.parts == right.parts:
                raise PlanningError(
                    f"collision {first.source.name}/{second.source.name}: both mount at "
                    f"/{left.destination}",
                    sources=[first.source.name, second.source.name],
                )
            # The root mount hosts the other mounts as subdirectories.
            if not left.is_root and right.parts[: len(left.parts)] == left.parts:
                raise PlanningError(
                    f"collision {left.source.name}/{right.source.name}: /{right.destination} "
                    f"is nested inside /{left.destination}",
                    sources=[left.source.name, right.source.name],
                )
        return ordered


__all__ = ["AggregationPlanner", "ROOT_INDEX", "normalize_mount"]
