"""Site assembly: materialise a MountPlan as one directory tree."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict

from .errors import AssemblyError
from .logging import get_logger
from .models import Mount, MountPlan, SiteTree
from .planner import ROOT_INDEX


def render_root_index(url: str) -> str:
    """Return the redirect document written at the site root."""
    return f"<meta http-equiv=refresh content=0;url={url}>\n"


class SiteAssembler:
    """Copies each planned mount into a fresh site root and writes the root index.

    The tree is built in a staging directory next to ``root`` and only moved
    into place once every mount has landed and the result validates, so a
    failure never leaves a half-built site behind.
    """

    def __init__(self, *, create_parents: bool = True) -> None:
        self.create_parents = create_parents
        self.logger = get_logger("assembler")

    def assemble(self, plan: MountPlan, root: Path, *, clean: bool = False) -> SiteTree:
        root = Path(root).expanduser().resolve()
        if root.exists():
            if not root.is_dir():
                raise AssemblyError(f"site root {root} exists and is not a directory")
            if any(root.iterdir()) and not clean:
                raise AssemblyError(f"site root {root} is not empty")

        try:
            root.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=f".{root.name}.staging-", dir=root.parent))
        except OSError as exc:
            raise AssemblyError(f"cannot create staging area next to {root}: {exc}") from exc

        committed = False
        try:
            file_counts: Dict[str, int] = {}
            for mount in plan.mounts:
                file_counts[mount.source.name] = self._place(mount, staging)
                self.logger.info(
                    "Mounted %s at /%s (%d files)",
                    mount.source.name,
                    mount.destination,
                    file_counts[mount.source.name],
                )

            self._write_index(plan, staging)
            self._validate(plan, staging)
            self._swap_into_place(staging, root)
            committed = True
        finally:
            if not committed:
                shutil.rmtree(staging, ignore_errors=True)

        return SiteTree(
            root=root,
            plan=plan,
            index_path=root / ROOT_INDEX,
            file_counts=file_counts,
        )

    def _place(self, mount: Mount, staging: Path) -> int:
        name = mount.source.name
        if not mount.origin.is_dir():
            raise AssemblyError(f"build output {mount.origin} is not a readable directory", sources=[name])
        work_area = staging.parent.resolve()
        origin = mount.origin.resolve()
        if origin == work_area or origin in work_area.parents:
            raise AssemblyError(
                f"build output {mount.origin} contains the site directory {work_area}; "
                "declare a narrower `output` or move `site_dir` outside it",
                sources=[name],
            )

        scratch = Path(tempfile.mkdtemp(prefix=".docmerge-mount-", dir=staging.parent))
        try:
            tree = scratch / "tree"
            try:
                shutil.copytree(mount.origin, tree)
            except OSError as exc:
                raise AssemblyError(f"copying {mount.origin} failed: {exc}", sources=[name]) from exc

            count = sum(1 for path in tree.rglob("*") if path.is_file())
            if count == 0:
                raise AssemblyError(f"build output {mount.origin} contains no files", sources=[name])

            try:
                if mount.is_root:
                    self._merge_root(tree, staging, name)
                else:
                    self._move_subtree(tree, staging / mount.destination, mount)
            except OSError as exc:
                raise AssemblyError(f"writing /{mount.destination} failed: {exc}", sources=[name]) from exc
            return count
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

    @staticmethod
    def _merge_root(tree: Path, staging: Path, name: str) -> None:
        for child in sorted(tree.iterdir()):
            target = staging / child.name
            if target.exists():
                raise AssemblyError(f"/{child.name} already exists in the site tree", sources=[name])
            os.replace(child, target)

    def _move_subtree(self, tree: Path, destination: Path, mount: Mount) -> None:
        name = mount.source.name
        parent = destination.parent
        if not parent.is_dir():
            if parent.exists():
                raise AssemblyError(f"parent of /{mount.destination} is not a directory", sources=[name])
            if not self.create_parents:
                raise AssemblyError(
                    f"parent directory of /{mount.destination} does not exist", sources=[name]
                )
            parent.mkdir(parents=True)
        if destination.exists():
            raise AssemblyError(
                f"/{mount.destination} is already occupied by another mount's files", sources=[name]
            )
        os.replace(tree, destination)

    @staticmethod
    def _write_index(plan: MountPlan, staging: Path) -> None:
        index = staging / ROOT_INDEX
        if index.exists():
            raise AssemblyError(
                f"root {ROOT_INDEX} collides with a file from {plan.primary.source.name}",
                sources=[plan.primary.source.name],
            )
        try:
            index.write_text(render_root_index(plan.redirect_url), encoding="utf-8")
        except OSError as exc:
            raise AssemblyError(f"writing root {ROOT_INDEX} failed: {exc}") from exc

    def _validate(self, plan: MountPlan, staging: Path) -> None:
        for mount in plan.mounts:
            target = staging / mount.destination if mount.destination else staging
            if not target.is_dir() or not any(target.iterdir()):
                raise AssemblyError(
                    f"/{mount.destination} is missing or empty after assembly",
                    sources=[mount.source.name],
                )
        if not (staging / ROOT_INDEX).is_file():
            raise AssemblyError(f"root {ROOT_INDEX} is missing after assembly")
        entry = staging / plan.redirect_url
        if not entry.exists():
            self.logger.warning("Root index redirects to /%s which does not exist", plan.redirect_url)

    @staticmethod
    def _swap_into_place(staging: Path, root: Path) -> None:
        try:
            if not root.exists():
                os.replace(staging, root)
                return
            holding = Path(tempfile.mkdtemp(prefix=f".{root.name}.previous-", dir=root.parent))
            previous = holding / "site"
            os.replace(root, previous)
            try:
                os.replace(staging, root)
            except OSError:
                os.replace(previous, root)
                raise
            shutil.rmtree(holding, ignore_errors=True)
        except OSError as exc:
            raise AssemblyError(f"moving assembled site into {root} failed: {exc}") from exc


__all__ = ["SiteAssembler", "render_root_index"]
