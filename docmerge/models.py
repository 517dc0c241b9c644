"""Core data models shared across docmerge components."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

CommandSpec = Union[str, Tuple[str, ...]]


class Stage(str, Enum):
    """Pipeline states; ``PUBLISHED`` and ``FAILED`` are terminal."""

    PENDING = "pending"
    BUILDING_SOURCES = "building_sources"
    PLANNING = "planning"
    ASSEMBLING = "assembling"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def label(self) -> str:
        return "".join(part.title() for part in self.value.split("_"))

    @property
    def terminal(self) -> bool:
        return self in (Stage.PUBLISHED, Stage.FAILED)


class Policy(str, Enum):
    """How the pipeline reacts to a failed source build."""

    REQUIRED = "required"
    BEST_EFFORT = "best-effort"


@dataclass(frozen=True)
class DocSource:
    """One documentation origin as declared in configuration."""

    name: str
    output: Path
    mount: str
    command: Optional[CommandSpec] = None
    workdir: Path = Path(".")
    primary: bool = False
    entry: str = "index.html"
    env: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    adapter: str = "command"

    @property
    def output_path(self) -> Path:
        """Declared output directory resolved against the working directory."""
        return (self.workdir / self.output).resolve()


@dataclass(frozen=True)
class BuildResult:
    """Outcome of one external documentation build."""

    source: DocSource
    success: bool
    output: Optional[Path] = None
    diagnostics: str = ""
    returncode: Optional[int] = None
    duration: float = 0.0
    timed_out: bool = False

    @property
    def name(self) -> str:
        return self.source.name


@dataclass(frozen=True)
class Mount:
    """A successful build output and the site-relative directory it occupies."""

    source: DocSource
    origin: Path
    destination: str

    @property
    def is_root(self) -> bool:
        return self.destination == ""

    @property
    def parts(self) -> Tuple[str, ...]:
        return tuple(self.destination.split("/")) if self.destination else ()


@dataclass(frozen=True)
class MountPlan:
    """Collision-free placement of every successful source; pure data."""

    mounts: Tuple[Mount, ...]
    primary: Mount
    skipped: Tuple[BuildResult, ...] = ()

    @property
    def redirect_url(self) -> str:
        """Site-relative URL of the primary source entry point."""
        entry = self.primary.source.entry.strip("/")
        if self.primary.is_root:
            return entry
        return posixpath.join(self.primary.destination, entry)

    def destinations(self) -> Sequence[str]:
        return [mount.destination for mount in self.mounts]


@dataclass(frozen=True)
class SiteTree:
    """Assembled output directory ready to publish."""

    root: Path
    plan: MountPlan
    index_path: Path
    file_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def file_count(self) -> int:
        return sum(self.file_counts.values()) + 1


@dataclass(frozen=True)
class PublishTarget:
    """Destination ref and credential; held only by the publisher."""

    remote: str
    branch: str = "gh-pages"
    token: Optional[str] = field(default=None, repr=False)
    message: str = "docs: publish merged documentation"
    author_name: str = "docmerge"
    author_email: str = "docmerge@example.com"
    nojekyll: bool = True
    timeout: Optional[float] = None

    @property
    def ref(self) -> str:
        return f"refs/heads/{self.branch}"


@dataclass(frozen=True)
class PublishResult:
    """Snapshot pushed to the target ref."""

    remote: str
    ref: str
    commit: str
