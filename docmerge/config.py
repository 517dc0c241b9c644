"""Configuration loading for docmerge (.docmerge.yml)."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import CommandSpec, DocSource, Policy

CONFIG_FILENAME = ".docmerge.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed or is inconsistent."""


@dataclass
class AssemblyConfig:
    """Site assembly behaviour."""

    create_parents: bool = True


@dataclass
class PublishConfig:
    """Publish target settings; the credential is resolved from the environment."""

    remote: Optional[str] = None
    branch: str = "gh-pages"
    token_env: str = "GITHUB_TOKEN"
    message: str = "docs: publish merged documentation"
    author_name: str = "docmerge"
    author_email: str = "docmerge@example.com"
    nojekyll: bool = True
    timeout: Optional[float] = None


@dataclass
class DocMergeConfig:
    """Represents the settings defined in .docmerge.yml."""

    root: Path
    sources: List[DocSource] = field(default_factory=list)
    policy: Policy = Policy.REQUIRED
    timeout: Optional[float] = None
    jobs: Optional[int] = None
    site_dir: Path = Path(".docmerge/site")
    env: Dict[str, str] = field(default_factory=dict)
    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)

    def with_overrides(
        self,
        *,
        policy: Optional[str] = None,
        timeout: Optional[float] = None,
        site_dir: Optional[Path] = None,
        branch: Optional[str] = None,
    ) -> "DocMergeConfig":
        """Return a copy with command-line overrides applied."""
        updated = self
        if policy is not None:
            updated = replace(updated, policy=_parse_policy(policy))
        if timeout is not None:
            updated = replace(updated, timeout=timeout)
        if site_dir is not None:
            updated = replace(updated, site_dir=_resolve(updated.root, site_dir))
        if branch is not None:
            updated = replace(updated, publish=replace(updated.publish, branch=branch))
        return updated


def load_config(config_path: Path) -> DocMergeConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        raise ConfigError(f"{CONFIG_FILENAME} not found in {root}")

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    global_env = _as_env(data.get("env"), "env")

    raw_sources = data.get("sources")
    if not isinstance(raw_sources, list) or not raw_sources:
        raise ConfigError(f"{CONFIG_FILENAME} must declare a non-empty `sources` list")

    sources: List[DocSource] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_sources):
        source = _parse_source(raw, index, root)
        if source.name in seen:
            raise ConfigError(f"Duplicate source name '{source.name}'")
        seen.add(source.name)
        sources.append(source)

    assembly_data = _as_dict(data.get("assembly"))
    assembly = AssemblyConfig()
    if assembly_data:
        create_parents = _as_bool(assembly_data.get("create_parents"))
        if create_parents is not None:
            assembly.create_parents = create_parents

    site_dir_str = _as_str(data.get("site_dir"))
    site_dir = _resolve(root, Path(site_dir_str)) if site_dir_str else root / ".docmerge" / "site"

    jobs = _as_int(data.get("jobs"))
    if jobs is not None and jobs < 1:
        raise ConfigError("`jobs` must be a positive integer")

    return DocMergeConfig(
        root=root,
        sources=sources,
        policy=_parse_policy(data.get("policy", Policy.REQUIRED.value)),
        timeout=_as_timeout(data.get("timeout"), "timeout"),
        jobs=jobs,
        site_dir=site_dir,
        env=global_env,
        assembly=assembly,
        publish=_parse_publish(_as_dict(data.get("publish"))),
    )


def _parse_source(raw: Any, index: int, root: Path) -> DocSource:
    if not isinstance(raw, dict):
        raise ConfigError(f"sources[{index}] must be a mapping")

    name = _as_str(raw.get("name"))
    if not name:
        raise ConfigError(f"sources[{index}] is missing `name`")
    output = _as_str(raw.get("output"))
    if not output:
        raise ConfigError(f"Source '{name}' is missing `output`")
    mount = _as_str(raw.get("mount"))
    if mount is None:
        raise ConfigError(f"Source '{name}' is missing `mount`")

    command = _parse_command(raw.get("command"), name)
    adapter = _as_str(raw.get("adapter")) or ("command" if command is not None else "static")
    if adapter == "command" and command is None:
        raise ConfigError(f"Source '{name}' uses the command adapter but has no `command`")

    workdir_str = _as_str(raw.get("workdir")) or "."
    return DocSource(
        name=name,
        output=Path(output),
        mount=mount,
        command=command,
        workdir=_resolve(root, Path(workdir_str)),
        primary=_as_bool(raw.get("primary")) or False,
        entry=_as_str(raw.get("entry")) or "index.html",
        env=_as_env(raw.get("env"), f"{name}.env"),
        timeout=_as_timeout(raw.get("timeout"), f"{name}.timeout"),
        adapter=adapter,
    )


def _parse_command(value: Any, name: str) -> Optional[CommandSpec]:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            raise ConfigError(f"Source '{name}' has an empty `command`")
        return value
    if isinstance(value, list) and value and all(isinstance(item, (str, int, float)) for item in value):
        return tuple(str(item) for item in value)
    raise ConfigError(f"Source '{name}' `command` must be a string or a list of arguments")


def _parse_publish(data: Dict[str, Any]) -> PublishConfig:
    publish = PublishConfig()
    if not data:
        return publish
    publish.remote = _as_str(data.get("remote"))
    publish.branch = _as_str(data.get("branch")) or publish.branch
    publish.token_env = _as_str(data.get("token_env")) or publish.token_env
    publish.message = _as_str(data.get("message")) or publish.message
    publish.author_name = _as_str(data.get("author_name")) or publish.author_name
    publish.author_email = _as_str(data.get("author_email")) or publish.author_email
    nojekyll = _as_bool(data.get("nojekyll"))
    if nojekyll is not None:
        publish.nojekyll = nojekyll
    publish.timeout = _as_timeout(data.get("timeout"), "publish.timeout")
    return publish


def _parse_policy(value: Any) -> Policy:
    if isinstance(value, Policy):
        return value
    text = str(value).strip().lower().replace("_", "-")
    try:
        return Policy(text)
    except ValueError as exc:
        choices = ", ".join(policy.value for policy in Policy)
        raise ConfigError(f"Unknown policy '{value}' (expected one of: {choices})") from exc


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        raise ConfigError(f"{path.name} is empty")
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded


def _resolve(root: Path, path: Path) -> Path:
    path = path.expanduser()
    if path.is_absolute():
        return path.resolve()
    return (root / path).resolve()


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_env(value: Any, label: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"`{label}` must be a mapping of variable names to values")
    return {str(key): "" if item is None else str(item) for key, item in value.items()}


def _as_timeout(value: Any, label: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ConfigError(f"`{label}` must be a number of seconds")
    try:
        seconds = float(value)
    except ValueError as exc:
        raise ConfigError(f"`{label}` must be a number of seconds") from exc
    if seconds <= 0:
        raise ConfigError(f"`{label}` must be positive")
    return seconds


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def describe_command(command: Optional[CommandSpec]) -> str:
    """Render a command for log output."""
    if command is None:
        return "(prebuilt)"
    if isinstance(command, str):
        return command
    return shlex.join(command)
