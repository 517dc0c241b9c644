"""Build adapter implementations and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Any, Callable, Dict, Iterable

from .base import SourceBuildAdapter
from .command import CommandAdapter
from .static import StaticAdapter

_ENTRY_POINT_GROUP = "docmerge.adapters"

_BUILTIN_FACTORIES: Dict[str, Callable[..., SourceBuildAdapter]] = {
    "command": CommandAdapter,
    "static": StaticAdapter,
}


def create_adapter(kind: str, **options: Any) -> SourceBuildAdapter:
    """Instantiate the adapter registered under ``kind``.

    Built-in adapters take precedence over entry points. ``options`` are
    forwarded to the command adapter only; other adapters are built without
    arguments.
    """
    key = kind.lower()
    if key == "command":
        return CommandAdapter(**options)
    if key in _BUILTIN_FACTORIES:
        return _BUILTIN_FACTORIES[key]()

    for entry in _iter_entry_points():
        if entry.name.lower() != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover - defensive guard
            raise RuntimeError(f"Failed to load adapter entry point '{entry.name}': {exc}") from exc
        return _coerce_adapter(loaded)

    raise ValueError(f"Unknown build adapter '{kind}'")


def _coerce_adapter(obj: object) -> SourceBuildAdapter:
    if isinstance(obj, SourceBuildAdapter):
        return obj
    if isinstance(obj, type) and issubclass(obj, SourceBuildAdapter):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, SourceBuildAdapter):
            return instance
    raise TypeError("Adapter entry point must be a SourceBuildAdapter subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CommandAdapter",
    "SourceBuildAdapter",
    "StaticAdapter",
    "create_adapter",
]
