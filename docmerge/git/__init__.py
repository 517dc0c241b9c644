"""Git integration for publishing assembled sites."""

from .publisher import Publisher

__all__ = ["Publisher"]
