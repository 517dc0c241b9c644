"""Logging utilities for docmerge commands."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Set

_LOGGER_NAME = "docmerge"
_MASK = "***"
_SECRETS: Set[str] = set()


class SecretFilter(logging.Filter):
    """Masks registered secrets in rendered log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _SECRETS:
            return True
        message = record.getMessage()
        masked = message
        for secret in _SECRETS:
            masked = masked.replace(secret, _MASK)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def register_secret(value: str | None) -> None:
    """Mask ``value`` in every docmerge log line from now on."""
    if value:
        _SECRETS.add(value)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the docmerge hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure the docmerge logger with console output and an optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when the CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    secret_filter = SecretFilter()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.addFilter(secret_filter)
    stream_handler.setFormatter(logging.Formatter("[docmerge] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.addFilter(secret_filter)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["SecretFilter", "configure_logging", "get_logger", "register_secret"]
