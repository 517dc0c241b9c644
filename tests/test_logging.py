"""Tests for docmerge.logging."""

from __future__ import annotations

import logging
from pathlib import Path

from docmerge.logging import configure_logging, get_logger, register_secret


def test_get_logger_namespaces_under_docmerge() -> None:
    assert get_logger().name == "docmerge"
    assert get_logger("planner").name == "docmerge.planner"


def test_configure_logging_resets_handlers(tmp_path: Path) -> None:
    configure_logging()
    logger = configure_logging(verbose=True, log_file=tmp_path / "run.log")

    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2


def test_registered_secrets_are_masked(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"
    configure_logging(log_file=log_file)
    register_secret("ghp_supersecret")

    get_logger("publisher").info("pushing to https://x-access-token:%s@github.com", "ghp_supersecret")
    for handler in get_logger().handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "ghp_supersecret" not in text
    assert "x-access-token:***@github.com" in text
