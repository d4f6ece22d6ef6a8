"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from dtree.observability import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    operation_context,
)
from dtree.observability.logging import shorten_data_urls

if TYPE_CHECKING:
    from pathlib import Path


def test_configure_logging_sets_level_warning() -> None:
    """Default verbosity (0) sets WARNING level."""
    configure_logging(verbosity=0)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.WARNING


def test_configure_logging_verbose_sets_debug_root() -> None:
    """verbosity=1 opens the root logger; the console handler filters at INFO."""
    configure_logging(verbosity=1)

    root_logger = logging.getLogger()
    assert root_logger.level == logging.DEBUG


def test_get_logger_returns_bound_logger() -> None:
    """get_logger returns a structlog logger with expected methods."""
    logger = get_logger(__name__)

    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")


def test_get_logger_auto_configures() -> None:
    """get_logger configures logging if not already done."""
    import dtree.observability.logging as log_module

    log_module._configured = False

    logger = get_logger("test")

    assert log_module._configured is True
    assert logger is not None


def test_configure_logging_with_file_logging(tmp_path: Path) -> None:
    """File logging creates the log directory."""
    log_dir = tmp_path / "logs"
    configure_logging(verbosity=0, log_to_file=True, log_dir=log_dir)

    assert log_dir.exists()
    assert get_logs_dir() == log_dir
    close_file_logging()


def test_configure_logging_requires_log_dir_for_file_logging() -> None:
    """log_to_file=True without log_dir raises ValueError."""
    with pytest.raises(ValueError, match="log_dir is required"):
        configure_logging(verbosity=0, log_to_file=True, log_dir=None)


def test_close_file_logging_clears_handler(tmp_path: Path) -> None:
    """close_file_logging closes handler and clears reference."""
    import dtree.observability.logging as log_module

    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)
    assert log_module._file_handler is not None

    close_file_logging()

    assert log_module._file_handler is None


def test_jsonl_file_handler_writes_structlog_context(tmp_path: Path) -> None:
    """JSONLFileHandler extracts structlog context into JSONL."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)

    logger = get_logger("test.context")
    logger.info("graph_merged", imported=3, workspace="w1")

    close_file_logging()

    log_file = tmp_path / "debug.jsonl"
    assert log_file.exists()

    found = False
    with log_file.open() as f:
        for line in f:
            entry = json.loads(line)
            if entry.get("message") == "graph_merged":
                found = True
                assert entry["imported"] == 3
                assert entry["workspace"] == "w1"
                assert entry["level"] == "INFO"
                break

    assert found, "Log entry with structlog context not found in JSONL"


def _read_events(path: Path) -> list[dict[str, object]]:
    with path.open() as f:
        return [json.loads(line) for line in f]


def test_shorten_data_urls_truncates_images() -> None:
    """Long data URLs are cut down; other strings pass through."""
    url = "data:image/png;base64," + "A" * 500
    event = shorten_data_urls(None, "info", {"event": "x", "images": [url], "title": "Gate"})

    assert event["title"] == "Gate"
    (short,) = event["images"]
    assert short.startswith("data:image/png;base64,")
    assert short.endswith(f"({len(url)} chars)")
    assert len(short) < 100


def test_operation_context_tags_events(tmp_path: Path) -> None:
    """Events logged inside an operation carry its name and workspace."""
    configure_logging(verbosity=2, log_to_file=True, log_dir=tmp_path)
    logger = get_logger("test.operation")

    with operation_context("import_nodes", "w7"):
        logger.info("graph_merged", imported=2)
    logger.info("after_operation")
    close_file_logging()

    events = {e["message"]: e for e in _read_events(tmp_path / "debug.jsonl")}
    assert events["graph_merged"]["operation"] == "import_nodes"
    assert events["graph_merged"]["workspace"] == "w7"
    assert "operation" not in events["after_operation"]


def test_reconfigure_without_file_clears_logs_dir(tmp_path: Path) -> None:
    configure_logging(verbosity=0, log_to_file=True, log_dir=tmp_path)
    configure_logging(verbosity=0)

    assert get_logs_dir() is None
