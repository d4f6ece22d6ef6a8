"""Structured logging for the workspace engine and CLI.

Console output goes through rich on stderr at a level picked by ``-v``.
With ``--log``, every event is also appended as one JSON object per line
to ``debug.jsonl`` in the chosen directory.

Workbench operations bind their name and target workspace with
:func:`operation_context`, so every event logged while an operation runs
carries both fields. Image data URLs are shortened before any handler
sees them; a single photo would otherwise fill a screen.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path  # noqa: TC003 - Used at runtime for path operations
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator, MutableMapping

    from structlog.typing import Processor

LOG_FILENAME = "debug.jsonl"
DATA_URL_PREVIEW = 48

_configured = False
_file_handler: logging.FileHandler | None = None
_logs_dir: Path | None = None


class JSONLFileHandler(logging.FileHandler):
    """File handler that writes one JSON object per record."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry: dict[str, Any] = {
                "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
                "level": record.levelname,
                "logger": record.name,
            }
            # wrap_for_formatter hands the structlog event dict over as record.msg
            if isinstance(record.msg, dict):
                event = {
                    k: v for k, v in record.msg.items() if k not in ("level", "timestamp")
                }
                entry["message"] = event.pop("event", "")
                entry.update(event)
            else:
                entry["message"] = record.getMessage()

            if self.stream:
                self.stream.write(json.dumps(entry, default=str) + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)


def _shorten(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("data:") and len(value) > DATA_URL_PREVIEW:
        return f"{value[:DATA_URL_PREVIEW]}... ({len(value)} chars)"
    if isinstance(value, list):
        return [_shorten(v) for v in value]
    return value


def shorten_data_urls(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Processor that truncates embedded image data URLs in event fields."""
    for key, value in event_dict.items():
        event_dict[key] = _shorten(value)
    return event_dict


@contextmanager
def operation_context(operation: str, workspace: str | None = None) -> Iterator[None]:
    """Bind an operation name (and its workspace) to every event logged inside."""
    with structlog.contextvars.bound_contextvars(operation=operation, workspace=workspace):
        yield


def _console_handler(verbosity: int) -> RichHandler:
    levels = {0: logging.WARNING, 1: logging.INFO}
    return RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
        level=levels.get(verbosity, logging.DEBUG),
    )


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure console and file logging.

    Safe to call again; a previous file handler is closed first.

    Args:
        verbosity: 0=WARNING (default), 1=INFO, 2+=DEBUG.
        log_to_file: Also append every event to ``debug.jsonl`` in *log_dir*.
        log_dir: Directory for the debug log, created if missing.

    Raises:
        ValueError: If log_to_file=True but log_dir is not provided.
    """
    global _configured, _file_handler, _logs_dir

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
    _logs_dir = None

    handlers: list[logging.Handler] = [_console_handler(verbosity)]
    if log_to_file and log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        _logs_dir = log_dir
        _file_handler = JSONLFileHandler(str(log_dir / LOG_FILENAME), mode="a")
        _file_handler.setLevel(logging.DEBUG)
        handlers.append(_file_handler)

    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)
    # asyncio.to_thread file reads make the selector chatty at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        shorten_data_urls,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ]
    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(root_level),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


def get_logs_dir() -> Path | None:
    """Directory receiving ``debug.jsonl``, or None if file logging is off."""
    return _logs_dir


def close_file_logging() -> None:
    """Close the JSONL file handler, if one is open."""
    global _file_handler
    if _file_handler:
        _file_handler.close()
        _file_handler = None
