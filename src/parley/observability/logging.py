"""Structured logging for Parley.

Console output goes through a Rich handler whose level follows ``-v``;
``--log`` adds a JSONL file with every event. Engine code binds the
session and the tool call it is working on as context variables, so each
line emitted while a call is in flight carries ``session_id`` and
``tool_use_id`` without threading them through every log call.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from structlog.typing import Processor

LOG_FILE_NAME = "debug.jsonl"

# Dependencies whose DEBUG output drowns out engine events
NOISY_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "langchain",
    "langchain_core",
    "langsmith",
    "asyncio",
)

_VERBOSITY_LEVELS = {0: logging.WARNING, 1: logging.INFO}

_configured = False
_file_handler: logging.FileHandler | None = None


class JSONLFileHandler(logging.FileHandler):
    """Writes each record as one JSON object, flattening structlog context."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = json.dumps(self._entry(record), default=str)
            if self.stream:
                self.stream.write(line + "\n")
                self.stream.flush()
        except Exception:
            self.handleError(record)

    @staticmethod
    def _entry(record: logging.LogRecord) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
        }
        if not isinstance(record.msg, dict):
            entry["message"] = record.getMessage()
            return entry
        # wrap_for_formatter hands the whole event dict over as record.msg
        fields = {k: v for k, v in record.msg.items() if k not in ("level", "timestamp")}
        entry["message"] = fields.pop("event", "")
        entry.update(fields)
        return entry


def _console_handler(verbosity: int) -> logging.Handler:
    return RichHandler(
        console=Console(stderr=True),
        level=_VERBOSITY_LEVELS.get(verbosity, logging.DEBUG),
        rich_tracebacks=True,
        tracebacks_show_locals=verbosity >= 2,
        show_time=verbosity >= 1,
        show_path=verbosity >= 2,
        markup=False,
    )


def _open_file_handler(log_dir: Path) -> JSONLFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = JSONLFileHandler(str(log_dir / LOG_FILE_NAME), mode="a")
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    verbosity: int = 0,
    log_to_file: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure stdlib logging and structlog for the process.

    Safe to call again; a previously opened log file is closed first.

    Args:
        verbosity: 0=WARNING, 1=INFO, 2+=DEBUG on the console.
        log_to_file: Also write every event to ``{log_dir}/debug.jsonl``.
        log_dir: Directory for the JSONL file. Required with log_to_file.

    Raises:
        ValueError: If log_to_file is set without a log_dir.
    """
    global _configured, _file_handler

    if log_to_file and log_dir is None:
        raise ValueError("log_dir is required when log_to_file=True")

    close_file_logging()

    handlers = [_console_handler(verbosity)]
    if log_to_file and log_dir is not None:
        _file_handler = _open_file_handler(log_dir)
        handlers.append(_file_handler)

    # The root stays open when anything below WARNING has somewhere to go;
    # each handler applies its own level.
    root_level = logging.DEBUG if (verbosity > 0 or log_to_file) else logging.WARNING
    logging.basicConfig(level=root_level, format="%(message)s", handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
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
    """Return a structlog logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()
    logger: structlog.typing.FilteringBoundLogger = structlog.get_logger(name)
    return logger


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """Bind ``values`` to every log event emitted inside the block.

    None values are skipped. Bindings are restored on exit, so nested
    blocks (a tool call inside a session turn) compose.

    Example:
        >>> with log_context(session_id="s-1"), log_context(tool_use_id="call_1"):
        ...     log.info("tool_call_start")  # carries both ids
    """
    bound = {k: v for k, v in values.items() if v is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def close_file_logging() -> None:
    """Close the JSONL file handler, if one is open."""
    global _file_handler
    if _file_handler is not None:
        _file_handler.close()
        _file_handler = None
