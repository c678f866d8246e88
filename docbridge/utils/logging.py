"""Logging configuration using structlog.

Every module logs through ``get_logger(__name__)`` with key/value context.
Console and file output share one processor chain; CLI commands call
``setup_task_logging`` so each run gets its own log file and every event
carries the run's ``task_id``.
"""

import logging
import sys
import uuid
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from structlog.typing import EventDict, WrappedLogger

import structlog


class SafeStreamHandler(logging.StreamHandler):
    """Stream handler that degrades unencodable characters instead of failing.

    File names reach the log verbatim and may hold characters a legacy
    console encoding cannot represent.
    """

    def emit(self, record: logging.LogRecord) -> None:
        try:
            text = self.format(record) + self.terminator
            try:
                self.stream.write(text)
            except UnicodeEncodeError:
                encoding = self.stream.encoding or "utf-8"
                self.stream.write(text.encode(encoding, errors="replace").decode(encoding))
            self.flush()
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)


_log_output: TextIO = sys.stderr

_NOISY_LOGGERS = ["asyncio", "openpyxl"]

# Descriptor XML and engine stderr are logged as strings
_MAX_VALUE_LENGTH = 2000

_INTERNAL_KEYS = {"event", "level", "timestamp", "_record", "_from_structlog"}

_ROTATE_BACKUPS = 7


def set_log_output(output: TextIO) -> None:
    """Redirect console logging, used by tests to capture events."""
    global _log_output
    _log_output = output


def _filter_event_dict(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Replace document payloads and oversized strings with a short marker."""
    for key, value in list(event_dict.items()):
        if isinstance(value, (bytes, bytearray, memoryview)):
            event_dict[key] = f"[BINARY DATA: {len(value)} bytes]"
        elif isinstance(value, str) and len(value) > _MAX_VALUE_LENGTH:
            event_dict[key] = value[:_MAX_VALUE_LENGTH] + f"... [{len(value)} chars total]"
    return event_dict


def _add_separator(
    _logger: "WrappedLogger", _method_name: str, event_dict: "EventDict"
) -> "EventDict":
    """Mark where the event message ends and its context begins."""
    if "event" in event_dict and any(k not in _INTERNAL_KEYS for k in event_dict):
        event_dict["event"] = f"{event_dict['event']} |"
    return event_dict


def _resolve_level(name: str | None, default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def _shared_processors() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _filter_event_dict,
        _add_separator,
    ]


def _build_formatter(
    pre_chain: list[structlog.types.Processor], json_format: bool, colors: bool
) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=colors,
            exception_formatter=structlog.dev.plain_traceback,
            pad_event_to=0,
            pad_level=False,
        )
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def _build_file_handler(log_file: str | Path, level: int) -> logging.Handler:
    """Daily rotating handler; a week of old logs is kept."""
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = TimedRotatingFileHandler(
        path, when="midnight", backupCount=_ROTATE_BACKUPS, encoding="utf-8"
    )
    handler.suffix = "%Y-%m-%d"
    handler.setLevel(level)
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    json_format: bool = False,
    console_level: str | None = None,
    file_level: str | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Root log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path
        json_format: Render JSON instead of console lines
        console_level: Console handler level, defaults to ``level``
        file_level: File handler level, defaults to ``level``
    """
    root_level = _resolve_level(level, logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(root_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))

    processors = _shared_processors()

    console = SafeStreamHandler(_log_output)
    console.setLevel(_resolve_level(console_level, root_level))
    console.setFormatter(_build_formatter(processors, json_format, colors=True))
    root.addHandler(console)

    if log_file:
        file_handler = _build_file_handler(log_file, _resolve_level(file_level, root_level))
        file_handler.setFormatter(_build_formatter(processors, json_format, colors=False))
        root.addHandler(file_handler)

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)


def create_task_log_path(log_dir: str | Path, prefix: str = "task") -> tuple[str, Path]:
    """Create a unique task log file path.

    Example:
        >>> task_id, log_path = create_task_log_path(".logs", "convert")
        >>> print(log_path)  # .logs/convert_20260109_143052_a1b2c3d4.log
    """
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)

    task_id = uuid.uuid4().hex[:8]
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return task_id, directory / f"{prefix}_{stamp}_{task_id}.log"


def setup_task_logging(
    log_dir: str | Path,
    prefix: str = "task",
    verbose: bool = False,
    file_level: str = "DEBUG",
) -> tuple[str, Path]:
    """Setup logging for one CLI task.

    The console shows WARNING and above unless verbose; the task log file
    receives file_level and above. The task id is bound to the logging
    context for the rest of the run.

    Returns:
        Tuple of (task_id, log_file_path)
    """
    task_id, log_path = create_task_log_path(log_dir, prefix)

    setup_logging(
        level="DEBUG",
        log_file=str(log_path),
        console_level="DEBUG" if verbose else "WARNING",
        file_level=file_level,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(task_id=task_id)

    return task_id, log_path
