"""
Logging for BuildTrace

Every message logged while a session is analyzed carries the game it
belongs to and, during segmentation, the pass being replayed. Two output
formats are available:

- console: one readable line per entry, context appended in brackets
- json / pretty: one JSON object per entry, for batch runs over a whole
  experiment export

Without explicit configuration the logger reads BUILDTRACE_LOG_LEVEL,
BUILDTRACE_LOG_FORMAT and BUILDTRACE_LOG_FILE on first use.
"""

import json
import logging
import os
import sys
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

LOGGER_NAME = "buildtrace"

LOG_LEVEL_ENV = "BUILDTRACE_LOG_LEVEL"
LOG_FORMAT_ENV = "BUILDTRACE_LOG_FORMAT"
LOG_FILE_ENV = "BUILDTRACE_LOG_FILE"

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class LogFormat(Enum):
    """Output format for logs"""
    CONSOLE = "console"
    JSON = "json"
    PRETTY_JSON = "pretty"


@dataclass(frozen=True)
class LogContext:
    """Which game, scenario and segmentation pass a log entry belongs to"""
    game_id: Optional[int] = None
    scenario: Optional[str] = None
    pass_state: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        fields = {
            "game_id": self.game_id,
            "scenario": self.scenario,
            "pass_state": self.pass_state,
        }
        return {key: value for key, value in fields.items() if value is not None}

    def merge(self, other: "LogContext") -> "LogContext":
        """Values set in other win; unset ones are inherited"""
        return LogContext(
            game_id=other.game_id if other.game_id is not None else self.game_id,
            scenario=other.scenario or self.scenario,
            pass_state=other.pass_state or self.pass_state,
        )


_context_local = threading.local()


def get_current_log_context() -> LogContext:
    return getattr(_context_local, "context", LogContext())


@contextmanager
def log_context(**kwargs):
    """
    Attach context to every entry logged inside the block.

    Usage:
        with log_context(game_id=42, scenario="house"):
            outcome = segmenter.segment(events)

    Contexts nest; the previous one is restored on exit.
    """
    previous = get_current_log_context()
    _context_local.context = previous.merge(LogContext(**kwargs))
    try:
        yield _context_local.context
    finally:
        _context_local.context = previous


class StructuredFormatter(logging.Formatter):
    """One JSON object per entry: timestamp, level, message, context, extra fields"""

    def __init__(self, pretty: bool = False):
        super().__init__()
        self.pretty = pretty

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_current_log_context().to_dict()
        if context:
            entry["context"] = context

        entry.update(getattr(record, "extra_fields", {}))

        if record.levelno <= logging.DEBUG:
            entry["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        if self.pretty:
            return json.dumps(entry, indent=2, default=str)
        return json.dumps(entry, separators=(",", ":"), default=str)


class ConsoleFormatter(logging.Formatter):
    """Readable single-line entries, colored by level on a terminal"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    # Short names shown in the bracketed context
    CONTEXT_LABELS = {"game_id": "game", "scenario": "scenario", "pass_state": "pass"}

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors and record.levelname in self.COLORS:
            level = f"{self.COLORS[record.levelname]}{level}{self.RESET}"

        output = f"{datetime.now().strftime('%H:%M:%S')} {level} {record.getMessage()}"

        context = get_current_log_context().to_dict()
        if context:
            parts = [f"{self.CONTEXT_LABELS[key]}={value}" for key, value in context.items()]
            output += f" [{', '.join(parts)}]"

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


class BuildTraceLogger:
    """
    Thin wrapper around logging.Logger.

    Keyword arguments to the log methods become extra fields of JSON entries,
    e.g. logger.warning("Goals unresolved", unresolved=[2, 3]).
    """

    def __init__(self, name: str = LOGGER_NAME):
        self._logger = logging.getLogger(name)
        self._configured = False

    def configure(
        self,
        level: str = "INFO",
        format: Union[str, LogFormat] = LogFormat.CONSOLE,
        log_file: Optional[Path] = None,
    ) -> None:
        """
        Route entries at or above level to stderr, and to log_file if given.

        Log files are always written as JSON lines.
        """
        if level.upper() not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        self._logger.setLevel(LEVELS[level.upper()])
        self._logger.propagate = False
        self._logger.handlers.clear()

        format = LogFormat(format.lower()) if isinstance(format, str) else format
        if format == LogFormat.CONSOLE:
            formatter: logging.Formatter = ConsoleFormatter()
        else:
            formatter = StructuredFormatter(pretty=format == LogFormat.PRETTY_JSON)

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        self._logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(StructuredFormatter())
            self._logger.addHandler(file_handler)

        self._configured = True

    def _log(self, level: int, msg: str, *args, **kwargs) -> None:
        if not self._configured:
            log_file = os.environ.get(LOG_FILE_ENV)
            self.configure(
                level=os.environ.get(LOG_LEVEL_ENV, "INFO"),
                format=os.environ.get(LOG_FORMAT_ENV, "console"),
                log_file=Path(log_file) if log_file else None,
            )
        extra = {"extra_fields": kwargs} if kwargs else {}
        self._logger.log(level, msg, *args, extra=extra)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, **kwargs)

    @contextmanager
    def timed(self, operation: str, level: int = logging.DEBUG):
        """Log the start and the duration in ms of the enclosed block"""
        start = time.perf_counter()
        self._log(level, f"Starting: {operation}")
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            self._log(level, f"Completed: {operation}", duration_ms=round(elapsed * 1000, 2))


_logger: Optional[BuildTraceLogger] = None


def get_logger() -> BuildTraceLogger:
    """The shared BuildTrace logger"""
    global _logger
    if _logger is None:
        _logger = BuildTraceLogger()
    return _logger


def configure_logging(
    level: str = "INFO",
    format: Union[str, LogFormat] = LogFormat.CONSOLE,
    log_file: Optional[Path] = None,
) -> BuildTraceLogger:
    """
    Configure the shared logger, e.g. for a batch run:

        configure_logging(level="INFO", format="json", log_file=Path("analysis.log"))
    """
    logger = get_logger()
    logger.configure(level=level, format=format, log_file=log_file)
    return logger


__all__ = [
    "LogFormat",
    "LogContext",
    "BuildTraceLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_log_context",
]
