"""
Structured Logging Service

Correlation context for pipeline runs plus the handlers the CLI installs.

Features:
- Run correlation via a short run id
- Stage context (input path, tracker, stage) propagated via contextvars
- JSON log formatter for machine-parseable output
- Plain-text formatter that appends the current context
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional


run_id_var: ContextVar[Optional[str]] = ContextVar('run_id', default=None)
extra_context_var: ContextVar[Dict[str, Any]] = ContextVar('extra_context', default={})

TEXT_FORMAT = '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s%(context_suffix)s'


def get_run_id() -> Optional[str]:
    """Get the current run ID from context."""
    return run_id_var.get()


def set_run_id(run_id: Optional[str]) -> None:
    """Set the run ID in context."""
    run_id_var.set(run_id)


def get_extra_context() -> Dict[str, Any]:
    """Get extra context data."""
    return extra_context_var.get()


def set_extra_context(context: Dict[str, Any]) -> None:
    """Set extra context data."""
    extra_context_var.set(context)


def add_extra_context(**kwargs) -> None:
    """Add key-value pairs to extra context."""
    current = extra_context_var.get().copy()
    current.update(kwargs)
    extra_context_var.set(current)


def clear_context() -> None:
    """Clear all context variables."""
    run_id_var.set(None)
    extra_context_var.set({})


def generate_run_id() -> str:
    """Generate a new unique run ID."""
    return str(uuid.uuid4())[:8]


def describe_context() -> str:
    """'run=ab12cd34 tracker=seedpool stage=upload' for the current context."""
    parts = []
    run_id = get_run_id()
    if run_id:
        parts.append(f"run={run_id}")
    parts.extend(f"{key}={value}" for key, value in get_extra_context().items())
    return " ".join(parts)


class ContextFilter(logging.Filter):
    """Attach the correlation context to every record as ``context_suffix``."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = describe_context()
        record.context_suffix = f" [{context}]" if context else ""
        return True


class JSONLogFormatter(logging.Formatter):
    """
    JSON formatter for structured logging output.

    Produces machine-parseable JSON logs with the run id and stage context.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        run_id = get_run_id()
        if run_id:
            log_data["run_id"] = run_id

        if self.include_extra:
            extra_context = get_extra_context()
            if extra_context:
                log_data["context"] = extra_context

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        return json.dumps(log_data, default=str)


class CorrelationContext:
    """
    Context manager for scoping the run id and stage context.

    Usage:
        with CorrelationContext(run_id="abc123", input="/data/Movie.mkv", tracker="seedpool"):
            logger.info("This log will include the context")
    """

    def __init__(self, run_id: Optional[str] = None, **extra_context):
        self.run_id = run_id
        self.extra_context = extra_context
        self._old_run_id = None
        self._old_extra_context = None

    def __enter__(self):
        self._old_run_id = get_run_id()
        self._old_extra_context = get_extra_context()

        if self.run_id:
            set_run_id(self.run_id)
        if self.extra_context:
            merged = dict(self._old_extra_context or {})
            merged.update(self.extra_context)
            set_extra_context(merged)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_run_id(self._old_run_id)
        set_extra_context(self._old_extra_context or {})
        return False


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    json_output: bool = False,
) -> logging.Logger:
    """
    Configure the root logger for the CLI.

    Console output goes to stderr; when log_file is set a second handler always
    records at DEBUG level.

    Args:
        level: Minimum console log level name
        log_file: Path of the log file, or None for console only
        json_output: Whether to output JSON (True) or plain text (False)

    Returns:
        The root logger
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter: logging.Formatter = (
        JSONLogFormatter() if json_output else logging.Formatter(TEXT_FORMAT)
    )

    console = logging.StreamHandler()
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.addFilter(ContextFilter())
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(ContextFilter())
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for noisy in ("httpx", "httpcore", "urllib3", "PIL"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return root
