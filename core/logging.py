# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - FINGERPRINT MIGRATION
# STATUS: Core - Structured logging with migration context
# PURPOSE: Tag every log line of a migration run with owner, run and phase
# CREATED: 14 OCT 2026
# ============================================================================
"""
Structured Logging

Every module logs through the standard `logging.getLogger(__name__)`; the
formatters here read the active migration context from a thread-local stack,
so plain loggers pick up owner/run/phase without extra arguments.

    with migration_run("billing") as ctx:       # owner + fresh run_id
        with log_context(phase="prepare"):
            logger.info("Dropping changed tables")

Output:
    HumanFormatter       2026-10-14 12:00:00 INFO     core.migration.planner [billing#1f3a9c2e prepare]: ...
    StructuredFormatter  {"ts": ..., "level": "INFO", "owner": "billing", "run_id": ..., "phase": ...}

LOG_FORMAT=json switches configure_logging() to the JSON formatter.
"""

import json
import logging
import os
import sys
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional, Union


# ============================================================================
# CONTEXT
# ============================================================================

@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record logged inside a log_context block."""
    owner: Optional[str] = None
    run_id: Optional[str] = None
    phase: Optional[str] = None
    table: Optional[str] = None
    operation: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Set fields only, extra merged in last."""
        result = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "extra" and getattr(self, f.name) is not None
        }
        result.update(self.extra)
        return result

    @property
    def tag(self) -> str:
        """Short "owner#run phase" label for terminal output."""
        parts = []
        if self.owner:
            parts.append(f"{self.owner}#{self.run_id[:8]}" if self.run_id else self.owner)
        for value in (self.phase, self.table):
            if value:
                parts.append(value)
        return " ".join(parts)


_FIELDS = tuple(f.name for f in fields(LogContext) if f.name != "extra")
_local = threading.local()


def _stack() -> list:
    if not hasattr(_local, "stack"):
        _local.stack = []
    return _local.stack


def get_current_context() -> LogContext:
    """Innermost active context (empty outside any block)."""
    stack = _stack()
    return stack[-1] if stack else LogContext()


@contextmanager
def log_context(**kwargs) -> Iterator[LogContext]:
    """
    Push a context for the duration of the block.

    Known fields override the enclosing context; unknown keyword arguments
    are merged into `extra`.
    """
    parent = get_current_context()
    known = {name: kwargs.pop(name) for name in _FIELDS if name in kwargs}
    context = replace(parent, extra={**parent.extra, **kwargs}, **known)

    stack = _stack()
    stack.append(context)
    try:
        yield context
    finally:
        stack.pop()


@contextmanager
def migration_run(owner: str, run_id: Optional[str] = None) -> Iterator[LogContext]:
    """Context of one migration run: owner plus a run id (generated when omitted)."""
    with log_context(owner=owner, run_id=run_id or uuid.uuid4().hex) as context:
        yield context


def log_statements(logger: logging.Logger, phase: str, sql_text: str, limit: int = 20) -> None:
    """Log a DDL batch statement by statement at DEBUG."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    statements = [s for s in sql_text.split("\r\n") if s.strip()]
    for i, statement in enumerate(statements[:limit], 1):
        logger.debug(f"   {phase} [{i}/{len(statements)}] {statement}")
    if len(statements) > limit:
        logger.debug(f"   {phase} ... and {len(statements) - limit} more statements")


# ============================================================================
# FORMATTERS
# ============================================================================

class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    Context fields are emitted at top level next to ts/level/logger/message.
    """

    def __init__(self, include_source: bool = True):
        super().__init__()
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(get_current_context().to_dict())

        data = getattr(record, "data", None)
        if data:
            payload["data"] = data
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if self.include_source:
            payload["source"] = f"{record.pathname}:{record.lineno}"

        return json.dumps(payload, default=str)


class HumanFormatter(logging.Formatter):
    """Terminal output with the context tag in brackets."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        tag = get_current_context().tag
        line = (
            f"{self.formatTime(record, self.datefmt)} {record.levelname:<8} {record.name}"
            f"{f' [{tag}]' if tag else ''}: {record.getMessage()}"
        )
        data = getattr(record, "data", None)
        if data:
            line += f" {data}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextLogger(logging.LoggerAdapter):
    """
    Adapter accepting structured payloads: logger.info("msg", data={...}).

    The payload ends up as record.data, printed by both formatters.
    """

    def process(self, msg, kwargs):
        data = kwargs.pop("data", None)
        if data:
            kwargs["extra"] = {**kwargs.get("extra", {}), "data": data}
        return msg, kwargs


def get_logger(name: str) -> ContextLogger:
    """Context-aware logger for scripts (modules use logging.getLogger)."""
    return ContextLogger(logging.getLogger(name), {})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
    include_source: bool = False,
    stream=None,
) -> None:
    """
    Install a single root handler.

    Args:
        level: Log level name or number
        json_output: JSON lines (also enabled by LOG_FORMAT=json)
        include_source: Add file:line to JSON records
        stream: Output stream (default stderr, stdout stays free for SQL)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter: logging.Formatter = StructuredFormatter(include_source=include_source)
    else:
        formatter = HumanFormatter()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "migration_run",
    "log_statements",
    "get_current_context",
]
