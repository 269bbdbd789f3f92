"""
Logging Utility Module for Schema Relations
Provides structured logging tagged with the inference run and rule being evaluated
"""
from __future__ import annotations

import json
import logging
import sys
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Generator, Optional

# Per-thread run context: run_id and rule_index while an inference run is active
_thread_local = threading.local()


def _run_context() -> Dict[str, Any]:
    context = getattr(_thread_local, 'context', None)
    if context is None:
        context = {}
        _thread_local.context = context
    return context


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shipping"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        entry.update(_run_context())

        extra_fields = getattr(record, 'extra_fields', None)
        if extra_fields:
            entry.update(extra_fields)

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter for development"""

    # ANSI foreground codes; diagnostics surface as WARNING/INFO
    LEVEL_CODES = {
        logging.DEBUG: 36,
        logging.INFO: 32,
        logging.WARNING: 33,
        logging.ERROR: 31,
        logging.CRITICAL: 35,
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        code = self.LEVEL_CODES.get(record.levelno)
        color = f'\033[{code}m' if code else self.RESET
        context = _run_context()

        tags = []
        if context.get("run_id"):
            tags.append(f"[run {context['run_id'][:8]}]")
        if context.get("rule_index") is not None:
            tags.append(f"[rule {context['rule_index']}]")
        tag = f"{' '.join(tags)} " if tags else ""

        clock = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]
        line = (
            f"{color}{clock} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {tag}{record.getMessage()}"
        )

        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"

        return line


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that stamps records with the current run context"""

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs['extra'] = {**kwargs.get('extra', {}), **_run_context()}
        return msg, kwargs


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: Optional[str] = None
) -> None:
    """
    Install console (and optionally file) handlers on the root logger,
    replacing whatever handlers were there before

    Args:
        level: Name of the threshold level, case-insensitive
        json_format: Emit JSON lines on stdout instead of colored text
        log_file: Also append JSON lines to this path
    """
    root = logging.getLogger()
    root.setLevel(logging.getLevelName(level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handlers = [logging.StreamHandler(sys.stdout)]
    handlers[0].setFormatter(StructuredFormatter() if json_format else ConsoleFormatter())
    if log_file:
        handlers.append(logging.FileHandler(log_file))
        handlers[-1].setFormatter(StructuredFormatter())

    for handler in handlers:
        root.addHandler(handler)

    logging.getLogger('yaml').setLevel(logging.WARNING)


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger"""
    return ContextLogger(logging.getLogger(name), {})


def new_run_id() -> str:
    """Generate an identifier for one inference run"""
    return str(uuid.uuid4())


def get_run_id() -> Optional[str]:
    """Run ID active on the current thread, if any"""
    return _run_context().get("run_id")


def clear_context() -> None:
    _run_context().clear()


@contextmanager
def log_context(
    run_id: Optional[str] = None,
    rule_index: Optional[int] = None
) -> Generator[None, None, None]:
    """
    Tag log records emitted inside the block

    Usage:
        with log_context(run_id=run_id):
            with log_context(rule_index=3):
                logger.debug("Evaluating rule")
    """
    context = _run_context()
    saved = dict(context)
    if run_id is not None:
        context["run_id"] = run_id
    if rule_index is not None:
        context["rule_index"] = rule_index
    try:
        yield
    finally:
        context.clear()
        context.update(saved)


@contextmanager
def log_operation(
    logger: ContextLogger,
    operation: str,
    **fields: Any
) -> Generator[Dict[str, Any], None, None]:
    """
    Log the start, outcome and duration of an operation

    Usage:
        with log_operation(logger, "relationship_inference", rules=4) as ctx:
            ...
            ctx['relationships'] = len(relationships)
    """
    started = time.perf_counter()
    summary: Dict[str, Any] = {"operation": operation, **fields}
    logger.debug(f"Starting {operation}", extra={"extra_fields": summary})

    try:
        yield summary
    except Exception as e:
        summary.update(
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            status='error',
            error=str(e),
            error_type=type(e).__name__,
        )
        logger.error(f"Failed {operation}", extra={"extra_fields": summary}, exc_info=True)
        raise

    summary.update(duration_ms=round((time.perf_counter() - started) * 1000, 2), status='success')
    logger.info(f"Completed {operation}", extra={"extra_fields": summary})
