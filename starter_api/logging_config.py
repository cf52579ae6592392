"""
Logging setup driven by the ``logger`` settings section.

Every module logs through ``logging.getLogger(__name__)``; this module only
installs the root handler once at startup.  Structured fields are passed
with ``extra={...}`` and rendered as JSON keys (``json`` format) or as
trailing ``key=value`` pairs (``text`` format).
"""
from __future__ import annotations

import json
import logging
import re
import sys
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path

from starter_api.config import LoggerSettings

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_SENSITIVE_PATTERNS = (
    (re.compile(r"Bearer\s+[^\s\"']+", re.IGNORECASE), "Bearer ***"),
    (re.compile(r"(password[\"']?\s*[:=]\s*[\"']?)[^\"'\s&,}]+", re.IGNORECASE), r"\1***"),
)


def _extra_fields(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


def _caller(record: logging.LogRecord) -> str:
    return f"{record.module}:{record.funcName}:{record.lineno}"


class SensitiveDataFilter(logging.Filter):
    """Mask bearer tokens and password values in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = message
        for pattern, replacement in _SENSITIVE_PATTERNS:
            masked = pattern.sub(replacement, masked)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


class StacktraceFilter(logging.Filter):
    """Attach the current stack to ERROR+ records (``enable_stacktrace``)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.ERROR and not record.exc_info and not record.stack_info:
            record.stack_info = "Stack (most recent call last):\n" + "".join(traceback.format_stack())
        return True


class JSONFormatter(logging.Formatter):
    def __init__(self, enable_caller: bool = True) -> None:
        super().__init__()
        self.enable_caller = enable_caller

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.enable_caller:
            payload["caller"] = _caller(record)
        payload.update(_extra_fields(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)
        return json.dumps(payload, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    def __init__(self, enable_caller: bool = True) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.enable_caller = enable_caller

    def format(self, record: logging.LogRecord) -> str:
        parts = [
            self.formatTime(record, self.datefmt),
            record.levelname,
            record.name,
        ]
        if self.enable_caller:
            parts.append(f"[{_caller(record)}]")
        parts.append(record.getMessage())
        parts.extend(f"{key}={value}" for key, value in _extra_fields(record).items())
        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        if record.stack_info:
            line = f"{line}\n{self.formatStack(record.stack_info)}"
        return line


def _build_handler(cfg: LoggerSettings) -> logging.Handler:
    if cfg.output == "stderr":
        return logging.StreamHandler(sys.stderr)
    if cfg.output == "file":
        path = Path(cfg.file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
    return logging.StreamHandler(sys.stdout)


def setup_logging(cfg: LoggerSettings) -> None:
    """Replace the root handlers with one configured from *cfg*."""
    handler = _build_handler(cfg)
    if cfg.format == "text":
        handler.setFormatter(TextFormatter(enable_caller=cfg.enable_caller))
    else:
        handler.setFormatter(JSONFormatter(enable_caller=cfg.enable_caller))
    handler.addFilter(SensitiveDataFilter())
    if cfg.enable_stacktrace:
        handler.addFilter(StacktraceFilter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
        existing.close()
    root.addHandler(handler)
    root.setLevel(LEVELS.get(cfg.level, logging.INFO))

    # uvicorn installs its own handlers; route its records through ours.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
