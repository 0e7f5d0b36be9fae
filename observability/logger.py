"""Structured logging utilities for practice conversations.

Every event goes out twice: a short human line for people watching the
console, and (with ``ENABLE_FILE_LOGS``) a JSON object per line for
tooling.  Both share the ``practice`` logger and are told apart by the
``is_json`` record attribute.
"""
from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from typing import Any

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_STREAM = os.getenv("LOG_STREAM", "stdout")
ENABLE_FILE_LOGS = os.getenv("ENABLE_FILE_LOGS", "0") in ("1", "true", "True")
LOG_FILE = os.getenv("LOG_FILE", "logs/practice.log")
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "5242880"))
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

HUMAN_FIELDS = ("from_state", "to_state", "turn", "outcome", "code", "ms")

_logger = logging.getLogger("practice")
_logger.setLevel(LOG_LEVEL)
_logger.propagate = False

_human_formatter = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s :: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


def _is_json(record: logging.LogRecord) -> bool:
    return getattr(record, "is_json", False) is True


def _is_human(record: logging.LogRecord) -> bool:
    return not _is_json(record)


def _human_log_path(path: str) -> str:  # logs/practice.log -> logs/practice-human.log
    root, ext = os.path.splitext(path)
    return f"{root}-human{ext or '.log'}"


def _attach(handler: logging.Handler, formatter: logging.Formatter, keep) -> None:
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(formatter)
    handler.addFilter(keep)
    _logger.addHandler(handler)


def _rotating(path: str) -> logging.handlers.RotatingFileHandler:
    return logging.handlers.RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)


def _ensure_handlers() -> None:
    if _logger.handlers:
        return

    stream = sys.stderr if LOG_STREAM == "stderr" else sys.stdout
    _attach(logging.StreamHandler(stream=stream), _human_formatter, _is_human)

    if not ENABLE_FILE_LOGS:
        return

    log_dir = os.path.dirname(LOG_FILE)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    _attach(_rotating(LOG_FILE), logging.Formatter("%(message)s"), _is_json)
    _attach(_rotating(_human_log_path(LOG_FILE)), _human_formatter, _is_human)


def _format_human(evt: dict[str, Any]) -> str:
    parts = [f"session={evt.get('session_id')}", f"kind={evt.get('kind')}"]
    parts.extend(f"{key}={evt[key]}" for key in HUMAN_FIELDS if key in evt)
    return " ".join(parts)


def _emit(msg: str, *, is_json: bool) -> None:
    record = _logger.makeRecord(_logger.name, logging.INFO, "", 0, msg, (), None)
    record.is_json = is_json  # type: ignore[attr-defined]
    _logger.handle(record)


def log_event(kind: str, session_id: str, **fields: Any) -> None:
    """Record one engine event (transition, turn, notice, session end)."""

    _ensure_handlers()

    payload: dict[str, Any] = {
        "ts": time.time(),
        "trace": str(uuid.uuid4()),
        "kind": kind,
        "session_id": session_id,
        **fields,
    }
    _emit(_format_human(payload), is_json=False)
    if ENABLE_FILE_LOGS:
        _emit(json.dumps(payload, ensure_ascii=False, default=str), is_json=True)


__all__ = ["log_event"]
