# Backend/app/core/logging.py
from __future__ import annotations

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

import structlog

from app.core.request_id import get_request_id, get_run_id


# -------- Processors ---------------------------------------------------------

def _add_ts(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # ISO 8601 UTC, millisecond precision
    event_dict.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
    return event_dict

def _add_level(_: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    level = event_dict.get("level") or method_name or "info"
    event_dict["level"] = str(level).lower()
    return event_dict

def _add_service(service_name: str):
    def _inner(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict
    return _inner

def _add_request_or_run_ids(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    rid = get_request_id()
    if rid:
        event_dict.setdefault("request_id", rid)
    run = get_run_id()
    if run:
        event_dict.setdefault("run_id", run)
    return event_dict

# Key-based redaction; upstream headers and settings dumps must never leak secrets.
_PII_KEYS = {
    "email", "authorization", "auth", "token", "access_token",
    "refresh_token", "api_key", "apikey", "password", "secret",
}

def _pii_guard(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if str(k).lower() in _PII_KEYS:
            event_dict[k] = "***redacted***"
    return event_dict


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def _stderr_logger_factory(*_: Any) -> structlog.PrintLogger:
    # Resolve sys.stderr per logger so a swapped stream (CLI redirect, test capture) is honoured.
    return structlog.PrintLogger(file=sys.stderr)


# -------- Public API ---------------------------------------------------------

_configured = False

def configure_logging(service_name: str = "api", *, level: int | str = logging.INFO) -> None:
    """
    Configure the single structlog stack shared by the API and the CLI probe.

    Loggers are not cached on first use: module loggers created at import
    time pick up a later call (worker service name, LOG_LEVEL) on their next
    log line.
    """
    global _configured

    numeric_level = _coerce_level(level)

    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )

    processors = [
        _add_ts,
        _add_level,
        _add_service(service_name),
        _add_request_or_run_ids,
        _pii_guard,
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )
    _configured = True

def get_logger(**initial_values: Any) -> Any:
    """
    Lazy logger carrying `initial_values` (e.g. module="hn_client").

    Use this instead of `get_logger().bind(...)` at module level: bind()
    resolves the configuration active at import time.
    """
    if not _configured:
        configure_logging("api")
    return structlog.get_logger(**initial_values)

logger = get_logger()
