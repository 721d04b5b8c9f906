"""Structured logging configuration with request_id propagation"""

import contextvars
import hashlib
import logging
import sys
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog

request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "request_id", default=None
)

# Event keys whose values are third-party credentials
SECRET_KEYS = frozenset({"api_key", "youtube_api_key", "fallback_api_key"})


def fingerprint(secret: str) -> str:
    """Short, stable digest of a credential so log lines can be correlated."""
    return f"sha256:{hashlib.sha256(secret.encode()).hexdigest()[:16]}"


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Replace credential values with their fingerprint."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        event_dict[key] = fingerprint(str(value)) if value else None
    return event_dict


def add_request_id(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request_id to log entries from context variable."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Configure structlog on top of stdlib logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_request_id,
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Bind a request ID to the current context.

    Args:
        request_id: Caller-supplied ID (e.g. the X-Request-ID header); one is
            generated when omitted

    Returns:
        The request_id that was set
    """
    if not request_id:
        request_id = f"req_{uuid4().hex[:12]}"
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def clear_request_id() -> None:
    request_id_var.set(None)
