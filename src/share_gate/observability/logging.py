"""Structured logging configuration for share-gate.

Configures structlog for JSON-formatted, request-ID-correlated logging.
Modules keep using ``logging.getLogger(__name__)``; their records are
rendered through structlog's ProcessorFormatter.

Usage::

    from share_gate.observability.logging import configure_logging, get_logger

    configure_logging()  # Call once at app startup
    logger = get_logger()
    logger.info("share_unlocked", token_prefix="abcd1234...")
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar

import structlog

# Context variable for request-scoped correlation ID.
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

_configured = False


def _add_request_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Inject the current request_id from context into every log entry."""
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _add_audit_fields(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict,
) -> dict:
    """Flatten ``extra={'audit': {...}}`` from stdlib records into the entry."""
    record = event_dict.get("_record")
    audit = getattr(record, "audit", None) if record is not None else None
    if isinstance(audit, dict):
        for key, value in audit.items():
            event_dict.setdefault(key, value)
    return event_dict


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
            Defaults to LOG_LEVEL env var or INFO.
        json_output: If True, emit JSON lines. If False, emit
            human-readable console output. Defaults to LOG_FORMAT
            env var == "json".
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[*shared_processors, _add_audit_fields],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Quiet noisy libraries.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to the given name."""
    return structlog.get_logger(name)
