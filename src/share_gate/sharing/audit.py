"""Shared-report access audit events and log redaction.

Records unlock and view outcomes for shared verification links:

  - share.unlocked      correct password, credential issued.
  - share.unlock_failed wrong password, lock not tripped.
  - share.locked        the attempt that tripped the lock.
  - share.rate_limited  submission rejected while locked.
  - share.prompted      view path served the password prompt.
  - share.viewed        view path served the report.

Security invariant:
  Plaintext tokens must NEVER appear in audit event data.
  Only token prefixes (first 8 chars) are included for correlation.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

from share_gate.observability.metrics import AUDIT_EVENTS_EMITTED

# ── Constants ─────────────────────────────────────────────────────────

TOKEN_PREFIX_LENGTH = 8  # Characters to keep for correlation.

_TOKEN_PATTERN = re.compile(r'[A-Za-z0-9_-]{20,}')

SHARE_UNLOCKED = 'share.unlocked'
SHARE_UNLOCK_FAILED = 'share.unlock_failed'
SHARE_LOCKED = 'share.locked'
SHARE_RATE_LIMITED = 'share.rate_limited'
SHARE_PROMPTED = 'share.prompted'
SHARE_VIEWED = 'share.viewed'


# ── Token redaction ──────────────────────────────────────────────────


def redact_token(token: str | None) -> str:
    """Safely truncate a token to a prefix for logging.

    Returns ``<prefix>...`` or ``<redacted>`` for missing/short tokens.
    """
    if not token or len(token) < TOKEN_PREFIX_LENGTH:
        return '<redacted>'
    return f'{token[:TOKEN_PREFIX_LENGTH]}...'


def redact_string(text: str) -> str:
    """Replace any token-like strings in text with redacted versions."""
    def _replace(match: re.Match) -> str:
        return redact_token(match.group(0))

    return _TOKEN_PATTERN.sub(_replace, text)


# ── Audit event model ───────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ShareAuditEvent:
    """Structured audit event for shared-report access.

    Attributes:
        event_type: One of the ``share.*`` constants above.
        resource_id: Report row id (if resolved).
        token_prefix: First 8 chars of the token (for correlation only).
        request_id: Correlation id of the HTTP request.
        detail: Additional context (e.g. retry time, failure count).
        timestamp: When the event occurred.
    """

    event_type: str
    resource_id: str | None = None
    token_prefix: str = '<redacted>'
    request_id: str | None = None
    detail: str = ''
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self) -> dict:
        """Serialize to a dict safe for JSON logging."""
        return {
            'event_type': self.event_type,
            'resource_id': self.resource_id,
            'token_prefix': self.token_prefix,
            'request_id': self.request_id,
            'detail': self.detail,
            'timestamp': self.timestamp.isoformat(),
        }


# ── Emitter protocol ────────────────────────────────────────────────


class ShareAuditEmitter(Protocol):
    """Abstract audit event sink."""

    async def emit(self, event: ShareAuditEvent) -> None: ...


# ── Implementations ─────────────────────────────────────────────────


class InMemoryShareAuditEmitter:
    """Test audit emitter that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[ShareAuditEvent] = []

    async def emit(self, event: ShareAuditEvent) -> None:
        self.events.append(event)

    def find(self, event_type: str | None = None) -> list[ShareAuditEvent]:
        if event_type:
            return [e for e in self.events if e.event_type == event_type]
        return list(self.events)


class LoggingShareAuditEmitter:
    """Audit emitter that writes events to the ``share_gate.audit`` logger."""

    def __init__(self, logger_name: str = 'share_gate.audit') -> None:
        self._logger = logging.getLogger(logger_name)

    async def emit(self, event: ShareAuditEvent) -> None:
        self._logger.info(event.event_type, extra={'audit': event.to_dict()})


# ── Convenience emitter ─────────────────────────────────────────────


async def emit_share_event(
    emitter: ShareAuditEmitter,
    event_type: str,
    *,
    token: str,
    resource_id: str | None = None,
    request_id: str | None = None,
    detail: str = '',
) -> ShareAuditEvent:
    """Build and emit a ``ShareAuditEvent`` with the token redacted."""
    event = ShareAuditEvent(
        event_type=event_type,
        resource_id=resource_id,
        token_prefix=redact_token(token),
        request_id=request_id,
        detail=detail,
    )
    await emitter.emit(event)
    AUDIT_EVENTS_EMITTED.labels(event_type=event_type).inc()
    return event
