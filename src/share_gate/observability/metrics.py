"""Prometheus metrics for the share gate.

Usage::

    from share_gate.observability.metrics import SHARE_UNLOCK_ATTEMPTS

    SHARE_UNLOCK_ATTEMPTS.labels(outcome="admitted").inc()
"""

from __future__ import annotations

from prometheus_client import (
    REGISTRY,
    Counter,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Unlock endpoint
# ---------------------------------------------------------------------------

SHARE_UNLOCK_ATTEMPTS = Counter(
    "share_gate_unlock_attempts_total",
    "Unlock submissions by outcome.",
    labelnames=["outcome"],
    registry=REGISTRY,
)
"""Outcomes: admitted, open, invalid, locked, rate_limited, bad_request,
not_found, misconfigured, error."""

SHARE_LOCKOUTS = Counter(
    "share_gate_lockouts_total",
    "Shares locked after too many failed attempts.",
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# View path
# ---------------------------------------------------------------------------

SHARE_VIEWS = Counter(
    "share_gate_views_total",
    "View path responses by result (rendered, prompted, not_found).",
    labelnames=["result"],
    registry=REGISTRY,
)

# ---------------------------------------------------------------------------
# Audit event metrics
# ---------------------------------------------------------------------------

AUDIT_EVENTS_EMITTED = Counter(
    "share_gate_audit_events_total",
    "Audit events emitted by event type.",
    labelnames=["event_type"],
    registry=REGISTRY,
)


def metrics_text() -> tuple[bytes, str]:
    """Generate Prometheus exposition text and content-type header."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
