"""Password verification and brute-force lockout for shared reports.

State machine:

  Open                  → always Admit (no password required).
  Protected, Unlocked   → accepts a submission; a correct password resets
                          the counter, a wrong one increments it.
  Protected, Locked     → RateLimited until ``locked_until`` elapses,
                          whatever the submitted password.

When the counter reaches ``LockoutPolicy.max_failed_attempts`` the resource
is locked for ``LockoutPolicy.lockout_duration`` and that same attempt
returns RateLimited.  An expired lock is cleared lazily: the next attempt
counts from zero.

Concurrency:
  Every write is a compare-and-set against the observed counter and lock.
  On conflict the row is re-read and the decision is made again, so two
  concurrent wrong submissions can never both miss the lock threshold.

Hashing:
  ``sha256(salt + ':' + password)`` hex, compared with
  ``hmac.compare_digest``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Union

from share_gate.db.errors import StoreConflictError

from .audit import redact_token
from .model import ProtectedResource

if TYPE_CHECKING:
    from share_gate.protocols import ProtectedResourceStore

logger = logging.getLogger(__name__)

# ── Constants ─────────────────────────────────────────────────────────

DEFAULT_MAX_FAILED_ATTEMPTS = 5
DEFAULT_LOCKOUT_DURATION = timedelta(minutes=15)
SALT_BYTES = 16
CAS_MAX_RETRIES = 8

REASON_INVALID_PASSWORD = 'invalid_password'
REASON_SERVER_MISCONFIGURED = 'server_misconfigured'


# ── Policy ────────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class LockoutPolicy:
    """Brute-force lockout thresholds."""

    max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS
    lockout_duration: timedelta = DEFAULT_LOCKOUT_DURATION

    def __post_init__(self) -> None:
        if self.max_failed_attempts < 1:
            raise ValueError('max_failed_attempts must be >= 1')
        if self.lockout_duration <= timedelta(0):
            raise ValueError('lockout_duration must be positive')


# ── Outcomes ──────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class Admit:
    """Access granted."""


@dataclass(frozen=True, slots=True)
class Reject:
    """Access denied; ``reason`` is invalid_password or server_misconfigured."""

    reason: str


@dataclass(frozen=True, slots=True)
class RateLimited:
    """Resource is locked until ``retry_at``.

    ``tripped`` is set only on the submission whose write set the lock.
    """

    retry_at: datetime
    tripped: bool = False


GateOutcome = Union[Admit, Reject, RateLimited]


# ── Hashing ───────────────────────────────────────────────────────────


def hash_password(salt: str, password: str) -> str:
    """Return the stored-hash form of ``password`` under ``salt``."""
    return hashlib.sha256(f'{salt}:{password}'.encode('utf-8')).hexdigest()


def generate_salt() -> str:
    return secrets.token_hex(SALT_BYTES)


def make_password_record(password: str) -> tuple[str, str]:
    """Create a fresh ``(salt, hash)`` pair for protecting a report.

    Used when a report is shared with a password or its password is
    rotated.  Rotation changes the hash and so invalidates every unlock
    credential issued against the old one.
    """
    if not password:
        raise ValueError('password must be non-empty')
    salt = generate_salt()
    return salt, hash_password(salt, password)


def password_matches(resource: ProtectedResource, password: str) -> bool:
    """Constant-time check of ``password`` against the stored hash."""
    candidate = hash_password(resource.password_salt or '', password)
    return hmac.compare_digest(
        candidate.encode('ascii'),
        (resource.password_hash or '').encode('utf-8'),
    )


# ── Verification ──────────────────────────────────────────────────────


async def verify_password(
    store: ProtectedResourceStore,
    resource: ProtectedResource,
    submitted: str | None,
    *,
    policy: LockoutPolicy | None = None,
    now: datetime | None = None,
) -> GateOutcome:
    """Verify a password submission and advance the lockout state.

    Args:
        store: Resource store used for the conditional counter updates.
        resource: The resolved resource (as last read).
        submitted: Password as submitted (already trimmed by the caller).
        policy: Lockout thresholds; defaults to 5 attempts / 15 minutes.
        now: Verification instant; defaults to the current UTC time.

    Returns:
        Admit, Reject or RateLimited.

    Raises:
        StoreConflictError: Conditional updates kept conflicting.
    """
    policy = policy or LockoutPolicy()
    now = now or datetime.now(timezone.utc)

    if not resource.is_password_protected:
        return Admit()

    current = resource
    for _ in range(CAS_MAX_RETRIES):
        if current.is_locked(now):
            return RateLimited(retry_at=current.locked_until)

        if not current.has_password_material:
            logger.error(
                'Protected share %s has no password salt/hash',
                current.id,
            )
            return Reject(REASON_SERVER_MISCONFIGURED)

        if password_matches(current, submitted or ''):
            if current.failed_attempts == 0 and current.locked_until is None:
                return Admit()
            updated = await store.compare_and_set_attempts(
                current.id,
                expected_attempts=current.failed_attempts,
                expected_locked_until=current.locked_until,
                failed_attempts=0,
                locked_until=None,
            )
            if updated is not None:
                return Admit()
        else:
            # An expired lock restarts the count.
            base = 0 if current.locked_until is not None else current.failed_attempts
            attempts = base + 1
            lock = now + policy.lockout_duration if attempts >= policy.max_failed_attempts else None
            updated = await store.compare_and_set_attempts(
                current.id,
                expected_attempts=current.failed_attempts,
                expected_locked_until=current.locked_until,
                failed_attempts=attempts,
                locked_until=lock,
            )
            if updated is not None:
                if lock is not None:
                    logger.warning(
                        'Share %s locked until %s after %d failed attempts',
                        redact_token(current.share_token),
                        lock.isoformat(),
                        attempts,
                    )
                    return RateLimited(retry_at=lock, tripped=True)
                return Reject(REASON_INVALID_PASSWORD)

        logger.info('Attempt counter conflict on share %s; retrying', current.id)
        reread = await store.get_by_id(current.id)
        if reread is None:
            raise StoreConflictError(f'share {current.id} disappeared during verification')
        current = reread

    raise StoreConflictError(
        f'share {resource.id} attempt counter kept conflicting '
        f'after {CAS_MAX_RETRIES} retries'
    )
