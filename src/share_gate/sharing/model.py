"""Protected shared-report domain model.

Implements the access-control record behind a shared verification link:

  - A share token addresses at most one active report row.
  - Password-protected rows carry a salt and a salted SHA-256 hash.
  - Failed attempts and the lock timestamp are the only fields this
    service mutates.

Security invariant:
  ``password_salt`` and ``password_hash`` are both present or both absent,
  matching ``is_password_protected``.  A protected row missing either is a
  server misconfiguration, never a wrong password.

This module provides:
  1. ``ProtectedResource``: the generated report's access record.
  2. ``SharedObject``: the verification object addressed on the view path.
  3. ``is_well_formed_token``: share-token syntax check.
  4. Domain exceptions: ShareNotFound, ServerMisconfigured,
     SigningSecretMissing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

# ── Constants ─────────────────────────────────────────────────────────

MIN_TOKEN_LENGTH = 8
MAX_TOKEN_LENGTH = 128
LINK_VISIBILITY = 'link'

_TOKEN_RE = re.compile(r'[A-Za-z0-9_-]+')


def is_well_formed_token(token: str | None) -> bool:
    """Return True if ``token`` has share-token syntax.

    Bounded length and URL-safe characters only, so the token can be
    embedded in a cookie path without escaping.
    """
    if not token:
        return False
    if not MIN_TOKEN_LENGTH <= len(token) <= MAX_TOKEN_LENGTH:
        return False
    return _TOKEN_RE.fullmatch(token) is not None


# ── Domain exceptions ─────────────────────────────────────────────────


class ShareNotFound(Exception):
    """No active resource matches the token.

    Raised identically for unknown, deleted and malformed tokens.
    """


class ServerMisconfigured(Exception):
    """A stored record or the service configuration violates an invariant."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class SigningSecretMissing(ServerMisconfigured):
    """The unlock signing secret is empty or unset."""

    def __init__(self) -> None:
        super().__init__('unlock signing secret is not configured')


# ── Domain model ──────────────────────────────────────────────────────


@dataclass
class ProtectedResource:
    """Access-control record of a shared generated report.

    Attributes:
        id: Identity of this report instance.
        share_token: Opaque token presented by viewers.
        is_password_protected: Whether a password is required.
        password_salt: Salt mixed into the hash (protected rows only).
        password_hash: ``sha256(salt + ':' + password)`` hex digest.
        password_hint: Optional hint shown on the password prompt.
        failed_attempts: Wrong submissions since the last reset.
        locked_until: Lock expiry; None when not locked.
        deleted_at: Soft-delete marker.
        created_at: Creation timestamp (newest row per token wins).
    """

    id: str
    share_token: str
    is_password_protected: bool = False
    password_salt: str | None = None
    password_hash: str | None = None
    password_hint: str | None = None
    failed_attempts: int = 0
    locked_until: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def has_password_material(self) -> bool:
        return bool(self.password_salt) and bool(self.password_hash)

    def is_locked(self, now: datetime | None = None) -> bool:
        """True while ``locked_until`` is strictly in the future."""
        if self.locked_until is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.locked_until > now


@dataclass(frozen=True, slots=True)
class SharedObject:
    """Verification object addressed by a share token on the view path."""

    id: str
    share_token: str
    visibility: str | None = None

    @property
    def is_link_shared(self) -> bool:
        return self.visibility == LINK_VISIBILITY
