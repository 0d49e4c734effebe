"""Signed unlock credentials for password-protected shared reports.

After a correct password, the viewer receives a cookie whose value is

    hmac_sha256_hex(secret, token + ':' + password_hash)

Properties:
  - Token binding: the token is part of the signed message, and the cookie
    path is ``<share_path_prefix>/<token>`` so browsers never send it to
    another link's routes.
  - Rotation: the current password hash is part of the signed message, so
    changing the password invalidates every issued credential.
  - Lifetime: ``max_age`` (24 hours by default), enforced by the browser.

Verification recomputes the signature and compares with
``hmac.compare_digest``.  It never raises; any failure means "show the
password prompt".
"""

from __future__ import annotations

import hashlib
import hmac
import re
from dataclasses import dataclass

from starlette.requests import Request
from starlette.responses import Response

from .model import ProtectedResource, ServerMisconfigured, SigningSecretMissing

# ── Constants ─────────────────────────────────────────────────────────

UNLOCK_COOKIE_PREFIX = 'share_unlock_'
UNLOCK_TTL_SECONDS = 24 * 3600  # 24 hours
DEFAULT_SHARE_PATH_PREFIX = '/share/verification'

_COOKIE_TOKEN_CHARS = 32
_COOKIE_DIGEST_CHARS = 12
_UNSAFE_COOKIE_CHARS = re.compile(r'[^A-Za-z0-9_-]')


# ── Naming & signing ──────────────────────────────────────────────────


def unlock_cookie_name(token: str) -> str:
    """Deterministic, identifier-safe cookie name for ``token``.

    A sanitized, truncated token prefix keeps the name readable; the
    digest suffix keeps names distinct for tokens sharing that prefix.
    """
    sanitized = _UNSAFE_COOKIE_CHARS.sub('', token)[:_COOKIE_TOKEN_CHARS]
    digest = hashlib.sha256(token.encode('utf-8')).hexdigest()[:_COOKIE_DIGEST_CHARS]
    return f'{UNLOCK_COOKIE_PREFIX}{sanitized}_{digest}'


def unlock_cookie_path(token: str, path_prefix: str = DEFAULT_SHARE_PATH_PREFIX) -> str:
    return f'{path_prefix.rstrip("/")}/{token}'


def sign_unlock(secret: str, token: str, password_hash: str) -> str:
    """HMAC-SHA256 over ``token:password_hash``.

    Raises:
        SigningSecretMissing: If ``secret`` is empty.
    """
    if not secret:
        raise SigningSecretMissing()
    message = f'{token}:{password_hash}'.encode('utf-8')
    return hmac.new(secret.encode('utf-8'), message, hashlib.sha256).hexdigest()


# ── Credential ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class UnlockCredential:
    """Cookie carrying a signed unlock credential."""

    name: str
    value: str
    path: str
    max_age: int = UNLOCK_TTL_SECONDS
    http_only: bool = True
    secure: bool = True
    same_site: str = 'lax'

    def apply(self, response: Response) -> None:
        """Set this credential as a cookie on ``response``."""
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            secure=self.secure,
            httponly=self.http_only,
            samesite=self.same_site,
        )


def issue_unlock_credential(
    token: str,
    resource: ProtectedResource,
    *,
    secret: str,
    path_prefix: str = DEFAULT_SHARE_PATH_PREFIX,
    ttl_seconds: int = UNLOCK_TTL_SECONDS,
    secure: bool = True,
) -> UnlockCredential:
    """Mint the unlock credential for a verified submission.

    Only call after the password gate admitted the submission.

    Raises:
        SigningSecretMissing: If ``secret`` is empty.
        ServerMisconfigured: If the resource has no password hash.
    """
    if not secret:
        raise SigningSecretMissing()
    if not resource.password_hash:
        raise ServerMisconfigured('cannot issue unlock credential without a password hash')

    return UnlockCredential(
        name=unlock_cookie_name(token),
        value=sign_unlock(secret, token, resource.password_hash),
        path=unlock_cookie_path(token, path_prefix),
        max_age=ttl_seconds,
        secure=secure,
    )


# ── Verification ──────────────────────────────────────────────────────


def is_valid_unlock(
    token: str,
    resource: ProtectedResource,
    presented: str | None,
    *,
    secret: str,
) -> bool:
    """Check a presented credential value for ``token`` and ``resource``."""
    if not secret or not presented or not resource.password_hash:
        return False
    expected = sign_unlock(secret, token, resource.password_hash)
    return hmac.compare_digest(
        expected.encode('ascii'),
        presented.encode('utf-8'),
    )


def is_request_unlocked(
    request: Request,
    token: str,
    resource: ProtectedResource,
    *,
    secret: str,
) -> bool:
    """True if ``request`` may see the resource without a password prompt."""
    if not resource.is_password_protected:
        return True
    presented = request.cookies.get(unlock_cookie_name(token))
    return is_valid_unlock(token, resource, presented, secret=secret)
