"""Share-gate secret configuration and validation.

Loads, validates, and provides typed access to the secrets used by the
share gate: the unlock-credential signing key and the Supabase service-role
key.

Secret sources (in order of precedence):
  1. Explicit keyword arguments (tests and local dev).
  2. Environment variables.

The unlock key is never derived from, or defaulted to, another credential.

Security invariants:
  - Secrets are never included in ``str()`` or ``repr()`` output.
  - ``ShareGateSecrets`` is immutable (frozen dataclass).
  - Validation fails fast on missing required secrets at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


class SecretValidationError(ValueError):
    """Raised when required secrets are missing or invalid."""

    def __init__(self, missing: list[str], invalid: list[str] | None = None) -> None:
        self.missing = missing
        self.invalid = invalid or []
        parts = []
        if missing:
            parts.append(f'missing: {", ".join(missing)}')
        if self.invalid:
            parts.append(f'invalid: {", ".join(self.invalid)}')
        super().__init__(f'Secret validation failed: {"; ".join(parts)}')


_MIN_UNLOCK_SECRET_LENGTH = 32


@dataclass(frozen=True, slots=True)
class ShareGateSecrets:
    """Immutable typed container for share-gate secrets.

    Attributes:
        unlock_secret: HMAC key for unlock credentials.
        supabase_service_role_key: Service-role key for PostgREST
            (empty in local mode).
    """

    unlock_secret: str
    supabase_service_role_key: str = ''

    def __repr__(self) -> str:
        return (
            'ShareGateSecrets('
            'unlock_secret=<redacted>, '
            'supabase_service_role_key=<redacted>)'
        )

    def __str__(self) -> str:
        return self.__repr__()


def load_share_secrets(
    *,
    unlock_secret: str | None = None,
    supabase_service_role_key: str | None = None,
    require_supabase: bool = False,
    enforce_min_length: bool = True,
) -> ShareGateSecrets:
    """Load secrets from explicit arguments or the environment.

    Environment variables:
      - ``SHARE_UNLOCK_SECRET``
      - ``SUPABASE_SERVICE_ROLE_KEY``

    Raises:
        SecretValidationError: If required secrets are missing or invalid.
    """
    resolved_unlock = (
        unlock_secret or os.environ.get('SHARE_UNLOCK_SECRET', '')
    ).strip()
    resolved_service_key = (
        supabase_service_role_key or os.environ.get('SUPABASE_SERVICE_ROLE_KEY', '')
    ).strip()

    secrets = ShareGateSecrets(
        unlock_secret=resolved_unlock,
        supabase_service_role_key=resolved_service_key,
    )
    validate_secrets(
        secrets,
        require_supabase=require_supabase,
        enforce_min_length=enforce_min_length,
    )
    return secrets


def validate_secrets(
    secrets: ShareGateSecrets,
    *,
    require_supabase: bool = False,
    enforce_min_length: bool = True,
) -> None:
    """Validate that all required secrets are present and well-formed.

    Required:
      - ``unlock_secret``: always; >= 32 characters when
        ``enforce_min_length`` (every environment except local).

    Conditionally required:
      - ``supabase_service_role_key`` when ``require_supabase=True``.

    Raises:
        SecretValidationError: On validation failure.
    """
    missing: list[str] = []
    invalid: list[str] = []

    if not secrets.unlock_secret:
        missing.append('SHARE_UNLOCK_SECRET')
    elif enforce_min_length and len(secrets.unlock_secret) < _MIN_UNLOCK_SECRET_LENGTH:
        invalid.append(
            f'SHARE_UNLOCK_SECRET (min {_MIN_UNLOCK_SECRET_LENGTH} chars, '
            f'got {len(secrets.unlock_secret)})'
        )

    if require_supabase and not secrets.supabase_service_role_key:
        missing.append('SUPABASE_SERVICE_ROLE_KEY')

    if missing or invalid:
        raise SecretValidationError(missing=missing, invalid=invalid)
