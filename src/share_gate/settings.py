"""Share-gate configuration settings.

ShareGateSettings is the single configuration object accepted by create_app().
It is a plain dataclass (not env-coupled); only from_env() reads os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta

from .sharing.credentials import DEFAULT_SHARE_PATH_PREFIX, UNLOCK_TTL_SECONDS
from .sharing.password_gate import (
    DEFAULT_LOCKOUT_DURATION,
    DEFAULT_MAX_FAILED_ATTEMPTS,
    LockoutPolicy,
)
from .sharing.rendering import DEFAULT_RENDER_FUNCTION

_DEFAULT_LOCKOUT_MINUTES = int(DEFAULT_LOCKOUT_DURATION.total_seconds() // 60)
_DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:3000",
)


@dataclass(frozen=True, slots=True)
class ShareGateSettings:
    """Configuration for the share-gate FastAPI application.

    Secrets carried here are validated by ``load_share_secrets`` when the
    app is built: the unlock secret is required in every environment, with
    no fallback to other keys and no generated default.
    """

    # ── Environment ────────────────────────────────────────────────
    environment: str = "local"
    """One of: local, dev, staging, production."""

    # ── Supabase ───────────────────────────────────────────────────
    supabase_url: str = ""
    """Supabase project URL (e.g. https://xyz.supabase.co)."""

    supabase_service_role_key: str = ""
    """Supabase service-role key for PostgREST calls. Never log this."""

    # ── Unlock credentials ─────────────────────────────────────────
    unlock_secret: str = ""
    """HMAC key for unlock cookies. Never log this."""

    unlock_ttl_seconds: int = UNLOCK_TTL_SECONDS
    share_path_prefix: str = DEFAULT_SHARE_PATH_PREFIX
    cookie_secure: bool = True

    # ── Lockout policy ─────────────────────────────────────────────
    max_failed_attempts: int = DEFAULT_MAX_FAILED_ATTEMPTS
    lockout_minutes: int = _DEFAULT_LOCKOUT_MINUTES

    # ── Rendering ──────────────────────────────────────────────────
    render_function: str = DEFAULT_RENDER_FUNCTION

    # ── CORS ───────────────────────────────────────────────────────
    cors_origins: tuple[str, ...] = _DEFAULT_CORS_ORIGINS

    @property
    def is_local(self) -> bool:
        return self.environment == "local"

    @property
    def lockout_policy(self) -> LockoutPolicy:
        return LockoutPolicy(
            max_failed_attempts=self.max_failed_attempts,
            lockout_duration=timedelta(minutes=self.lockout_minutes),
        )

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if self.max_failed_attempts < 1:
            errors.append("max_failed_attempts must be >= 1")
        if self.lockout_minutes < 1:
            errors.append("lockout_minutes must be >= 1")
        if self.unlock_ttl_seconds < 1:
            errors.append("unlock_ttl_seconds must be >= 1")
        if not self.share_path_prefix.startswith("/"):
            errors.append("share_path_prefix must start with '/'")
        if not self.is_local:
            if not self.supabase_url:
                errors.append(f"{self.environment}: supabase_url is required")
            if not self.cookie_secure:
                errors.append(f"{self.environment}: cookie_secure must be enabled")
        return errors

    def __repr__(self) -> str:
        return (
            "ShareGateSettings("
            f"environment={self.environment!r}, "
            f"supabase_url={self.supabase_url!r}, "
            "supabase_service_role_key=<redacted>, "
            "unlock_secret=<redacted>, "
            f"max_failed_attempts={self.max_failed_attempts}, "
            f"lockout_minutes={self.lockout_minutes})"
        )

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareGateSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareGateSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        cors_raw = env.get("CORS_ORIGINS", "")
        cors = tuple(o.strip() for o in cors_raw.split(",") if o.strip()) if cors_raw else _DEFAULT_CORS_ORIGINS

        return cls(
            environment=env.get("ENVIRONMENT", "local"),
            supabase_url=env.get("SUPABASE_URL", "").strip(),
            supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY", "").strip(),
            unlock_secret=env.get("SHARE_UNLOCK_SECRET", "").strip(),
            unlock_ttl_seconds=int(env.get("SHARE_UNLOCK_TTL_SECONDS", UNLOCK_TTL_SECONDS)),
            share_path_prefix=env.get("SHARE_PATH_PREFIX", DEFAULT_SHARE_PATH_PREFIX),
            cookie_secure=env.get("SHARE_COOKIE_SECURE", "true").lower() != "false",
            max_failed_attempts=int(
                env.get("SHARE_MAX_FAILED_ATTEMPTS", DEFAULT_MAX_FAILED_ATTEMPTS)
            ),
            lockout_minutes=int(env.get("SHARE_LOCKOUT_MINUTES", _DEFAULT_LOCKOUT_MINUTES)),
            render_function=env.get("SHARE_RENDER_FUNCTION", DEFAULT_RENDER_FUNCTION),
            cors_origins=cors,
        )
