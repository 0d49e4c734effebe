"""Store error hierarchy.

These errors carry status and PostgREST error fields only, never httpx.Response
objects or request headers.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SupabaseError(Exception):
    """Base Supabase error for PostgREST and edge-function requests."""

    status_code: int
    message: str
    code: str | None = None
    details: str | None = None
    hint: str | None = None

    def __str__(self) -> str:
        bits: list[str] = [f"SupabaseError(status={self.status_code})", self.message]
        if self.code:
            bits.append(f"code={self.code}")
        if self.details:
            bits.append(f"details={self.details}")
        return " ".join(bits)


class SupabaseAuthError(SupabaseError):
    """401/403 auth errors (bad key, RLS, expired session, etc.)."""


class SupabaseNotFoundError(SupabaseError):
    """404 errors (missing table/view/function)."""


class SupabaseConflictError(SupabaseError):
    """409 conflicts (unique violations, etc.)."""


class StoreConflictError(RuntimeError):
    """A conditional update kept losing to concurrent writers."""
