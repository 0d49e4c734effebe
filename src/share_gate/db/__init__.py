"""DB helpers for share-gate stores (Supabase, etc.)."""

from .errors import (
    StoreConflictError,
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)
from .resource_repo import SupabaseProtectedResourceStore
from .supabase_client import PostgrestFilter, SupabaseClient

__all__ = [
    "PostgrestFilter",
    "StoreConflictError",
    "SupabaseAuthError",
    "SupabaseClient",
    "SupabaseConflictError",
    "SupabaseError",
    "SupabaseNotFoundError",
    "SupabaseProtectedResourceStore",
]
