"""Store and service protocol interfaces for dependency injection.

These protocols define the contracts that concrete implementations (InMemory
for local dev, Supabase for hosted environments) must satisfy. The app factory
accepts any implementation that matches these protocols.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from .sharing.model import ProtectedResource, SharedObject
from .sharing.rendering import RenderedReport


@runtime_checkable
class ProtectedResourceStore(Protocol):
    """Persistence for shared report access records.

    ``compare_and_set_attempts`` is the only write. It applies the new
    counter and lock values only if the stored row still holds the expected
    values, and returns None on conflict.
    """

    async def get_latest_by_token(self, token: str) -> ProtectedResource | None: ...

    async def get_by_id(self, resource_id: str) -> ProtectedResource | None: ...

    async def compare_and_set_attempts(
        self,
        resource_id: str,
        *,
        expected_attempts: int,
        expected_locked_until: datetime | None,
        failed_attempts: int,
        locked_until: datetime | None,
    ) -> ProtectedResource | None: ...

    async def get_shared_object(self, token: str) -> SharedObject | None: ...


@runtime_checkable
class ReportRenderer(Protocol):
    """External report-rendering service."""

    async def render(self, object_id: str) -> RenderedReport: ...
