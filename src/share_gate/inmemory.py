"""In-memory store implementations for local development.

These are used when ENVIRONMENT=local and in tests. They satisfy the protocol
interfaces but store everything in dicts (no persistence across restarts).
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime

from .sharing.model import LINK_VISIBILITY, ProtectedResource, SharedObject
from .sharing.password_gate import make_password_record
from .sharing.rendering import InMemoryReportRenderer

DEMO_SHARE_TOKEN = "tok_demo0000000000000000"


class InMemoryProtectedResourceStore:
    def __init__(self) -> None:
        self._resources: dict[str, ProtectedResource] = {}
        self._objects: dict[str, SharedObject] = {}
        self._lock = asyncio.Lock()
        self.cas_conflicts = 0

    # ── Seeding ────────────────────────────────────────────────────

    def add(self, resource: ProtectedResource) -> ProtectedResource:
        if not resource.id:
            resource.id = f"rpt_{uuid.uuid4().hex[:8]}"
        self._resources[resource.id] = replace(resource)
        return resource

    def add_object(self, obj: SharedObject) -> SharedObject:
        self._objects[obj.share_token] = obj
        return obj

    def set_password_material(
        self, resource_id: str, *, salt: str | None, password_hash: str | None,
    ) -> None:
        """Rotate or clear a resource's password (external writer)."""
        stored = self._resources[resource_id]
        stored.password_salt = salt
        stored.password_hash = password_hash
        stored.is_password_protected = bool(salt and password_hash)

    # ── Protocol ───────────────────────────────────────────────────

    async def get_latest_by_token(self, token: str) -> ProtectedResource | None:
        candidates = [
            r for r in self._resources.values()
            if r.share_token == token and not r.is_deleted
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda r: r.created_at)
        return replace(latest)

    async def get_by_id(self, resource_id: str) -> ProtectedResource | None:
        stored = self._resources.get(resource_id)
        return replace(stored) if stored is not None else None

    async def compare_and_set_attempts(
        self,
        resource_id: str,
        *,
        expected_attempts: int,
        expected_locked_until: datetime | None,
        failed_attempts: int,
        locked_until: datetime | None,
    ) -> ProtectedResource | None:
        async with self._lock:
            stored = self._resources.get(resource_id)
            if stored is None:
                return None
            if (
                stored.failed_attempts != expected_attempts
                or stored.locked_until != expected_locked_until
            ):
                self.cas_conflicts += 1
                return None
            stored.failed_attempts = failed_attempts
            stored.locked_until = locked_until
            return replace(stored)

    async def get_shared_object(self, token: str) -> SharedObject | None:
        return self._objects.get(token)


def seed_demo_share(
    store: InMemoryProtectedResourceStore,
    renderer: InMemoryReportRenderer,
    *,
    password: str,
    token: str = DEMO_SHARE_TOKEN,
    hint: str | None = None,
) -> ProtectedResource:
    """Register one password-protected, link-shared report for local runs."""
    salt, password_hash = make_password_record(password)
    resource = store.add(ProtectedResource(
        id="rpt_demo",
        share_token=token,
        is_password_protected=True,
        password_salt=salt,
        password_hash=password_hash,
        password_hint=hint,
    ))
    store.add_object(SharedObject(
        id="obj_demo", share_token=token, visibility=LINK_VISIBILITY,
    ))
    renderer.add("obj_demo", "<!doctype html><title>Demo report</title><h1>Demo report</h1>")
    return resource
