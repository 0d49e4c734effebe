"""Supabase-backed ProtectedResourceStore implementation.

Reads shared-report access records from ``generated_reports`` and shared
verification objects from ``verification_objects`` via PostgREST.

Concurrency invariant:
  The attempt counter is only written through ``compare_and_set_attempts``,
  a single PATCH filtered on the row id and the expected prior
  ``failed_attempts``/``locked_until``.  Zero returned rows is a conflict.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from share_gate.sharing.model import ProtectedResource, SharedObject

from .supabase_client import SupabaseClient

_RESOURCE_COLUMNS = (
    "id,share_token,is_password_protected,password_salt,password_hash,"
    "password_hint,failed_attempts,locked_until,deleted_at,created_at"
)
_OBJECT_COLUMNS = "id,share_token,visibility"


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _row_to_resource(row: dict[str, Any]) -> ProtectedResource:
    resource = ProtectedResource(
        id=str(row["id"]),
        share_token=str(row.get("share_token") or ""),
        is_password_protected=row.get("is_password_protected") is True,
        password_salt=row.get("password_salt") or None,
        password_hash=row.get("password_hash") or None,
        password_hint=row.get("password_hint") or None,
        failed_attempts=int(row.get("failed_attempts") or 0),
        locked_until=_parse_timestamp(row.get("locked_until")),
        deleted_at=_parse_timestamp(row.get("deleted_at")),
    )
    created_at = _parse_timestamp(row.get("created_at"))
    if created_at is not None:
        resource.created_at = created_at
    return resource


class SupabaseProtectedResourceStore:
    """ProtectedResourceStore backed by PostgREST tables."""

    REPORTS_TABLE = "generated_reports"
    OBJECTS_TABLE = "verification_objects"

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    async def get_latest_by_token(self, token: str) -> ProtectedResource | None:
        rows = await self._client.select(
            self.REPORTS_TABLE,
            filters={
                "share_token": ("eq", token),
                "deleted_at": ("is", None),
            },
            columns=_RESOURCE_COLUMNS,
            order="created_at.desc",
            limit=1,
        )
        return _row_to_resource(rows[0]) if rows else None

    async def get_by_id(self, resource_id: str) -> ProtectedResource | None:
        rows = await self._client.select(
            self.REPORTS_TABLE,
            filters={"id": ("eq", resource_id)},
            columns=_RESOURCE_COLUMNS,
            limit=1,
        )
        return _row_to_resource(rows[0]) if rows else None

    async def compare_and_set_attempts(
        self,
        resource_id: str,
        *,
        expected_attempts: int,
        expected_locked_until: datetime | None,
        failed_attempts: int,
        locked_until: datetime | None,
    ) -> ProtectedResource | None:
        filters: dict[str, tuple[str, Any]] = {
            "id": ("eq", resource_id),
            "failed_attempts": ("eq", expected_attempts),
            "locked_until": (
                ("is", None)
                if expected_locked_until is None
                else ("eq", expected_locked_until)
            ),
        }
        rows = await self._client.update(
            self.REPORTS_TABLE,
            filters=filters,
            data={
                "failed_attempts": failed_attempts,
                "locked_until": locked_until,
            },
        )
        return _row_to_resource(rows[0]) if rows else None

    async def get_shared_object(self, token: str) -> SharedObject | None:
        rows = await self._client.select(
            self.OBJECTS_TABLE,
            filters={"share_token": ("eq", token)},
            columns=_OBJECT_COLUMNS,
            limit=1,
        )
        if not rows:
            return None
        row = rows[0]
        return SharedObject(
            id=str(row["id"]),
            share_token=str(row.get("share_token") or ""),
            visibility=row.get("visibility"),
        )
