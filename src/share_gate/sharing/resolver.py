"""Share-token resolution.

Maps a presented share token to its active access record (unlock path) or
to its link-shared verification object (view path).  Pure lookups: nothing
here mutates the store.

Unknown, deleted, malformed and non-link-visible tokens all raise the same
``ShareNotFound`` so callers cannot leak a link's lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .model import ProtectedResource, SharedObject, ShareNotFound, is_well_formed_token

if TYPE_CHECKING:
    from share_gate.protocols import ProtectedResourceStore


async def resolve_share(store: ProtectedResourceStore, token: str) -> ProtectedResource:
    """Resolve ``token`` to the newest non-deleted resource.

    Raises:
        ShareNotFound: No active resource for this token.
    """
    if not is_well_formed_token(token):
        raise ShareNotFound()

    resource = await store.get_latest_by_token(token)
    if resource is None or resource.is_deleted or resource.share_token != token:
        raise ShareNotFound()
    return resource


async def find_share(store: ProtectedResourceStore, token: str) -> ProtectedResource | None:
    """Like ``resolve_share`` but returns None instead of raising."""
    try:
        return await resolve_share(store, token)
    except ShareNotFound:
        return None


async def resolve_shared_object(store: ProtectedResourceStore, token: str) -> SharedObject:
    """Resolve ``token`` to a verification object shared by link.

    Raises:
        ShareNotFound: No object, or the object is not link-visible.
    """
    if not is_well_formed_token(token):
        raise ShareNotFound()

    obj = await store.get_shared_object(token)
    if obj is None or obj.share_token != token or not obj.is_link_shared:
        raise ShareNotFound()
    return obj
