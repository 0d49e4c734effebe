from __future__ import annotations

from typing import Any

import httpx
import pytest

from share_gate.db.errors import (
    SupabaseAuthError,
    SupabaseConflictError,
    SupabaseError,
    SupabaseNotFoundError,
)
from share_gate.db.supabase_client import (
    PostgrestFilter,
    SupabaseClient,
    _reset_shared_async_client_for_tests,
)


def _client(handler, **kwargs) -> SupabaseClient:
    return SupabaseClient(
        supabase_url="https://example.supabase.co",
        service_role_key="svc-key",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_select_with_filters_builds_correct_postgrest_query():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["headers"] = dict(request.headers)
        return httpx.Response(200, json=[{"id": "rpt_1"}])

    client = _client(handler)
    rows = await client.select(
        "reporting.generated_reports",
        filters={
            "share_token": ("eq", "tok_abc"),
            "deleted_at": ("is", None),
        },
        limit=1,
        order="created_at.desc",
    )

    assert rows == [{"id": "rpt_1"}]
    assert seen["method"] == "GET"
    # Schema travels in profile headers, not the path.
    assert seen["url"].startswith("https://example.supabase.co/rest/v1/generated_reports?")
    assert "share_token=eq.tok_abc" in seen["url"]
    assert "deleted_at=is.null" in seen["url"]
    assert "limit=1" in seen["url"]
    assert seen["headers"]["accept-profile"] == "reporting"
    assert seen["headers"]["apikey"] == "svc-key"
    assert seen["headers"]["authorization"] == "Bearer svc-key"


@pytest.mark.asyncio
async def test_select_accepts_filter_objects():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=[])

    client = _client(handler)
    await client.select(
        "generated_reports",
        filters=[PostgrestFilter("failed_attempts", "gt", 3)],
    )

    assert seen["params"]["failed_attempts"] == "gt.3"


@pytest.mark.asyncio
async def test_eq_none_is_rejected():
    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should not be sent")

    client = _client(handler)
    with pytest.raises(ValueError):
        await client.select("generated_reports", filters={"locked_until": ("eq", None)})


@pytest.mark.asyncio
async def test_update_sends_patch_with_content_profile():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["headers"] = dict(request.headers)
        return httpx.Response(200, json=[{"id": "rpt_1"}])

    client = _client(handler)
    rows = await client.update(
        "generated_reports",
        filters={"id": ("eq", "rpt_1")},
        data={"failed_attempts": 1},
    )

    assert rows == [{"id": "rpt_1"}]
    assert seen["method"] == "PATCH"
    assert seen["headers"]["content-profile"] == "public"
    assert "return=representation" in seen["headers"]["prefer"]


@pytest.mark.asyncio
async def test_update_requires_filters():
    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should not be sent")

    client = _client(handler)
    with pytest.raises(ValueError):
        await client.update("generated_reports", filters={}, data={"failed_attempts": 0})


@pytest.mark.asyncio
async def test_invoke_function_posts_json_body():
    seen: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json={"html": "<p>ok</p>"})

    client = _client(handler)
    payload = await client.invoke_function(
        "export-contract-report", {"verification_object_id": "vo_1"},
    )

    assert payload == {"html": "<p>ok</p>"}
    assert seen["method"] == "POST"
    assert seen["url"] == "https://example.supabase.co/functions/v1/export-contract-report"
    assert b'"verification_object_id"' in seen["body"]


@pytest.mark.asyncio
async def test_invoke_function_rejects_non_json():
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    client = _client(handler)
    with pytest.raises(SupabaseError) as exc:
        await client.invoke_function("export-contract-report")
    assert exc.value.status_code == 502


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status, err_type",
    [
        (401, SupabaseAuthError),
        (403, SupabaseAuthError),
        (404, SupabaseNotFoundError),
        (409, SupabaseConflictError),
        (500, SupabaseError),
    ],
)
async def test_error_mapping(status: int, err_type: type[Exception]):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            status,
            json={"message": "boom", "code": "X", "details": "d", "hint": "h"},
        )

    client = _client(handler)
    with pytest.raises(err_type) as exc:
        await client.select("generated_reports", limit=1)

    assert exc.value.status_code == status
    assert exc.value.code == "X"
    assert "svc-key" not in str(exc.value)


def test_constructor_requires_url_and_key():
    with pytest.raises(ValueError):
        SupabaseClient(supabase_url="", service_role_key="svc-key")
    with pytest.raises(ValueError):
        SupabaseClient(supabase_url="https://example.supabase.co", service_role_key="")


def test_shared_client_is_reused_across_instances():
    _reset_shared_async_client_for_tests()
    a = SupabaseClient(supabase_url="https://a.supabase.co", service_role_key="k")
    b = SupabaseClient(supabase_url="https://b.supabase.co", service_role_key="k")
    assert a._client is b._client
    _reset_shared_async_client_for_tests()
