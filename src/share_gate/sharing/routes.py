"""Shared verification report endpoints.

Implements:

  GET  /share/verification/{token}          → report HTML or password prompt
  POST /share/verification/{token}/unlock   → verify password, set cookie

Unlock responses (body ``{ok, message}``):
  - 200 ``{ok: true, unlocked: true}``, scoped unlock cookie set.
  - 400 missing token, unreadable body, or blank password.
  - 401 wrong password, lock not tripped.
  - 404 token does not resolve to an active resource.
  - 429 locked; ``retry_at`` and ``Retry-After`` tell when to retry.
  - 500 misconfigured resource or service; no internal detail exposed.

View path:
  Unknown/non-link objects and render failures are all 404 with the same
  body, so an unauthenticated viewer cannot tell error classes apart.

This module provides:
  ``create_share_view_router``: FastAPI router factory.
"""

from __future__ import annotations

import html
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, ValidationError

from share_gate.db.errors import StoreConflictError, SupabaseError
from share_gate.observability.metrics import (
    SHARE_LOCKOUTS,
    SHARE_UNLOCK_ATTEMPTS,
    SHARE_VIEWS,
)

from .audit import (
    SHARE_LOCKED,
    SHARE_PROMPTED,
    SHARE_RATE_LIMITED,
    SHARE_UNLOCK_FAILED,
    SHARE_UNLOCKED,
    SHARE_VIEWED,
    ShareAuditEmitter,
    emit_share_event,
    redact_token,
)
from .credentials import (
    DEFAULT_SHARE_PATH_PREFIX,
    UNLOCK_TTL_SECONDS,
    is_request_unlocked,
    issue_unlock_credential,
)
from .model import ServerMisconfigured, ShareNotFound
from .password_gate import (
    REASON_SERVER_MISCONFIGURED,
    LockoutPolicy,
    RateLimited,
    Reject,
    verify_password,
)
from .rendering import ReportRenderError
from .resolver import find_share, resolve_share, resolve_shared_object

if TYPE_CHECKING:
    from share_gate.protocols import ProtectedResourceStore, ReportRenderer

logger = logging.getLogger(__name__)

# ── Messages ──────────────────────────────────────────────────────────

MSG_MISSING_INPUT = 'Missing token or password'
MSG_NOT_FOUND = 'Share link not found'
MSG_INVALID_PASSWORD = 'Invalid access code.'
MSG_MISCONFIGURED = 'Password configuration is invalid'
MSG_SERVER_ERROR = 'Unable to verify access code'


def _retry_message(retry_at: datetime) -> str:
    retry_at = retry_at.astimezone(timezone.utc)
    return f'Too many attempts. Try again after {retry_at.strftime("%H:%M:%S")} UTC.'


# ── Request schemas ──────────────────────────────────────────────────


class UnlockRequest(BaseModel):
    """Request body for unlocking a protected share."""

    password: str = ''


# ── Configuration ────────────────────────────────────────────────────


@dataclass(frozen=True)
class ShareViewConfig:
    """Settings the share routes need.

    Args:
        unlock_secret: HMAC key for unlock credentials.
        lockout_policy: Attempt threshold and lock duration.
        path_prefix: Route prefix; also the cookie path prefix.
        unlock_ttl_seconds: Unlock cookie lifetime.
        cookie_secure: Secure flag (only disabled for local HTTP).
    """

    unlock_secret: str
    lockout_policy: LockoutPolicy = LockoutPolicy()
    path_prefix: str = DEFAULT_SHARE_PATH_PREFIX
    unlock_ttl_seconds: int = UNLOCK_TTL_SECONDS
    cookie_secure: bool = True


# ── Response helpers ─────────────────────────────────────────────────


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'ok': False, 'message': message, **extra},
    )


def _rate_limited(retry_at: datetime) -> JSONResponse:
    now = datetime.now(timezone.utc)
    retry_after = max(1, math.ceil((retry_at - now).total_seconds()))
    response = _error(
        429,
        _retry_message(retry_at),
        retry_at=retry_at.astimezone(timezone.utc).isoformat(),
    )
    response.headers['Retry-After'] = str(retry_after)
    return response


def _not_found_page() -> HTMLResponse:
    return HTMLResponse(
        status_code=404,
        content='<!doctype html><title>Not found</title><h1>Not found</h1>',
    )


def render_password_prompt(unlock_url: str, hint: str | None) -> str:
    """Minimal password prompt; richer UIs post to the same unlock URL."""
    hint_html = f'<p class="hint">Hint: {html.escape(hint)}</p>' if hint else ''
    return (
        '<!doctype html>'
        '<title>Protected report</title>'
        '<h1>Protected report</h1>'
        '<p>This shared report requires an access code.</p>'
        f'{hint_html}'
        f'<form id="unlock" data-unlock-url="{html.escape(unlock_url)}">'
        '<input type="password" name="password" placeholder="Enter access code">'
        '<button type="submit">Unlock report</button>'
        '<p class="error" hidden></p>'
        '</form>'
        '<script>'
        'document.getElementById("unlock").addEventListener("submit",async(e)=>{'
        'e.preventDefault();const f=e.target;'
        'const r=await fetch(f.dataset.unlockUrl,{method:"POST",'
        'headers:{"Content-Type":"application/json"},'
        'body:JSON.stringify({password:f.password.value.trim()})});'
        'if(r.ok){location.reload();return;}'
        'const b=await r.json().catch(()=>null);const p=f.querySelector(".error");'
        'p.textContent=(b&&b.message)||"Invalid code";p.hidden=false;});'
        '</script>'
    )


async def _read_unlock_body(request: Request) -> UnlockRequest | None:
    try:
        payload = await request.json()
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    try:
        body = UnlockRequest.model_validate(payload)
    except ValidationError:
        return None
    # JSON allows lone surrogate escapes; those cannot be hashed.
    try:
        body.password.encode('utf-8')
    except UnicodeEncodeError:
        return None
    return body


def _request_id(request: Request) -> str | None:
    return getattr(request.state, 'request_id', None)


# ── Route factory ────────────────────────────────────────────────────


def create_share_view_router(
    store: ProtectedResourceStore,
    renderer: ReportRenderer,
    config: ShareViewConfig,
    audit: ShareAuditEmitter,
) -> APIRouter:
    """Create the shared-report view and unlock router.

    Args:
        store: Resource store (resolution and attempt counters).
        renderer: Report rendering service.
        config: Secret, lockout policy and cookie settings.
        audit: Audit event sink.

    Returns:
        FastAPI router with the view and unlock routes.
    """
    router = APIRouter(tags=['share-verification'])
    prefix = config.path_prefix.rstrip('/')

    @router.post(prefix + '/{token}/unlock')
    async def unlock_share(token: str, request: Request):
        """Verify a password and issue the scoped unlock cookie."""
        body = await _read_unlock_body(request)
        password = (body.password if body else '').strip()
        if not token or not password:
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='bad_request').inc()
            return _error(400, MSG_MISSING_INPUT)

        try:
            resource = await resolve_share(store, token)
        except ShareNotFound:
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='not_found').inc()
            return _error(404, MSG_NOT_FOUND)
        except (SupabaseError, StoreConflictError):
            logger.exception('Share lookup failed for %s', redact_token(token))
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='not_found').inc()
            return _error(404, MSG_NOT_FOUND)

        if not resource.is_password_protected:
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='open').inc()
            return {'ok': True, 'unlocked': True}

        try:
            outcome = await verify_password(
                store, resource, password, policy=config.lockout_policy,
            )
        except (SupabaseError, StoreConflictError):
            logger.exception(
                'Attempt counter update failed for share %s', resource.id,
            )
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='error').inc()
            return _error(500, MSG_SERVER_ERROR)

        request_id = _request_id(request)

        if isinstance(outcome, RateLimited):
            tripped = outcome.tripped
            event = SHARE_LOCKED if tripped else SHARE_RATE_LIMITED
            if tripped:
                SHARE_LOCKOUTS.inc()
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='locked' if tripped else 'rate_limited').inc()
            await emit_share_event(
                audit, event, token=token, resource_id=resource.id,
                request_id=request_id, detail=outcome.retry_at.isoformat(),
            )
            return _rate_limited(outcome.retry_at)

        if isinstance(outcome, Reject):
            if outcome.reason == REASON_SERVER_MISCONFIGURED:
                SHARE_UNLOCK_ATTEMPTS.labels(outcome='misconfigured').inc()
                return _error(500, MSG_MISCONFIGURED)
            await emit_share_event(
                audit, SHARE_UNLOCK_FAILED, token=token, resource_id=resource.id,
                request_id=request_id,
            )
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='invalid').inc()
            return _error(401, MSG_INVALID_PASSWORD)

        try:
            credential = issue_unlock_credential(
                token,
                resource,
                secret=config.unlock_secret,
                path_prefix=prefix,
                ttl_seconds=config.unlock_ttl_seconds,
                secure=config.cookie_secure,
            )
        except ServerMisconfigured as exc:
            logger.error('Cannot issue unlock credential: %s', exc.reason)
            SHARE_UNLOCK_ATTEMPTS.labels(outcome='misconfigured').inc()
            return _error(500, MSG_MISCONFIGURED)

        await emit_share_event(
            audit, SHARE_UNLOCKED, token=token, resource_id=resource.id,
            request_id=request_id,
        )
        SHARE_UNLOCK_ATTEMPTS.labels(outcome='admitted').inc()
        response = JSONResponse(content={'ok': True, 'unlocked': True})
        credential.apply(response)
        return response

    @router.get(prefix + '/{token}')
    async def view_share(token: str, request: Request):
        """Serve the shared report, or the password prompt if locked away."""
        try:
            shared = await resolve_shared_object(store, token)
            resource = await find_share(store, token)
        except ShareNotFound:
            SHARE_VIEWS.labels(result='not_found').inc()
            return _not_found_page()
        except SupabaseError:
            logger.exception('Share view lookup failed for %s', redact_token(token))
            SHARE_VIEWS.labels(result='not_found').inc()
            return _not_found_page()

        request_id = _request_id(request)

        if resource is not None and resource.is_password_protected:
            unlocked = is_request_unlocked(
                request, token, resource, secret=config.unlock_secret,
            )
            if not unlocked:
                SHARE_VIEWS.labels(result='prompted').inc()
                await emit_share_event(
                    audit, SHARE_PROMPTED, token=token, resource_id=resource.id,
                    request_id=request_id,
                )
                return HTMLResponse(
                    content=render_password_prompt(
                        f'{prefix}/{token}/unlock', resource.password_hint,
                    ),
                    headers={'Cache-Control': 'no-store'},
                )

        try:
            report = await renderer.render(shared.id)
        except ReportRenderError:
            SHARE_VIEWS.labels(result='not_found').inc()
            return _not_found_page()

        SHARE_VIEWS.labels(result='rendered').inc()
        await emit_share_event(
            audit, SHARE_VIEWED, token=token,
            resource_id=resource.id if resource else None,
            request_id=request_id,
        )
        return HTMLResponse(
            content=report.html,
            headers={'Cache-Control': 'private, no-store'},
        )

    return router

