"""Share gate FastAPI application factory.

The create_app() factory is the single entry point for building the share-gate
ASGI application. It validates configuration and secrets, wires middleware
(request-ID, CORS), and injects store/renderer implementations.

Usage:
    # Local development
    from share_gate import create_app, ShareGateSettings
    app = create_app(ShareGateSettings(unlock_secret="..."))

    # Hosted (Supabase store and renderer built from settings)
    app = create_app(ShareGateSettings.from_env())

    # Testing (full DI control)
    app = create_app(settings, store=store, renderer=renderer, audit=audit)
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .observability.logging import request_id_ctx
from .observability.metrics import metrics_text
from .protocols import ProtectedResourceStore, ReportRenderer
from .security.secrets import ShareGateSecrets, load_share_secrets
from .settings import ShareGateSettings
from .sharing.audit import (
    InMemoryShareAuditEmitter,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
)
from .sharing.routes import ShareViewConfig, create_share_view_router

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppDependencies:
    """Container for all injected store/service instances.

    Stored on ``app.state.deps`` so route handlers can access them.
    """

    store: ProtectedResourceStore
    renderer: ReportRenderer
    audit: ShareAuditEmitter


def _build_inmemory_deps() -> AppDependencies:
    """Construct all-InMemory dependencies for local development."""
    from .inmemory import InMemoryProtectedResourceStore
    from .sharing.rendering import InMemoryReportRenderer

    return AppDependencies(
        store=InMemoryProtectedResourceStore(),
        renderer=InMemoryReportRenderer(),
        audit=InMemoryShareAuditEmitter(),
    )


def _build_supabase_deps(
    settings: ShareGateSettings,
    secrets: ShareGateSecrets,
) -> AppDependencies:
    """Construct Supabase-backed dependencies for hosted environments."""
    from .db.resource_repo import SupabaseProtectedResourceStore
    from .db.supabase_client import SupabaseClient
    from .sharing.rendering import SupabaseFunctionReportRenderer

    client = SupabaseClient(
        supabase_url=settings.supabase_url,
        service_role_key=secrets.supabase_service_role_key,
    )
    return AppDependencies(
        store=SupabaseProtectedResourceStore(client),
        renderer=SupabaseFunctionReportRenderer(client, settings.render_function),
        audit=LoggingShareAuditEmitter(),
    )


# ── Middleware ──────────────────────────────────────────────────────


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate or propagate X-Request-ID on every request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id
        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)
        response.headers["X-Request-ID"] = request_id
        return response


# ── Factory ─────────────────────────────────────────────────────────


def create_app(
    settings: ShareGateSettings | None = None,
    *,
    store: ProtectedResourceStore | None = None,
    renderer: ReportRenderer | None = None,
    audit: ShareAuditEmitter | None = None,
) -> FastAPI:
    """Create a configured share-gate FastAPI application.

    Args:
        settings: Application settings. Defaults to ``from_env()``.
        store, renderer, audit: Overrides. When None, local mode uses
            InMemory implementations and hosted modes build Supabase ones.

    Returns:
        Configured FastAPI application ready for uvicorn.run().

    Raises:
        ValueError: If settings validation fails.
        SecretValidationError: If the unlock secret (or, outside local,
            the Supabase service-role key) is missing or too short.
    """
    if settings is None:
        settings = ShareGateSettings.from_env()

    errors = settings.validate()
    if errors:
        raise ValueError(
            "Share gate settings validation failed:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )

    needs_supabase = not settings.is_local and (store is None or renderer is None)
    secrets = load_share_secrets(
        unlock_secret=settings.unlock_secret,
        supabase_service_role_key=settings.supabase_service_role_key,
        require_supabase=needs_supabase,
        enforce_min_length=not settings.is_local,
    )

    if settings.is_local:
        defaults = _build_inmemory_deps()
    elif needs_supabase:
        defaults = _build_supabase_deps(settings, secrets)
    else:
        defaults = AppDependencies(
            store=store,  # type: ignore[arg-type]
            renderer=renderer,  # type: ignore[arg-type]
            audit=LoggingShareAuditEmitter(),
        )

    deps = AppDependencies(
        store=store or defaults.store,
        renderer=renderer or defaults.renderer,
        audit=audit or defaults.audit,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Share gate startup (environment=%s)", settings.environment)
        yield
        logger.info("Share gate shutdown")

    app = FastAPI(
        title="Share Gate",
        description="Password-gated access to shared verification reports",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.deps = deps
    app.state.settings = settings

    # ── Middleware stack (applied in reverse order) ──────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # ── Routes ──────────────────────────────────────────────────

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "environment": settings.environment,
        }

    @app.get("/metrics")
    async def prometheus_metrics():
        """Prometheus metrics exposition endpoint."""
        body, content_type = metrics_text()
        return Response(content=body, media_type=content_type)

    view_config = ShareViewConfig(
        unlock_secret=secrets.unlock_secret,
        lockout_policy=settings.lockout_policy,
        path_prefix=settings.share_path_prefix,
        unlock_ttl_seconds=settings.unlock_ttl_seconds,
        cookie_secure=settings.cookie_secure,
    )
    app.include_router(
        create_share_view_router(deps.store, deps.renderer, view_config, deps.audit)
    )

    return app


# For uvicorn, use --factory flag:
#   uvicorn share_gate.main:create_app --factory
# This avoids executing create_app() at import time.
