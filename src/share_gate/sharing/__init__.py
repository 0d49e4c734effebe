"""Password-gated shared verification reports."""

from .audit import (
    InMemoryShareAuditEmitter,
    LoggingShareAuditEmitter,
    ShareAuditEmitter,
    ShareAuditEvent,
    emit_share_event,
    redact_string,
    redact_token,
)
from .credentials import (
    UnlockCredential,
    is_request_unlocked,
    is_valid_unlock,
    issue_unlock_credential,
    sign_unlock,
    unlock_cookie_name,
    unlock_cookie_path,
)
from .model import (
    ProtectedResource,
    ServerMisconfigured,
    SharedObject,
    ShareNotFound,
    SigningSecretMissing,
    is_well_formed_token,
)
from .password_gate import (
    Admit,
    GateOutcome,
    LockoutPolicy,
    RateLimited,
    Reject,
    hash_password,
    make_password_record,
    verify_password,
)
from .rendering import (
    InMemoryReportRenderer,
    RenderedReport,
    ReportRenderError,
    SupabaseFunctionReportRenderer,
)
from .resolver import find_share, resolve_share, resolve_shared_object
from .routes import ShareViewConfig, UnlockRequest, create_share_view_router

__all__ = [
    'Admit',
    'GateOutcome',
    'InMemoryReportRenderer',
    'InMemoryShareAuditEmitter',
    'LockoutPolicy',
    'LoggingShareAuditEmitter',
    'ProtectedResource',
    'RateLimited',
    'Reject',
    'RenderedReport',
    'ReportRenderError',
    'ServerMisconfigured',
    'ShareAuditEmitter',
    'ShareAuditEvent',
    'ShareNotFound',
    'ShareViewConfig',
    'SharedObject',
    'SigningSecretMissing',
    'SupabaseFunctionReportRenderer',
    'UnlockCredential',
    'UnlockRequest',
    'create_share_view_router',
    'emit_share_event',
    'find_share',
    'hash_password',
    'is_request_unlocked',
    'is_valid_unlock',
    'is_well_formed_token',
    'issue_unlock_credential',
    'make_password_record',
    'redact_string',
    'redact_token',
    'resolve_share',
    'resolve_shared_object',
    'sign_unlock',
    'unlock_cookie_name',
    'unlock_cookie_path',
    'verify_password',
]
