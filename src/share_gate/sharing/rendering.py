"""Report rendering collaborator.

Once access to a shared report is established, the view path asks the
rendering service for the report HTML of the underlying verification
object.  Any failure is reported as ``ReportRenderError`` and shown to the
viewer as not-found.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from share_gate.db.errors import SupabaseError
from share_gate.db.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

DEFAULT_RENDER_FUNCTION = 'export-contract-report'


class ReportRenderError(Exception):
    """The rendering service did not produce a report."""


@dataclass(frozen=True, slots=True)
class RenderedReport:
    html: str


class SupabaseFunctionReportRenderer:
    """Renders reports through a Supabase edge function.

    The function receives ``{"verification_object_id": <id>}`` and must
    answer with a JSON object holding a string ``html``.
    """

    def __init__(
        self,
        client: SupabaseClient,
        function_name: str = DEFAULT_RENDER_FUNCTION,
    ) -> None:
        self._client = client
        self._function_name = function_name

    async def render(self, object_id: str) -> RenderedReport:
        try:
            payload = await self._client.invoke_function(
                self._function_name,
                {'verification_object_id': object_id},
            )
        except (SupabaseError, httpx.HTTPError) as exc:
            logger.warning(
                'Report render failed for object %s: %s', object_id, exc,
            )
            raise ReportRenderError(str(exc)) from exc

        html = payload.get('html') if isinstance(payload, dict) else None
        if not isinstance(html, str) or not html:
            raise ReportRenderError(f'no html returned for object {object_id}')
        return RenderedReport(html=html)


class InMemoryReportRenderer:
    """Serves pre-registered report HTML (local dev and tests)."""

    def __init__(self, reports: dict[str, str] | None = None) -> None:
        self._reports: dict[str, str] = dict(reports or {})
        self.calls: list[str] = []

    def add(self, object_id: str, html: str) -> None:
        self._reports[object_id] = html

    async def render(self, object_id: str) -> RenderedReport:
        self.calls.append(object_id)
        html = self._reports.get(object_id)
        if not html:
            raise ReportRenderError(f'no report registered for object {object_id}')
        return RenderedReport(html=html)
