"""Tests for share-gate Prometheus metrics."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from share_gate.main import create_app
from share_gate.settings import ShareGateSettings
from share_gate.sharing.audit import InMemoryShareAuditEmitter

TOKEN = 'tok_AbCdEfGh1234567890'


def _sample(name: str, **labels) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.fixture
def app(store, make_resource):
    store.add(make_resource())
    return create_app(
        ShareGateSettings(unlock_secret='dev'),
        store=store,
        audit=InMemoryShareAuditEmitter(),
    )


@pytest.mark.asyncio
async def test_unlock_outcomes_are_counted(app):
    invalid = _sample('share_gate_unlock_attempts_total', outcome='invalid')
    locked = _sample('share_gate_unlock_attempts_total', outcome='locked')
    lockouts = _sample('share_gate_lockouts_total')

    async with AsyncClient(transport=ASGITransport(app=app), base_url='https://test') as client:
        for _ in range(5):
            await client.post(
                f'/share/verification/{TOKEN}/unlock', json={'password': 'wrong'},
            )

    assert _sample('share_gate_unlock_attempts_total', outcome='invalid') == invalid + 4
    assert _sample('share_gate_unlock_attempts_total', outcome='locked') == locked + 1
    assert _sample('share_gate_lockouts_total') == lockouts + 1


@pytest.mark.asyncio
async def test_audit_events_are_counted(app):
    before = _sample('share_gate_audit_events_total', event_type='share.unlocked')

    async with AsyncClient(transport=ASGITransport(app=app), base_url='https://test') as client:
        await client.post(f'/share/verification/{TOKEN}/unlock', json={'password': 'secret'})

    assert _sample('share_gate_audit_events_total', event_type='share.unlocked') == before + 1


@pytest.mark.asyncio
async def test_metrics_endpoint_exposes_counters(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url='https://test') as client:
        await client.get(f'/share/verification/{TOKEN}')
        response = await client.get('/metrics')

    assert response.status_code == 200
    assert response.headers['content-type'].startswith('text/plain')
    assert 'share_gate_views_total' in response.text
