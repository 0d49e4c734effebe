"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging

import pytest

from share_gate.observability.logging import configure_logging, get_logger, request_id_ctx


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _emit(capsys, logger_name: str, message: str, **kwargs) -> dict:
    logging.getLogger(logger_name).warning(message, **kwargs)
    line = capsys.readouterr().out.strip().splitlines()[-1]
    return json.loads(line)


def test_json_output_includes_request_id(capsys, restore_root_logging):
    configure_logging(level='INFO', json_output=True, force=True)
    token = request_id_ctx.set('req-123')
    try:
        entry = _emit(capsys, 'share_gate.sharing.routes', 'lookup failed')
    finally:
        request_id_ctx.reset(token)

    assert entry['event'] == 'lookup failed'
    assert entry['request_id'] == 'req-123'
    assert entry['level'] == 'warning'
    assert entry['logger'] == 'share_gate.sharing.routes'


def test_audit_extra_is_flattened(capsys, restore_root_logging):
    configure_logging(level='INFO', json_output=True, force=True)
    entry = _emit(
        capsys,
        'share_gate.audit',
        'share.locked',
        extra={'audit': {'event_type': 'share.locked', 'token_prefix': 'tok_AbCd...'}},
    )

    assert entry['event'] == 'share.locked'
    assert entry['event_type'] == 'share.locked'
    assert entry['token_prefix'] == 'tok_AbCd...'


def test_get_logger_renders_structured_fields(capsys, restore_root_logging):
    configure_logging(level='INFO', json_output=True, force=True)
    get_logger('share_gate.test').warning('share_locked', token_prefix='tok_AbCd...')

    entry = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert entry['event'] == 'share_locked'
    assert entry['token_prefix'] == 'tok_AbCd...'
