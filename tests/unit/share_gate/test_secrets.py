"""Tests for share-gate secret loading and validation."""

from __future__ import annotations

import pytest

from share_gate.security.secrets import (
    SecretValidationError,
    ShareGateSecrets,
    load_share_secrets,
    validate_secrets,
)

LONG_SECRET = 'x' * 32


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv('SHARE_UNLOCK_SECRET', raising=False)
    monkeypatch.delenv('SUPABASE_SERVICE_ROLE_KEY', raising=False)


class TestLoad:

    def test_explicit_arguments(self):
        secrets = load_share_secrets(unlock_secret=LONG_SECRET)
        assert secrets.unlock_secret == LONG_SECRET
        assert secrets.supabase_service_role_key == ''

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv('SHARE_UNLOCK_SECRET', f'  {LONG_SECRET}  ')
        monkeypatch.setenv('SUPABASE_SERVICE_ROLE_KEY', 'svc')
        secrets = load_share_secrets(require_supabase=True)
        assert secrets.unlock_secret == LONG_SECRET
        assert secrets.supabase_service_role_key == 'svc'

    def test_explicit_wins_over_environment(self, monkeypatch):
        monkeypatch.setenv('SHARE_UNLOCK_SECRET', 'e' * 40)
        assert load_share_secrets(unlock_secret=LONG_SECRET).unlock_secret == LONG_SECRET

    def test_missing_unlock_secret(self):
        with pytest.raises(SecretValidationError) as exc:
            load_share_secrets()
        assert exc.value.missing == ['SHARE_UNLOCK_SECRET']

    def test_service_key_does_not_stand_in_for_unlock_secret(self, monkeypatch):
        monkeypatch.setenv('SUPABASE_SERVICE_ROLE_KEY', 'svc' * 20)
        with pytest.raises(SecretValidationError) as exc:
            load_share_secrets()
        assert 'SHARE_UNLOCK_SECRET' in exc.value.missing


class TestValidate:

    def test_short_secret_rejected_when_enforced(self):
        with pytest.raises(SecretValidationError) as exc:
            validate_secrets(ShareGateSecrets(unlock_secret='short'))
        assert exc.value.missing == []
        assert 'min 32 chars' in exc.value.invalid[0]

    def test_short_secret_allowed_locally(self):
        validate_secrets(ShareGateSecrets(unlock_secret='short'), enforce_min_length=False)

    def test_supabase_key_required_when_asked(self):
        with pytest.raises(SecretValidationError) as exc:
            validate_secrets(ShareGateSecrets(unlock_secret=LONG_SECRET), require_supabase=True)
        assert exc.value.missing == ['SUPABASE_SERVICE_ROLE_KEY']

    def test_error_lists_everything(self):
        with pytest.raises(SecretValidationError) as exc:
            validate_secrets(ShareGateSecrets(unlock_secret=''), require_supabase=True)
        assert set(exc.value.missing) == {'SHARE_UNLOCK_SECRET', 'SUPABASE_SERVICE_ROLE_KEY'}


class TestRedaction:

    def test_repr_and_str_hide_values(self):
        secrets = ShareGateSecrets(unlock_secret=LONG_SECRET, supabase_service_role_key='svc-key')
        for text in (repr(secrets), str(secrets)):
            assert LONG_SECRET not in text
            assert 'svc-key' not in text
