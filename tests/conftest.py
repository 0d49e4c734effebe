"""Pytest configuration for share-gate tests."""
import sys
from pathlib import Path

# Add src/ to path for src-layout imports
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

import pytest

from share_gate.inmemory import InMemoryProtectedResourceStore
from share_gate.sharing.model import ProtectedResource
from share_gate.sharing.password_gate import hash_password


@pytest.fixture
def store() -> InMemoryProtectedResourceStore:
    return InMemoryProtectedResourceStore()


@pytest.fixture
def make_resource():
    """Factory for ProtectedResource rows.

    Protected rows get ``hash_password(salt, password)`` unless
    ``password_hash`` is passed explicitly.
    """

    def _make(
        *,
        resource_id: str = 'rpt_1',
        token: str = 'tok_AbCdEfGh1234567890',
        protected: bool = True,
        salt: str | None = 's1',
        password: str = 'secret',
        **overrides,
    ) -> ProtectedResource:
        fields = dict(
            id=resource_id,
            share_token=token,
            is_password_protected=protected,
            password_salt=salt if protected else None,
            password_hash=hash_password(salt, password) if protected and salt else None,
        )
        fields.update(overrides)
        return ProtectedResource(**fields)

    return _make
