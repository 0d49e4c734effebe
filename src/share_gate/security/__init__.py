"""Secret handling for the share gate."""

from .secrets import (
    SecretValidationError,
    ShareGateSecrets,
    load_share_secrets,
    validate_secrets,
)

__all__ = [
    'SecretValidationError',
    'ShareGateSecrets',
    'load_share_secrets',
    'validate_secrets',
]
