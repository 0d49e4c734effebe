"""Share gate FastAPI application."""

from .main import create_app
from .settings import ShareGateSettings

__all__ = ["create_app", "ShareGateSettings"]
