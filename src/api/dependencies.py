"""FastAPI dependencies for injection."""
from core.config import get_settings
from db.session import get_async_session, get_session_factory

__all__ = [
    "get_async_session",
    "get_session_factory",
    "get_settings",
]
