from .base import Base
from .session import engine, async_session_factory, build_engine
from .models import KeyValueEntryModel

__all__ = [
    "Base",
    "engine",
    "async_session_factory",
    "build_engine",
    "KeyValueEntryModel",
]
