from src.database.base import Base, JSONType, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from src.database.engine import async_session, engine, worker_engine, worker_session
from src.database.session import get_db

__all__ = [
    "Base",
    "JSONType",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDPrimaryKeyMixin",
    "async_session",
    "engine",
    "worker_engine",
    "worker_session",
    "get_db",
]
