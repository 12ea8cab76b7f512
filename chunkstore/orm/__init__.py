from chunkstore.orm.base_repository import BaseRepository
from chunkstore.orm.session import build_engine
from chunkstore.orm.session import build_session_factory
from chunkstore.orm.session import create_tables
from chunkstore.orm.session import get_async_session
from chunkstore.orm.transaction import transactional


__all__ = [
    "build_engine",
    "build_session_factory",
    "create_tables",
    "get_async_session",
    "BaseRepository",
    "transactional",
]
