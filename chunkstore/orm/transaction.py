import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.errors import ChunkStoreError


logger = logging.getLogger(__name__)


@asynccontextmanager
async def transactional(session: AsyncSession, *, operation: str = "transaction") -> AsyncGenerator[AsyncSession, None]:
    """Run the block as one unit of work: commit on success, roll back and re-raise on failure.

    ``operation`` only labels log lines. Domain errors (an unknown upload, a
    duplicate code) roll back quietly; anything else is logged first.
    """
    try:
        yield session
        await session.commit()
    except ChunkStoreError:
        await session.rollback()
        raise
    except Exception as e:
        logger.warning(f"Rolling back {operation}: {type(e).__name__}: {e}")
        await session.rollback()
        raise
