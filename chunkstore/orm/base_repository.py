from typing import Any
from typing import Generic
from typing import List
from typing import Type
from typing import TypeVar

from sqlalchemy import delete
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Table-agnostic helpers. Callers own the transaction (see ``transactional``)."""

    def __init__(self, session: AsyncSession, model: Type[T]):
        self.session = session
        self.model = model

    async def list(self, *order_by: Any) -> List[T]:
        stmt = select(self.model)
        if order_by:
            stmt = stmt.order_by(*order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, obj: T) -> T:
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)
        return obj

    async def update(self, obj: T) -> T:
        await self.session.flush()
        await self.session.refresh(obj)
        return obj

    async def delete_by_id(self, id: Any) -> bool:
        """Delete a row by primary key without loading it.

        Matching instances already in the session are evicted, so the key can
        be reused by a later insert. Returns True when a row was removed.
        """
        stmt = delete(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        result = await self.session.execute(stmt)
        return bool(result.rowcount)
