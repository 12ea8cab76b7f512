from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.models.upload import UploadDB
from chunkstore.orm.base_repository import BaseRepository


class UploadRepository(BaseRepository[UploadDB]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, UploadDB)

    async def get_by_code(self, code: str) -> Optional[UploadDB]:
        stmt = select(UploadDB).where(UploadDB.code == code)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_all(self) -> list[UploadDB]:
        """List every upload in registration order."""
        return await self.list(UploadDB.id.asc())  # type: ignore[union-attr]
