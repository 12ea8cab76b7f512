from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.models.part import PartDB
from chunkstore.orm.base_repository import BaseRepository


class PartRepository(BaseRepository[PartDB]):
    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, PartDB)

    async def get_by_upload_and_code(self, upload_id: int, part_code: str) -> Optional[PartDB]:
        stmt = select(PartDB).where(PartDB.upload_id == upload_id, PartDB.part_code == part_code)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_upload(self, upload_id: int) -> list[PartDB]:
        """List all parts of an upload, ordered by part code."""
        stmt = select(PartDB).where(PartDB.upload_id == upload_id).order_by(PartDB.part_code.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_all(self) -> list[PartDB]:
        return await self.list(PartDB.upload_id.asc(), PartDB.part_code.asc())
