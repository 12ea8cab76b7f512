"""Ordering and streaming of an upload's parts.

Parts are reassembled in ascending lexicographic order of their part code, not
in upload order, so clients that want numeric ordering must zero-pad their
codes ("0001", "0002", ...). "10" sorts before "2".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncIterator
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.errors import PartNotFoundError
from chunkstore.errors import PartStorageError
from chunkstore.models.part import PartDB
from chunkstore.models.upload import UploadDB
from chunkstore.repositories.part_repository import PartRepository
from chunkstore.sanitizer import require_identifier
from chunkstore.store.fs_store import FileSystemPartStore


logger = logging.getLogger(__name__)


@dataclass
class Download:
    stream: AsyncIterator[bytes]
    size: int
    filename: str


@dataclass
class UploadInfo:
    upload: UploadDB
    parts: list[PartDB]
    # created_at of the last part in code order, which is not necessarily the newest part
    last_upload: Optional[datetime]


class ReconstructionEngine:
    def __init__(self, session: AsyncSession, fs_store: FileSystemPartStore) -> None:
        self.session = session
        self.fs_store = fs_store
        self.parts = PartRepository(session)

    async def list_parts(self, upload: UploadDB) -> list[PartDB]:
        assert upload.id is not None
        parts = await self.parts.list_by_upload(upload.id)
        # Database collations disagree on case and punctuation; reassembly uses code point order
        return sorted(parts, key=lambda part: part.part_code)

    async def download_part(self, upload: UploadDB, part_code: str) -> Download:
        assert upload.id is not None
        clean_part = require_identifier(part_code, "part")
        part = await self.parts.get_by_upload_and_code(upload.id, clean_part)
        if part is None:
            raise PartNotFoundError()

        stream, size = await self.fs_store.read(upload.code, part.part_code)
        return Download(stream=stream, size=size, filename=f"{upload.filename}.{part.part_code}")

    async def download_whole(self, upload: UploadDB) -> Download:
        """Prepare the concatenation of all parts.

        Every part is stat'd before the first byte is produced, so a missing or
        unreadable part fails the request while a clean error can still be sent.
        """
        part_codes = [part.part_code for part in await self.list_parts(upload)]

        total_size = 0
        for part_code in part_codes:
            try:
                total_size += await self.fs_store.size(upload.code, part_code)
            except PartNotFoundError as e:
                logger.error(f"Part row without file upload={upload.code} part={part_code}")
                raise PartStorageError("Can not read file size") from e

        logger.debug(f"Reassembling upload={upload.code} parts={len(part_codes)} size={total_size}")
        return Download(
            stream=self._concat(upload.code, part_codes),
            size=total_size,
            filename=upload.filename,
        )

    async def _concat(self, upload_code: str, part_codes: list[str]) -> AsyncIterator[bytes]:
        for part_code in part_codes:
            async for chunk in self.fs_store.stream(upload_code, part_code):
                yield chunk

    async def info(self, upload: UploadDB) -> UploadInfo:
        parts = await self.list_parts(upload)
        last_upload = parts[-1].created_at if parts else None
        return UploadInfo(upload=upload, parts=parts, last_upload=last_upload)
