from __future__ import annotations

import logging
from typing import AsyncIterable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.errors import MetadataStoreError
from chunkstore.errors import PartConflictError
from chunkstore.models.base import utcnow
from chunkstore.models.part import PartDB
from chunkstore.orm.transaction import transactional
from chunkstore.repositories.part_repository import PartRepository
from chunkstore.sanitizer import require_identifier
from chunkstore.services.registry import UploadRegistry
from chunkstore.store.fs_store import FileSystemPartStore


logger = logging.getLogger(__name__)


class PartIngestService:
    """Writes part bytes to disk first, then records the part row."""

    def __init__(self, session: AsyncSession, fs_store: FileSystemPartStore) -> None:
        self.session = session
        self.fs_store = fs_store
        self.registry = UploadRegistry(session)
        self.parts = PartRepository(session)

    async def store_part(self, code: str, part_code: str, chunks: AsyncIterable[bytes]) -> tuple[PartDB, int]:
        """Store one part of a registered upload.

        Re-uploading an existing part code replaces its bytes and refreshes the
        row's ``created_at``.

        Returns:
            The part row and the number of bytes written

        Raises:
            UploadNotFoundError: Unknown upload code; nothing is written
            PartStorageError: The bytes could not be written
            PartConflictError: A concurrent request created the same part row first
            MetadataStoreError: The row could not be written; a freshly written file is removed
        """
        clean_part = require_identifier(part_code, "part")
        # Resolve in its own short transaction so none stays open while the body streams in
        async with transactional(self.session, operation="resolve_upload"):
            upload = await self.registry.lookup(code)
        upload_id, upload_code = upload.id, upload.code
        assert upload_id is not None

        size = await self.fs_store.write(upload_code, clean_part, chunks)

        created_new = False
        try:
            async with transactional(self.session, operation="store_part"):
                existing = await self.parts.get_by_upload_and_code(upload_id, clean_part)
                if existing is None:
                    created_new = True
                    part = await self.parts.create(PartDB(upload_id=upload_id, part_code=clean_part))
                else:
                    existing.created_at = utcnow()
                    part = await self.parts.update(existing)
        except IntegrityError as e:
            # The file on disk now belongs to whichever writer inserted the row
            logger.warning(f"Concurrent part insert upload={upload_code} part={clean_part}")
            raise PartConflictError() from e
        except SQLAlchemyError as e:
            logger.error(f"Part metadata write failed upload={upload_code} part={clean_part}: {e}")
            if created_new:
                await self.fs_store.delete(upload_code, clean_part)
            raise MetadataStoreError("Database write error") from e

        logger.info(
            f"Stored part upload={upload_code} part={clean_part} size={size} overwrite={not created_new}"
        )
        return part, size
