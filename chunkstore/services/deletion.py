from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.errors import MetadataStoreError
from chunkstore.orm.transaction import transactional
from chunkstore.repositories.part_repository import PartRepository
from chunkstore.repositories.upload_repository import UploadRepository
from chunkstore.services.registry import UploadRegistry
from chunkstore.store.fs_store import FileSystemPartStore


logger = logging.getLogger(__name__)


@dataclass
class DeletionReport:
    code: str
    parts_deleted: list[str] = field(default_factory=list)
    # Part rows that could not be removed; the upload row is then kept
    parts_failed: list[str] = field(default_factory=list)
    # Files that could not be unlinked; their rows were removed anyway
    files_failed: list[str] = field(default_factory=list)
    upload_deleted: bool = False

    @property
    def complete(self) -> bool:
        return self.upload_deleted and not self.parts_failed and not self.files_failed


class DeletionCoordinator:
    """Removes an upload's parts from disk and database, then the upload itself.

    Not atomic: every part is committed on its own so one bad row does not block
    the rest. The upload row is only removed once all of its part rows are gone,
    so a failed delete can simply be retried. Files left behind are reported and
    can be repaired with the reconcile script.
    """

    def __init__(self, session: AsyncSession, fs_store: FileSystemPartStore) -> None:
        self.session = session
        self.fs_store = fs_store
        self.registry = UploadRegistry(session)
        self.uploads = UploadRepository(session)
        self.parts = PartRepository(session)

    async def delete_upload(self, code: str) -> DeletionReport:
        async with transactional(self.session, operation="resolve_upload"):
            upload = await self.registry.lookup(code)
            parts = await self.parts.list_by_upload(upload.id)  # type: ignore[arg-type]

        # Plain values only: a rollback below would expire the ORM instances
        upload_id, upload_code = upload.id, upload.code
        targets = [(part.id, part.part_code) for part in parts]
        report = DeletionReport(code=upload_code)

        for part_id, part_code in targets:
            if not await self.fs_store.delete(upload_code, part_code):
                report.files_failed.append(part_code)

            try:
                async with transactional(self.session, operation="delete_part"):
                    await self.parts.delete_by_id(part_id)
            except SQLAlchemyError as e:
                logger.warning(f"Failed to delete part row upload={upload_code} part={part_code}: {e}")
                report.parts_failed.append(part_code)
                continue
            report.parts_deleted.append(part_code)

        if report.parts_failed:
            logger.warning(f"Keeping upload row code={upload_code}: {len(report.parts_failed)} part rows remain")
            return report

        try:
            async with transactional(self.session, operation="delete_upload"):
                await self.uploads.delete_by_id(upload_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete upload row code={upload_code}: {e}")
            raise MetadataStoreError(f"Upload '{upload_code}' could not be deleted.") from e
        report.upload_deleted = True

        logger.info(
            f"Deleted upload code={upload_code} parts={len(report.parts_deleted)} "
            f"parts_failed={len(report.parts_failed)} files_failed={len(report.files_failed)}"
        )
        return report
