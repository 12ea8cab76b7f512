from typing import AsyncIterator
from unittest.mock import AsyncMock
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.errors import UploadNotFoundError
from chunkstore.repositories.part_repository import PartRepository
from chunkstore.services.deletion import DeletionCoordinator
from chunkstore.services.ingest import PartIngestService
from chunkstore.services.registry import UploadRegistry
from chunkstore.store.fs_store import FileSystemPartStore


async def body(data: bytes) -> AsyncIterator[bytes]:
    yield data


@pytest.fixture
def coordinator(db_session: AsyncSession, fs_store: FileSystemPartStore) -> DeletionCoordinator:
    return DeletionCoordinator(db_session, fs_store)


async def seed(db_session: AsyncSession, fs_store: FileSystemPartStore) -> None:
    await UploadRegistry(db_session).register("abc", "report.pdf")
    ingest = PartIngestService(db_session, fs_store)
    await ingest.store_part("abc", "1", body(b"hello"))
    await ingest.store_part("abc", "2", body(b"world"))


class TestDeleteUpload:
    @pytest.mark.asyncio
    async def test_removes_rows_and_files(
        self, db_session: AsyncSession, fs_store: FileSystemPartStore, coordinator: DeletionCoordinator
    ) -> None:
        await seed(db_session, fs_store)

        report = await coordinator.delete_upload("abc")

        assert report.complete
        assert report.upload_deleted
        assert sorted(report.parts_deleted) == ["1", "2"]
        assert list(fs_store.iter_stored_parts()) == []
        assert await PartRepository(db_session).list_all() == []
        with pytest.raises(UploadNotFoundError):
            await UploadRegistry(db_session).lookup("abc")

    @pytest.mark.asyncio
    async def test_code_can_be_registered_again(
        self, db_session: AsyncSession, fs_store: FileSystemPartStore, coordinator: DeletionCoordinator
    ) -> None:
        await seed(db_session, fs_store)
        await coordinator.delete_upload("abc")

        upload = await UploadRegistry(db_session).register("abc", "other.bin")

        assert upload.filename == "other.bin"
        assert await PartRepository(db_session).list_by_upload(upload.id) == []

    @pytest.mark.asyncio
    async def test_unknown_code(self, coordinator: DeletionCoordinator) -> None:
        with pytest.raises(UploadNotFoundError):
            await coordinator.delete_upload("nope")

    @pytest.mark.asyncio
    async def test_missing_file_still_deletes_row(
        self, db_session: AsyncSession, fs_store: FileSystemPartStore, coordinator: DeletionCoordinator
    ) -> None:
        await seed(db_session, fs_store)
        (fs_store.root / "abc" / "1").unlink()

        report = await coordinator.delete_upload("abc")

        assert report.complete
        assert sorted(report.parts_deleted) == ["1", "2"]

    @pytest.mark.asyncio
    async def test_part_row_failure_continues_with_remaining_parts(
        self, db_session: AsyncSession, fs_store: FileSystemPartStore, coordinator: DeletionCoordinator
    ) -> None:
        await seed(db_session, fs_store)
        error = OperationalError("DELETE FROM parts", {}, Exception("database is locked"))
        real_delete = PartRepository.delete_by_id
        calls = []

        async def flaky_delete(self, id):
            calls.append(id)
            if len(calls) == 1:
                raise error
            return await real_delete(self, id)

        with patch.object(PartRepository, "delete_by_id", flaky_delete), patch.object(
            FileSystemPartStore, "delete", AsyncMock(return_value=True)
        ):
            report = await coordinator.delete_upload("abc")

        assert not report.complete
        assert report.parts_failed == ["1"]
        assert report.parts_deleted == ["2"]
        assert len(calls) == 2
        assert report.upload_deleted is False
        upload = await UploadRegistry(db_session).lookup("abc")
        assert [p.part_code for p in await PartRepository(db_session).list_by_upload(upload.id)] == ["1"]

    @pytest.mark.asyncio
    async def test_retry_after_partial_delete_leaves_no_parts_behind(
        self, db_session: AsyncSession, fs_store: FileSystemPartStore, coordinator: DeletionCoordinator
    ) -> None:
        await seed(db_session, fs_store)
        error = OperationalError("DELETE FROM parts", {}, Exception("database is locked"))
        real_delete = PartRepository.delete_by_id
        failed = []

        async def fails_once(self, id):
            if not failed:
                failed.append(id)
                raise error
            return await real_delete(self, id)

        with patch.object(PartRepository, "delete_by_id", fails_once):
            first = await coordinator.delete_upload("abc")

        assert first.parts_failed == ["1"]
        assert not first.complete

        second = await coordinator.delete_upload("abc")
        assert second.complete
        assert second.parts_deleted == ["1"]

        upload = await UploadRegistry(db_session).register("abc", "new.bin")
        assert await PartRepository(db_session).list_by_upload(upload.id) == []
        assert await PartRepository(db_session).list_all() == []
