from unittest.mock import AsyncMock
from unittest.mock import MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.models.upload import UploadDB
from chunkstore.orm.base_repository import BaseRepository


@pytest.fixture
def mock_session() -> AsyncSession:
    session = MagicMock(spec=AsyncSession)
    session.execute = AsyncMock()
    session.add = MagicMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    return session


@pytest.fixture
def repository(mock_session: AsyncSession) -> BaseRepository[UploadDB]:
    return BaseRepository(mock_session, UploadDB)


class TestBaseRepositoryCreate:
    @pytest.mark.asyncio
    async def test_create_adds_and_flushes(
        self,
        repository: BaseRepository[UploadDB],
        mock_session: AsyncSession,
    ) -> None:
        model = UploadDB(code="abc", filename="report.pdf")

        result = await repository.create(model)

        assert result is model
        mock_session.add.assert_called_once_with(model)
        mock_session.flush.assert_called_once()
        mock_session.refresh.assert_called_once_with(model)


class TestBaseRepositoryUpdate:
    @pytest.mark.asyncio
    async def test_update_flushes_and_refreshes(
        self,
        repository: BaseRepository[UploadDB],
        mock_session: AsyncSession,
    ) -> None:
        model = UploadDB(id=1, code="abc", filename="renamed.pdf")

        result = await repository.update(model)

        assert result is model
        mock_session.flush.assert_called_once()
        mock_session.refresh.assert_called_once_with(model)


class TestBaseRepositoryDeleteById:
    @pytest.mark.asyncio
    async def test_reports_removed_row(
        self,
        repository: BaseRepository[UploadDB],
        mock_session: AsyncSession,
    ) -> None:
        mock_session.execute.return_value = MagicMock(rowcount=1)

        assert await repository.delete_by_id(1) is True
        mock_session.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_reports_missing_row(
        self,
        repository: BaseRepository[UploadDB],
        mock_session: AsyncSession,
    ) -> None:
        mock_session.execute.return_value = MagicMock(rowcount=0)

        assert await repository.delete_by_id(999) is False


class TestBaseRepositoryList:
    @pytest.mark.asyncio
    async def test_list_against_database(self, db_session: AsyncSession) -> None:
        repository = BaseRepository(db_session, UploadDB)
        for code in ["b", "a", "c"]:
            await repository.create(UploadDB(code=code, filename=f"{code}.bin"))

        by_code = await repository.list(UploadDB.code.asc())  # type: ignore[attr-defined]
        unordered = await repository.list()

        assert [u.code for u in by_code] == ["a", "b", "c"]
        assert sorted(u.code for u in unordered) == ["a", "b", "c"]
