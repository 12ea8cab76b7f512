import dataclasses
from pathlib import Path
from typing import AsyncGenerator
from typing import Generator

import dotenv
import pytest
import pytest_asyncio
from httpx import ASGITransport
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker

from chunkstore.config import Config
from chunkstore.orm.session import build_engine
from chunkstore.orm.session import build_session_factory
from chunkstore.orm.session import create_tables
from chunkstore.store.fs_store import FileSystemPartStore


TEST_TOKEN = "test-token"
AUTH_HEADERS = {"Authorization": f"Bearer {TEST_TOKEN}"}


@pytest.fixture(scope="session", autouse=True)
def _load_test_env() -> Generator[None, None, None]:
    """Load test environment variables from base + local env files."""
    project_root = Path(__file__).parents[2]
    dotenv.load_dotenv(project_root / ".env.defaults", override=True)
    dotenv.load_dotenv(project_root / ".env.test-local", override=True)
    yield


@pytest.fixture
def config(tmp_path: Path) -> Config:
    from chunkstore.config import get_config

    return dataclasses.replace(
        get_config(),
        database_url="sqlite+aiosqlite:///:memory:",
        upload_dir=str(tmp_path / "uploads"),
        auth_token=TEST_TOKEN,
        stream_chunk_size_bytes=4,
    )


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fs_store(tmp_path: Path) -> FileSystemPartStore:
    # Tiny chunks so streaming crosses several reads even for short payloads
    return FileSystemPartStore(str(tmp_path / "uploads"), chunk_size=4)


@pytest.fixture
def app(config: Config, session_factory: async_sessionmaker[AsyncSession], fs_store: FileSystemPartStore):
    from chunkstore.main import factory

    app = factory(config)
    # ASGITransport does not run the lifespan handler
    app.state.session_factory = session_factory
    app.state.fs_store = fs_store
    return app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
