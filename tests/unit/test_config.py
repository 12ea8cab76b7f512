import os
from unittest.mock import patch

import pytest

from chunkstore.config import Config
from chunkstore.config import get_config
from chunkstore.utils import as_bool


class TestGetConfig:
    def test_loads_defaults(self) -> None:
        config = get_config()

        assert config.database_url
        assert config.environment == "test"
        assert config.port == 8080
        assert config.create_tables is True
        assert config.stream_chunk_size_bytes == 1048576

    def test_reads_overrides(self) -> None:
        env = {
            "CHUNKSTORE_UPLOAD_DIR": "~/chunks",
            "CHUNKSTORE_STREAM_CHUNK_SIZE_BYTES": "65536",
            "LOKI_ENABLED": "yes",
            "PORT": "9000",
        }
        with patch.dict(os.environ, env):
            config = get_config()

        assert config.upload_dir == os.path.expanduser("~/chunks")
        assert config.stream_chunk_size_bytes == 65536
        assert config.loki_enabled is True
        assert config.port == 9000

    def test_database_url_is_required(self) -> None:
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("DATABASE_URL", None)
            with pytest.raises(KeyError):
                Config()

    @pytest.mark.parametrize(
        "key,value",
        [
            ("ENVIRONMENT", "  "),
            ("CHUNKSTORE_UPLOAD_DIR", ""),
            ("CHUNKSTORE_STREAM_CHUNK_SIZE_BYTES", "0"),
        ],
    )
    def test_rejects_invalid_values(self, key: str, value: str) -> None:
        with patch.dict(os.environ, {key: value}):
            with pytest.raises(ValueError):
                get_config()


@pytest.mark.parametrize(
    "value,expected",
    [("true", True), ("1", True), ("YES", True), (" on ", True), ("false", False), ("0", False), ("", False)],
)
def test_as_bool(value: str, expected: bool) -> None:
    assert as_bool(value) is expected
