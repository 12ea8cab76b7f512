import dataclasses
from pathlib import Path

import dotenv

from chunkstore.utils import as_bool
from chunkstore.utils import env


dotenv.load_dotenv()


@dataclasses.dataclass
class Config:
    """Application configuration settings."""

    # Database Configuration
    database_url: str = env("DATABASE_URL")
    # Create missing tables on startup (the service owns a tiny two-table schema)
    create_tables: bool = env("CHUNKSTORE_CREATE_TABLES:true", convert=as_bool)

    # Part storage
    upload_dir: str = env("CHUNKSTORE_UPLOAD_DIR:/var/lib/chunkstore/uploads")
    stream_chunk_size_bytes: int = env("CHUNKSTORE_STREAM_CHUNK_SIZE_BYTES:1048576", convert=int)  # 1 MiB

    # Security
    # Bearer token checked by the default authorization predicate; empty denies every guarded request
    auth_token: str = env("CHUNKSTORE_AUTH_TOKEN:")

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=as_bool)

    # Server Configuration
    host: str = env("HOST:0.0.0.0")
    port: int = env("PORT:8080", convert=int)
    environment: str = env("ENVIRONMENT:development")
    debug: bool = env("DEBUG:false", convert=as_bool)

    # Feature Flags
    enable_api_docs: bool = env("ENABLE_API_DOCS:false", convert=as_bool)


def get_config() -> Config:
    """Get application configuration."""
    cfg = Config()

    env_value = getattr(cfg, "environment", None)
    if not env_value or not env_value.strip():
        raise ValueError("ENVIRONMENT variable is required but not set or empty")

    if not cfg.upload_dir or not cfg.upload_dir.strip():
        raise ValueError("CHUNKSTORE_UPLOAD_DIR must not be empty")
    object.__setattr__(cfg, "upload_dir", str(Path(cfg.upload_dir).expanduser()))

    if cfg.stream_chunk_size_bytes <= 0:
        raise ValueError("CHUNKSTORE_STREAM_CHUNK_SIZE_BYTES must be positive")

    return cfg
