"""Main application module for the chunkstore service."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from chunkstore import errors
from chunkstore.api.auth import BearerTokenAuth
from chunkstore.api.middlewares.ray_id import ray_id_middleware
from chunkstore.api.router import router as api_router
from chunkstore.config import Config
from chunkstore.config import get_config
from chunkstore.dependencies import AuthCheck
from chunkstore.logging_config import setup_loki_logging
from chunkstore.orm import build_engine
from chunkstore.orm import build_session_factory
from chunkstore.orm import create_tables
from chunkstore.store import FileSystemPartStore


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """FastAPI application lifespan handler."""
    config: Config = app.state.config
    engine = None
    try:
        engine = build_engine(config.database_url)
        app.state.sqlalchemy_engine = engine
        app.state.session_factory = build_session_factory(engine)
        logger.info("SQLAlchemy async engine initialized")

        if config.create_tables:
            await create_tables(engine)

        app.state.fs_store = FileSystemPartStore(config.upload_dir, chunk_size=config.stream_chunk_size_bytes)
        logger.info(f"Part store initialized at {config.upload_dir}")

        yield

    finally:
        if engine is not None:
            try:
                await engine.dispose()
                logger.info("SQLAlchemy engine disposed")
            except Exception:
                logger.exception("Error disposing SQLAlchemy engine")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(errors.ChunkStoreError)
    async def chunkstore_error_handler(request: Request, exc: errors.ChunkStoreError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
        return errors.chunkstore_error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = ", ".join(".".join(str(loc) for loc in err.get("loc", ())) for err in exc.errors())
        message = f"Invalid request parameters: {fields}" if fields else errors.ValidationError.default_message
        return errors.error_response(errors.ValidationError.code, message, 400)

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
        return errors.chunkstore_error_response(errors.MetadataStoreError())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return errors.error_response("InternalError", "Internal server error", 500)


def factory(config: Optional[Config] = None, auth_check: Optional[AuthCheck] = None) -> FastAPI:
    """Factory function to create and configure the FastAPI application.

    Args:
        config: Settings to use instead of the environment
        auth_check: Authorization predicate for guarded routes; defaults to a
            bearer token check against ``CHUNKSTORE_AUTH_TOKEN``
    """
    load_dotenv()
    if config is None:
        config = get_config()
    setup_loki_logging(config, "api")

    app = FastAPI(
        title="Chunkstore",
        description="Chunked file upload and reassembly service",
        docs_url="/docs" if config.enable_api_docs else None,
        redoc_url="/redoc" if config.enable_api_docs else None,
        openapi_url="/openapi.json" if config.enable_api_docs else None,
        lifespan=lifespan,
        debug=config.debug,
    )
    app.state.config = config
    app.state.auth_check = auth_check or BearerTokenAuth(config.auth_token)

    # middleware("http") executes in REVERSE order; ray id must stay last
    app.middleware("http")(ray_id_middleware)

    register_exception_handlers(app)

    @app.get("/health", include_in_schema=False, response_class=JSONResponse)
    async def health():
        """Health check endpoint for monitoring."""
        return JSONResponse(content={"status": "healthy"})

    app.include_router(api_router, prefix="")

    return app


def main() -> None:
    load_dotenv()
    config = get_config()
    uvicorn.run(
        "chunkstore.main:factory",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
