import logging
import re
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi import Request
from httpx import ASGITransport
from httpx import AsyncClient

from chunkstore.api.middlewares.ray_id import RAY_ID_HEADER
from chunkstore.api.middlewares.ray_id import ray_id_middleware
from chunkstore.logging_config import ray_id_context


@pytest.fixture
def ray_id_app() -> Any:
    app = FastAPI()

    @app.get("/test")
    async def test_endpoint(request: Request) -> dict[str, Any]:
        return {
            "ray_id": getattr(request.state, "ray_id", "not-set"),
            "context_ray_id": ray_id_context.get(),
        }

    app.middleware("http")(ray_id_middleware)

    return app


@pytest.mark.asyncio
async def test_generates_ray_id_and_header(ray_id_app: Any) -> None:
    async with AsyncClient(transport=ASGITransport(app=ray_id_app), base_url="http://test") as client:
        response = await client.get("/test")

    assert response.status_code == 200
    data = response.json()
    assert re.match(r"^[0-9a-f]{16}$", data["ray_id"])
    assert data["context_ray_id"] == data["ray_id"]
    assert response.headers[RAY_ID_HEADER] == data["ray_id"]


@pytest.mark.asyncio
async def test_unique_per_request(ray_id_app: Any) -> None:
    async with AsyncClient(transport=ASGITransport(app=ray_id_app), base_url="http://test") as client:
        ray_ids = {(await client.get("/test")).headers[RAY_ID_HEADER] for _ in range(10)}

    assert len(ray_ids) == 10, "Ray IDs should be unique per request"


@pytest.mark.asyncio
async def test_reuses_well_formed_upstream_ray_id(ray_id_app: Any) -> None:
    async with AsyncClient(transport=ASGITransport(app=ray_id_app), base_url="http://test") as client:
        response = await client.get("/test", headers={RAY_ID_HEADER: "A1B2C3D4E5F67890"})

    assert response.json()["ray_id"] == "a1b2c3d4e5f67890"
    assert response.headers[RAY_ID_HEADER] == "a1b2c3d4e5f67890"


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", ["short", "zzzzzzzzzzzzzzzz", "a1b2c3d4e5f67890ff", "a1b2c3d4 e5f6789"])
async def test_replaces_malformed_upstream_ray_id(ray_id_app: Any, bad: str) -> None:
    async with AsyncClient(transport=ASGITransport(app=ray_id_app), base_url="http://test") as client:
        response = await client.get("/test", headers={RAY_ID_HEADER: bad})

    ray_id = response.headers[RAY_ID_HEADER]
    assert ray_id != bad
    assert re.match(r"^[0-9a-f]{16}$", ray_id)


@pytest.mark.asyncio
async def test_writes_access_log(ray_id_app: Any, caplog) -> None:
    with caplog.at_level(logging.INFO, logger="chunkstore.api.middlewares.ray_id"):
        async with AsyncClient(transport=ASGITransport(app=ray_id_app), base_url="http://test") as client:
            await client.get("/test")

    assert any(re.search(r"GET /test 200 \d+\.\dms", r.getMessage()) for r in caplog.records)
