import logging
import re
import time
from typing import Awaitable
from typing import Callable

from fastapi import Request
from fastapi import Response

from chunkstore.logging_config import generate_ray_id
from chunkstore.logging_config import ray_id_context


logger = logging.getLogger(__name__)

RAY_ID_HEADER = "X-Chunkstore-Ray-ID"
_RAY_ID_FORMAT = re.compile(r"^[0-9a-f]{16}$")


async def ray_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Tag each request with a ray id and write one access log line for it.

    A well-formed ray id sent by an upstream proxy is reused so both hops log
    under the same id; anything else is replaced by a fresh one. The id is set
    in the logging contextvar and on ``request.state`` and echoed back in the
    response headers so clients can quote it in bug reports.

    Must be registered last in ``chunkstore/main.py`` so it executes first.
    """
    incoming = request.headers.get(RAY_ID_HEADER, "").strip().lower()
    ray_id = incoming if _RAY_ID_FORMAT.match(incoming) else generate_ray_id()
    ray_id_context.set(ray_id)
    request.state.ray_id = ray_id

    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000

    response.headers[RAY_ID_HEADER] = ray_id
    # Streaming downloads are timed up to the first byte only
    logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")

    return response
