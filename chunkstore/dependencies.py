import inspect
import logging
from typing import Awaitable
from typing import Callable
from typing import Union

from fastapi import Request

from chunkstore.errors import AuthDeniedError
from chunkstore.store.fs_store import FileSystemPartStore


logger = logging.getLogger(__name__)

AuthCheck = Callable[[Request], Union[bool, Awaitable[bool]]]


def get_fs_store(request: Request) -> FileSystemPartStore:
    """Extract the part store created by the lifespan handler."""
    fs_store: FileSystemPartStore = request.app.state.fs_store
    return fs_store


async def require_auth(request: Request) -> None:
    """
    FastAPI dependency that evaluates the authorization predicate passed to the app factory.

    The predicate may be sync or async.

    Raises:
        AuthDeniedError: If the predicate rejects the request
    """
    auth_check: AuthCheck = request.app.state.auth_check
    allowed = auth_check(request)
    if inspect.isawaitable(allowed):
        allowed = await allowed

    if not allowed:
        logger.warning(f"Authorization denied for {request.method} {request.url.path}")
        raise AuthDeniedError()
