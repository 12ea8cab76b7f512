import hmac
import logging
from typing import Optional

from fastapi import Request


logger = logging.getLogger(__name__)


def get_bearer_token(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None

    try:
        scheme, token = auth_header.split(maxsplit=1)
    except ValueError:
        return None

    if scheme.lower() != "bearer":
        return None
    return token.strip()


class BearerTokenAuth:
    """Default authorization predicate: a shared bearer token.

    An empty configured token rejects every guarded request.
    """

    def __init__(self, token: str) -> None:
        self.token = token

    async def __call__(self, request: Request) -> bool:
        if not self.token:
            return False

        presented = get_bearer_token(request)
        if presented is None:
            logger.debug(f"Missing bearer token for {request.method} {request.url.path}")
            return False

        return hmac.compare_digest(presented.encode("utf-8"), self.token.encode("utf-8"))
