from chunkstore.api.middlewares.ray_id import RAY_ID_HEADER
from chunkstore.api.middlewares.ray_id import ray_id_middleware


__all__ = [
    "RAY_ID_HEADER",
    "ray_id_middleware",
]
