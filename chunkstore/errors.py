"""Error taxonomy and JSON error responses for the chunkstore API."""

from fastapi.responses import JSONResponse

from chunkstore.logging_config import ray_id_context


class ChunkStoreError(Exception):
    """Base class for errors that map onto a client-visible status code."""

    code = "InternalError"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str = "", *, code: str = "", status_code: int = 0):
        self.code = code or self.code
        self.status_code = status_code or self.status_code
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ChunkStoreError):
    code = "InvalidArgument"
    status_code = 400
    default_message = "Parameters must not be empty."


class AuthDeniedError(ChunkStoreError):
    code = "AccessDenied"
    status_code = 403
    default_message = "Access denied"


class UploadNotFoundError(ChunkStoreError):
    code = "NoSuchUpload"
    status_code = 404
    default_message = "Upload with given code could not be found."


class PartNotFoundError(ChunkStoreError):
    code = "NoSuchPart"
    status_code = 404
    default_message = "Upload part with given code could not be found."


class UploadConflictError(ChunkStoreError):
    code = "UploadAlreadyExists"
    status_code = 409
    default_message = "Upload with given code already exists."


class PartConflictError(ChunkStoreError):
    code = "PartAlreadyExists"
    status_code = 409
    default_message = "Upload part was stored concurrently by another request."


class PartStorageError(ChunkStoreError):
    code = "StorageError"
    status_code = 500
    default_message = "Part could not be read or written. Check the server configuration."


class MetadataStoreError(ChunkStoreError):
    code = "MetadataStoreError"
    status_code = 500
    default_message = "Database error"


def error_response(code: str, message: str, status_code: int = 400) -> JSONResponse:
    """Render a standardized JSON error body.

    The ray id lets operators correlate the response with server logs.
    """
    ray_id = ray_id_context.get()
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "ray_id": ray_id},
    )


def chunkstore_error_response(exc: ChunkStoreError) -> JSONResponse:
    return error_response(exc.code, exc.message, exc.status_code)
