"""Upload registration, part ingest and deletion endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore import dependencies
from chunkstore.api.schemas import DeleteUploadResponse
from chunkstore.api.schemas import InitUploadRequest
from chunkstore.api.schemas import StoredPart
from chunkstore.api.schemas import Upload
from chunkstore.orm.session import get_async_session
from chunkstore.sanitizer import require_identifier
from chunkstore.services.deletion import DeletionCoordinator
from chunkstore.services.ingest import PartIngestService
from chunkstore.services.registry import UploadRegistry
from chunkstore.store.fs_store import FileSystemPartStore


logger = logging.getLogger(__name__)
router = APIRouter(tags=["uploads"])


@router.put("/init/", response_model=Upload, dependencies=[Depends(dependencies.require_auth)])
async def init_upload(
    body: InitUploadRequest,
    session: AsyncSession = Depends(get_async_session),
) -> Upload:
    """Register a new upload code."""
    upload = await UploadRegistry(session).register(body.code, body.filename)
    return Upload.model_validate(upload)


# Unauthenticated: upload clients only need to know a registered code
@router.put("/upload/{code}/{part}", response_model=StoredPart)
async def store_part(
    code: str,
    part: str,
    request: Request,
    session: AsyncSession = Depends(get_async_session),
    fs_store: FileSystemPartStore = Depends(dependencies.get_fs_store),
) -> StoredPart:
    """Write the request body as one part of an upload."""
    require_identifier(code, "code")
    require_identifier(part, "part")

    stored, size = await PartIngestService(session, fs_store).store_part(code, part, request.stream())
    return StoredPart(
        part_code=stored.part_code,
        upload_id=stored.upload_id,
        created_at=stored.created_at,
        size=size,
    )


@router.delete(
    "/delete/{code}",
    response_model=DeleteUploadResponse,
    dependencies=[Depends(dependencies.require_auth)],
)
async def delete_upload(
    code: str,
    session: AsyncSession = Depends(get_async_session),
    fs_store: FileSystemPartStore = Depends(dependencies.get_fs_store),
) -> DeleteUploadResponse:
    """Delete an upload together with all of its parts."""
    report = await DeletionCoordinator(session, fs_store).delete_upload(code)
    if not report.complete:
        logger.warning(
            f"Partial delete code={report.code} parts_failed={report.parts_failed} files_failed={report.files_failed}"
        )
    return DeleteUploadResponse(
        code=report.code,
        deleted=report.upload_deleted,
        complete=report.complete,
        parts_deleted=report.parts_deleted,
        parts_failed=report.parts_failed,
        files_failed=report.files_failed,
    )
