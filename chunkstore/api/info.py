from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore import dependencies
from chunkstore.api.schemas import FileInfoListResponse
from chunkstore.api.schemas import FileInfoResponse
from chunkstore.api.schemas import Part
from chunkstore.api.schemas import Upload
from chunkstore.api.schemas import UploadWithLastUpload
from chunkstore.orm.session import get_async_session
from chunkstore.services.reconstruction import ReconstructionEngine
from chunkstore.services.registry import UploadRegistry
from chunkstore.store.fs_store import FileSystemPartStore


router = APIRouter(tags=["info"], dependencies=[Depends(dependencies.require_auth)])


@router.get("/info/", response_model=FileInfoListResponse)
async def list_uploads(
    session: AsyncSession = Depends(get_async_session),
) -> FileInfoListResponse:
    uploads = await UploadRegistry(session).list_uploads()
    return FileInfoListResponse(uploads=[Upload.model_validate(upload) for upload in uploads])


@router.get("/info/{code}", response_model=FileInfoResponse)
async def get_upload_info(
    code: str,
    session: AsyncSession = Depends(get_async_session),
    fs_store: FileSystemPartStore = Depends(dependencies.get_fs_store),
) -> FileInfoResponse:
    """Upload metadata plus its parts in reassembly order."""
    upload = await UploadRegistry(session).lookup(code)
    info = await ReconstructionEngine(session, fs_store).info(upload)

    assert upload.id is not None
    return FileInfoResponse(
        upload=UploadWithLastUpload(
            id=upload.id,
            code=upload.code,
            filename=upload.filename,
            last_upload=info.last_upload,
        ),
        parts=[Part.model_validate(part) for part in info.parts],
    )
