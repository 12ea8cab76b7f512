from __future__ import annotations

from fastapi import APIRouter
from fastapi import Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore import dependencies
from chunkstore.orm.session import get_async_session
from chunkstore.orm.transaction import transactional
from chunkstore.services.reconstruction import Download
from chunkstore.services.reconstruction import ReconstructionEngine
from chunkstore.services.registry import UploadRegistry
from chunkstore.store.fs_store import FileSystemPartStore


router = APIRouter(tags=["downloads"], dependencies=[Depends(dependencies.require_auth)])


def attachment_response(download: Download) -> StreamingResponse:
    headers = {
        "Content-Disposition": f"attachment; filename={download.filename}",
        "Content-Length": str(download.size),
    }
    return StreamingResponse(download.stream, media_type="application/octet-stream", headers=headers)


@router.get("/download/{code}/{part}", response_class=StreamingResponse)
async def download_part(
    code: str,
    part: str,
    session: AsyncSession = Depends(get_async_session),
    fs_store: FileSystemPartStore = Depends(dependencies.get_fs_store),
) -> StreamingResponse:
    """Stream a single part as ``<filename>.<part>``."""
    # Metadata reads finish before the first byte goes out; the stream only touches files
    async with transactional(session, operation="prepare_part_download"):
        upload = await UploadRegistry(session).lookup(code)
        download = await ReconstructionEngine(session, fs_store).download_part(upload, part)
    return attachment_response(download)


@router.get("/download/{code}", response_class=StreamingResponse)
async def download_file(
    code: str,
    session: AsyncSession = Depends(get_async_session),
    fs_store: FileSystemPartStore = Depends(dependencies.get_fs_store),
) -> StreamingResponse:
    """Stream the whole file, parts concatenated in part-code order."""
    async with transactional(session, operation="prepare_download"):
        upload = await UploadRegistry(session).lookup(code)
        download = await ReconstructionEngine(session, fs_store).download_whole(upload)
    return attachment_response(download)
