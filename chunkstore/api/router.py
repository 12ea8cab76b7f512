from __future__ import annotations

from fastapi import APIRouter

from chunkstore.api.downloads import router as downloads_router
from chunkstore.api.info import router as info_router
from chunkstore.api.uploads import router as uploads_router


router = APIRouter()
router.include_router(uploads_router, prefix="")
router.include_router(info_router, prefix="")
router.include_router(downloads_router, prefix="")
