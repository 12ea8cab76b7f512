from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.errors import MetadataStoreError
from chunkstore.errors import UploadConflictError
from chunkstore.errors import UploadNotFoundError
from chunkstore.models.upload import UploadDB
from chunkstore.orm.transaction import transactional
from chunkstore.repositories.upload_repository import UploadRepository
from chunkstore.sanitizer import require_identifier


logger = logging.getLogger(__name__)


class UploadRegistry:
    """Creates and resolves uploads by their sanitized code."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.uploads = UploadRepository(session)

    async def register(self, code: str, filename: str) -> UploadDB:
        clean_code = require_identifier(code, "code")
        clean_filename = require_identifier(filename, "filename")

        try:
            async with transactional(self.session, operation="register_upload"):
                if await self.uploads.get_by_code(clean_code) is not None:
                    raise UploadConflictError(f"Upload with code '{clean_code}' already exists.")
                upload = await self.uploads.create(UploadDB(code=clean_code, filename=clean_filename))
        except IntegrityError as e:
            # Lost a race against a concurrent registration of the same code
            logger.info(f"Upload registration conflict code={clean_code}")
            raise UploadConflictError(f"Upload with code '{clean_code}' already exists.") from e
        except SQLAlchemyError as e:
            logger.error(f"Upload registration failed code={clean_code}: {e}")
            raise MetadataStoreError() from e

        logger.info(f"Registered upload id={upload.id} code={upload.code} filename={upload.filename}")
        return upload

    async def lookup(self, code: str) -> UploadDB:
        clean_code = require_identifier(code, "code")
        upload = await self.uploads.get_by_code(clean_code)
        if upload is None:
            raise UploadNotFoundError()
        return upload

    async def list_uploads(self) -> list[UploadDB]:
        return await self.uploads.list_all()
