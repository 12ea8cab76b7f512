"""Filesystem-backed part store.

Holds the raw bytes of every uploaded part. Metadata (which parts exist, when
they were written) lives in the database; this module only knows paths.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import time
import uuid
from pathlib import Path
from typing import AsyncIterable
from typing import AsyncIterator
from typing import BinaryIO
from typing import Iterator

from chunkstore.errors import PartNotFoundError
from chunkstore.errors import PartStorageError
from chunkstore.errors import ValidationError


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
# Never produced by the sanitizer, so temp files cannot collide with real parts
TMP_MARKER = "~"


class FileSystemPartStore:
    """Filesystem-backed store for part bytes with atomic writes.

    Layout: <root>/<upload_code>/<part_code>

    Writes go to a temp file in the same directory and are renamed over the
    target, so a re-upload fully replaces the previous content and a failed
    write never leaves a half-written part behind.
    """

    def __init__(self, root_dir: str, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        """Initialize the store with a root directory path.

        Args:
            root_dir: Root directory for part files
            chunk_size: Read buffer size used when streaming parts back out
        """
        self.root = Path(root_dir)
        self.root.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size

    def _safe_segment(self, value: str, field: str) -> str:
        """Reject values that would escape or alias the upload directory."""
        if not value or value in {".", ".."} or "/" in value or os.sep in value or TMP_MARKER in value:
            raise ValidationError(f"Invalid {field}: {value!r}")
        return value

    def upload_path(self, upload_code: str) -> Path:
        return self.root / self._safe_segment(upload_code, "upload code")

    def part_path(self, upload_code: str, part_code: str) -> Path:
        """Return the file path holding a part's bytes."""
        return self.upload_path(upload_code) / self._safe_segment(part_code, "part code")

    async def write(self, upload_code: str, part_code: str, chunks: AsyncIterable[bytes]) -> int:
        """Stream ``chunks`` into the part file, replacing any previous content.

        Returns:
            Number of bytes written

        Raises:
            PartStorageError: If any filesystem operation fails
        """
        part_path = self.part_path(upload_code, part_code)
        # Fixed length, so any legal part code leaves room for its temp name
        tmp_path = part_path.with_name(f"{TMP_MARKER}{uuid.uuid4().hex}")

        written = 0
        fh: BinaryIO | None = None
        try:
            await asyncio.to_thread(part_path.parent.mkdir, parents=True, exist_ok=True)
            fh = await asyncio.to_thread(tmp_path.open, "wb")
            async for chunk in chunks:
                if not chunk:
                    continue
                await asyncio.to_thread(fh.write, chunk)
                written += len(chunk)

            def _finish() -> None:
                assert fh is not None
                fh.flush()
                os.fsync(fh.fileno())
                fh.close()
                tmp_path.replace(part_path)

            await asyncio.to_thread(_finish)
        except OSError as e:
            logger.error(f"FS write failed: upload={upload_code} part={part_code} written={written}: {e}")
            raise PartStorageError(f"Part {upload_code}/{part_code} could not be written.") from e
        finally:
            if fh is not None and not fh.closed:
                fh.close()
            if tmp_path.exists():
                with contextlib.suppress(OSError):
                    tmp_path.unlink()

        logger.debug(f"FS: wrote part upload={upload_code} part={part_code} size={written}")
        return written

    async def read(self, upload_code: str, part_code: str) -> tuple[AsyncIterator[bytes], int]:
        """Stat a part and return a lazy stream over its bytes.

        The size is known before any bytes are produced so callers can emit a
        Content-Length up front. The file itself is only opened once the stream
        is iterated, so a response that is never sent holds no handle.

        Raises:
            PartNotFoundError: If the part file does not exist
            PartStorageError: If the file cannot be stat'd
        """
        size = await self.size(upload_code, part_code)
        return self.stream(upload_code, part_code), size

    async def stream(self, upload_code: str, part_code: str) -> AsyncIterator[bytes]:
        """Yield a part's bytes, opening the file only once iteration starts."""
        part_path = self.part_path(upload_code, part_code)
        try:
            fh = await asyncio.to_thread(part_path.open, "rb")
        except FileNotFoundError as e:
            raise PartNotFoundError(f"Part file {upload_code}/{part_code} is missing.") from e
        except OSError as e:
            logger.error(f"FS open failed: upload={upload_code} part={part_code}: {e}")
            raise PartStorageError("Can not open file") from e

        try:
            while True:
                data = await asyncio.to_thread(fh.read, self.chunk_size)
                if not data:
                    break
                yield data
        except OSError as e:
            logger.error(f"FS read failed: upload={upload_code} part={part_code}: {e}")
            raise PartStorageError("Can not read file") from e
        finally:
            fh.close()

    async def size(self, upload_code: str, part_code: str) -> int:
        """Return a part's size in bytes without opening it for streaming."""
        part_path = self.part_path(upload_code, part_code)
        try:
            stat = await asyncio.to_thread(part_path.stat)
        except FileNotFoundError as e:
            raise PartNotFoundError(f"Part file {upload_code}/{part_code} is missing.") from e
        except OSError as e:
            raise PartStorageError("Can not read file size") from e
        return stat.st_size

    async def exists(self, upload_code: str, part_code: str) -> bool:
        return await asyncio.to_thread(self.part_path(upload_code, part_code).is_file)

    async def delete(self, upload_code: str, part_code: str) -> bool:
        """Delete a part file and prune the upload directory when it becomes empty.

        Idempotent: a missing file counts as deleted. Other failures are logged
        and reported as False rather than raised.
        """
        part_path = self.part_path(upload_code, part_code)
        try:
            await asyncio.to_thread(part_path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning(f"FS: failed to delete part upload={upload_code} part={part_code}: {e}")
            return False

        logger.debug(f"FS: deleted part upload={upload_code} part={part_code}")

        # Only succeeds if empty; a concurrent write may have repopulated it
        with contextlib.suppress(OSError):
            await asyncio.to_thread(part_path.parent.rmdir)
        return True

    def iter_stored_parts(self, min_age: float = 0.0) -> Iterator[tuple[str, str]]:
        """Yield (upload_code, part_code) for every complete part file on disk.

        Files modified less than ``min_age`` seconds ago are skipped.
        """
        if not self.root.exists():
            return
        cutoff = time.time() - min_age
        for upload_dir in sorted(self.root.iterdir()):
            if not upload_dir.is_dir() or TMP_MARKER in upload_dir.name:
                continue
            for part_file in sorted(upload_dir.iterdir()):
                if not part_file.is_file() or TMP_MARKER in part_file.name:
                    continue
                if min_age and part_file.stat().st_mtime > cutoff:
                    continue
                yield upload_dir.name, part_file.name
