"""Admin tool: compare part rows with part files and optionally repair them.

Usage:
    python -m chunkstore.scripts.reconcile [--fix] [--json]

A crash between writing a part file and committing its row (or a partial
delete) can leave rows without files or files without rows. This sweep reports
both; ``--fix`` deletes the dangling rows and the orphan files.

A live upload renames its file into place before its row is committed, so files
modified within ``--grace-seconds`` are never counted as orphans. Part rows whose
upload row is gone are always dangling, whether or not a file exists.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chunkstore.orm.transaction import transactional
from chunkstore.repositories.part_repository import PartRepository
from chunkstore.repositories.upload_repository import UploadRepository
from chunkstore.store.fs_store import FileSystemPartStore


log = logging.getLogger("reconcile")

DEFAULT_GRACE_SECONDS = 300.0


@dataclass
class DanglingRow:
    part_id: int
    upload_id: int
    # None when the upload row no longer exists
    upload_code: Optional[str]
    part_code: str

    @property
    def label(self) -> str:
        owner = self.upload_code if self.upload_code is not None else f"upload#{self.upload_id}"
        return f"{owner}/{self.part_code}"


@dataclass
class ReconcileReport:
    # Part rows whose file or upload row is missing
    dangling_rows: list[DanglingRow] = field(default_factory=list)
    # (upload_code, part_code) files with no part row, including files of unknown uploads
    orphan_files: list[tuple[str, str]] = field(default_factory=list)
    rows_removed: int = 0
    files_removed: int = 0
    fix_failures: list[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.dangling_rows and not self.orphan_files

    @property
    def fixed(self) -> bool:
        return (
            not self.fix_failures
            and self.rows_removed == len(self.dangling_rows)
            and self.files_removed == len(self.orphan_files)
        )

    def to_dict(self) -> dict:
        return {
            "consistent": self.consistent,
            "dangling_rows": [asdict(row) for row in self.dangling_rows],
            "orphan_files": [{"upload_code": u, "part_code": p} for u, p in self.orphan_files],
            "rows_removed": self.rows_removed,
            "files_removed": self.files_removed,
            "fix_failures": self.fix_failures,
        }


async def scan(
    session: AsyncSession,
    fs_store: FileSystemPartStore,
    grace_seconds: float = DEFAULT_GRACE_SECONDS,
) -> ReconcileReport:
    report = ReconcileReport()

    async with transactional(session, operation="reconcile_scan"):
        codes_by_id = {upload.id: upload.code for upload in await UploadRepository(session).list_all()}
        parts = await PartRepository(session).list_all()

    known: set[tuple[str, str]] = set()
    for part in parts:
        assert part.id is not None
        upload_code = codes_by_id.get(part.upload_id)
        if upload_code is None:
            report.dangling_rows.append(DanglingRow(part.id, part.upload_id, None, part.part_code))
            continue
        known.add((upload_code, part.part_code))
        if not await fs_store.exists(upload_code, part.part_code):
            report.dangling_rows.append(DanglingRow(part.id, part.upload_id, upload_code, part.part_code))

    for stored in fs_store.iter_stored_parts(min_age=grace_seconds):
        if stored not in known:
            report.orphan_files.append(stored)

    return report


async def fix(session: AsyncSession, fs_store: FileSystemPartStore, report: ReconcileReport) -> None:
    parts = PartRepository(session)
    for row in report.dangling_rows:
        try:
            async with transactional(session, operation="reconcile_delete_row"):
                await parts.delete_by_id(row.part_id)
        except SQLAlchemyError as e:
            log.error(f"Failed to delete part row id={row.part_id}: {e}")
            report.fix_failures.append(f"row:{row.label}")
            continue
        report.rows_removed += 1

    for upload_code, part_code in report.orphan_files:
        if await fs_store.delete(upload_code, part_code):
            report.files_removed += 1
        else:
            report.fix_failures.append(f"file:{upload_code}/{part_code}")


async def main_async(args: argparse.Namespace) -> int:
    from chunkstore.config import get_config
    from chunkstore.logging_config import setup_loki_logging
    from chunkstore.orm.session import build_engine
    from chunkstore.orm.session import build_session_factory

    config = get_config()
    setup_loki_logging(config, "reconcile", include_ray_id=False)

    engine = build_engine(config.database_url)
    fs_store = FileSystemPartStore(config.upload_dir, chunk_size=config.stream_chunk_size_bytes)
    try:
        async with build_session_factory(engine)() as session:
            report = await scan(session, fs_store, grace_seconds=args.grace_seconds)
            log.info(f"Dangling rows: {len(report.dangling_rows)}, orphan files: {len(report.orphan_files)}")
            for row in report.dangling_rows:
                log.info(f"  row without file or upload: {row.label} (id={row.part_id})")
            for upload_code, part_code in report.orphan_files:
                log.info(f"  file without row: {upload_code}/{part_code}")

            if args.fix and not report.consistent:
                await fix(session, fs_store, report)
                log.info(f"Removed {report.rows_removed} rows and {report.files_removed} files")
    finally:
        await engine.dispose()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))

    if report.consistent:
        return 0
    if args.fix and report.fixed:
        return 0
    return 1


def main() -> None:
    ap = argparse.ArgumentParser(description="Admin tool: find part rows without files and files without part rows")
    ap.add_argument("--fix", action="store_true", help="Delete dangling part rows and orphan part files")
    ap.add_argument("--json", action="store_true", help="Print the report as JSON on stdout")
    ap.add_argument(
        "--grace-seconds",
        type=float,
        default=DEFAULT_GRACE_SECONDS,
        help="Ignore part files modified more recently than this (in-flight uploads)",
    )
    args = ap.parse_args()

    rc = asyncio.run(main_async(args))
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
