from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy import UniqueConstraint
from sqlmodel import Field
from sqlmodel import SQLModel

from chunkstore.models.base import utcnow


class PartDB(SQLModel, table=True):
    """Part table - one row per stored chunk, unique per (upload, part code)."""

    __tablename__ = "parts"
    __table_args__ = (UniqueConstraint("upload_id", "part_code", name="uq_parts_upload_id_part_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    upload_id: int = Field(foreign_key="uploads.id", index=True, nullable=False)
    part_code: str = Field(max_length=255, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False)
