from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field
from sqlmodel import SQLModel

from chunkstore.models.base import utcnow


class UploadDB(SQLModel, table=True):
    """Upload table - one row per client-registered upload code."""

    __tablename__ = "uploads"

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(max_length=255, nullable=False, unique=True, index=True)
    filename: str = Field(max_length=255, nullable=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True), nullable=False)
