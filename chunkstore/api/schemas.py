from datetime import datetime
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serializes snake_case attributes under their camelCase names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class InitUploadRequest(BaseModel):
    """Upload registration request schema."""

    code: str = Field(..., description="Client-chosen unique upload code")
    filename: str = Field(..., description="Filename used when the reassembled file is downloaded")


class Upload(CamelModel):
    """Upload schema."""

    id: int
    code: str
    filename: str


class UploadWithLastUpload(Upload):
    last_upload: Optional[datetime] = None


class Part(CamelModel):
    """Part schema."""

    part_code: str
    upload_id: int
    created_at: datetime


class StoredPart(Part):
    size: int


class FileInfoResponse(CamelModel):
    """Upload metadata with its parts in reassembly order."""

    upload: UploadWithLastUpload
    parts: List[Part]


class FileInfoListResponse(CamelModel):
    uploads: List[Upload]


class DeleteUploadResponse(CamelModel):
    """Delete upload response schema."""

    code: str
    deleted: bool
    # deleted is False when part rows remain; complete is False when anything was left behind
    complete: bool
    parts_deleted: List[str]
    parts_failed: List[str]
    files_failed: List[str]
