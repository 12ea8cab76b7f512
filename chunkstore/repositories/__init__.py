from .part_repository import PartRepository
from .upload_repository import UploadRepository


__all__ = [
    "PartRepository",
    "UploadRepository",
]
