from chunkstore.models.part import PartDB
from chunkstore.models.upload import UploadDB


__all__ = [
    "PartDB",
    "UploadDB",
]
