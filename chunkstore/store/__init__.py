from .fs_store import FileSystemPartStore


__all__ = [
    "FileSystemPartStore",
]
