from vfs_core.fs.base import (
    MIN_TIMESTAMP,
    FileAccess,
    FileMetadata,
    FileMode,
    FileSystemType,
    SearchOption,
)
from vfs_core.fs.consistency import ConsistencyWaiter
from vfs_core.fs.directory import VirtualDirectory
from vfs_core.fs.file import VirtualFile
from vfs_core.fs.stream import ObjectStream

__all__ = [
    "MIN_TIMESTAMP",
    "ConsistencyWaiter",
    "FileAccess",
    "FileMetadata",
    "FileMode",
    "FileSystemType",
    "ObjectStream",
    "SearchOption",
    "VirtualDirectory",
    "VirtualFile",
]
