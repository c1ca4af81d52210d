"""Stable public imports for `vfs_core`.

Prefer these symbols when integrating the virtual filesystem into applications and
scripts. Lower-level helpers (key codec, path checks) live in their submodules.
"""

from vfs_core.errors import (
    AlreadyExistsError,
    BackendError,
    BackendUnavailableError,
    ContainerNotFoundError,
    DirectoryNotEmptyError,
    InvalidArgumentError,
    NotFoundError,
    NotSupportedError,
    OutOfRangeError,
    PathEscapesRootError,
    SettingsError,
    StorageOperationFailed,
    VfsCoreError,
)
from vfs_core.fs import (
    ConsistencyWaiter,
    FileAccess,
    FileMode,
    ObjectStream,
    SearchOption,
    VirtualDirectory,
    VirtualFile,
)
from vfs_core.service import StorageService
from vfs_core.settings import (
    StorageContext,
    StorageSettings,
    build_object_store,
    load_storage_settings,
    resolve_storage_settings,
)
from vfs_core.store import Boto3ObjectStore, ObjectStore

__all__ = [
    "AlreadyExistsError",
    "BackendError",
    "BackendUnavailableError",
    "Boto3ObjectStore",
    "ConsistencyWaiter",
    "ContainerNotFoundError",
    "DirectoryNotEmptyError",
    "FileAccess",
    "FileMode",
    "InvalidArgumentError",
    "NotFoundError",
    "NotSupportedError",
    "ObjectStore",
    "ObjectStream",
    "OutOfRangeError",
    "PathEscapesRootError",
    "SearchOption",
    "SettingsError",
    "StorageContext",
    "StorageOperationFailed",
    "StorageService",
    "StorageSettings",
    "VfsCoreError",
    "VirtualDirectory",
    "VirtualFile",
    "build_object_store",
    "load_storage_settings",
    "resolve_storage_settings",
]
