from vfs_core.store.object_store import (
    DEFAULT_MAX_DELETE_BATCH,
    ContainerInfo,
    ListPage,
    ObjectInfo,
    ObjectStore,
)
from vfs_core.store.stores import Boto3ObjectStore

__all__ = [
    "DEFAULT_MAX_DELETE_BATCH",
    "Boto3ObjectStore",
    "ContainerInfo",
    "ListPage",
    "ObjectInfo",
    "ObjectStore",
]
