from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO, Protocol

DEFAULT_MAX_DELETE_BATCH = 1000


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int = 0
    last_modified: datetime | None = None
    etag: str | None = None


@dataclass(frozen=True)
class ContainerInfo:
    name: str
    created: datetime | None = None


@dataclass(frozen=True)
class ListPage:
    """One page of a (possibly delimited) prefix listing."""

    objects: list[ObjectInfo] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)
    is_truncated: bool = False
    next_marker: str | None = None


class ObjectStore(Protocol):
    """Object store addressed by ``(container, key)``.

    Keys are already encoded (see ``vfs_core.io.keys``). Implementations raise
    ``NotFoundError``/``ContainerNotFoundError`` for missing objects/containers and
    ``BackendError``/``BackendUnavailableError`` for anything else.
    """

    max_delete_batch: int

    def head_object(self, container: str, key: str) -> ObjectInfo:
        """Return object metadata."""

    def get_object(self, container: str, key: str) -> BinaryIO:
        """Return a readable binary stream with the object content."""

    def put_object(self, container: str, key: str, body: bytes | BinaryIO) -> None:
        """Create or overwrite an object."""

    def delete_object(self, container: str, key: str) -> None:
        """Delete one object (no error when it is already gone)."""

    def delete_objects(self, container: str, keys: list[str]) -> None:
        """Delete at most ``max_delete_batch`` objects in one request."""

    def list_objects(
        self,
        container: str,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        marker: str | None = None,
        max_keys: int | None = None,
    ) -> ListPage:
        """List keys after ``marker`` that start with ``prefix``, in key order."""

    def copy_object(
        self, source_container: str, source_key: str, dest_container: str, dest_key: str
    ) -> None:
        """Server-side copy."""

    def create_container(self, container: str) -> None:
        """Create a container."""

    def delete_container(self, container: str) -> None:
        """Delete an (empty) container."""

    def list_containers(self) -> list[ContainerInfo]:
        """Return all containers visible to the client."""

    def container_exists(self, container: str) -> bool:
        """Return True when the container exists."""
