from __future__ import annotations

import io
import logging
import posixpath
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from vfs_core.errors import (
    AlreadyExistsError,
    ContainerNotFoundError,
    InvalidArgumentError,
    NotFoundError,
)
from vfs_core.fs.base import FileAccess, FileMetadata, FileMode, FileSystemType, as_utc
from vfs_core.fs.consistency import ConsistencyWaiter
from vfs_core.fs.stream import ObjectStream
from vfs_core.io.keys import SEPARATOR, encode_key, is_directory_key, leaf_name, parent_key
from vfs_core.observability import log_event
from vfs_core.store.object_store import ObjectStore

if TYPE_CHECKING:
    from datetime import datetime

    from vfs_core.fs.directory import VirtualDirectory

logger = logging.getLogger(__name__)


class VirtualFile:
    """A single object presented as a file.

    The handle is a view: it holds no content or metadata, every property that needs
    the backend issues a fresh request. ``key`` is the logical path inside the
    container; the encoded form sent to the store is ``object_key``.
    """

    def __init__(
        self,
        store: ObjectStore,
        container: str,
        key: str,
        *,
        waiter: ConsistencyWaiter | None = None,
    ) -> None:
        if not container:
            raise InvalidArgumentError("A container is required for a file")
        if not key or key == SEPARATOR or is_directory_key(key):
            raise InvalidArgumentError(f"key is a directory name: {key!r}")
        self._store = store
        self._container = container
        self._key = key
        self._waiter = waiter

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def waiter(self) -> ConsistencyWaiter | None:
        return self._waiter

    @property
    def container(self) -> str:
        return self._container

    @property
    def key(self) -> str:
        return self._key

    @property
    def object_key(self) -> str:
        return encode_key(self._key)

    @property
    def name(self) -> str:
        return leaf_name(self._key)

    @property
    def extension(self) -> str:
        return posixpath.splitext(self.name)[1]

    @property
    def full_name(self) -> str:
        return f"{self._container}:{SEPARATOR}{self._key}"

    @property
    def type(self) -> FileSystemType:
        return FileSystemType.FILE

    @property
    def directory(self) -> VirtualDirectory:
        from vfs_core.fs.directory import VirtualDirectory

        return VirtualDirectory(self._store, self._container, parent_key(self._key), waiter=self._waiter)

    @property
    def directory_name(self) -> str:
        return self.directory.full_name

    def __repr__(self) -> str:
        return f"VirtualFile({self.full_name!r})"

    def __str__(self) -> str:
        return self.full_name

    def _sibling(self, container: str, key: str) -> VirtualFile:
        return VirtualFile(self._store, container, key, waiter=self._waiter)

    def is_same_object(self, other: VirtualFile) -> bool:
        return other.store is self._store and other.container == self._container and other.key == self._key

    # -- metadata ---------------------------------------------------------------------

    def exists_with_container_check(self) -> tuple[bool, bool]:
        """Return ``(file_exists, container_exists)``."""

        try:
            self._store.head_object(self._container, self.object_key)
        except ContainerNotFoundError:
            return False, False
        except NotFoundError:
            return False, True
        return True, True

    def exists(self) -> bool:
        return self.exists_with_container_check()[0]

    def metadata(self) -> FileMetadata:
        try:
            info = self._store.head_object(self._container, self.object_key)
        except NotFoundError:
            return FileMetadata()
        return FileMetadata(size=info.size, last_modified=as_utc(info.last_modified))

    def size(self) -> int:
        return self.metadata().size

    def last_write_time(self) -> datetime:
        return self.metadata().last_modified

    # -- copy -------------------------------------------------------------------------

    def copy_to(self, container: str, key: str, overwrite: bool = False) -> VirtualFile:
        """Copy to ``container``/``key``.

        A directory-style ``key`` (empty or ending with ``/``) copies into that
        directory under this file's name.
        """

        if not container:
            raise InvalidArgumentError("A container is required to copy a file")
        if is_directory_key(key or ""):
            from vfs_core.fs.directory import VirtualDirectory

            target = VirtualDirectory(self._store, container, key or "", waiter=self._waiter)
            return self.copy_to_directory(target, overwrite=overwrite)
        return self.copy_to_file(self._sibling(container, key), overwrite=overwrite)

    def copy_to_directory(self, directory: VirtualDirectory, overwrite: bool = False) -> VirtualFile:
        if not directory.exists():
            raise NotFoundError(f"Directory does not exist: {directory.full_name}")
        return self.copy_to_file(directory.get_file(self.name), overwrite=overwrite)

    def copy_to_file(self, file: VirtualFile, overwrite: bool = False) -> VirtualFile:
        if self.is_same_object(file):
            raise InvalidArgumentError(f"Source and destination are the same file: {self.full_name}")
        if not overwrite and file.exists():
            raise AlreadyExistsError(f"File already exists: {file.full_name}")

        server_side = self._store is file.store
        if server_side:
            self._store.copy_object(self._container, self.object_key, file.container, file.object_key)
        else:
            body = self._store.get_object(self._container, self.object_key)
            try:
                file.store.put_object(file.container, file.object_key, body)
            finally:
                body.close()

        log_event(
            logger,
            "vfs.file.copy",
            source=self.full_name,
            target=file.full_name,
            server_side=server_side,
        )
        return file

    def copy_to_local(self, path: str | Path, overwrite: bool = False) -> Path:
        destination = Path(path)
        if not overwrite and destination.exists():
            raise AlreadyExistsError(f"File already exists: {destination}")

        body = self._store.get_object(self._container, self.object_key)
        try:
            with destination.open("wb") as handle:
                shutil.copyfileobj(body, handle)
        finally:
            body.close()
        return destination

    def copy_from_local(self, path: str | Path, overwrite: bool = False) -> VirtualFile:
        if not overwrite and self.exists():
            raise AlreadyExistsError(f"File already exists: {self.full_name}")

        with Path(path).open("rb") as handle:
            self._store.put_object(self._container, self.object_key, handle)
        return self

    # -- delete / move ----------------------------------------------------------------

    def delete(self) -> None:
        if not self.exists():
            return
        self._store.delete_object(self._container, self.object_key)
        # Keep the parent listable after its last file is gone.
        self.directory.create()

    def _log_move(self, target: object) -> None:
        log_event(logger, "vfs.file.move", source=self.full_name, target=target)

    def move_to(self, container: str, key: str, overwrite: bool = False) -> VirtualFile:
        target = self.copy_to(container, key, overwrite=overwrite)
        self.delete()
        self._log_move(target.full_name)
        return target

    def move_to_file(self, file: VirtualFile, overwrite: bool = False) -> VirtualFile:
        target = self.copy_to_file(file, overwrite=overwrite)
        self.delete()
        self._log_move(target.full_name)
        return target

    def move_to_directory(self, directory: VirtualDirectory, overwrite: bool = False) -> VirtualFile:
        target = self.copy_to_directory(directory, overwrite=overwrite)
        self.delete()
        self._log_move(target.full_name)
        return target

    def move_to_local(self, path: str | Path) -> Path:
        target = self.copy_to_local(path, overwrite=False)
        self.delete()
        self._log_move(target)
        return target

    def move_from_local(self, path: str | Path, overwrite: bool = False) -> VirtualFile:
        source = Path(path)
        self.copy_from_local(source, overwrite=overwrite)
        source.unlink()
        log_event(logger, "vfs.file.move", source=source, target=self.full_name)
        return self

    # -- replace ----------------------------------------------------------------------

    def _resolve_target(self, container: str, key: str | None) -> VirtualFile:
        value = key or ""
        if is_directory_key(value):
            value = f"{value}{self.name}"
        return self._sibling(container, value)

    def replace(
        self,
        destination_container: str,
        destination_key: str | None,
        backup_container: str | None = None,
        backup_key: str | None = None,
    ) -> VirtualFile:
        if not destination_container:
            raise InvalidArgumentError("A container is required to replace a file")
        destination = self._resolve_target(destination_container, destination_key)
        backup = self._resolve_target(backup_container, backup_key) if backup_container else None
        return self.replace_file(destination, backup)

    def replace_in_directory(
        self, destination: VirtualDirectory, backup: VirtualDirectory | None = None
    ) -> VirtualFile:
        return self.replace_file(
            destination.get_file(self.name),
            backup.get_file(self.name) if backup is not None else None,
        )

    def replace_file(self, destination: VirtualFile, backup: VirtualFile | None = None) -> VirtualFile:
        """Overwrite ``destination`` with this file, then delete this file.

        When ``backup`` is given the current destination content is copied there first.
        Not atomic: a failure part-way leaves whatever was already copied in place.
        """

        if self.is_same_object(destination):
            raise InvalidArgumentError(
                "Destination file can not be the same as the source file when doing a replace."
            )
        if backup is not None:
            destination.copy_to_file(backup, overwrite=True)
        result = self.copy_to_file(destination, overwrite=True)
        self.delete()
        return result

    def replace_local(self, destination: str | Path, backup: str | Path | None = None) -> Path:
        target = Path(destination)
        if backup is not None:
            target.replace(Path(backup))
        return self.copy_to_local(target, overwrite=True)

    # -- streams ----------------------------------------------------------------------

    def open(self, mode: FileMode = FileMode.OPEN, access: FileAccess = FileAccess.READ) -> ObjectStream:
        return ObjectStream(self, mode, access)

    def open_read(self) -> ObjectStream:
        return self.open(FileMode.OPEN, FileAccess.READ)

    def open_write(self) -> ObjectStream:
        return self.open(FileMode.OPEN_OR_CREATE, FileAccess.WRITE)

    def create(self) -> ObjectStream:
        return self.open(FileMode.CREATE, FileAccess.WRITE)

    def open_text(self, encoding: str = "utf-8") -> io.TextIOWrapper:
        return io.TextIOWrapper(io.BufferedReader(self.open_read()), encoding=encoding)

    def create_text(self, encoding: str = "utf-8") -> io.TextIOWrapper:
        return io.TextIOWrapper(io.BufferedWriter(self.create()), encoding=encoding)
