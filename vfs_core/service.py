"""Application-facing storage API over the virtual filesystem.

Every operation takes workspace-relative paths (``/`` or ``\\`` separated; absolute
paths must sit under the context's ``root_path``) and raises
``StorageOperationFailed`` for any failure, with the underlying error as ``cause``.
"""

from __future__ import annotations

import hashlib
import io
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, BinaryIO

from vfs_core.errors import InvalidArgumentError, NotFoundError, StorageOperationFailed
from vfs_core.fs.base import FileSystemType, SearchOption
from vfs_core.fs.consistency import ConsistencyWaiter
from vfs_core.fs.directory import VirtualDirectory
from vfs_core.fs.file import VirtualFile
from vfs_core.io.paths import to_workspace_key
from vfs_core.observability import log_event
from vfs_core.settings import StorageContext, StorageSettings, build_object_store
from vfs_core.store.object_store import ObjectStore

logger = logging.getLogger(__name__)

_HASH_CHUNK_SIZE = 1024 * 1024


@contextmanager
def _storage_errors(message: str) -> Iterator[None]:
    try:
        yield
    except StorageOperationFailed:
        raise
    except Exception as exc:  # noqa: BLE001
        raise StorageOperationFailed(message, exc) from exc


class StorageService:
    def __init__(
        self,
        context: StorageContext,
        store: ObjectStore,
        *,
        waiter: ConsistencyWaiter | None = None,
    ) -> None:
        self.context = context
        self.store = store
        self.waiter = waiter if waiter is not None else context.build_waiter()

    @classmethod
    def from_settings(cls, settings: StorageSettings, *, client: Any | None = None) -> StorageService:
        return cls(StorageContext.from_settings(settings), build_object_store(settings, client=client))

    @property
    def storage_id(self) -> str:
        """Identifies the workspace this service serves; it is the configured root path."""

        return self.context.root_path

    @property
    def root_path(self) -> str:
        return self.context.root_path

    # -- handle construction ----------------------------------------------------------

    def _file(self, path: str, container: str | None = None) -> VirtualFile:
        key = to_workspace_key(path, self.context.root_path)
        return VirtualFile(self.store, container or self.context.bucket_name, key, waiter=self.waiter)

    def _directory(self, path: str | None, container: str | None = None) -> VirtualDirectory:
        key = to_workspace_key(path, self.context.root_path) if path else ""
        return VirtualDirectory(self.store, container or self.context.bucket_name, key, waiter=self.waiter)

    @staticmethod
    def _ensure_directory(directory: VirtualDirectory) -> None:
        if not directory.exists():
            directory.create()

    # -- directories ------------------------------------------------------------------

    def create_directory(self, path: str, silent: bool = False) -> str:
        """Create ``path`` (and the container if needed); returns its full name.

        With ``silent`` a failure is logged and an empty string returned.
        """

        try:
            with _storage_errors(f"Unable to create directory {path}."):
                directory = self._directory(path)
                directory.create()
        except StorageOperationFailed as exc:
            if not silent:
                raise
            log_event(logger, "vfs.service.create_directory", level=logging.WARNING, path=path, error=exc)
            return ""
        log_event(logger, "vfs.service.create_directory", path=path, target=directory.full_name)
        return directory.full_name

    def delete_directory(self, path: str, recursive: bool = True, silent: bool = False) -> None:
        try:
            with _storage_errors(f"An unexpected error occurred while deleting directory {path}."):
                self._directory(path).delete(recursive=recursive)
        except StorageOperationFailed as exc:
            if not silent:
                raise
            log_event(logger, "vfs.service.delete_directory", level=logging.WARNING, path=path, error=exc)
            return
        log_event(logger, "vfs.service.delete_directory", path=path, recursive=recursive)

    def empty_directory(self, path: str) -> None:
        """Delete everything inside ``path`` but keep the directory itself."""

        with _storage_errors(f"An error occurred while emptying directory '{path}'."):
            directory = self._directory(path)
            for item in directory.get_file_system_infos():
                if item.type is FileSystemType.DIRECTORY:
                    item.delete(recursive=True)
                else:
                    item.delete()
        log_event(logger, "vfs.service.empty_directory", path=path)

    def directory_exists(self, path: str, silent: bool = False) -> bool:
        try:
            with _storage_errors(f"Unable to determine if directory {path} exists."):
                return self._directory(path).exists()
        except StorageOperationFailed as exc:
            if not silent:
                raise
            log_event(logger, "vfs.service.directory_exists", level=logging.WARNING, path=path, error=exc)
            return False

    def find_files(
        self,
        path: str,
        pattern: str = "*",
        search_option: SearchOption = SearchOption.ALL_DIRECTORIES,
    ) -> list[str]:
        with _storage_errors(f"An error occurred while searching for files in '{path}'."):
            directory = self._directory(path)
            return [file.name for file in directory.enumerate_files(pattern, search_option)]

    # -- files ------------------------------------------------------------------------

    def file_exists(self, path: str) -> bool:
        with _storage_errors(f"An error occurred determining if {path} exists."):
            return self._file(path).exists()

    def delete_file(self, path: str, delete_directory: bool = False) -> None:
        """Delete ``path``; with ``delete_directory`` also drop its parent if it is left empty."""

        with _storage_errors(f"An unexpected error occurred while deleting file {path}."):
            file = self._file(path)
            file.delete()
            if delete_directory and not file.exists():
                directory = file.directory
                if directory.key and directory.is_empty():
                    directory.delete()
        log_event(logger, "vfs.service.delete_file", path=path, delete_directory=delete_directory)

    def delete_files(self, paths: Iterable[str], delete_directory: bool = False) -> None:
        for path in paths:
            self.delete_file(path, delete_directory=delete_directory)

    def file_hash(self, path: str, algorithm: str = "sha256") -> str:
        """Hex digest of the object, computed from a temporary local copy."""

        with _storage_errors(f"An error occurred while retrieving '{path}' for hash calculation."):
            file = self._file(path)
            digest = hashlib.new(algorithm)
            handle, temp_name = tempfile.mkstemp(prefix="vfs-hash-")
            os.close(handle)
            temp_path = Path(temp_name)
            try:
                file.copy_to_local(temp_path, overwrite=True)
                with temp_path.open("rb") as stream:
                    for chunk in iter(lambda: stream.read(_HASH_CHUNK_SIZE), b""):
                        digest.update(chunk)
            finally:
                temp_path.unlink(missing_ok=True)
            return digest.hexdigest()

    def copy_file(self, source: str, target: str, overwrite: bool = True) -> bool:
        """Copy ``source`` (primary container) to ``target`` (target container)."""

        target_container = self.context.target_container
        with _storage_errors(f"Unable to copy file {source} to {target}"):
            source_file = self._file(source)
            target_file = self._file(target, target_container)
            if not source_file.exists():
                raise NotFoundError(
                    f"The source file '{source}' was not found in bucket '{self.context.bucket_name}'."
                )
            self._ensure_directory(target_file.directory)
            copied = source_file.copy_to_file(target_file, overwrite=overwrite).exists()
        log_event(logger, "vfs.service.copy_file", source=source, target=target, container=target_container)
        return copied

    def move_file(self, source: str, target: str, overwrite: bool = True) -> bool:
        target_container = self.context.target_container
        with _storage_errors(
            f"An error occurred during move of file '{source}' to destination '{target}', "
            f"in target bucket '{target_container}'."
        ):
            source_file = self._file(source)
            target_file = self._file(target, target_container)
            if not source_file.exists():
                raise NotFoundError(
                    f"The source file '{source}' was not found in bucket '{self.context.bucket_name}'."
                )
            self._ensure_directory(target_file.directory)
            moved = source_file.move_to_file(target_file, overwrite=overwrite).exists()
        log_event(logger, "vfs.service.move_file", source=source, target=target, container=target_container)
        return moved

    def read_binary_file(self, path: str) -> bytes:
        buffer = io.BytesIO()
        self.read_binary_file_to(path, buffer)
        return buffer.getvalue()

    def read_binary_file_to(self, path: str, output: BinaryIO) -> None:
        with _storage_errors(f"An error occurred while reading binary file '{path}'."):
            if output is None:
                raise InvalidArgumentError("output stream is required")
            writable = getattr(output, "writable", None)
            if writable is not None and not writable():
                raise InvalidArgumentError("Can't write to specified output stream.")
            file = self._file(path)
            if not file.exists():
                raise NotFoundError(f"The file '{path}' was not found.")
            with file.open_read() as stream:
                shutil.copyfileobj(stream, output)

    def read_text_file(self, path: str, encoding: str = "utf-8") -> str:
        content = self.read_binary_file(path)
        with _storage_errors(f"An error occurred while decoding text file '{path}'."):
            return content.decode(encoding)

    def write_binary_file(self, path: str, content: bytes | BinaryIO) -> bool:
        """Replace the content of ``path``; returns whether the object exists afterwards."""

        with _storage_errors(f"An error occurred writing binary stream to '{path}'."):
            if content is None:
                raise InvalidArgumentError("content is required")
            file = self._file(path)
            with file.create() as stream:
                if isinstance(content, (bytes, bytearray, memoryview)):
                    stream.write(content)
                else:
                    shutil.copyfileobj(content, stream)
            written = file.exists()
        log_event(logger, "vfs.service.write_file", path=path)
        return written

    def write_text_file(self, path: str, content: str, encoding: str = "utf-8") -> bool:
        with _storage_errors(f"An error occurred encoding text for '{path}'."):
            data = content.encode(encoding)
        return self.write_binary_file(path, data)
