from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

from vfs_core.errors import (
    ContainerNotFoundError,
    DirectoryNotEmptyError,
    InvalidArgumentError,
    NotFoundError,
    NotSupportedError,
)
from vfs_core.fs.base import MIN_TIMESTAMP, FileSystemType, SearchOption, as_utc, iter_pages
from vfs_core.fs.consistency import ConsistencyWaiter
from vfs_core.fs.file import VirtualFile
from vfs_core.io.keys import (
    SEPARATOR,
    decode_key,
    encode_key,
    leaf_name,
    normalize_directory_key,
    parent_key,
    validate_child_name,
)
from vfs_core.io.paths import local_child_path
from vfs_core.io.patterns import wildcard_to_regex
from vfs_core.observability import handle_log_fields, log_event
from vfs_core.store.object_store import ObjectStore

logger = logging.getLogger(__name__)


def _local_mtime(path: Path) -> datetime:
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)


class VirtualDirectory:
    """A key prefix presented as a directory.

    Three kinds of handle share this class: the root (no container; its children are
    containers), a container root (empty key) and a sub-directory (key ending with
    ``/``). Sub-directories exist while at least one object carries their prefix; an
    empty marker object is written on ``create`` so empty directories stay visible.
    """

    def __init__(
        self,
        store: ObjectStore,
        container: str = "",
        key: str = "",
        *,
        waiter: ConsistencyWaiter | None = None,
    ) -> None:
        if not container and key and key != SEPARATOR:
            raise InvalidArgumentError("key cannot be specified without a container")
        self._store = store
        self._container = container or ""
        self._key = normalize_directory_key(key) if self._container else ""
        self._waiter = waiter if waiter is not None else ConsistencyWaiter()

    @property
    def store(self) -> ObjectStore:
        return self._store

    @property
    def waiter(self) -> ConsistencyWaiter:
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
        if not self._container:
            return ""
        if not self._key:
            return self._container
        return leaf_name(self._key)

    @property
    def full_name(self) -> str:
        return f"{self._container}:{SEPARATOR}{self._key}"

    @property
    def type(self) -> FileSystemType:
        return FileSystemType.DIRECTORY

    @property
    def is_root(self) -> bool:
        return not self._container

    @property
    def root(self) -> VirtualDirectory:
        return VirtualDirectory(self._store, waiter=self._waiter)

    @property
    def container_root(self) -> VirtualDirectory:
        return VirtualDirectory(self._store, self._container, waiter=self._waiter)

    @property
    def parent(self) -> VirtualDirectory:
        if not self._key:
            return self.root
        return VirtualDirectory(self._store, self._container, parent_key(self._key), waiter=self._waiter)

    def __repr__(self) -> str:
        return f"VirtualDirectory({self.full_name!r})"

    def __str__(self) -> str:
        return self.full_name

    def _log_fields(self) -> dict[str, object]:
        return handle_log_fields(self._container, self._key)

    def contains(self, other: VirtualDirectory) -> bool:
        """Whether ``other`` is this directory or lies somewhere beneath it."""

        if other.store is not self._store:
            return False
        if self.is_root:
            return True
        return other.container == self._container and other.key.startswith(self._key)

    # -- existence --------------------------------------------------------------------

    def exists_with_container_check(self) -> tuple[bool, bool]:
        """Return ``(directory_exists, container_exists)``."""

        if not self._container:
            return True, True
        if not self._key:
            exists = self._store.container_exists(self._container)
            return exists, exists
        try:
            page = self._store.list_objects(self._container, prefix=self.object_key, max_keys=1)
        except ContainerNotFoundError:
            return False, False
        return bool(page.objects or page.common_prefixes), True

    def exists(self) -> bool:
        return self.exists_with_container_check()[0]

    def is_empty(self) -> bool:
        """True when the directory has no child files or directories (its own marker aside)."""

        if not self._container:
            return not self._store.list_containers()
        try:
            for page in iter_pages(
                self._store, self._container, prefix=self.object_key, delimiter=SEPARATOR
            ):
                if page.common_prefixes:
                    return False
                if any(self._is_child_file_key(info.key) for info in page.objects):
                    return False
        except ContainerNotFoundError:
            return True
        return True

    def last_write_time(self) -> datetime:
        """Latest modification time of any object under this directory."""

        if not self._container:
            return max(
                (
                    VirtualDirectory(self._store, info.name, waiter=self._waiter).last_write_time()
                    for info in self._store.list_containers()
                ),
                default=MIN_TIMESTAMP,
            )
        latest = MIN_TIMESTAMP
        try:
            for page in iter_pages(self._store, self._container, prefix=self.object_key):
                for info in page.objects:
                    latest = max(latest, as_utc(info.last_modified))
        except ContainerNotFoundError:
            return MIN_TIMESTAMP
        return latest

    # -- create / delete --------------------------------------------------------------

    def _wait_for_container(self, exists: bool) -> None:
        self._waiter.wait_for_container(self._store, self._container, exists=exists)

    def create(self) -> None:
        if not self._container:
            return
        exists, container_exists = self.exists_with_container_check()
        if exists:
            return
        if not container_exists:
            self._store.create_container(self._container)
            self._wait_for_container(True)
        if self._key:
            self._store.put_object(self._container, self.object_key, b"")
        log_event(
            logger,
            "vfs.directory.create",
            **self._log_fields(),
            container_created=not container_exists,
        )

    def create_subdirectory(self, name: str) -> VirtualDirectory:
        directory = self.get_directory(name)
        directory.create()
        return directory

    def delete(self, recursive: bool = False) -> None:
        """Delete the directory.

        Without ``recursive`` the directory must be empty (``DirectoryNotEmptyError``
        otherwise). Deleting a container root deletes the container.
        """

        if not self._container:
            raise NotSupportedError("The root directory cannot be deleted")
        if not self.exists():
            return

        if recursive:
            removed = self._delete_contents()
            log_event(logger, "vfs.directory.delete", **self._log_fields(), stage="contents", objects=removed)
        elif not self.is_empty():
            raise DirectoryNotEmptyError(f"Directory is not empty: {self.full_name}")

        if not self._key:
            self._store.delete_container(self._container)
            log_event(logger, "vfs.directory.delete", **self._log_fields(), stage="container")
            self._wait_for_container(False)
        elif self.is_empty():
            self._store.delete_object(self._container, self.object_key)
            log_event(logger, "vfs.directory.delete", **self._log_fields(), stage="marker")
            self.parent.create()

    def _delete_contents(self) -> int:
        batch_size = self._store.max_delete_batch
        batch: list[str] = []
        removed = 0
        marker: str | None = None
        while True:
            page = self._store.list_objects(self._container, prefix=self.object_key, marker=marker)
            # The cursor is the last key in lexicographic order.
            for info in sorted(page.objects, key=lambda item: item.key):
                batch.append(info.key)
                if len(batch) >= batch_size:
                    self._store.delete_objects(self._container, batch)
                    removed += len(batch)
                    batch = []
                marker = info.key
            if not page.is_truncated or not page.objects:
                break
        if batch:
            self._store.delete_objects(self._container, batch)
            removed += len(batch)
        return removed

    # -- navigation -------------------------------------------------------------------

    def get_directory(self, name: str) -> VirtualDirectory:
        child = validate_child_name(name, allow_trailing_separator=True)
        if not self._container:
            return VirtualDirectory(self._store, child, waiter=self._waiter)
        return VirtualDirectory(self._store, self._container, f"{self._key}{child}", waiter=self._waiter)

    def get_file(self, name: str) -> VirtualFile:
        if not self._container:
            raise NotSupportedError("Cannot create files in the root, a container is required")
        child = validate_child_name(name)
        return VirtualFile(self._store, self._container, f"{self._key}{child}", waiter=self._waiter)

    # -- enumeration ------------------------------------------------------------------

    def _is_child_file_key(self, object_key: str) -> bool:
        return object_key != self.object_key and not object_key.endswith(SEPARATOR)

    def _children(self, *, include_files: bool = True) -> tuple[list[VirtualDirectory], list[VirtualFile]]:
        if not self._container:
            directories = [
                VirtualDirectory(self._store, info.name, waiter=self._waiter)
                for info in self._store.list_containers()
            ]
            return directories, []

        directories: list[VirtualDirectory] = []
        files: list[VirtualFile] = []
        for page in iter_pages(self._store, self._container, prefix=self.object_key, delimiter=SEPARATOR):
            for prefix in page.common_prefixes:
                directories.append(
                    VirtualDirectory(self._store, self._container, decode_key(prefix), waiter=self._waiter)
                )
            if not include_files:
                continue
            for info in page.objects:
                if self._is_child_file_key(info.key):
                    files.append(
                        VirtualFile(self._store, self._container, decode_key(info.key), waiter=self._waiter)
                    )
        return directories, files

    def _walk_directories(self, recursive: bool) -> Iterator[VirtualDirectory]:
        directories, _ = self._children(include_files=False)
        for directory in directories:
            yield directory
            if recursive:
                yield from directory._walk_directories(recursive)

    def _walk_files(self, recursive: bool) -> Iterator[VirtualFile]:
        directories, files = self._children(include_files=True)
        yield from files
        if recursive:
            for directory in directories:
                yield from directory._walk_files(recursive)

    def enumerate_directories(
        self, pattern: str | None = "*", search_option: SearchOption = SearchOption.TOP_DIRECTORY_ONLY
    ) -> Iterator[VirtualDirectory]:
        regex = wildcard_to_regex(pattern)
        recursive = search_option is SearchOption.ALL_DIRECTORIES
        return (item for item in self._walk_directories(recursive) if regex.match(item.name))

    def enumerate_files(
        self, pattern: str | None = "*", search_option: SearchOption = SearchOption.TOP_DIRECTORY_ONLY
    ) -> Iterator[VirtualFile]:
        regex = wildcard_to_regex(pattern)
        recursive = search_option is SearchOption.ALL_DIRECTORIES
        return (item for item in self._walk_files(recursive) if regex.match(item.name))

    def enumerate_file_system_infos(
        self, pattern: str | None = "*", search_option: SearchOption = SearchOption.TOP_DIRECTORY_ONLY
    ) -> Iterator[VirtualFile | VirtualDirectory]:
        yield from self.enumerate_files(pattern, search_option)
        yield from self.enumerate_directories(pattern, search_option)

    def get_directories(
        self, pattern: str | None = "*", search_option: SearchOption = SearchOption.TOP_DIRECTORY_ONLY
    ) -> list[VirtualDirectory]:
        return list(self.enumerate_directories(pattern, search_option))

    def get_files(
        self, pattern: str | None = "*", search_option: SearchOption = SearchOption.TOP_DIRECTORY_ONLY
    ) -> list[VirtualFile]:
        return list(self.enumerate_files(pattern, search_option))

    def get_file_system_infos(
        self, pattern: str | None = "*", search_option: SearchOption = SearchOption.TOP_DIRECTORY_ONLY
    ) -> list[VirtualFile | VirtualDirectory]:
        return list(self.enumerate_file_system_infos(pattern, search_option))

    # -- copy / move ------------------------------------------------------------------

    def copy_to(
        self,
        target: VirtualDirectory,
        changes_since: datetime = MIN_TIMESTAMP,
        overwrite: bool = False,
    ) -> VirtualDirectory:
        """Copy the contents of this directory into ``target``, which must exist.

        Subtrees and files not modified after ``changes_since`` are skipped. A failed
        file copy propagates; files copied before it stay in place.
        """

        if not target.exists():
            raise NotFoundError(f"Destination for copy does not exist: {target.full_name}")
        if self.contains(target):
            raise InvalidArgumentError(f"Cannot copy {self.full_name} into itself: {target.full_name}")
        if self.last_write_time() <= changes_since:
            return target

        directories, files = self._children()
        for directory in directories:
            directory.copy_to(target.create_subdirectory(directory.name), changes_since, overwrite)
        for file in files:
            if file.last_write_time() > changes_since:
                file.copy_to_directory(target, overwrite=overwrite)
        return target

    def copy_to_location(
        self,
        container: str,
        key: str = "",
        changes_since: datetime = MIN_TIMESTAMP,
        overwrite: bool = False,
    ) -> VirtualDirectory:
        target = VirtualDirectory(self._store, container, key, waiter=self._waiter)
        return self.copy_to(target, changes_since, overwrite)

    def copy_to_local(
        self,
        path: str | Path,
        changes_since: datetime = MIN_TIMESTAMP,
        overwrite: bool = False,
    ) -> Path:
        root = Path(path)
        if not root.is_dir():
            raise NotFoundError(f"Destination for copy does not exist: {root}")
        if self.last_write_time() <= changes_since:
            return root

        directories, files = self._children()
        for directory in directories:
            child = local_child_path(root, directory.name)
            child.mkdir(exist_ok=True)
            directory.copy_to_local(child, changes_since, overwrite)
        for file in files:
            if file.last_write_time() > changes_since:
                file.copy_to_local(local_child_path(root, file.name), overwrite=overwrite)
        return root

    def copy_from_local(
        self,
        path: str | Path,
        changes_since: datetime = MIN_TIMESTAMP,
        overwrite: bool = False,
    ) -> VirtualDirectory:
        source = Path(path)
        if not source.is_dir():
            raise NotFoundError(f"Source for copy does not exist: {source}")
        if _local_mtime(source) <= changes_since:
            return self

        entries = sorted(source.iterdir())
        for entry in entries:
            if entry.is_dir():
                self.create_subdirectory(entry.name).copy_from_local(entry, changes_since, overwrite)
        for entry in entries:
            if entry.is_file() and _local_mtime(entry) > changes_since:
                self.get_file(entry.name).copy_from_local(entry, overwrite=overwrite)
        return self

    def move_to(self, target: VirtualDirectory) -> VirtualDirectory:
        """Move this directory under ``target``; returns the new sub-directory."""

        if not target.exists():
            raise NotFoundError(f"Destination for move does not exist: {target.full_name}")
        if self.contains(target):
            raise InvalidArgumentError(f"Cannot move {self.full_name} into itself: {target.full_name}")
        destination = target.create_subdirectory(self.name)

        directories, files = self._children()
        for directory in directories:
            directory.move_to(destination)
        for file in files:
            file.move_to_directory(destination)
        self.delete()
        return destination

    def move_to_location(self, container: str, key: str = "") -> VirtualDirectory:
        return self.move_to(VirtualDirectory(self._store, container, key, waiter=self._waiter))

    def move_to_local(self, path: str | Path) -> Path:
        root = Path(path)
        if not root.is_dir():
            raise NotFoundError(f"Destination for move does not exist: {root}")

        directories, files = self._children()
        for directory in directories:
            child = local_child_path(root, directory.name)
            child.mkdir(exist_ok=True)
            directory.move_to_local(child)
        for file in files:
            file.move_to_local(local_child_path(root, file.name))
        self.delete()
        return root

    def move_from_local(self, path: str | Path, overwrite: bool = False) -> VirtualDirectory:
        source = Path(path)
        if not source.is_dir():
            raise NotFoundError(f"Source for move does not exist: {source}")

        entries = sorted(source.iterdir())
        for entry in entries:
            if entry.is_dir():
                self.create_subdirectory(entry.name).move_from_local(entry, overwrite)
        for entry in entries:
            if entry.is_file():
                self.get_file(entry.name).move_from_local(entry, overwrite=overwrite)
        source.rmdir()
        return self
