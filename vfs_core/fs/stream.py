from __future__ import annotations

import io
import logging
import shutil
from typing import TYPE_CHECKING

from vfs_core.errors import (
    AlreadyExistsError,
    ContainerNotFoundError,
    InvalidArgumentError,
    NotFoundError,
    OutOfRangeError,
)
from vfs_core.fs.base import FileAccess, FileMode
from vfs_core.observability import handle_log_fields, log_event

if TYPE_CHECKING:
    from vfs_core.fs.file import VirtualFile

logger = logging.getLogger(__name__)

# Modes that discard existing content; the empty buffer must reach the store even
# when nothing is written.
_REPLACING_MODES = {FileMode.CREATE, FileMode.CREATE_NEW, FileMode.TRUNCATE}


class ObjectStream(io.RawIOBase):
    """Seekable stream over one object, buffered entirely in memory.

    Existing content is downloaded when the stream opens (for the modes that keep it)
    and the whole buffer is uploaded on ``flush``/``close``. In ``APPEND`` mode the
    original end of the object is a floor: seeking or truncating below it is rejected.
    """

    def __init__(
        self,
        file: VirtualFile,
        mode: FileMode = FileMode.OPEN,
        access: FileAccess = FileAccess.READ,
    ) -> None:
        super().__init__()
        self._file = file
        self._mode = mode
        self._access = access
        self._buffer = io.BytesIO()
        self._write_count = 0
        self._flushed_count = 0
        self._floor = 0
        self._create_container = False
        try:
            self._open()
        except BaseException:
            self._buffer.close()
            raise

    def _require_write_access(self) -> None:
        if FileAccess.WRITE not in self._access:
            raise InvalidArgumentError(
                f"File mode {self._mode.name} requires write access: {self._file.full_name}"
            )

    def _open(self) -> None:
        exists, container_exists = self._file.exists_with_container_check()
        self._create_container = not container_exists
        mode = self._mode

        if mode is FileMode.APPEND:
            self._require_write_access()
            if exists:
                self._download()
            self._floor = self._buffer.seek(0, io.SEEK_END)
        elif mode is FileMode.CREATE:
            self._require_write_access()
        elif mode is FileMode.CREATE_NEW:
            if exists:
                raise AlreadyExistsError(f"File already exists: {self._file.full_name}")
            self._require_write_access()
        elif mode is FileMode.OPEN:
            if not exists:
                raise NotFoundError(f"File not found: {self._file.full_name}")
            self._download()
        elif mode is FileMode.OPEN_OR_CREATE:
            if exists:
                self._require_write_access()
                self._download()
        elif mode is FileMode.TRUNCATE:
            if not exists:
                raise NotFoundError(f"File not found: {self._file.full_name}")
            self._require_write_access()
        else:
            raise InvalidArgumentError(f"Unsupported file mode: {mode!r}")

        if mode in _REPLACING_MODES:
            self._write_count += 1

    def _download(self) -> None:
        body = self._file.store.get_object(self._file.container, self._file.object_key)
        try:
            shutil.copyfileobj(body, self._buffer)
        finally:
            body.close()
        self._buffer.seek(0)

    @property
    def file(self) -> VirtualFile:
        return self._file

    @property
    def mode(self) -> FileMode:
        return self._mode

    @property
    def access(self) -> FileAccess:
        return self._access

    @property
    def name(self) -> str:
        return self._file.full_name

    def readable(self) -> bool:
        return FileAccess.READ in self._access

    def writable(self) -> bool:
        return FileAccess.WRITE in self._access

    def seekable(self) -> bool:
        return True

    def _check_read(self) -> None:
        self._checkClosed()
        if not self.readable():
            raise io.UnsupportedOperation("stream was not opened for reading")

    def _check_write(self) -> None:
        self._checkClosed()
        if not self.writable():
            raise io.UnsupportedOperation("stream was not opened for writing")

    def readinto(self, b) -> int:
        self._check_read()
        return self._buffer.readinto(b)

    def read(self, size: int | None = -1) -> bytes:
        self._check_read()
        return self._buffer.read(size)

    def readall(self) -> bytes:
        return self.read(-1)

    def write(self, b) -> int:
        self._check_write()
        self._write_count += 1
        return self._buffer.write(b)

    def tell(self) -> int:
        self._checkClosed()
        return self._buffer.tell()

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._checkClosed()
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self._buffer.tell() + offset
        elif whence == io.SEEK_END:
            target = len(self._buffer.getvalue()) + offset
        else:
            raise ValueError(f"invalid whence ({whence!r})")
        if target < self._floor:
            raise OutOfRangeError(
                f"Cannot seek to {target}, before the start of appended data at {self._floor}"
            )
        return self._buffer.seek(target)

    def truncate(self, size: int | None = None) -> int:
        self._check_write()
        target = self._buffer.tell() if size is None else size
        if target < self._floor:
            raise OutOfRangeError(
                f"Cannot truncate to {target}, before the start of appended data at {self._floor}"
            )
        self._write_count += 1
        return self._buffer.truncate(target)

    def flush(self, to_backend: bool = True) -> None:
        super().flush()
        if not to_backend or not self.writable() or self._write_count == self._flushed_count:
            return

        if self._create_container:
            self._file.directory.container_root.create()
            self._create_container = False

        try:
            self._upload()
        except ContainerNotFoundError:
            self._file.directory.create()
            self._upload()
        self._flushed_count = self._write_count

    def _upload(self) -> None:
        content = self._buffer.getvalue()
        self._file.store.put_object(self._file.container, self._file.object_key, content)
        log_event(
            logger,
            "vfs.stream.flush",
            **handle_log_fields(self._file.container, self._file.key),
            size=len(content),
        )

    def close(self) -> None:
        if self.closed:
            return
        try:
            super().close()
        finally:
            self._buffer.close()

    def __repr__(self) -> str:
        return f"ObjectStream(name={self.name!r}, mode={self._mode.name}, access={self._access.name})"
