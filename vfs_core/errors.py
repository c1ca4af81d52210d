from __future__ import annotations


class VfsCoreError(Exception):
    """Base error for vfs_core."""


class NotFoundError(VfsCoreError):
    """Raised when a requested object does not exist."""


class ContainerNotFoundError(NotFoundError):
    """Raised when the container (bucket) itself does not exist."""


class AlreadyExistsError(VfsCoreError):
    """Raised when a destination exists and overwriting was not requested."""


class InvalidArgumentError(VfsCoreError, ValueError):
    """Raised for malformed keys/paths, e.g. a directory key where a file is required."""


class OutOfRangeError(InvalidArgumentError):
    """Raised when a stream position would fall below its seek floor."""


class PathEscapesRootError(InvalidArgumentError):
    """Raised when a path resolves outside the directory it must stay in."""


class NotSupportedError(VfsCoreError):
    """Raised for operations that cannot apply to the given handle (e.g. files at the root)."""


class DirectoryNotEmptyError(VfsCoreError):
    """Raised when a non-recursive delete targets a directory that still has children."""


class BackendError(VfsCoreError):
    """Raised when the object store rejects a request."""

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class BackendUnavailableError(BackendError):
    """Raised when the object store cannot be reached."""


class SettingsError(VfsCoreError, ValueError):
    """Raised when storage settings are missing or malformed."""


class StorageOperationFailed(VfsCoreError):
    """Uniform error raised by the storage service facade.

    Carries a human-readable message and the original exception as ``cause``.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} ({self.cause.__class__.__name__}: {self.cause})"
