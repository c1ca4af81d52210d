from __future__ import annotations

import enum
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timezone

from vfs_core.store.object_store import ListPage, ObjectStore

MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


class SearchOption(enum.Enum):
    TOP_DIRECTORY_ONLY = "top_directory_only"
    ALL_DIRECTORIES = "all_directories"


class FileSystemType(enum.Enum):
    FILE = "file"
    DIRECTORY = "directory"


class FileMode(enum.Enum):
    APPEND = "append"
    CREATE = "create"
    CREATE_NEW = "create_new"
    OPEN = "open"
    OPEN_OR_CREATE = "open_or_create"
    TRUNCATE = "truncate"


class FileAccess(enum.Flag):
    READ = 1
    WRITE = 2
    READ_WRITE = READ | WRITE


@dataclass(frozen=True)
class FileMetadata:
    size: int = 0
    last_modified: datetime = MIN_TIMESTAMP


def as_utc(value: datetime | None) -> datetime:
    if value is None:
        return MIN_TIMESTAMP
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def iter_pages(
    store: ObjectStore,
    container: str,
    *,
    prefix: str = "",
    delimiter: str | None = None,
) -> Iterator[ListPage]:
    """Yield listing pages until the store reports the listing is complete."""

    marker: str | None = None
    while True:
        page = store.list_objects(container, prefix=prefix, delimiter=delimiter, marker=marker)
        yield page
        if not page.is_truncated or not page.next_marker:
            return
        marker = page.next_marker
