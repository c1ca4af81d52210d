"""Mapping between filesystem-style paths and object keys.

Keys use ``/`` as the separator. Paths may use any single-character separator
(``/`` by default, ``\\`` for Windows-style paths). Within each path segment,
characters that are unsafe in object keys are percent-encoded, and ``%`` itself is
always encoded, so :func:`decode_key` is an exact inverse of :func:`encode_key`.
"""

from __future__ import annotations

from urllib.parse import unquote

from vfs_core.errors import InvalidArgumentError

SEPARATOR = "/"

# Characters object stores recommend avoiding in keys, plus the escape character and
# the key separator (a separator can only appear inside a segment when the local
# separator is something else).
_UNSAFE_CHARACTERS = frozenset('%/\\{}^[]`"<>~#|')


def _is_unsafe(char: str) -> bool:
    code = ord(char)
    return char in _UNSAFE_CHARACTERS or code < 0x20 or code == 0x7F


def _quote_segment(segment: str) -> str:
    return "".join(f"%{ord(c):02X}" if _is_unsafe(c) else c for c in segment)


def encode_key(path: str, separator: str = SEPARATOR) -> str:
    """Convert a filesystem-style path into an object key."""

    if len(separator) != 1:
        raise InvalidArgumentError("separator must be a single character")
    return SEPARATOR.join(_quote_segment(segment) for segment in path.split(separator))


def decode_key(key: str, separator: str = SEPARATOR) -> str:
    """Convert an object key back into the filesystem-style path it was encoded from."""

    if len(separator) != 1:
        raise InvalidArgumentError("separator must be a single character")
    return separator.join(unquote(segment) for segment in key.split(SEPARATOR))


def normalize_directory_key(key: str | None) -> str:
    """Directory keys are empty (container root) or end with the separator."""

    value = key or ""
    if value == SEPARATOR:
        return ""
    if value and not value.endswith(SEPARATOR):
        value += SEPARATOR
    return value


def is_directory_key(key: str) -> bool:
    return not key or key.endswith(SEPARATOR)


def leaf_name(key: str) -> str:
    """Last segment of a file or directory key (``a/b/`` -> ``b``, ``a/c.txt`` -> ``c.txt``)."""

    trimmed = key.rstrip(SEPARATOR)
    return trimmed.rsplit(SEPARATOR, 1)[-1]


def parent_key(key: str) -> str:
    """Directory key that contains ``key``; empty for top-level entries."""

    trimmed = key.rstrip(SEPARATOR)
    index = trimmed.rfind(SEPARATOR)
    if index < 0:
        return ""
    return trimmed[: index + 1]


def validate_child_name(name: str, *, allow_trailing_separator: bool = False) -> str:
    """Return ``name`` if it is a single unqualified path segment."""

    value = name or ""
    if allow_trailing_separator and value.endswith(SEPARATOR):
        value = value[: -len(SEPARATOR)]
    if not value:
        raise InvalidArgumentError("child name is required")
    if SEPARATOR in value:
        raise InvalidArgumentError(f"child name must not contain a separator: {name}")
    if value in {".", ".."}:
        raise InvalidArgumentError(f"child name must not traverse directories: {name}")
    return value


def join_key(prefix: str, name: str) -> str:
    """Concatenate a directory key and a child name."""

    return f"{normalize_directory_key(prefix)}{name}"
