from __future__ import annotations

import posixpath
import re
from pathlib import Path, PurePath

from vfs_core.errors import InvalidArgumentError, PathEscapesRootError

_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:/")


def ensure_within(path: str | Path, root: str | Path, *, strict: bool = False) -> Path:
    """Resolve ``path`` and require it to sit under ``root``.

    With ``strict=True`` the path must be a proper descendant (``root`` itself is rejected).
    """

    resolved = Path(path).resolve()
    root_resolved = Path(root).resolve()
    try:
        resolved.relative_to(root_resolved)
    except ValueError as exc:
        raise PathEscapesRootError(
            f"The path {path} is not allowed outside of the target directory {root}."
        ) from exc
    if strict and resolved == root_resolved:
        raise PathEscapesRootError(f"The path {path} must be inside {root}, not the directory itself.")
    return resolved


def local_child_path(directory: str | Path, name: str) -> Path:
    """Build ``directory / name`` and reject names that leave ``directory``."""

    child = Path(directory) / name
    ensure_within(child, directory, strict=True)
    return child


def _to_posix(value: str | PurePath) -> str:
    return str(value).replace("\\", "/")


def is_rooted(path: str | PurePath) -> bool:
    text = _to_posix(path)
    return text.startswith("/") or bool(_DRIVE_PATTERN.match(text))


def _normalize(text: str) -> str:
    normalized = posixpath.normpath(text)
    # POSIX keeps a leading "//"; there is no such thing in a workspace.
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def to_workspace_key(path: str | PurePath, root_path: str | PurePath = "/") -> str:
    """Convert a caller path into a workspace-relative, ``/``-separated key.

    Rooted paths must resolve under ``root_path`` and are made relative to it.
    Relative paths must not climb above the workspace. A trailing separator is
    preserved so directory references stay distinguishable from files.
    """

    text = _to_posix(path).strip()
    if not text:
        raise InvalidArgumentError("path is required")
    trailing = text.endswith("/")

    if is_rooted(text):
        root = _normalize(_to_posix(root_path) or "/")
        normalized = _normalize(text)
        if root != "/" and normalized != root and not normalized.startswith(root.rstrip("/") + "/"):
            raise PathEscapesRootError(f'The folder "{path}" is not under the root path "{root_path}".')
        relative = posixpath.relpath(normalized, root)
    else:
        relative = _normalize(text)

    if relative == ".." or relative.startswith("../"):
        raise PathEscapesRootError(f'The folder "{path}" is not under the root path "{root_path}".')
    if relative == ".":
        return ""
    return f"{relative}/" if trailing else relative
