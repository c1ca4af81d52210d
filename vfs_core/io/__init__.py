"""Pure helpers: key codec, wildcard matching and path containment (no backend I/O)."""

from vfs_core.io.keys import (
    SEPARATOR,
    decode_key,
    encode_key,
    is_directory_key,
    join_key,
    leaf_name,
    normalize_directory_key,
    parent_key,
    validate_child_name,
)
from vfs_core.io.paths import ensure_within, is_rooted, local_child_path, to_workspace_key
from vfs_core.io.patterns import matches_wildcard, wildcard_to_regex

__all__ = [
    "SEPARATOR",
    "decode_key",
    "encode_key",
    "ensure_within",
    "is_directory_key",
    "is_rooted",
    "join_key",
    "leaf_name",
    "local_child_path",
    "matches_wildcard",
    "normalize_directory_key",
    "parent_key",
    "to_workspace_key",
    "validate_child_name",
    "wildcard_to_regex",
]
