from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone

import pytest

from vfs_core.errors import (
    DirectoryNotEmptyError,
    InvalidArgumentError,
    NotFoundError,
    NotSupportedError,
)
from vfs_core.fs.base import MIN_TIMESTAMP, FileSystemType, SearchOption
from vfs_core.fs.directory import VirtualDirectory
from vfs_core.fs.file import VirtualFile
from vfs_core.testing.memory_store import InMemoryObjectStore, StoreOp


def _seed(store: InMemoryObjectStore, keys: list[str], container: str = "b") -> None:
    store.create_container(container)
    for key in keys:
        store.put_object(container, key, b"" if key.endswith("/") else key.encode())
    store.ops.clear()


def _names(items) -> list[str]:
    return [item.name for item in items]


def test_directory_handle_kinds(store, waiter) -> None:
    root = VirtualDirectory(store, waiter=waiter)
    container_root = VirtualDirectory(store, "b", waiter=waiter)
    sub = VirtualDirectory(store, "b", "dir/sub", waiter=waiter)

    assert root.is_root
    assert root.name == ""
    assert container_root.name == "b"
    assert container_root.full_name == "b:/"
    assert sub.key == "dir/sub/"
    assert sub.name == "sub"
    assert sub.full_name == "b:/dir/sub/"
    assert sub.type is FileSystemType.DIRECTORY
    assert sub.parent.key == "dir/"
    assert sub.parent.parent.key == ""
    assert container_root.parent.is_root
    assert VirtualDirectory(store, "b", "/", waiter=waiter).key == ""

    with pytest.raises(InvalidArgumentError):
        VirtualDirectory(store, "", "dir/")


def test_directory_exists_variants(store, waiter) -> None:
    assert VirtualDirectory(store, waiter=waiter).exists()
    assert VirtualDirectory(store, "b", "dir", waiter=waiter).exists_with_container_check() == (False, False)

    _seed(store, ["dir/sub/a.txt"])
    assert VirtualDirectory(store, "b", waiter=waiter).exists()
    assert VirtualDirectory(store, "b", "dir", waiter=waiter).exists()
    assert VirtualDirectory(store, "b", "dir/sub", waiter=waiter).exists()
    assert VirtualDirectory(store, "b", "other", waiter=waiter).exists_with_container_check() == (False, True)


def test_create_makes_container_and_marker(store, waiter, caplog) -> None:
    caplog.set_level(logging.INFO)
    directory = VirtualDirectory(store, "b", "dir/sub", waiter=waiter)

    directory.create()
    directory.create()

    assert store.keys("b") == ["dir/sub/"]
    assert [op.name for op in store.ops if op.name != "list_objects"] == ["create_container", "put_object"]
    messages = [r.getMessage() for r in caplog.records]
    assert any("vfs.directory.create" in m and "container_created=True" in m for m in messages)


def test_create_subdirectory_and_root_create_is_noop(store, waiter) -> None:
    VirtualDirectory(store, waiter=waiter).create()
    assert store.ops == []

    container_root = VirtualDirectory(store, "b", waiter=waiter)
    container_root.create()
    sub = container_root.create_subdirectory("logs")

    assert sub.key == "logs/"
    assert store.keys("b") == ["logs/"]


def test_is_empty_ignores_own_marker(store, waiter) -> None:
    _seed(store, ["dir/", "full/a.txt", "nested/inner/"])

    assert VirtualDirectory(store, "b", "dir", waiter=waiter).is_empty()
    assert not VirtualDirectory(store, "b", "full", waiter=waiter).is_empty()
    assert not VirtualDirectory(store, "b", "nested", waiter=waiter).is_empty()
    assert VirtualDirectory(store, "missing", "dir", waiter=waiter).is_empty()
    assert not VirtualDirectory(store, waiter=waiter).is_empty()


def test_enumeration_top_level_and_recursive(store, waiter) -> None:
    _seed(store, ["dir/", "dir/a.txt", "dir/b.csv", "dir/sub/", "dir/sub/c.txt", "dir/sub/deep/d.txt"])
    directory = VirtualDirectory(store, "b", "dir", waiter=waiter)

    assert _names(directory.get_files()) == ["a.txt", "b.csv"]
    assert _names(directory.get_directories()) == ["sub"]
    assert _names(directory.get_files("*.TXT", SearchOption.ALL_DIRECTORIES)) == ["a.txt", "c.txt", "d.txt"]
    assert _names(directory.get_directories("*", SearchOption.ALL_DIRECTORIES)) == ["sub", "deep"]

    infos = directory.get_file_system_infos()
    assert [(item.type, item.name) for item in infos] == [
        (FileSystemType.FILE, "a.txt"),
        (FileSystemType.FILE, "b.csv"),
        (FileSystemType.DIRECTORY, "sub"),
    ]
    assert _names(directory.get_files("?.csv")) == ["b.csv"]


def test_enumeration_follows_pagination(waiter) -> None:
    store = InMemoryObjectStore(page_size=2)
    _seed(store, [f"dir/f{i}.txt" for i in range(5)] + ["dir/x/", "dir/y/a.txt"])
    directory = VirtualDirectory(store, "b", "dir", waiter=waiter)

    assert _names(directory.get_files()) == [f"f{i}.txt" for i in range(5)]
    assert _names(directory.get_directories()) == ["x", "y"]


def test_root_lists_containers(store, waiter) -> None:
    _seed(store, [], container="alpha")
    _seed(store, ["a.txt"], container="beta")
    root = VirtualDirectory(store, waiter=waiter)

    assert _names(root.get_directories()) == ["alpha", "beta"]
    assert root.get_files() == []
    assert root.get_directory("alpha").full_name == "alpha:/"
    with pytest.raises(NotSupportedError):
        root.get_file("a.txt")
    with pytest.raises(NotSupportedError):
        root.delete()


def test_get_child_handles_validate_names(store, waiter) -> None:
    directory = VirtualDirectory(store, "b", "dir", waiter=waiter)

    assert directory.get_file("a.txt").key == "dir/a.txt"
    assert directory.get_directory("sub/").key == "dir/sub/"
    for bad in ["", "a/b", "..", "."]:
        with pytest.raises(InvalidArgumentError):
            directory.get_file(bad)
        with pytest.raises(InvalidArgumentError):
            directory.get_directory(bad)


def test_last_write_time(clocked_store, clock, waiter) -> None:
    _seed(clocked_store, ["dir/a.txt", "dir/sub/b.txt", "other.txt"])
    newest_in_dir = clock.current - timedelta(seconds=1)

    assert VirtualDirectory(clocked_store, "b", "dir", waiter=waiter).last_write_time() == newest_in_dir
    assert VirtualDirectory(clocked_store, "b", waiter=waiter).last_write_time() == clock.current
    assert VirtualDirectory(clocked_store, waiter=waiter).last_write_time() == clock.current
    assert VirtualDirectory(clocked_store, "missing", waiter=waiter).last_write_time() == MIN_TIMESTAMP


def test_non_recursive_delete_requires_empty_directory(store, waiter) -> None:
    _seed(store, ["dir/a.txt"])
    directory = VirtualDirectory(store, "b", "dir", waiter=waiter)

    with pytest.raises(DirectoryNotEmptyError):
        directory.delete()
    assert store.keys("b") == ["dir/a.txt"]


def test_delete_empty_directory_removes_marker_and_keeps_parent(store, waiter) -> None:
    _seed(store, ["parent/child/"])

    VirtualDirectory(store, "b", "parent/child", waiter=waiter).delete()

    assert store.keys("b") == ["parent/"]


def test_recursive_delete_batches_by_store_limit(waiter, caplog) -> None:
    caplog.set_level(logging.INFO)
    store = InMemoryObjectStore(page_size=3, max_delete_batch=2)
    keys = ["dir/", "dir/a", "dir/b", "dir/c", "dir/sub/d", "keep.txt"]
    _seed(store, keys)

    VirtualDirectory(store, "b", "dir", waiter=waiter).delete(recursive=True)

    assert store.keys("b") == ["keep.txt"]
    batches = [op.args[1] for op in store.ops if op.name == "delete_objects"]
    assert all(len(batch) <= 2 for batch in batches)
    assert sorted(key for batch in batches for key in batch) == sorted(keys[:-1])
    messages = [r.getMessage() for r in caplog.records]
    assert any("vfs.directory.delete" in m and "stage=contents" in m and "objects=5" in m for m in messages)


def test_deleting_container_root_deletes_container(store, waiter) -> None:
    _seed(store, ["a.txt", "dir/b.txt"])

    VirtualDirectory(store, "b", waiter=waiter).delete(recursive=True)

    assert not store.container_exists("b")
    assert store.ops[-1] == StoreOp("delete_container", ("b",))


def test_delete_missing_directory_is_noop(store, waiter) -> None:
    _seed(store, [])
    VirtualDirectory(store, "b", "nothing", waiter=waiter).delete(recursive=True)
    VirtualDirectory(store, "gone", waiter=waiter).delete()
    assert [op.name for op in store.ops if op.name != "list_objects"] == []


def test_copy_to_directory_tree(store, waiter) -> None:
    _seed(store, ["src/a.txt", "src/sub/b.txt", "dst/"])
    source = VirtualDirectory(store, "b", "src", waiter=waiter)

    result = source.copy_to(VirtualDirectory(store, "b", "dst", waiter=waiter))

    assert result.key == "dst/"
    assert store.get_object("b", "dst/a.txt").read() == b"src/a.txt"
    assert store.get_object("b", "dst/sub/b.txt").read() == b"src/sub/b.txt"
    assert "src/a.txt" in store.keys("b")


def test_copy_to_skips_unchanged_files(clocked_store, clock, waiter) -> None:
    _seed(clocked_store, ["src/old.txt"])
    cutoff = clock.current
    clocked_store.put_object("b", "src/new.txt", b"n")
    clocked_store.create_container("t")

    VirtualDirectory(clocked_store, "b", "src", waiter=waiter).copy_to_location("t", changes_since=cutoff)
    assert clocked_store.keys("t") == ["new.txt"]

    clocked_store.ops.clear()
    VirtualDirectory(clocked_store, "b", "src", waiter=waiter).copy_to_location("t", changes_since=clock.current)
    assert [op.name for op in clocked_store.ops if op.name != "list_objects"] == []


def test_copy_to_missing_target_raises(store, waiter) -> None:
    _seed(store, ["src/a.txt"])
    with pytest.raises(NotFoundError):
        VirtualDirectory(store, "b", "src", waiter=waiter).copy_to_location("b", "missing")


def test_move_to_nests_directory_under_target(store, waiter) -> None:
    _seed(store, ["src/a.txt", "src/sub/b.txt", "dst/"])

    moved = VirtualDirectory(store, "b", "src", waiter=waiter).move_to_location("b", "dst")

    assert moved.key == "dst/src/"
    assert store.keys("b") == ["dst/", "dst/src/", "dst/src/a.txt", "dst/src/sub/", "dst/src/sub/b.txt"]


def test_local_round_trip(store, waiter, tmp_path) -> None:
    _seed(store, ["src/a.txt", "src/sub/b.txt"])
    source = VirtualDirectory(store, "b", "src", waiter=waiter)
    local = tmp_path / "out"
    local.mkdir()

    source.copy_to_local(local)
    assert (local / "a.txt").read_bytes() == b"src/a.txt"
    assert (local / "sub" / "b.txt").read_bytes() == b"src/sub/b.txt"

    upload = VirtualDirectory(store, "b", "up", waiter=waiter)
    upload.create()
    upload.copy_from_local(local)
    assert store.get_object("b", "up/sub/b.txt").read() == b"src/sub/b.txt"

    with pytest.raises(NotFoundError):
        source.copy_to_local(tmp_path / "missing")


def test_copy_from_local_skips_files_older_than_threshold(store, waiter, tmp_path) -> None:
    _seed(store, ["up/"])
    (tmp_path / "old.txt").write_bytes(b"o")
    (tmp_path / "new.txt").write_bytes(b"n")
    old = datetime(2020, 1, 1, tzinfo=timezone.utc).timestamp()
    os.utime(tmp_path / "old.txt", (old, old))
    cutoff = datetime(2021, 1, 1, tzinfo=timezone.utc)

    VirtualDirectory(store, "b", "up", waiter=waiter).copy_from_local(tmp_path, changes_since=cutoff)

    assert store.keys("b") == ["up/", "up/new.txt"]


def test_local_moves(store, waiter, tmp_path) -> None:
    _seed(store, ["src/a.txt", "src/sub/b.txt"])
    local = tmp_path / "out"
    local.mkdir()

    VirtualDirectory(store, "b", "src", waiter=waiter).move_to_local(local)
    assert (local / "sub" / "b.txt").read_bytes() == b"src/sub/b.txt"
    assert store.keys("b") == []

    VirtualDirectory(store, "b", "back", waiter=waiter).move_from_local(local)
    assert not local.exists()
    assert VirtualFile(store, "b", "back/sub/b.txt").exists()
    assert VirtualFile(store, "b", "back/a.txt").exists()


def test_copy_or_move_into_own_subtree_is_rejected(store, waiter) -> None:
    _seed(store, ["d/", "d/a", "d/s/"])
    directory = VirtualDirectory(store, "b", "d", waiter=waiter)

    with pytest.raises(InvalidArgumentError):
        directory.move_to(VirtualDirectory(store, "b", "d/s", waiter=waiter))
    with pytest.raises(InvalidArgumentError):
        directory.move_to(directory)
    with pytest.raises(InvalidArgumentError):
        directory.copy_to_location("b", "d/s")
    with pytest.raises(InvalidArgumentError):
        VirtualDirectory(store, "b", waiter=waiter).move_to_location("b", "d")

    assert store.keys("b") == ["d/", "d/a", "d/s/"]
    assert [op.name for op in store.ops if op.name != "list_objects"] == []


def test_move_to_sibling_with_shared_prefix_is_allowed(store, waiter) -> None:
    _seed(store, ["d/a", "dd/"])

    moved = VirtualDirectory(store, "b", "d", waiter=waiter).move_to_location("b", "dd")

    assert moved.key == "dd/d/"
    assert store.keys("b") == ["dd/", "dd/d/", "dd/d/a"]


def test_copy_keeps_backslash_file_names(store, waiter) -> None:
    _seed(store, ["src/a%5Cb.txt", "dst/"])

    VirtualDirectory(store, "b", "src", waiter=waiter).copy_to_location("b", "dst")

    assert store.get_object("b", "dst/a%5Cb.txt").read() == b"src/a%5Cb.txt"
