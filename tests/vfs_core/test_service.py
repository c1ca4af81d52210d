from __future__ import annotations

import hashlib
import io
import logging
from unittest.mock import MagicMock

import pytest

from vfs_core.errors import (
    InvalidArgumentError,
    NotFoundError,
    PathEscapesRootError,
    SettingsError,
    StorageOperationFailed,
)
from vfs_core.fs.base import SearchOption
from vfs_core.service import StorageService
from vfs_core.settings import StorageContext, StorageSettings
from vfs_core.store.stores import Boto3ObjectStore


def _service(store, waiter, **context) -> StorageService:
    store.create_container("b")
    store.ops.clear()
    return StorageService(StorageContext(bucket_name="b", **context), store, waiter=waiter)


def test_write_find_read_delete_round_trip(store, waiter) -> None:
    service = _service(store, waiter)

    assert service.write_text_file("dir/a.txt", "hello") is True
    assert service.find_files("dir") == ["a.txt"]
    assert service.read_text_file("dir/a.txt") == "hello"

    service.delete_file("dir/a.txt")
    assert service.find_files("dir") == []
    assert service.directory_exists("dir") is True


def test_paths_resolve_against_root_path(store, waiter) -> None:
    service = _service(store, waiter, root_path="/data")

    service.write_text_file("/data/reports/q1.txt", "x")
    assert store.keys("b") == ["reports/q1.txt"]
    assert service.file_exists("reports\\q1.txt")
    assert service.root_path == "/data"
    assert service.storage_id == "/data"


def test_paths_outside_root_fail_before_touching_the_store() -> None:
    store = MagicMock()
    service = StorageService(StorageContext(bucket_name="b", root_path="/data"), store)

    with pytest.raises(StorageOperationFailed) as excinfo:
        service.read_text_file("/etc/passwd")
    assert isinstance(excinfo.value.cause, PathEscapesRootError)
    with pytest.raises(StorageOperationFailed):
        service.write_text_file("../outside.txt", "x")
    assert store.method_calls == []


def test_errors_are_wrapped_with_cause(store, waiter) -> None:
    service = _service(store, waiter)

    with pytest.raises(StorageOperationFailed) as excinfo:
        service.read_binary_file("missing.txt")
    assert isinstance(excinfo.value.cause, NotFoundError)
    assert "missing.txt" in str(excinfo.value)
    assert "NotFoundError" in str(excinfo.value)


def test_create_and_delete_directory(store, waiter, caplog) -> None:
    caplog.set_level(logging.INFO)
    service = _service(store, waiter)

    assert service.create_directory("logs/2024") == "b:/logs/2024/"
    assert service.directory_exists("logs/2024")

    service.write_text_file("logs/2024/a.txt", "x")
    service.delete_directory("logs")
    assert store.keys("b") == []
    assert service.directory_exists("logs") is False
    messages = [r.getMessage() for r in caplog.records]
    assert any("vfs.service.create_directory" in m and "target=b:/logs/2024/" in m for m in messages)


def test_create_directory_makes_missing_container(store, waiter) -> None:
    service = StorageService(StorageContext(bucket_name="fresh"), store, waiter=waiter)

    assert service.create_directory("dir") == "fresh:/dir/"
    assert store.keys("fresh") == ["dir/"]


def test_silent_directory_operations_log_instead_of_raising(waiter, caplog) -> None:
    caplog.set_level(logging.INFO)
    store = MagicMock()
    store.list_objects.side_effect = RuntimeError("backend down")
    service = StorageService(StorageContext(bucket_name="b"), store, waiter=waiter)

    assert service.create_directory("dir", silent=True) == ""
    assert service.directory_exists("dir", silent=True) is False
    service.delete_directory("dir", silent=True)
    with pytest.raises(StorageOperationFailed):
        service.directory_exists("dir")

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("vfs.service.create_directory" in m and "backend down" in m for m in warnings)


def test_non_recursive_delete_of_non_empty_directory_fails(store, waiter) -> None:
    service = _service(store, waiter)
    service.write_text_file("dir/a.txt", "x")

    with pytest.raises(StorageOperationFailed):
        service.delete_directory("dir", recursive=False)
    assert store.keys("b") == ["dir/a.txt"]


def test_empty_directory_keeps_the_directory(store, waiter) -> None:
    service = _service(store, waiter)
    service.create_directory("dir")
    service.write_text_file("dir/a.txt", "x")
    service.write_text_file("dir/sub/b.txt", "y")

    service.empty_directory("dir")

    assert store.keys("b") == ["dir/"]
    assert service.directory_exists("dir")


def test_find_files_with_pattern_and_scope(store, waiter) -> None:
    service = _service(store, waiter)
    for path in ["dir/a.txt", "dir/b.csv", "dir/sub/c.txt"]:
        service.write_text_file(path, "x")

    assert service.find_files("dir", "*.txt") == ["a.txt", "c.txt"]
    assert service.find_files("dir", "*.txt", SearchOption.TOP_DIRECTORY_ONLY) == ["a.txt"]
    assert sorted(service.find_files("")) == ["a.txt", "b.csv", "c.txt"]


def test_delete_file_can_drop_empty_parent(store, waiter) -> None:
    service = _service(store, waiter)
    service.write_text_file("dir/a.txt", "x")
    service.write_text_file("keep/b.txt", "y")
    service.write_text_file("keep/c.txt", "z")

    service.delete_files(["dir/a.txt", "keep/b.txt"], delete_directory=True)

    assert store.keys("b") == ["keep/c.txt"]
    assert service.directory_exists("dir") is False


def test_file_hash(store, waiter) -> None:
    service = _service(store, waiter)
    service.write_binary_file("blob.bin", b"payload")

    assert service.file_hash("blob.bin") == hashlib.sha256(b"payload").hexdigest()
    assert service.file_hash("blob.bin", algorithm="md5") == hashlib.md5(b"payload").hexdigest()
    with pytest.raises(StorageOperationFailed):
        service.file_hash("missing.bin")


def test_copy_and_move_go_to_target_bucket(store, waiter, caplog) -> None:
    caplog.set_level(logging.INFO)
    service = _service(store, waiter, target_bucket_name="archive")
    service.write_text_file("in/a.txt", "a")
    service.write_text_file("in/b.txt", "b")

    assert service.copy_file("in/a.txt", "out/a.txt") is True
    assert service.move_file("in/b.txt", "out/b.txt") is True

    assert store.keys("archive") == ["out/", "out/a.txt", "out/b.txt"]
    assert store.keys("b") == ["in/a.txt"]
    messages = [r.getMessage() for r in caplog.records]
    assert any("vfs.service.copy_file" in m and "container=archive" in m for m in messages)
    assert any("vfs.service.move_file" in m for m in messages)


def test_copy_respects_overwrite_and_missing_source(store, waiter) -> None:
    service = _service(store, waiter)
    service.write_text_file("a.txt", "new")
    service.write_text_file("b.txt", "old")

    with pytest.raises(StorageOperationFailed):
        service.copy_file("a.txt", "b.txt", overwrite=False)
    assert service.read_text_file("b.txt") == "old"

    with pytest.raises(StorageOperationFailed) as excinfo:
        service.move_file("missing.txt", "c.txt")
    assert isinstance(excinfo.value.cause, NotFoundError)


def test_move_or_copy_onto_itself_fails_and_keeps_the_file(store, waiter) -> None:
    service = _service(store, waiter)
    service.write_text_file("dir/a.txt", "hello")

    with pytest.raises(StorageOperationFailed) as excinfo:
        service.move_file("dir/a.txt", "dir/a.txt")
    assert isinstance(excinfo.value.cause, InvalidArgumentError)
    with pytest.raises(StorageOperationFailed):
        service.copy_file("dir/a.txt", "/dir/a.txt")

    assert service.file_exists("dir/a.txt")
    assert service.read_text_file("dir/a.txt") == "hello"


def test_binary_io_with_streams(store, waiter) -> None:
    service = _service(store, waiter)

    assert service.write_binary_file("data.bin", io.BytesIO(b"\x00\x01\x02")) is True
    output = io.BytesIO()
    service.read_binary_file_to("data.bin", output)
    assert output.getvalue() == b"\x00\x01\x02"

    with pytest.raises(StorageOperationFailed):
        service.read_binary_file_to("data.bin", io.BufferedReader(io.BytesIO(b"")))


def test_write_replaces_existing_content(store, waiter) -> None:
    service = _service(store, waiter)
    service.write_text_file("a.txt", "a much longer first version")
    service.write_text_file("a.txt", "short", encoding="utf-16")

    assert service.read_text_file("a.txt", encoding="utf-16") == "short"


def test_from_settings_builds_boto3_store() -> None:
    client = MagicMock()
    settings = StorageSettings(bucket="b", endpoint_url="http://minio:9000", access_key="ak", secret_key="sk")

    service = StorageService.from_settings(settings, client=client)

    assert isinstance(service.store, Boto3ObjectStore)
    assert service.store.client is client
    assert service.context.bucket_name == "b"
    assert service.waiter.required_successes == 10

    with pytest.raises(SettingsError):
        StorageService.from_settings(StorageSettings(), client=client)
