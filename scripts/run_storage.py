from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from vfs_core.errors import SettingsError, StorageOperationFailed
from vfs_core.fs.base import SearchOption
from vfs_core.service import StorageService
from vfs_core.settings import (
    StorageContext,
    StorageSettings,
    build_object_store,
    resolve_storage_settings,
)
from vfs_core.store.object_store import ObjectStore
from vfs_core.testing.memory_store import InMemoryObjectStore

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Work with files in an object store as a filesystem.")
    parser.add_argument("--store", choices=["s3", "memory"], default="s3")

    parser.add_argument("--bucket", type=str, default=None)
    parser.add_argument("--target-bucket", type=str, default=None)
    parser.add_argument("--root-path", type=str, default=None)
    parser.add_argument("--endpoint-url", type=str, default=None)
    parser.add_argument("--access-key", type=str, default=None)
    parser.add_argument("--secret-key", type=str, default=None)
    parser.add_argument("--region", type=str, default=None)
    parser.add_argument("--url-style", type=str, default=None)
    parser.add_argument("--use-ssl", action="store_true", default=None)

    commands = parser.add_subparsers(dest="command", required=True)

    mkdir = commands.add_parser("mkdir", help="create a directory")
    mkdir.add_argument("path")

    rmdir = commands.add_parser("rmdir", help="delete a directory")
    rmdir.add_argument("path")
    rmdir.add_argument("--no-recursive", dest="recursive", action="store_false")

    rm = commands.add_parser("rm", help="delete files")
    rm.add_argument("paths", nargs="+")
    rm.add_argument("--delete-directory", action="store_true", help="drop parents left empty")

    exists = commands.add_parser("exists", help="check whether a file (or directory) exists")
    exists.add_argument("path")
    exists.add_argument("--dir", dest="is_dir", action="store_true")

    find = commands.add_parser("find", help="list file names under a directory")
    find.add_argument("path", nargs="?", default="")
    find.add_argument("--pattern", type=str, default="*")
    find.add_argument("--top-only", action="store_true")

    cat = commands.add_parser("cat", help="print a text file")
    cat.add_argument("path")
    cat.add_argument("--encoding", type=str, default="utf-8")

    put = commands.add_parser("put", help="write a file from text or a local file")
    put.add_argument("path")
    source = put.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", type=str)
    source.add_argument("--file", dest="local_file", type=Path)

    cp = commands.add_parser("cp", help="copy a file into the target bucket")
    cp.add_argument("source")
    cp.add_argument("target")
    cp.add_argument("--no-overwrite", dest="overwrite", action="store_false")

    mv = commands.add_parser("mv", help="move a file into the target bucket")
    mv.add_argument("source")
    mv.add_argument("target")
    mv.add_argument("--no-overwrite", dest="overwrite", action="store_false")

    digest = commands.add_parser("hash", help="print the digest of a file")
    digest.add_argument("path")
    digest.add_argument("--algorithm", type=str, default="sha256")
    return parser


def _settings_from_args(args: argparse.Namespace) -> StorageSettings:
    overrides = {
        "bucket": args.bucket,
        "target_bucket": args.target_bucket,
        "root_path": args.root_path,
        "endpoint_url": args.endpoint_url,
        "access_key": args.access_key,
        "secret_key": args.secret_key,
        "region": args.region,
        "url_style": args.url_style,
        "use_ssl": args.use_ssl,
    }
    settings = replace(resolve_storage_settings(), **{k: v for k, v in overrides.items() if v is not None})
    if args.store == "memory":
        # Nothing to wait for in a single-process store.
        settings = replace(
            settings,
            consistency_required_successes=1,
            consistency_poll_interval=0.0,
            consistency_max_wait=0.0,
        )
    return settings


def _build_store(args: argparse.Namespace, settings: StorageSettings) -> ObjectStore:
    if args.store == "memory":
        return InMemoryObjectStore()
    if not settings.endpoint_url:
        raise SettingsError("--endpoint-url (or S3_ENDPOINT_URL) is required for --store=s3")
    if not settings.access_key or not settings.secret_key:
        raise SettingsError("--access-key/--secret-key are required for --store=s3")
    return build_object_store(settings)


def _run(service: StorageService, args: argparse.Namespace) -> int:
    command = args.command
    if command == "mkdir":
        print(service.create_directory(args.path))
    elif command == "rmdir":
        service.delete_directory(args.path, recursive=args.recursive)
    elif command == "rm":
        service.delete_files(args.paths, delete_directory=args.delete_directory)
    elif command == "exists":
        found = service.directory_exists(args.path) if args.is_dir else service.file_exists(args.path)
        print("true" if found else "false")
        return 0 if found else 1
    elif command == "find":
        option = SearchOption.TOP_DIRECTORY_ONLY if args.top_only else SearchOption.ALL_DIRECTORIES
        for name in service.find_files(args.path, args.pattern, option):
            print(name)
    elif command == "cat":
        sys.stdout.write(service.read_text_file(args.path, encoding=args.encoding))
    elif command == "put":
        if args.local_file is not None:
            with args.local_file.open("rb") as handle:
                service.write_binary_file(args.path, handle)
        else:
            service.write_text_file(args.path, args.text)
    elif command == "cp":
        service.copy_file(args.source, args.target, overwrite=args.overwrite)
    elif command == "mv":
        service.move_file(args.source, args.target, overwrite=args.overwrite)
    elif command == "hash":
        print(service.file_hash(args.path, algorithm=args.algorithm))
    return 0


def main(argv: list[str] | None = None, *, store: ObjectStore | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = build_parser().parse_args(argv)

    try:
        settings = _settings_from_args(args)
        context = StorageContext.from_settings(settings)
        service = StorageService(context, store if store is not None else _build_store(args, settings))
    except SettingsError as exc:
        logger.error("Invalid storage settings: %s", exc)
        return 2

    try:
        return _run(service, args)
    except StorageOperationFailed as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
