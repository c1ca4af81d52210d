from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, BinaryIO

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from vfs_core.errors import (
    BackendError,
    BackendUnavailableError,
    ContainerNotFoundError,
    InvalidArgumentError,
    NotFoundError,
)
from vfs_core.store.object_store import (
    DEFAULT_MAX_DELETE_BATCH,
    ContainerInfo,
    ListPage,
    ObjectInfo,
    ObjectStore,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
_NO_CONTAINER_CODES = {"NoSuchBucket"}


def _error_code(exc: Exception) -> str:
    response = getattr(exc, "response", None) or {}
    error = response.get("Error") or {}
    return str(error.get("Code") or "")


@contextmanager
def _translate_errors(container: str, key: str | None = None) -> Iterator[None]:
    """Convert botocore/boto3 exceptions into vfs_core backend errors."""

    try:
        yield
    except ClientError as exc:
        code = _error_code(exc)
        if code in _NO_CONTAINER_CODES:
            raise ContainerNotFoundError(f"Container not found: {container}") from exc
        if code in _NOT_FOUND_CODES:
            raise NotFoundError(f"Object not found: s3://{container}/{key or ''}") from exc
        raise BackendError(f"S3 request failed for s3://{container}/{key or ''}: {exc}", code=code or None) from exc
    except (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError) as exc:
        raise BackendUnavailableError(f"S3 endpoint unavailable: {exc}") from exc
    except S3UploadFailedError as exc:
        if "NoSuchBucket" in str(exc):
            raise ContainerNotFoundError(f"Container not found: {container}") from exc
        raise BackendError(f"S3 upload failed for s3://{container}/{key or ''}: {exc}") from exc
    except BotoCoreError as exc:
        raise BackendError(f"S3 client error: {exc}") from exc


def _is_seekable(body: Any) -> bool:
    seekable = getattr(body, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except ValueError:
        return False


class Boto3ObjectStore(ObjectStore):
    """S3/MinIO adapter using boto3."""

    def __init__(
        self,
        *,
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
        region: str = "us-east-1",
        use_ssl: bool | None = None,
        url_style: str = "path",
        session_token: str | None = None,
        client_kwargs: dict[str, Any] | None = None,
        client: Any | None = None,
        max_delete_batch: int = DEFAULT_MAX_DELETE_BATCH,
    ) -> None:
        self.region = region
        self.max_delete_batch = max_delete_batch
        if client is not None:
            self._client = client
            return

        if use_ssl is None:
            use_ssl = bool(endpoint_url and endpoint_url.startswith("https://"))

        config = Config(s3={"addressing_style": url_style})
        kwargs: dict[str, Any] = dict(client_kwargs or {})
        kwargs.update(
            dict(
                service_name="s3",
                endpoint_url=endpoint_url,
                region_name=region,
                use_ssl=use_ssl,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                aws_session_token=session_token,
                config=config,
            )
        )
        self._client = boto3.client(**kwargs)

    @property
    def client(self) -> Any:
        return self._client

    def head_object(self, container: str, key: str) -> ObjectInfo:
        try:
            with _translate_errors(container, key):
                response = self._client.head_object(Bucket=container, Key=key)
        except ContainerNotFoundError:
            raise
        except NotFoundError as exc:
            # HEAD responses carry no error body, so a missing bucket looks like a missing key.
            if not self.container_exists(container):
                raise ContainerNotFoundError(f"Container not found: {container}") from exc
            raise
        return ObjectInfo(
            key=key,
            size=int(response.get("ContentLength") or 0),
            last_modified=response.get("LastModified"),
            etag=response.get("ETag"),
        )

    def get_object(self, container: str, key: str) -> BinaryIO:
        with _translate_errors(container, key):
            response = self._client.get_object(Bucket=container, Key=key)
        return response["Body"]

    def put_object(self, container: str, key: str, body: bytes | BinaryIO) -> None:
        with _translate_errors(container, key):
            if isinstance(body, (bytes, bytearray, memoryview)):
                self._client.put_object(Bucket=container, Key=key, Body=bytes(body))
            elif _is_seekable(body):
                self._client.put_object(Bucket=container, Key=key, Body=body)
            else:
                self._client.upload_fileobj(body, container, key)

    def delete_object(self, container: str, key: str) -> None:
        with _translate_errors(container, key):
            self._client.delete_object(Bucket=container, Key=key)

    def delete_objects(self, container: str, keys: list[str]) -> None:
        if not keys:
            return
        if len(keys) > self.max_delete_batch:
            raise InvalidArgumentError(
                f"delete_objects accepts at most {self.max_delete_batch} keys, got {len(keys)}"
            )
        with _translate_errors(container):
            response = self._client.delete_objects(
                Bucket=container,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": True},
            )
        errors = response.get("Errors") or []
        if errors:
            first = errors[0]
            raise BackendError(
                f"Failed to delete {len(errors)} object(s) from {container}: "
                f"{first.get('Key')} ({first.get('Code')})",
                code=first.get("Code"),
            )

    def list_objects(
        self,
        container: str,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        marker: str | None = None,
        max_keys: int | None = None,
    ) -> ListPage:
        kwargs: dict[str, Any] = {"Bucket": container, "Prefix": prefix}
        if delimiter:
            kwargs["Delimiter"] = delimiter
        if marker:
            kwargs["Marker"] = marker
        if max_keys:
            kwargs["MaxKeys"] = max_keys

        with _translate_errors(container, prefix):
            response = self._client.list_objects(**kwargs)

        objects = [
            ObjectInfo(
                key=obj["Key"],
                size=int(obj.get("Size") or 0),
                last_modified=obj.get("LastModified"),
                etag=obj.get("ETag"),
            )
            for obj in response.get("Contents", []) or []
            if obj.get("Key")
        ]
        prefixes = [
            item["Prefix"] for item in response.get("CommonPrefixes", []) or [] if item.get("Prefix")
        ]
        truncated = bool(response.get("IsTruncated"))
        next_marker = response.get("NextMarker")
        if truncated and not next_marker:
            # NextMarker is only returned for delimited listings.
            candidates = [obj.key for obj in objects] + prefixes
            next_marker = max(candidates) if candidates else None
        return ListPage(
            objects=objects,
            common_prefixes=prefixes,
            is_truncated=truncated,
            next_marker=next_marker,
        )

    def copy_object(
        self, source_container: str, source_key: str, dest_container: str, dest_key: str
    ) -> None:
        with _translate_errors(dest_container, dest_key):
            self._client.copy_object(
                Bucket=dest_container,
                Key=dest_key,
                CopySource={"Bucket": source_container, "Key": source_key},
            )

    def create_container(self, container: str) -> None:
        kwargs: dict[str, Any] = {"Bucket": container}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            with _translate_errors(container):
                self._client.create_bucket(**kwargs)
        except BackendError as exc:
            if exc.code != "BucketAlreadyOwnedByYou":
                raise
            logger.info("Container %s already exists", container)

    def delete_container(self, container: str) -> None:
        with _translate_errors(container):
            self._client.delete_bucket(Bucket=container)

    def list_containers(self) -> list[ContainerInfo]:
        with _translate_errors(""):
            response = self._client.list_buckets()
        return [
            ContainerInfo(name=bucket["Name"], created=bucket.get("CreationDate"))
            for bucket in response.get("Buckets", []) or []
            if bucket.get("Name")
        ]

    def container_exists(self, container: str) -> bool:
        try:
            with _translate_errors(container):
                self._client.head_bucket(Bucket=container)
        except NotFoundError:
            return False
        return True
