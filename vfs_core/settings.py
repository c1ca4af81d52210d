"""Storage configuration (env-first, optional YAML defaults)."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from vfs_core.errors import SettingsError
from vfs_core.fs.consistency import (
    DEFAULT_MAX_WAIT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUIRED_SUCCESSES,
    ConsistencyWaiter,
)
from vfs_core.store.stores import Boto3ObjectStore


@dataclass(frozen=True)
class StorageSettings:
    bucket: str | None = None
    target_bucket: str | None = None
    root_path: str = "/"
    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    region: str = "us-east-1"
    url_style: str = "path"
    use_ssl: bool | None = None
    session_token: str | None = None
    consistency_required_successes: int = DEFAULT_REQUIRED_SUCCESSES
    consistency_poll_interval: float = DEFAULT_POLL_INTERVAL
    consistency_max_wait: float = DEFAULT_MAX_WAIT

    def __post_init__(self) -> None:
        if self.consistency_required_successes < 1:
            raise SettingsError("consistency_required_successes must be >= 1")
        if self.consistency_poll_interval < 0:
            raise SettingsError("consistency_poll_interval must be >= 0")
        if self.consistency_max_wait < 0:
            raise SettingsError("consistency_max_wait must be >= 0")
        if self.url_style not in {"path", "virtual", "auto"}:
            raise SettingsError(f"url_style must be one of path/virtual/auto, got {self.url_style!r}")


_INT_FIELDS = {"consistency_required_successes"}
_FLOAT_FIELDS = {"consistency_poll_interval", "consistency_max_wait"}
_BOOL_FIELDS = {"use_ssl"}


def _parse_bool(value: Any, *, name: str) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y"}:
        return True
    if text in {"0", "false", "no", "n"}:
        return False
    raise SettingsError(f"{name} must be a boolean, got {value!r}")


def _coerce(name: str, value: Any) -> Any:
    if value is None:
        return None
    try:
        if name in _INT_FIELDS:
            return int(value)
        if name in _FLOAT_FIELDS:
            return float(value)
    except (TypeError, ValueError) as exc:
        raise SettingsError(f"{name} must be numeric, got {value!r}") from exc
    if name in _BOOL_FIELDS:
        return _parse_bool(value, name=name)
    return str(value)


def _settings_from_mapping(data: Mapping[str, Any], *, source: str) -> StorageSettings:
    known = {field.name for field in fields(StorageSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsError(f"Unknown storage settings in {source}: {', '.join(unknown)}")
    values = {name: _coerce(name, value) for name, value in data.items() if value is not None}
    return StorageSettings(**values)


def load_storage_settings(path: str | Path) -> StorageSettings:
    """Load settings from a YAML mapping whose keys are ``StorageSettings`` field names."""

    config_path = Path(path)
    try:
        with open(config_path, encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as exc:
        raise SettingsError(f"Cannot read storage config: {config_path}") from exc
    except yaml.YAMLError as exc:
        raise SettingsError(f"Invalid YAML in storage config: {config_path}") from exc

    if data is None:
        return StorageSettings()
    if not isinstance(data, dict):
        raise SettingsError(f"Invalid storage config: {config_path}")
    return _settings_from_mapping(data, source=str(config_path))


_ENV_FIELDS: dict[str, tuple[str, ...]] = {
    "bucket": ("S3_BUCKET_NAME",),
    "target_bucket": ("S3_TARGET_BUCKET_NAME",),
    "root_path": ("VFS_ROOT_PATH",),
    "endpoint_url": ("S3_ENDPOINT_URL",),
    "access_key": ("S3_ACCESS_KEY_ID", "AWS_ACCESS_KEY_ID"),
    "secret_key": ("S3_SECRET_ACCESS_KEY", "AWS_SECRET_ACCESS_KEY"),
    "region": ("S3_REGION",),
    "url_style": ("S3_URL_STYLE",),
    "use_ssl": ("S3_USE_SSL",),
    "session_token": ("S3_SESSION_TOKEN", "AWS_SESSION_TOKEN"),
    "consistency_required_successes": ("VFS_CONSISTENCY_REQUIRED_SUCCESSES",),
    "consistency_poll_interval": ("VFS_CONSISTENCY_POLL_INTERVAL",),
    "consistency_max_wait": ("VFS_CONSISTENCY_MAX_WAIT",),
}


def resolve_storage_settings(env: Mapping[str, str] | None = None) -> StorageSettings:
    """Resolve settings from environment variables.

    ``VFS_CONFIG_PATH`` may name a YAML file that provides defaults; any variable that
    is set overrides the file. When ``use_ssl`` is configured nowhere it follows the
    endpoint scheme.
    """

    source = os.environ if env is None else env
    config_path = source.get("VFS_CONFIG_PATH")
    base = load_storage_settings(config_path) if config_path else StorageSettings()

    overrides: dict[str, Any] = {}
    for name, variables in _ENV_FIELDS.items():
        for variable in variables:
            raw = source.get(variable)
            if raw is not None and raw.strip():
                overrides[name] = _coerce(name, raw.strip())
                break

    settings = replace(base, **overrides)
    if settings.use_ssl is None:
        endpoint = (settings.endpoint_url or "").strip().lower()
        settings = replace(settings, use_ssl=endpoint.startswith("https://"))
    return settings


@dataclass(frozen=True)
class StorageContext:
    """Where the storage service works: containers, workspace root and wait policy."""

    bucket_name: str
    target_bucket_name: str | None = None
    root_path: str = "/"
    storage_type: str = "s3"
    consistency_required_successes: int = DEFAULT_REQUIRED_SUCCESSES
    consistency_poll_interval: float = DEFAULT_POLL_INTERVAL
    consistency_max_wait: float = DEFAULT_MAX_WAIT

    def __post_init__(self) -> None:
        if not self.bucket_name:
            raise SettingsError("bucket_name is required")

    @property
    def target_container(self) -> str:
        return self.target_bucket_name or self.bucket_name

    def build_waiter(self) -> ConsistencyWaiter:
        return ConsistencyWaiter(
            required_successes=self.consistency_required_successes,
            poll_interval=self.consistency_poll_interval,
            max_wait=self.consistency_max_wait,
        )

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> StorageContext:
        if not settings.bucket:
            raise SettingsError("S3_BUCKET_NAME is required")
        return cls(
            bucket_name=settings.bucket,
            target_bucket_name=settings.target_bucket,
            root_path=settings.root_path,
            consistency_required_successes=settings.consistency_required_successes,
            consistency_poll_interval=settings.consistency_poll_interval,
            consistency_max_wait=settings.consistency_max_wait,
        )


def build_object_store(settings: StorageSettings, client: Any | None = None) -> Boto3ObjectStore:
    return Boto3ObjectStore(
        endpoint_url=settings.endpoint_url,
        access_key=settings.access_key,
        secret_key=settings.secret_key,
        region=settings.region,
        use_ssl=settings.use_ssl,
        url_style=settings.url_style,
        session_token=settings.session_token,
        client=client,
    )
