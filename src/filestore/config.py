# SPDX-License-Identifier: MIT
"""Configuration management for filestore.

This module handles:
- Logging setup
- Typed, immutable driver configuration
- Environment-derived defaults (read here and nowhere else)

Configuration precedence is explicit argument > injected default > built-in
default.  Drivers call :meth:`FSVolumeConfig.resolve` /
:meth:`S3VolumeConfig.resolve` once at construction; the volume manager
injects the ``from_env()`` values as defaults.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

# ---------- Logging configuration ----------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("filestore")


def is_production() -> bool:
    """True when ``FILESTORE_ENV=production`` (tracebacks are hidden)."""
    return os.getenv("FILESTORE_ENV", "").strip().lower() == "production"


def default_volume_name() -> str:
    """Volume used by ``get_volume()`` when no name is given."""
    return os.getenv("FILESTORE_DEFAULT_VOLUME", "").strip() or "fs"


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Merge *override* into a copy of *base*, recursing into nested dicts."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, BaseModel):
            value = value.model_dump(exclude_unset=True)
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = _merge(dict(merged[key]), value)
        else:
            merged[key] = value
    return merged


ConfigInput = BaseModel | Mapping[str, Any] | None


class _VolumeConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", arbitrary_types_allowed=True)

    @classmethod
    def resolve(cls, explicit: ConfigInput = None, defaults: ConfigInput = None):
        """Build a config from *defaults* overlaid with *explicit* values.

        An explicit instance of this class is returned unchanged.
        """
        if isinstance(explicit, cls):
            return explicit
        merged: dict[str, Any] = {}
        for layer in (defaults, explicit):
            if layer is None:
                continue
            if isinstance(layer, BaseModel):
                layer = layer.model_dump(exclude_unset=True)
            merged = _merge(merged, layer)
        return cls.model_validate(merged)


# ---------- Filesystem ----------


class FSVolumeConfig(_VolumeConfig):
    """Filesystem volume configuration.

    ``root`` may be relative; the driver resolves it to an absolute path.
    """

    root: str = "/tmp"

    @classmethod
    def from_env(cls) -> FSVolumeConfig:
        root = _env("FILESTORE_FS_ROOT")
        return cls(root=root) if root else cls()


# ---------- Object store ----------


class S3ClientOptions(_VolumeConfig):
    """Options handed to the S3 client factory."""

    region: str = "us-east-1"
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3ClientOptions:
        values: dict[str, Any] = {"region": _env("AWS_REGION") or _env("AWS_DEFAULT_REGION") or "us-east-1"}
        endpoint = _env("AWS_DEV_ENDPOINT")
        if endpoint:
            # Local S3-compatible endpoints (minio, localstack) use their own credentials chain
            values["endpoint_url"] = endpoint
        else:
            values["access_key_id"] = _env("AWS_ACCESS_KEY_ID")
            values["secret_access_key"] = _env("AWS_SECRET_ACCESS_KEY")
        return cls(**values)


ClientFactory = Callable[[S3ClientOptions], Any]


class S3VolumeConfig(_VolumeConfig):
    """Object-store volume configuration.

    ``root`` is a key prefix acting as the volume mount point.
    ``client_factory`` builds the client from ``client_options``; when left
    unset the driver uses a boto3 S3 client.
    """

    root: str = ""
    bucket: str | None = None
    client_options: S3ClientOptions = S3ClientOptions()
    client_factory: ClientFactory | None = None

    @field_validator("root")
    @classmethod
    def _strip_root(cls, v: str) -> str:
        return v.strip("/")

    @classmethod
    def from_env(cls) -> S3VolumeConfig:
        values: dict[str, Any] = {"client_options": S3ClientOptions.from_env()}
        root = _env("FILESTORE_S3_ROOT")
        if root:
            values["root"] = root
        bucket = _env("FILESTORE_S3_BUCKET")
        if bucket:
            values["bucket"] = bucket
        return cls(**values)
