# SPDX-License-Identifier: MIT
"""Volume driver protocol and shared result types.

Defines the interface that all volume drivers must implement.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

Content = str | bytes | bytearray | AsyncIterable[bytes] | AsyncIterable[str]
"""Anything a driver can ``write``: text, a byte buffer, or an async stream of chunks."""


@dataclass(frozen=True)
class Entry:
    """A file yielded by ``list``.

    ``path`` is relative to the volume root and uses ``/`` separators.
    """

    path: str
    content: str | bytes | None = None
    raw: Any = None


@dataclass(frozen=True)
class WriteResult:
    raw: Any = None


@dataclass(frozen=True)
class ExistsResult:
    exists: bool
    raw: Any = None


@dataclass(frozen=True)
class ReadResult:
    content: str | bytes
    raw: Any = None


@dataclass(frozen=True)
class CopyResult:
    raw: Any = None


@dataclass(frozen=True)
class MoveResult:
    raw: Any = None


@dataclass(frozen=True)
class RemoveResult:
    """Outcome of ``remove``.

    ``deleted`` is ``True``/``False`` when the backend can tell whether
    something was removed, and ``None`` when it cannot (object stores
    acknowledge deletes of missing keys).
    """

    raw: Any = None
    deleted: bool | None = None


@runtime_checkable
class VolumeDriver(Protocol):
    """Protocol for pluggable volume drivers.

    All paths are relative to the driver's configured root.  Implementations
    reject paths that would escape the root and translate every backend
    failure into :class:`~filestore.errors.VolumeError`.
    """

    protocol: str

    async def exists(self, path: str) -> ExistsResult:
        """Check whether *path* exists.  Never raises for a missing path."""
        ...

    async def write(self, path: str, content: Content) -> WriteResult:
        """Write *content* to *path*, creating it (and any parents) as needed."""
        ...

    async def read(self, path: str, *, encoding: str = "utf-8", as_bytes: bool = False) -> ReadResult:
        """Read the whole file.

        Raises:
            VolumeError: ``NOT_FOUND`` if *path* does not exist.
        """
        ...

    async def copy(self, source: str, target: str, *, overwrite: bool = ...) -> CopyResult:
        """Duplicate *source* at *target*.

        An existing target is refused with ``OPERATION_NOT_PERMITTED`` unless
        *overwrite* is set (each driver picks its own default).
        """
        ...

    async def move(self, source: str, target: str) -> MoveResult:
        """Relocate *source* to *target*."""
        ...

    async def remove(self, path: str) -> RemoveResult:
        """Delete *path*.  A missing path is not an error."""
        ...

    def list(self, prefix: str = "") -> AsyncIterator[Entry]:
        """Lazily iterate over every file whose relative path starts with *prefix*.

        Each call starts a fresh traversal.
        """
        ...
