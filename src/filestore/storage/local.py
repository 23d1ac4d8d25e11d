# SPDX-License-Identifier: MIT
"""Local filesystem volume driver.

Every path handed to the driver is resolved against a fixed ``root``
directory.  Buffers are written atomically (temp file + ``os.replace``),
streams are piped chunk by chunk, and ``move`` is a native rename.
"""

from __future__ import annotations

import errno
import logging
import os
import pathlib
import shutil
import uuid
from collections.abc import AsyncIterator
from contextlib import suppress

import aiofiles
import aiofiles.os
import anyio

from ..config import ConfigInput, FSVolumeConfig
from ..errors import ErrorKind, VolumeError
from ..security import TRAVERSAL_HINT, validate_safe_path
from .protocol import Content, CopyResult, Entry, ExistsResult, MoveResult, ReadResult, RemoveResult, WriteResult

logger = logging.getLogger("filestore")

OVERWRITE_HINT = "Use overwrite option."


def _build_error(error: BaseException, location: str) -> VolumeError:
    """Translate a native filesystem error into a :class:`VolumeError`."""
    match error:
        case FileExistsError() | shutil.SameFileError():
            return VolumeError.not_permitted(error, location)
        case FileNotFoundError() | NotADirectoryError():
            return VolumeError.not_found(error, location)
        case IsADirectoryError():
            return VolumeError.not_permitted(error, location)
        case PermissionError() if error.errno == errno.EACCES:
            return VolumeError.permission_required(error, location)
        case PermissionError():
            return VolumeError.not_permitted(error, location)
        case _:
            return VolumeError.unknown(error, location)


def _target_exists(target: str, location: str) -> VolumeError:
    error = FileExistsError(errno.EEXIST, "dest already exists", target)
    return VolumeError.not_permitted(error, location, hint=OVERWRITE_HINT)


def _is_within(path: str, parent: str) -> bool:
    return path.startswith(parent.rstrip(os.sep) + os.sep)


# ------------------------------------------------------------------
# Blocking helpers, run through anyio.to_thread
# ------------------------------------------------------------------


def _copy_sync(source: str, target: str, overwrite: bool) -> None:
    if os.path.isdir(target) and not os.path.isdir(source):
        raise IsADirectoryError(errno.EISDIR, "Cannot overwrite directory with non-directory", target)
    if os.path.isdir(source):
        shutil.copytree(source, target, symlinks=True, dirs_exist_ok=overwrite)
    else:
        os.makedirs(os.path.dirname(target), exist_ok=True)
        shutil.copy2(source, target)


def _move_sync(source: str, target: str) -> None:
    os.lstat(source)
    if source == target:
        return
    os.makedirs(os.path.dirname(target), exist_ok=True)
    if os.path.isdir(target) and not os.path.islink(target):
        shutil.rmtree(target)
    try:
        os.replace(source, target)
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise
        shutil.move(source, target)


def _remove_sync(path: str) -> None:
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    else:
        os.remove(path)


def _scan(directory: str) -> list[tuple[str, bool, os.stat_result | None]]:
    """Read one directory: ``(name, is_dir, stat)`` for subdirectories and regular files."""
    children: list[tuple[str, bool, os.stat_result | None]] = []
    with os.scandir(directory) as it:
        for entry in it:
            if entry.is_dir(follow_symlinks=False):
                children.append((entry.name, True, None))
            elif entry.is_file(follow_symlinks=False):
                children.append((entry.name, False, entry.stat(follow_symlinks=False)))
    children.sort(key=lambda child: child[0])
    return children


class FSVolumeDriver:
    """Volume backed by a directory tree.

    Args:
        config: :class:`FSVolumeConfig` or a mapping of its fields.
        defaults: Injected defaults, overridden by *config*.
    """

    protocol = "fs"

    def __init__(self, config: ConfigInput = None, *, defaults: ConfigInput = None) -> None:
        self.config = FSVolumeConfig.resolve(config, defaults)
        self._root = os.path.abspath(os.path.expanduser(self.config.root))
        logger.debug("FSVolumeDriver initialized: root=%s", self._root)

    @property
    def root(self) -> str:
        return self._root

    def __repr__(self) -> str:
        return f"FSVolumeDriver(root={self._root!r})"

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def normalize(self, path: str | None) -> str:
        """Absolute filesystem path for the volume-relative *path*."""
        path = path or ""
        try:
            return validate_safe_path(self._root, path)
        except ValueError as e:
            raise VolumeError.not_permitted(e, path, hint=TRAVERSAL_HINT) from e

    def denormalize(self, filepath: str) -> str:
        """Volume-relative, ``/``-separated form of an absolute *filepath*."""
        return pathlib.PurePath(os.path.relpath(filepath, self._root)).as_posix()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def exists(self, path: str) -> ExistsResult:
        filepath = self.normalize(path)
        try:
            st = await aiofiles.os.stat(filepath)
        except (FileNotFoundError, NotADirectoryError):
            return ExistsResult(exists=False)
        except OSError as e:
            raise _build_error(e, path) from e
        return ExistsResult(exists=True, raw=st)

    async def write(self, path: str, content: Content) -> WriteResult:
        filepath = self.normalize(path)
        if filepath == self._root:
            raise VolumeError.not_permitted(None, path, hint="Refusing to write over the volume root.")
        try:
            await aiofiles.os.makedirs(os.path.dirname(filepath), exist_ok=True)
            if isinstance(content, str | bytes | bytearray):
                written = await self._write_buffer(filepath, content)
            elif hasattr(content, "__aiter__"):
                written = await self._write_stream(filepath, content)
            else:
                raise TypeError(f"Unsupported content type: {type(content).__name__}")
        except OSError as e:
            raise _build_error(e, path) from e
        except (TypeError, ValueError) as e:
            raise VolumeError.unknown(e, path) from e
        logger.debug("Wrote %d bytes to %s", written, filepath)
        return WriteResult(raw={"path": filepath, "bytes_written": written})

    async def _write_buffer(self, filepath: str, content: str | bytes | bytearray) -> int:
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        tmp_path = f"{filepath}.{uuid.uuid4().hex}.tmp"
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, filepath)
        except BaseException:
            with suppress(OSError):
                await aiofiles.os.remove(tmp_path)
            raise
        return len(data)

    async def _write_stream(self, filepath: str, chunks) -> int:
        written = 0
        async with aiofiles.open(filepath, "wb") as f:
            async for chunk in chunks:
                if isinstance(chunk, str):
                    chunk = chunk.encode("utf-8")
                await f.write(chunk)
                written += len(chunk)
        return written

    async def read(self, path: str, *, encoding: str = "utf-8", as_bytes: bool = False) -> ReadResult:
        filepath = self.normalize(path)
        try:
            async with aiofiles.open(filepath, "rb") as f:
                data = await f.read()
        except OSError as e:
            raise _build_error(e, path) from e
        if as_bytes:
            return ReadResult(content=data, raw=data)
        try:
            return ReadResult(content=data.decode(encoding), raw=data)
        except (UnicodeDecodeError, LookupError) as e:
            raise VolumeError.unknown(e, path) from e

    async def copy(self, source: str, target: str, *, overwrite: bool = False) -> CopyResult:
        src = self.normalize(source)
        dst = self.normalize(target)
        location = f"{source} -> {target}"
        if src == dst or _is_within(dst, src):
            raise VolumeError.not_permitted(None, location, hint="Source and target must not overlap.")
        if not overwrite and await aiofiles.os.path.exists(dst):
            raise _target_exists(dst, location)
        try:
            await anyio.to_thread.run_sync(_copy_sync, src, dst, overwrite)
        except OSError as e:
            raise _build_error(e, location) from e
        logger.debug("Copied %s to %s", src, dst)
        return CopyResult(raw={"source": src, "target": dst})

    async def move(self, source: str, target: str, *, overwrite: bool = True) -> MoveResult:
        src = self.normalize(source)
        dst = self.normalize(target)
        location = f"{source} -> {target}"
        if self._root in (src, dst):
            raise VolumeError.not_permitted(None, location, hint="Refusing to move the volume root.")
        if _is_within(dst, src):
            raise VolumeError.not_permitted(None, location, hint="Cannot move a directory into itself.")
        if not overwrite and src != dst and await aiofiles.os.path.exists(dst):
            raise _target_exists(dst, location)
        try:
            await anyio.to_thread.run_sync(_move_sync, src, dst)
        except OSError as e:
            raise _build_error(e, location) from e
        logger.debug("Moved %s to %s", src, dst)
        return MoveResult(raw={"source": src, "target": dst})

    async def remove(self, path: str) -> RemoveResult:
        filepath = self.normalize(path)
        if filepath == self._root:
            raise VolumeError.not_permitted(None, path, hint="Refusing to remove the volume root.")
        try:
            await anyio.to_thread.run_sync(_remove_sync, filepath)
        except OSError as e:
            error = _build_error(e, path)
            if error.kind is ErrorKind.NOT_FOUND:
                return RemoveResult(raw=None, deleted=False)
            raise error from e
        logger.debug("Removed %s", filepath)
        return RemoveResult(raw={"path": filepath}, deleted=True)

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list(self, prefix: str = "") -> AsyncIterator[Entry]:
        """Depth-first listing of regular files whose relative path starts with *prefix*.

        ``"a/"`` lists everything below directory ``a``; ``"a/x"`` lists files
        and directories in ``a`` whose name starts with ``x``.  A missing
        directory yields nothing.
        """
        prefix = prefix or ""
        pattern = self.normalize(prefix)
        if not prefix.strip("/"):
            directory, match = self._root, self._root.rstrip(os.sep) + os.sep
        elif prefix.endswith("/"):
            directory, match = pattern, pattern + os.sep
        else:
            directory, match = os.path.dirname(pattern), pattern
        return self._walk(directory, match, prefix)

    async def _walk(self, directory: str, match: str, original: str) -> AsyncIterator[Entry]:
        try:
            children = await anyio.to_thread.run_sync(_scan, directory)
        except (FileNotFoundError, NotADirectoryError):
            return
        except OSError as e:
            raise _build_error(e, original) from e

        for name, is_dir, st in children:
            filename = os.path.join(directory, name)
            if not filename.startswith(match):
                continue
            if is_dir:
                async for entry in self._walk(filename, match, original):
                    yield entry
            else:
                yield Entry(path=self.denormalize(filename), raw=st)
