# SPDX-License-Identifier: MIT
"""Path confinement helpers shared by the volume drivers.

Traversal attempts are rejected, never clamped: a caller path that would
resolve outside the volume root raises :class:`ValueError`, which each driver
translates into ``ErrorKind.OPERATION_NOT_PERMITTED``.
"""

from __future__ import annotations

import os
import posixpath

TRAVERSAL_HINT = "Paths must stay inside the volume root."


def validate_safe_path(base: str, relative: str) -> str:
    """Join *relative* onto the absolute directory *base* and confine it.

    A leading ``/`` on *relative* is treated as volume-relative.  The join is
    purely lexical (symlinks are not followed).

    Returns:
        The normalized absolute path, equal to *base* or below it.

    Raises:
        ValueError: If the result escapes *base*.
    """
    candidate = os.path.normpath(os.path.join(base, relative.lstrip("/\\")))
    if candidate != base and not candidate.startswith(base.rstrip(os.sep) + os.sep):
        raise ValueError(f"Invalid path: path traversal detected in {relative!r}")
    return candidate


def validate_safe_key(relative: str) -> str:
    """Clean a volume-relative object key.

    Leading slashes are dropped and any ``..`` segment is rejected, since
    object stores do not resolve them and a prefix could otherwise be
    bypassed by clients that do.  Trailing slashes are kept so that ``"a/"``
    still addresses a folder-style prefix.

    Raises:
        ValueError: If *relative* contains a ``..`` segment.
    """
    key = relative.lstrip("/")
    if ".." in key.split("/"):
        raise ValueError(f"Invalid path: path traversal detected in {relative!r}")
    return key


def join_key(root: str, relative: str) -> str:
    """Prefix *relative* with the volume key prefix *root*."""
    key = validate_safe_key(relative)
    if not root:
        return key
    return posixpath.join(root, key)


def strip_key(root: str, key: str) -> str:
    """Inverse of :func:`join_key` for keys returned by the backend."""
    if root and key.startswith(root):
        key = key[len(root) :]
    return key.strip("/")
