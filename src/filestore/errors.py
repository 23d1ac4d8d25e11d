# SPDX-License-Identifier: MIT
"""Backend-independent error vocabulary for volume operations.

Every native failure raised by a driver (``OSError`` from the filesystem,
``botocore`` errors from the object store) is translated into a
:class:`VolumeError` before it leaves the driver.  Callers only ever need to
inspect :attr:`VolumeError.kind`::

    try:
        await volume.read("missing.txt")
    except VolumeError as e:
        if e.kind is ErrorKind.NOT_FOUND:
            ...
"""

from __future__ import annotations

import errno
import traceback
from enum import Enum
from typing import Any

from .config import is_production


class ErrorKind(Enum):
    """Failure kinds shared by all drivers, as ``(code, status)`` pairs."""

    NOT_FOUND = ("ERR_FILE_NOT_FOUND", 404)
    OPERATION_NOT_PERMITTED = ("ERR_OPERATION_NOT_PERMITTED", 403)
    PERMISSION_REQUIRED = ("ERR_PERMISSION_REQUIRED", 401)
    UNKNOWN_BUCKET = ("ERR_UNKNOWN_BUCKET", 404)
    MISSING_ARGUMENT = ("ERR_MISSING_ARGUMENT", 400)
    UNKNOWN = ("ERR_UNKNOWN", 500)
    UNKNOWN_VOLUME = ("ERR_UNKNOWN_VOLUME", 404)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def status(self) -> int:
        return self.value[1]


def _native_message(error: BaseException | None) -> str:
    if error is None:
        return ""
    return str(error) or type(error).__name__


def native_code(error: BaseException | None) -> str | None:
    """Best-effort native error code (errno name or botocore error code)."""
    if error is None:
        return None
    response = getattr(error, "response", None)
    if isinstance(response, dict):
        code = response.get("Error", {}).get("Code")
        if code:
            return str(code)
    number = getattr(error, "errno", None)
    if isinstance(number, int):
        return errno.errorcode.get(number, str(number))
    return type(error).__name__


class VolumeError(Exception):
    """A storage failure tagged with an :class:`ErrorKind`.

    Attributes:
        kind: The failure kind.
        message: Human-readable description.
        data: Structured payload, typically ``{"error", "path"}`` plus
            ``"bucket"`` for object-store failures.
    """

    def __init__(self, kind: ErrorKind, message: str, data: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.data: dict[str, Any] = data or {}

    @property
    def code(self) -> str:
        return self.kind.code

    @property
    def status(self) -> int:
        return self.kind.status

    @property
    def underlying_error(self) -> BaseException | None:
        return self.data.get("error")

    def __repr__(self) -> str:
        return f"VolumeError({self.kind.name}, {self.message!r})"

    # ------------------------------------------------------------------
    # Constructors, one per kind
    # ------------------------------------------------------------------

    @classmethod
    def not_found(cls, error: BaseException | None, path: str, bucket: str | None = None) -> VolumeError:
        message = f"File not found at {path}\n{_native_message(error)}".rstrip()
        data: dict[str, Any] = {"error": error, "path": path}
        if bucket is not None:
            data["bucket"] = bucket
        return cls(ErrorKind.NOT_FOUND, message, data)

    @classmethod
    def not_permitted(cls, error: BaseException | None, path: str, hint: str | None = None) -> VolumeError:
        message = f"Operation not permitted for file {path}\n{_native_message(error)}".rstrip()
        if hint:
            message = f"{message}\nHint: {hint}"
        return cls(ErrorKind.OPERATION_NOT_PERMITTED, message, {"error": error, "path": path})

    @classmethod
    def permission_required(cls, error: BaseException | None, path: str, bucket: str | None = None) -> VolumeError:
        message = f"Missing required permission for file {path}\n{_native_message(error)}".rstrip()
        data: dict[str, Any] = {"error": error, "path": path}
        if bucket is not None:
            data["bucket"] = bucket
        return cls(ErrorKind.PERMISSION_REQUIRED, message, data)

    @classmethod
    def unknown_bucket(cls, error: BaseException | None, bucket: str | None, path: str | None = None) -> VolumeError:
        message = f"The bucket {bucket} was not found\n{_native_message(error)}".rstrip()
        return cls(ErrorKind.UNKNOWN_BUCKET, message, {"error": error, "path": path, "bucket": bucket})

    @classmethod
    def missing_argument(cls, operation: str, argument: str) -> VolumeError:
        message = f'The "{operation}" requires argument "{argument}"'
        return cls(ErrorKind.MISSING_ARGUMENT, message, {"operation": operation, "argument": argument})

    @classmethod
    def unknown(cls, error: BaseException | None, path: str, bucket: str | None = None) -> VolumeError:
        code = native_code(error)
        message = f"Unknown error for file {path}\n    Error: {code}\n    Error message: {_native_message(error)}"
        data: dict[str, Any] = {"error": error, "path": path, "native_code": code}
        if bucket is not None:
            data["bucket"] = bucket
        return cls(ErrorKind.UNKNOWN, message, data)

    @classmethod
    def unknown_volume(cls, volume: str | None, protocol: str | None = None) -> VolumeError:
        if protocol is None:
            message = f"The volume {volume} was not found"
        else:
            message = f"The volume {volume} uses protocol {protocol!r} which has no registered driver"
        data: dict[str, Any] = {"volume": volume}
        if protocol is not None:
            data["protocol"] = protocol
        return cls(ErrorKind.UNKNOWN_VOLUME, message, data)

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_dict(self, include_trace: bool | None = None) -> dict[str, Any]:
        """Plain, JSON-friendly representation of the error.

        The traceback is left out when *include_trace* is false, or when it is
        ``None`` and :func:`filestore.config.is_production` is true.
        """
        if include_trace is None:
            include_trace = not is_production()
        data: dict[str, Any] = {}
        for key, value in self.data.items():
            if isinstance(value, BaseException):
                value = {"type": type(value).__name__, "message": str(value), "code": native_code(value)}
            data[key] = value

        result: dict[str, Any] = {
            "message": self.message,
            "code": self.code,
            "status": self.status,
            "data": data,
        }
        if include_trace and self.__traceback__ is not None:
            result["trace"] = "".join(traceback.format_tb(self.__traceback__))
        return result
