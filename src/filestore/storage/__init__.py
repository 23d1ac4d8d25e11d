# SPDX-License-Identifier: MIT
"""Pluggable volume drivers for filestore.

The storage layer lets callers read and write files through the same
operations whether a volume lives on local disk or in an S3 bucket.

Usage::

    from filestore.storage import get_manager

    volume = get_manager().get_volume("uploads")
    await volume.write("report.txt", "hello")
    async for entry in volume.list("reports/"):
        print(entry.path)

The S3 driver lives in :mod:`filestore.storage.s3` and needs the ``s3``
extra (boto3).
"""

from .local import FSVolumeDriver
from .manager import VolumeDefinition, VolumeManager, get_manager
from .protocol import (
    Content,
    CopyResult,
    Entry,
    ExistsResult,
    MoveResult,
    ReadResult,
    RemoveResult,
    VolumeDriver,
    WriteResult,
)

__all__ = [
    "Content",
    "CopyResult",
    "Entry",
    "ExistsResult",
    "FSVolumeDriver",
    "MoveResult",
    "ReadResult",
    "RemoveResult",
    "VolumeDefinition",
    "VolumeDriver",
    "VolumeManager",
    "WriteResult",
    "get_manager",
]
