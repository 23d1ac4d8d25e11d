# SPDX-License-Identifier: MIT
"""filestore: one set of file operations over local disk and S3 volumes."""

from .errors import ErrorKind, VolumeError
from .storage import Entry, FSVolumeDriver, VolumeDefinition, VolumeDriver, VolumeManager, get_manager

__all__ = [
    "Entry",
    "ErrorKind",
    "FSVolumeDriver",
    "VolumeDefinition",
    "VolumeDriver",
    "VolumeError",
    "VolumeManager",
    "get_manager",
]
