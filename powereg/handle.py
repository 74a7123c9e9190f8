#!/usr/bin/env python3
"""
Persistent handles to kernel control and telemetry files.

Every read goes back to the kernel; nothing is cached.
"""

import errno
import logging
import os
from typing import Optional

from .errors import (
    HandleOpenError,
    HandleReadError,
    HandleWriteError,
    ReadOnlyHandleError,
    TelemetryParseError,
)

# Enough for single-line sysfs attributes.
READ_BUFFER_SIZE = 512

# sysfs/procfs attributes have no backing store to sync or truncate.
_PSEUDO_FS_ERRNOS = (errno.EINVAL, errno.EROFS, errno.ENOTSUP)


def sysfs_path(root: str, path: str) -> str:
    """Resolve an absolute kernel path below an alternative root."""
    if root in ("", "/"):
        return path
    return os.path.join(root, path.lstrip("/"))


class HardwareValueHandle:
    """
    A single open descriptor on one kernel-exposed file.

    Opened read-only or read-write; a writable handle can still be read.
    """

    def __init__(self, path: str, writable: bool = False, buffer_size: int = READ_BUFFER_SIZE):
        self.path = path
        self.writable = writable
        self.buffer_size = buffer_size
        try:
            self._file = open(path, "r+b" if writable else "rb", buffering=0)
        except OSError as exc:
            raise HandleOpenError(path, exc) from exc

    @classmethod
    def open_optional(cls, path: str, writable: bool = False) -> Optional["HardwareValueHandle"]:
        """Open a control that may legitimately be absent on this machine."""
        if not os.path.exists(path):
            logging.debug("Optional control %s not present", path)
            return None
        return cls(path, writable)

    @property
    def closed(self) -> bool:
        return self._file.closed

    def read(self) -> str:
        """Re-read the live value, trimmed of surrounding whitespace."""
        try:
            self._file.seek(0)
            data = self._file.read(self.buffer_size)
        except (OSError, ValueError) as exc:
            raise HandleReadError(self.path, exc) from exc
        return data.decode("ascii", errors="replace").strip()

    def read_int(self) -> int:
        value = self.read()
        try:
            return int(value)
        except ValueError:
            raise TelemetryParseError(self.path, value) from None

    def write(self, value: str) -> None:
        """Replace the file content and make sure the driver has seen it."""
        if not self.writable:
            raise ReadOnlyHandleError(self.path)

        try:
            self._file.seek(0)
            self._truncate()
            self._file.write(value.encode("ascii"))
            self._sync()
        except (OSError, ValueError) as exc:
            raise HandleWriteError(self.path, exc) from exc
        logging.debug("%s → %s", self.path, value)

    def _truncate(self) -> None:
        try:
            self._file.truncate(0)
        except OSError as exc:
            if exc.errno not in _PSEUDO_FS_ERRNOS:
                raise

    def _sync(self) -> None:
        self._file.flush()
        try:
            os.fsync(self._file.fileno())
        except OSError as exc:
            # The attribute's store callback already ran inside write().
            if exc.errno not in _PSEUDO_FS_ERRNOS:
                raise

    def close(self) -> None:
        self._file.close()

    def __repr__(self) -> str:
        mode = "rw" if self.writable else "ro"
        return f"HardwareValueHandle({self.path!r}, {mode})"
