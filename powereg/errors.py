#!/usr/bin/env python3
"""
Exception hierarchy for powereg.

Hardware access errors carry the offending path so that fatal startup
diagnostics can name the missing or inconsistent kernel file.
"""

from typing import Optional


class PowerGovError(Exception):
    """Base class for every error raised by powereg."""


class HandleError(PowerGovError):
    """A hardware value handle could not complete an operation."""

    def __init__(self, path: str, message: str, cause: Optional[BaseException] = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{message} '{path}'{detail}")


class HandleOpenError(HandleError):
    """Control file is missing or access was denied."""

    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(path, "Unable to open", cause)


class HandleReadError(HandleError):
    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(path, "Unable to read", cause)


class HandleWriteError(HandleError):
    def __init__(self, path: str, cause: Optional[BaseException] = None):
        super().__init__(path, "Unable to write", cause)


class ReadOnlyHandleError(HandleError):
    """Write attempted through a handle opened read-only."""

    def __init__(self, path: str):
        super().__init__(path, "Handle is read-only, refusing to write")


class TelemetryParseError(PowerGovError):
    """A kernel value did not have the expected format."""

    def __init__(self, path: str, value: str, expected: str = "an integer"):
        self.path = path
        self.value = value
        super().__init__(f"Expected {expected} in '{path}', got {value!r}")


class InconsistentPlatformError(PowerGovError):
    """Per-core values that must be uniform differ between cores."""

    def __init__(self, setting: str, values):
        self.setting = setting
        self.values = list(values)
        super().__init__(f"{setting} is not the same for all cpu cores: {self.values}")


class UnsupportedPlatformError(PowerGovError):
    """This machine cannot be governed (OS, CPU vendor, driver mode...)."""


class UnsupportedSettingError(PowerGovError):
    """An optional control is not exposed on this machine."""

    def __init__(self, setting: str):
        self.setting = setting
        super().__init__(f"{setting} is not supported on this machine")


class InvalidThresholdError(PowerGovError, ValueError):
    """Charge thresholds out of range or not strictly ordered."""

    def __init__(self, start: Optional[int], stop: Optional[int], reason: str):
        self.start = start
        self.stop = stop
        super().__init__(f"Invalid charge thresholds start={start} stop={stop}: {reason}")
