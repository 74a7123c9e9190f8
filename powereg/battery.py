#!/usr/bin/env python3
"""
Battery and firmware platform-profile control module.
"""

import logging
import os
from enum import Enum
from typing import List, Optional

from .errors import InvalidThresholdError, UnsupportedSettingError
from .handle import HardwareValueHandle, sysfs_path

POWER_SUPPLY_BASE = "/sys/class/power_supply"
PLATFORM_PROFILE_PATH = "/sys/firmware/acpi/platform_profile"
DMI_PRODUCT_VERSION_PATH = "/sys/class/dmi/id/product_version"
DMI_PRODUCT_NAME_PATH = "/sys/class/dmi/id/product_name"
THINKPAD_ACPI_PATH = "/proc/acpi/ibm"


class AcpiType(Enum):
    """Chassis/firmware family, decides which battery knobs are usable."""
    THINKPAD = "thinkpad"
    IDEAPAD = "ideapad"
    UNKNOWN = "unknown"


class ChargingStatus(Enum):
    CHARGING = "Charging"
    DISCHARGING = "Discharging"
    NOT_CHARGING = "Not charging"
    UNKNOWN = "Unknown"

    @classmethod
    def from_string(cls, value: str) -> "ChargingStatus":
        for status in (cls.CHARGING, cls.DISCHARGING, cls.NOT_CHARGING):
            if status.value == value:
                return status
        return cls.UNKNOWN


class PlatformProfile(Enum):
    LOW_POWER = "low-power"
    BALANCED = "balanced"
    PERFORMANCE = "performance"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str) -> "PlatformProfile":
        for profile in (cls.LOW_POWER, cls.BALANCED, cls.PERFORMANCE):
            if profile.value == value:
                return profile
        return cls.UNKNOWN

    def to_string(self) -> str:
        """Token written to firmware; UNKNOWN falls back to balanced."""
        if self is PlatformProfile.UNKNOWN:
            return PlatformProfile.BALANCED.value
        return self.value


def validate_thresholds(start: int, stop: int) -> None:
    """Both in [0, 100] and start strictly below stop."""
    for value in (start, stop):
        if not 0 <= value <= 100:
            raise InvalidThresholdError(start, stop, "thresholds must be within 0-100%")
    if start >= stop:
        raise InvalidThresholdError(start, stop, "start threshold must be below stop threshold")


def detect_acpi_type(root: str = "/") -> AcpiType:
    """Identify ThinkPad/IdeaPad firmware from DMI strings."""
    for path in (DMI_PRODUCT_VERSION_PATH, DMI_PRODUCT_NAME_PATH):
        try:
            with open(sysfs_path(root, path)) as f:
                product = f.read().strip().lower()
        except OSError:
            continue
        if "thinkpad" in product:
            return AcpiType.THINKPAD
        if "ideapad" in product:
            return AcpiType.IDEAPAD

    if os.path.exists(sysfs_path(root, THINKPAD_ACPI_PATH)):
        return AcpiType.THINKPAD
    return AcpiType.UNKNOWN


class BatteryController:
    """
    Reads battery telemetry and drives charge thresholds and the firmware
    platform profile.
    """

    def __init__(self, battery: str = "BAT0", root: str = "/"):
        self.battery = battery
        self.root = root
        self._handles: List[HardwareValueHandle] = []

        try:
            self.status = self._open("status")
            self.capacity = self._open("capacity")
            self.power_now = self._open("power_now")
            self.start_threshold = self._open_optional("charge_start_threshold")
            self.stop_threshold = self._open_optional("charge_stop_threshold")
            self.platform_profile = self._track(HardwareValueHandle(
                sysfs_path(root, PLATFORM_PROFILE_PATH), writable=True))
        except BaseException:
            self.close()
            raise

    def _battery_path(self, name: str) -> str:
        return sysfs_path(self.root, f"{POWER_SUPPLY_BASE}/{self.battery}/{name}")

    def _track(self, handle: Optional[HardwareValueHandle]) -> Optional[HardwareValueHandle]:
        if handle is not None:
            self._handles.append(handle)
        return handle

    def _open(self, name: str) -> HardwareValueHandle:
        return self._track(HardwareValueHandle(self._battery_path(name)))

    def _open_optional(self, name: str) -> Optional[HardwareValueHandle]:
        return self._track(HardwareValueHandle.open_optional(self._battery_path(name), writable=True))

    def read_charging_status(self) -> ChargingStatus:
        """Kernel charging state; unrecognized strings map to UNKNOWN."""
        return ChargingStatus.from_string(self.status.read())

    def read_capacity(self) -> int:
        """Remaining charge in percent."""
        return self.capacity.read_int()

    def read_power_draw(self) -> float:
        """Instantaneous draw in watts (sysfs reports microwatts)."""
        return self.power_now.read_int() / 1_000_000

    # Charge thresholds

    @property
    def supports_thresholds(self) -> bool:
        """True if both charge threshold files are exposed."""
        return self.start_threshold is not None and self.stop_threshold is not None

    def _require_thresholds(self) -> None:
        if not self.supports_thresholds:
            raise UnsupportedSettingError("charge thresholds")

    def read_start_threshold(self) -> int:
        """Charge start threshold in percent."""
        self._require_thresholds()
        return self.start_threshold.read_int()

    def read_stop_threshold(self) -> int:
        """Charge stop threshold in percent."""
        self._require_thresholds()
        return self.stop_threshold.read_int()

    def set_start_threshold(self, value: int) -> None:
        """Validated against the live stop threshold before writing."""
        self._require_thresholds()
        validate_thresholds(value, self.read_stop_threshold())
        self.start_threshold.write(str(value))

    def set_stop_threshold(self, value: int) -> None:
        """Validated against the live start threshold before writing."""
        self._require_thresholds()
        validate_thresholds(self.read_start_threshold(), value)
        self.stop_threshold.write(str(value))

    def set_thresholds(self, start: int, stop: int) -> None:
        """
        Apply both thresholds as a pair.

        The pair is validated before anything is written, and the write order
        keeps the live values ordered at every step (firmware rejects a start
        above the current stop and vice versa).
        """
        self._require_thresholds()
        validate_thresholds(start, stop)

        if start >= self.read_stop_threshold():
            self.stop_threshold.write(str(stop))
            self.start_threshold.write(str(start))
        else:
            self.start_threshold.write(str(start))
            self.stop_threshold.write(str(stop))
        logging.info("Charge thresholds set to %d-%d%%", start, stop)

    # Platform profile

    def read_platform_profile(self) -> PlatformProfile:
        """Current firmware profile; unrecognized tokens map to UNKNOWN."""
        return PlatformProfile.from_string(self.platform_profile.read())

    def set_platform_profile(self, profile: PlatformProfile) -> None:
        """Write the profile token; UNKNOWN is written as balanced."""
        self.platform_profile.write(profile.to_string())

    def close(self) -> None:
        for handle in self._handles:
            handle.close()
        self._handles = []
