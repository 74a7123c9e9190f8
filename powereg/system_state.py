#!/usr/bin/env python3
"""
System state aggregate.

Owns the CPU and battery controllers, the current power mode and the
machine identity facts established once at startup.
"""

import logging
import os
import sys
from enum import Enum
from typing import Callable, List

from .battery import AcpiType, BatteryController, detect_acpi_type
from .cpu import CpuController, CpuType, detect_cores, detect_cpu_type
from .config import ConfigManager
from .errors import PowerGovError, UnsupportedPlatformError
from .handle import sysfs_path


class PowerMode(Enum):
    POWERSAVE = "powersave"
    BALANCED = "balanced"
    PERFORMANCE = "performance"


def detect_linux(root: str = "/") -> bool:
    if sys.platform.startswith("linux"):
        return True
    return os.path.isdir(sysfs_path(root, "/proc")) and os.path.isdir(sysfs_path(root, "/sys"))


class SystemState:
    """
    The single long-lived context threaded through every event cycle.
    """

    def __init__(self, cpu: CpuController, battery: BatteryController,
                 cpu_type: CpuType, acpi_type: AcpiType, linux: bool = True,
                 mode: PowerMode = PowerMode.POWERSAVE):
        self.cpu = cpu
        self.battery = battery
        self.cpu_type = cpu_type
        self.acpi_type = acpi_type
        self.linux = linux
        self.mode = mode

    @classmethod
    def from_system(cls, config: ConfigManager = None) -> "SystemState":
        """
        Detect the machine and open every hardware handle.

        Raises:
            UnsupportedPlatformError: not Linux, unsupported CPU vendor,
                missing governors or amd_pstate not active.
            HandleOpenError: a required control file is missing.
            InconsistentPlatformError: per-core settings differ.
        """
        config = config or ConfigManager()
        root = config.sysfs_root

        if not detect_linux(root):
            raise UnsupportedPlatformError("powereg only supports Linux systems")

        cpu_type = detect_cpu_type(root)
        if cpu_type is not CpuType.AMD:
            raise UnsupportedPlatformError(
                f"Unsupported cpu vendor: {cpu_type.name.lower()} (only AMD with amd_pstate is supported)"
            )
        acpi_type = detect_acpi_type(root)
        cores = detect_cores(root)
        logging.info("Detected %s cpu with %d cores, %s chassis",
                     cpu_type.name, len(cores), acpi_type.name.lower())

        cpu = CpuController(cores, cpu_type, root)
        try:
            cpu.validate()
            battery = BatteryController(config.battery_name, root)
        except BaseException:
            cpu.close()
            raise

        return cls(cpu, battery, cpu_type, acpi_type, linux=True)

    def describe(self) -> str:
        """Human-readable report of all telemetry; failed reads show n/a."""
        cpu, bat = self.cpu, self.battery
        rows = [
            ("CPU:", None),
            ("  cpu type", lambda: self.cpu_type.name),
            ("  scaling governor", lambda: cpu.read_governor().value),
            ("  energy preference", lambda: cpu.read_energy_preference().value
                if cpu.supports_energy_preference else "unsupported"),
            ("  turbo boost", lambda: "on" if cpu.read_turbo_boost() else "off"),
            ("  min/max cpu freq", lambda: f"{cpu.read_min_frequency():.2f}-{cpu.read_max_frequency():.2f} GHz"),
            ("  cpu freq", lambda: f"{cpu.read_average_frequency():.2f} GHz"),
            ("  cpu temp", lambda: f"{cpu.read_temperature():.1f}°C"),
            ("  cpu load", lambda: f"{cpu.read_load():.2f}%"),
            ("  cpu power draw", lambda: _watts(cpu.read_power_draw())),
            ("Battery:", None),
            ("  charging status", lambda: bat.read_charging_status().value),
            ("  battery capacity", lambda: f"{bat.read_capacity()}%"),
            ("  charge start threshold", lambda: f"{bat.read_start_threshold()}%"),
            ("  charge stop threshold", lambda: f"{bat.read_stop_threshold()}%"),
            ("  total power draw", lambda: _watts(bat.read_power_draw())),
            ("  platform profile", lambda: bat.read_platform_profile().value),
        ]

        lines: List[str] = []
        for label, reader in rows:
            if reader is None:
                lines.append(label)
            else:
                lines.append(f"{label}: {_safe(reader)}")
        lines.append(f"State: {self.mode.name.capitalize()}")
        return "\n".join(lines)

    def close(self) -> None:
        self.cpu.close()
        self.battery.close()


def _watts(value) -> str:
    return "n/a" if value is None else f"{value:.2f} W"


def _safe(reader: Callable[[], str]) -> str:
    try:
        return reader()
    except PowerGovError as exc:
        logging.debug("describe: %s", exc)
        return "n/a"
