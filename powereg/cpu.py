#!/usr/bin/env python3
"""
CPU frequency-scaling control module.

Presents the per-core cpufreq knobs as one uniform control and reads the
machine-wide CPU telemetry (temperature, load, package power).
"""

import glob
import logging
import os
import re
import time
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .errors import (
    HandleError,
    InconsistentPlatformError,
    TelemetryParseError,
    UnsupportedPlatformError,
    UnsupportedSettingError,
)
from .handle import HardwareValueHandle, sysfs_path

CPU_BASE = "/sys/devices/system/cpu"
CPUFREQ_TEMPLATE = CPU_BASE + "/cpu{index}/cpufreq/{name}"
AVAILABLE_GOVERNORS_PATH = CPU_BASE + "/cpu0/cpufreq/scaling_available_governors"
BOOST_PATH = CPU_BASE + "/cpufreq/boost"
AMD_PSTATE_STATUS_PATH = CPU_BASE + "/amd_pstate/status"
TEMPERATURE_PATH = "/sys/class/thermal/thermal_zone0/temp"
PROC_STAT_PATH = "/proc/stat"
RAPL_ENERGY_PATH = "/sys/class/powercap/intel-rapl:0/energy_uj"
CPUINFO_PATH = "/proc/cpuinfo"

LOAD_SAMPLE_INTERVAL = 0.2   # seconds between /proc/stat samples
POWER_SAMPLE_INTERVAL = 0.5  # seconds between RAPL samples

# The aggregate "cpu" line of /proc/stat fits comfortably in this.
PROC_STAT_BUFFER_SIZE = 1024


class CpuType(Enum):
    AMD = "AuthenticAMD"
    INTEL = "GenuineIntel"
    UNKNOWN = "unknown"


class ScalingGovernor(Enum):
    POWERSAVE = "powersave"
    PERFORMANCE = "performance"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str) -> "ScalingGovernor":
        for gov in (cls.POWERSAVE, cls.PERFORMANCE):
            if gov.value == value:
                return gov
        return cls.UNKNOWN


class EnergyPreference(Enum):
    DEFAULT = "default"
    PERFORMANCE = "performance"
    BALANCE_PERFORMANCE = "balance_performance"
    BALANCE_POWER = "balance_power"
    POWER = "power"
    UNKNOWN = "unknown"

    @classmethod
    def from_string(cls, value: str) -> "EnergyPreference":
        for epp in cls:
            if epp is not cls.UNKNOWN and epp.value == value:
                return epp
        return cls.UNKNOWN


def detect_cpu_type(root: str = "/") -> CpuType:
    """Read the vendor string from /proc/cpuinfo."""
    try:
        with open(sysfs_path(root, CPUINFO_PATH)) as f:
            for line in f:
                if line.startswith("vendor_id"):
                    if CpuType.INTEL.value in line:
                        return CpuType.INTEL
                    if CpuType.AMD.value in line:
                        return CpuType.AMD
    except OSError as exc:
        logging.warning("Unable to read %s: %s", CPUINFO_PATH, exc)
    return CpuType.UNKNOWN


def detect_cores(root: str = "/") -> List[int]:
    """
    Indices of the logical cores that expose a cpufreq directory.

    Numbering may have gaps (offline SMT siblings lose their cpufreq link),
    so the indices are returned rather than a count.
    """
    pattern = os.path.join(sysfs_path(root, CPU_BASE), "cpu[0-9]*")
    cores = []
    for path in glob.glob(pattern):
        match = re.fullmatch(r"cpu(\d+)", os.path.basename(path))
        if match and os.path.isdir(os.path.join(path, "cpufreq")):
            cores.append(int(match.group(1)))
    return sorted(cores)


def parse_stat_line(line: str, path: str = PROC_STAT_PATH) -> Tuple[int, int]:
    """
    Parse the aggregate cpu line of /proc/stat.

    Returns:
        (total, idle) where total is the sum of all fields and idle is
        idle + iowait.
    """
    parts = line.split()
    if not parts or parts[0] != "cpu":
        raise TelemetryParseError(path, line, "an aggregate 'cpu' line")
    try:
        fields = [int(part) for part in parts[1:]]
    except ValueError:
        raise TelemetryParseError(path, line, "numeric cpu fields") from None
    if len(fields) < 4:
        raise TelemetryParseError(path, line, "at least four cpu fields")

    idle = fields[3] + (fields[4] if len(fields) > 4 else 0)
    return sum(fields), idle


def compute_load(first: Tuple[int, int], second: Tuple[int, int]) -> float:
    """Busy percentage between two (total, idle) samples."""
    total_delta = second[0] - first[0]
    idle_delta = second[1] - first[1]
    busy = max(total_delta - idle_delta, 0)
    return busy / max(total_delta, 1) * 100.0


def compute_power(start_uj: int, end_uj: int, elapsed_ms: float) -> float:
    """Watts from two energy counter samples; a wrapped counter yields 0."""
    if end_uj < start_uj or elapsed_ms <= 0:
        return 0.0
    return (end_uj - start_uj) / elapsed_ms / 1000.0


class CpuController:
    """
    Uniform control over N identical per-core cpufreq knobs.

    Reads of per-core settings must agree on every core; writes are
    broadcast to every core and abort on the first failure.
    """

    def __init__(self, cores: Sequence[int], cpu_type: CpuType = CpuType.AMD, root: str = "/"):
        """
        Args:
            cores: Indices of the cpufreq-capable cores (see detect_cores).
            cpu_type: CPU vendor; AMD also requires amd_pstate in active mode.
            root: Prefix for every kernel path.
        """
        self.cores = list(cores)
        if not self.cores:
            raise UnsupportedPlatformError("No cpufreq-capable cpu cores found")
        self.core_count = len(self.cores)
        self.cpu_type = cpu_type
        self.root = root
        self._handles: List[HardwareValueHandle] = []

        try:
            self._check_available_governors()
            if cpu_type is CpuType.AMD:
                self._ensure_amd_pstate_active()

            self.governor = self._open_per_core("scaling_governor", writable=True)
            self.min_freq = self._open_per_core("scaling_min_freq")
            self.max_freq = self._open_per_core("scaling_max_freq")
            self.cur_freq = self._open_per_core("scaling_cur_freq")
            self.energy_preference = self._open_energy_preference()

            self.boost = self._open(BOOST_PATH, writable=True)
            self.temperature = self._open(TEMPERATURE_PATH)
            self.stat = self._track(HardwareValueHandle(
                sysfs_path(root, PROC_STAT_PATH), buffer_size=PROC_STAT_BUFFER_SIZE))
            self.energy = self._track(HardwareValueHandle.open_optional(
                sysfs_path(root, RAPL_ENERGY_PATH)))
        except BaseException:
            self.close()
            raise

    def _track(self, handle: Optional[HardwareValueHandle]) -> Optional[HardwareValueHandle]:
        if handle is not None:
            self._handles.append(handle)
        return handle

    def _open(self, path: str, writable: bool = False) -> HardwareValueHandle:
        return self._track(HardwareValueHandle(sysfs_path(self.root, path), writable))

    def _open_per_core(self, name: str, writable: bool = False) -> List[HardwareValueHandle]:
        return [
            self._open(CPUFREQ_TEMPLATE.format(index=i, name=name), writable)
            for i in self.cores
        ]

    def _open_energy_preference(self) -> Optional[List[HardwareValueHandle]]:
        paths = [
            sysfs_path(self.root, CPUFREQ_TEMPLATE.format(index=i, name="energy_performance_preference"))
            for i in self.cores
        ]
        if not all(os.path.exists(p) for p in paths):
            logging.info("Energy performance preference not available on this cpu")
            return None
        return [self._track(HardwareValueHandle(p, writable=True)) for p in paths]

    def _check_available_governors(self) -> None:
        handle = HardwareValueHandle(sysfs_path(self.root, AVAILABLE_GOVERNORS_PATH))
        try:
            available = handle.read().split()
        finally:
            handle.close()
        missing = [g.value for g in (ScalingGovernor.PERFORMANCE, ScalingGovernor.POWERSAVE)
                   if g.value not in available]
        if missing:
            raise UnsupportedPlatformError(
                f"Scaling governors {missing} not offered by {AVAILABLE_GOVERNORS_PATH} "
                f"(available: {' '.join(available) or 'none'})"
            )

    def _ensure_amd_pstate_active(self) -> None:
        handle = HardwareValueHandle(sysfs_path(self.root, AMD_PSTATE_STATUS_PATH), writable=True)
        try:
            if "active" in handle.read():
                return
            logging.warning("amd_pstate is not active, attempting to set it to 'active'")
            try:
                handle.write("active")
            except HandleError as exc:
                raise UnsupportedPlatformError(
                    f"amd_pstate must be in active mode ({AMD_PSTATE_STATUS_PATH}): {exc}"
                ) from exc
        finally:
            handle.close()

    @staticmethod
    def _uniform(setting: str, values: Sequence):
        first = values[0]
        if any(v != first for v in values[1:]):
            raise InconsistentPlatformError(setting, values)
        return first

    def _broadcast(self, handles: Sequence[HardwareValueHandle], value: str) -> None:
        for handle in handles:
            handle.write(value)

    # Governor

    def read_governor(self) -> ScalingGovernor:
        """Current governor; every core must agree."""
        values = [ScalingGovernor.from_string(h.read()) for h in self.governor]
        return self._uniform("scaling_governor", values)

    def set_governor(self, governor: ScalingGovernor) -> None:
        """Write the governor to every core, stopping at the first failure."""
        if governor is ScalingGovernor.UNKNOWN:
            raise ValueError("Cannot set an unknown scaling governor")
        self._broadcast(self.governor, governor.value)

    # Energy performance preference

    @property
    def supports_energy_preference(self) -> bool:
        """True if every core exposes energy_performance_preference."""
        return self.energy_preference is not None

    def read_energy_preference(self) -> EnergyPreference:
        """Current preference, or UNKNOWN when the knob is not exposed."""
        if self.energy_preference is None:
            return EnergyPreference.UNKNOWN
        values = [EnergyPreference.from_string(h.read()) for h in self.energy_preference]
        return self._uniform("energy_performance_preference", values)

    def set_energy_preference(self, preference: EnergyPreference) -> None:
        """Write the preference to every core."""
        if preference is EnergyPreference.UNKNOWN:
            raise ValueError("Cannot set an unknown energy performance preference")
        if self.energy_preference is None:
            raise UnsupportedSettingError("energy_performance_preference")
        self._broadcast(self.energy_preference, preference.value)

    # Turbo boost

    def read_turbo_boost(self) -> bool:
        """True if boost is enabled."""
        return self.boost.read_int() == 1

    def set_turbo_boost(self, enabled: bool) -> None:
        """Enable or disable boost for the whole package."""
        self.boost.write("1" if enabled else "0")

    # Frequencies (kHz in sysfs, GHz here)

    def read_average_frequency(self) -> float:
        """Mean current frequency over all cores."""
        total = sum(h.read_int() for h in self.cur_freq)
        return total / self.core_count / 1_000_000

    def read_min_frequency(self) -> float:
        """Scaling floor; every core must agree."""
        return self._uniform("scaling_min_freq", [h.read_int() for h in self.min_freq]) / 1_000_000

    def read_max_frequency(self) -> float:
        """Scaling ceiling; every core must agree."""
        return self._uniform("scaling_max_freq", [h.read_int() for h in self.max_freq]) / 1_000_000

    # Machine-wide telemetry

    def read_temperature(self) -> float:
        """Temperature in °C (sysfs reports millidegrees)."""
        return self.temperature.read_int() / 1000.0

    def _sample_stat(self) -> Tuple[int, int]:
        content = self.stat.read()
        first_line = content.splitlines()[0] if content else ""
        return parse_stat_line(first_line, self.stat.path)

    def read_load(self) -> float:
        """
        CPU load in percent over a short sampling window.

        /proc/stat counters are cumulative since boot, so two samples are
        taken LOAD_SAMPLE_INTERVAL apart and only the delta is used. Blocks
        for the length of the window.
        """
        first = self._sample_stat()
        time.sleep(LOAD_SAMPLE_INTERVAL)
        second = self._sample_stat()
        return compute_load(first, second)

    def read_power_draw(self) -> Optional[float]:
        """
        Package power in watts from the RAPL energy counter.

        Returns None when the counter is not exposed. Blocks for
        POWER_SAMPLE_INTERVAL.
        """
        if self.energy is None:
            return None
        start = self.energy.read_int()
        started = time.monotonic()
        time.sleep(POWER_SAMPLE_INTERVAL)
        end = self.energy.read_int()
        elapsed_ms = (time.monotonic() - started) * 1000.0
        if end < start:
            logging.debug("Energy counter wrapped (%d → %d), discarding sample", start, end)
        return compute_power(start, end, elapsed_ms)

    def validate(self) -> None:
        """Read every per-core setting once; raises on non-uniform cores."""
        self.read_governor()
        self.read_energy_preference()
        self.read_min_frequency()
        self.read_max_frequency()

    def close(self) -> None:
        for handle in self._handles:
            handle.close()
        self._handles = []
