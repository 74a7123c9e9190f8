import os
import shutil

import pytest

from powereg.battery import AcpiType
from powereg.cpu import CpuType
from powereg.errors import HandleOpenError, InconsistentPlatformError, UnsupportedPlatformError
from powereg.system_state import PowerMode, SystemState

BAT = "/sys/class/power_supply/BAT0"


def test_from_system(sysfs, make_config):
    state = SystemState.from_system(make_config(sysfs_root=sysfs.root))

    assert state.linux
    assert state.cpu_type is CpuType.AMD
    assert state.acpi_type is AcpiType.THINKPAD
    assert state.cpu.core_count == 4
    assert state.mode is PowerMode.POWERSAVE
    state.close()


def test_from_system_with_offline_core(sysfs, make_config):
    base = "/sys/devices/system/cpu"
    os.makedirs(sysfs.path(f"{base}/cpu5"))
    shutil.move(sysfs.path(f"{base}/cpu2/cpufreq"), sysfs.path(f"{base}/cpu5/cpufreq"))

    state = SystemState.from_system(make_config(sysfs_root=sysfs.root))
    assert state.cpu.cores == [0, 1, 3, 5]
    assert state.cpu.core_count == 4
    state.close()


def test_from_system_uses_configured_battery(sysfs, make_config):
    for name in ("status", "capacity", "power_now"):
        sysfs.write(f"/sys/class/power_supply/BAT1/{name}", sysfs.read(f"{BAT}/{name}"))

    state = SystemState.from_system(make_config(sysfs_root=sysfs.root, battery={"name": "BAT1"}))
    assert state.battery.battery == "BAT1"
    assert not state.battery.supports_thresholds
    state.close()


@pytest.mark.parametrize("vendor", ["GenuineIntel", "HygonGenuine"])
def test_only_amd_is_supported(sysfs, make_config, vendor):
    sysfs.write("/proc/cpuinfo", f"vendor_id\t: {vendor}")
    with pytest.raises(UnsupportedPlatformError):
        SystemState.from_system(make_config(sysfs_root=sysfs.root))


def test_missing_battery_control(sysfs, make_config):
    sysfs.remove(f"{BAT}/capacity")
    with pytest.raises(HandleOpenError) as excinfo:
        SystemState.from_system(make_config(sysfs_root=sysfs.root))
    assert excinfo.value.path.endswith("BAT0/capacity")


def test_inconsistent_cores_are_fatal(sysfs, make_config):
    sysfs.write(sysfs.cpufreq(3, "scaling_min_freq"), 1000000)
    with pytest.raises(InconsistentPlatformError):
        SystemState.from_system(make_config(sysfs_root=sysfs.root))


def test_describe(state):
    report = state.describe()

    assert "  scaling governor: powersave" in report
    assert "  energy preference: balance_power" in report
    assert "  turbo boost: on" in report
    assert "  min/max cpu freq: 0.40-5.10 GHz" in report
    assert "  cpu temp: 45.0°C" in report
    assert "  charging status: Charging" in report
    assert "  battery capacity: 80%" in report
    assert "  charge start threshold: 40%" in report
    assert "  total power draw: 12.50 W" in report
    assert "  platform profile: balanced" in report
    assert report.endswith("State: Powersave")


def test_describe_shows_na_for_failed_reads(state, sysfs):
    sysfs.write(sysfs.cpufreq(1, "scaling_governor"), "performance")
    state.battery.capacity.close()
    state.mode = PowerMode.PERFORMANCE

    report = state.describe()
    assert "  scaling governor: n/a" in report
    assert "  battery capacity: n/a" in report
    assert "  platform profile: balanced" in report
    assert report.endswith("State: Performance")


def test_close(state):
    state.close()
    assert state.cpu.boost.closed
    assert state.battery.platform_profile.closed
