"""
Shared fixtures: a fake sysfs/procfs tree and a clean configuration.
"""

import os

import pytest
import yaml

from powereg.battery import AcpiType, BatteryController
from powereg.config import ConfigManager
from powereg.cpu import CpuController, CpuType
from powereg.system_state import PowerMode, SystemState

CORES = 4

STAT_IDLE = "cpu  100 0 100 700 100 0 0 0 0 0\ncpu0 25 0 25 175 25 0 0 0 0 0\nintr 12345\n"


class FakeSysfs:
    """A kernel file tree below a temporary directory."""

    def __init__(self, root):
        self.root = str(root)

    def path(self, path: str) -> str:
        return os.path.join(self.root, path.lstrip("/"))

    def write(self, path: str, value) -> None:
        full = self.path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "w") as f:
            f.write(f"{value}\n")

    def read(self, path: str) -> str:
        with open(self.path(path)) as f:
            return f.read().strip()

    def remove(self, path: str) -> None:
        os.remove(self.path(path))

    def cpufreq(self, index: int, name: str) -> str:
        return f"/sys/devices/system/cpu/cpu{index}/cpufreq/{name}"

    def write_all_cores(self, name: str, value) -> None:
        for i in range(CORES):
            self.write(self.cpufreq(i, name), value)

    def read_all_cores(self, name: str):
        return [self.read(self.cpufreq(i, name)) for i in range(CORES)]

    def snapshot(self):
        """Every writable setting the state machine touches."""
        return {
            "governor": self.read_all_cores("scaling_governor"),
            "epp": self.read_all_cores("energy_performance_preference"),
            "boost": self.read("/sys/devices/system/cpu/cpufreq/boost"),
            "profile": self.read("/sys/firmware/acpi/platform_profile"),
        }


def populate(fake: FakeSysfs) -> None:
    fake.write("/proc/cpuinfo", "processor\t: 0\nvendor_id\t: AuthenticAMD\ncpu family\t: 25")
    fake.write("/proc/stat", STAT_IDLE)
    fake.write("/sys/devices/system/cpu/cpu0/cpufreq/scaling_available_governors", "performance powersave")
    fake.write("/sys/devices/system/cpu/cpufreq/boost", 1)
    fake.write("/sys/devices/system/cpu/amd_pstate/status", "active")
    os.makedirs(fake.path("/sys/devices/system/cpu/cpuidle"), exist_ok=True)
    fake.write_all_cores("scaling_governor", "powersave")
    fake.write_all_cores("energy_performance_preference", "balance_power")
    fake.write_all_cores("scaling_min_freq", 400000)
    fake.write_all_cores("scaling_max_freq", 5100000)
    fake.write_all_cores("scaling_cur_freq", 2000000)
    fake.write("/sys/class/thermal/thermal_zone0/temp", 45000)
    fake.write("/sys/class/powercap/intel-rapl:0/energy_uj", 1000000)

    bat = "/sys/class/power_supply/BAT0"
    fake.write(f"{bat}/status", "Charging")
    fake.write(f"{bat}/capacity", 80)
    fake.write(f"{bat}/power_now", 12500000)
    fake.write(f"{bat}/charge_start_threshold", 40)
    fake.write(f"{bat}/charge_stop_threshold", 90)
    fake.write("/sys/class/power_supply/AC/online", 1)
    fake.write("/sys/firmware/acpi/platform_profile", "balanced")
    fake.write("/sys/class/dmi/id/product_version", "ThinkPad T14s Gen 4")
    fake.write("/sys/class/dmi/id/product_name", "21F8CTO1WW")


@pytest.fixture(autouse=True)
def fresh_config():
    """ConfigManager is a singleton; give every test its own."""
    ConfigManager._instance = None
    yield
    ConfigManager._instance = None


@pytest.fixture(autouse=True)
def no_sampling_delay(monkeypatch):
    monkeypatch.setattr("powereg.cpu.time.sleep", lambda seconds: None)


@pytest.fixture
def sysfs(tmp_path):
    fake = FakeSysfs(tmp_path / "root")
    populate(fake)
    return fake


@pytest.fixture
def make_config(tmp_path):
    def _make(**values):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(values))
        return ConfigManager(str(path))
    return _make


@pytest.fixture
def cpu(sysfs):
    controller = CpuController(range(CORES), CpuType.AMD, sysfs.root)
    yield controller
    controller.close()


@pytest.fixture
def battery(sysfs):
    controller = BatteryController("BAT0", sysfs.root)
    yield controller
    controller.close()


@pytest.fixture
def state(sysfs):
    system = SystemState(
        CpuController(range(CORES), CpuType.AMD, sysfs.root),
        BatteryController("BAT0", sysfs.root),
        CpuType.AMD,
        AcpiType.THINKPAD,
        mode=PowerMode.POWERSAVE,
    )
    yield system
    system.close()
