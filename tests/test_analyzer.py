import pytest

from powereg.analyzer import Assessment, PowerAnalyzer
from powereg.battery import ChargingStatus
from powereg.config import ConfigManager
from powereg.events import Event
from powereg.system_state import PowerMode

BAT = "/sys/class/power_supply/BAT0"


def assessment(capacity=80, status=ChargingStatus.CHARGING, temperature=50.0, load=10.0):
    return Assessment(capacity=capacity, status=status, temperature=temperature, load=load)


@pytest.fixture
def analyzer():
    return PowerAnalyzer(ConfigManager())


@pytest.mark.parametrize("sample,mode,expected", [
    (assessment(capacity=25), PowerMode.PERFORMANCE, Event.LOW_BATTERY),
    (assessment(capacity=10, temperature=95.0), PowerMode.PERFORMANCE, Event.LOW_BATTERY),
    (assessment(status=ChargingStatus.DISCHARGING), PowerMode.PERFORMANCE, Event.POWER_UNPLUG),
    (assessment(status=ChargingStatus.NOT_CHARGING), PowerMode.BALANCED, Event.POWER_UNPLUG),
    (assessment(status=ChargingStatus.DISCHARGING), PowerMode.POWERSAVE, Event.UNKNOWN),
    (assessment(), PowerMode.POWERSAVE, Event.POWER_PLUG_IN),
    (assessment(temperature=85.0), PowerMode.PERFORMANCE, Event.HIGH_CPU_LOAD),
    (assessment(load=90.0), PowerMode.PERFORMANCE, Event.HIGH_CPU_LOAD),
    (assessment(load=90.0), PowerMode.BALANCED, Event.HIGH_CPU_LOAD),
    (assessment(), PowerMode.BALANCED, Event.LOAD_NORMALIZED),
    (assessment(), PowerMode.PERFORMANCE, Event.UNKNOWN),
])
def test_classify(analyzer, sample, mode, expected):
    assert analyzer.classify(sample, mode) is expected


def test_thresholds_come_from_config(make_config):
    analyzer = PowerAnalyzer(make_config(low_battery_capacity=50, high_cpu_load=60))

    assert analyzer.classify(assessment(capacity=45), PowerMode.PERFORMANCE) is Event.LOW_BATTERY
    assert analyzer.classify(assessment(load=65.0), PowerMode.PERFORMANCE) is Event.HIGH_CPU_LOAD


def test_reassess_replaces_observed_event(analyzer, state, sysfs):
    state.mode = PowerMode.PERFORMANCE
    sysfs.write("/sys/class/thermal/thermal_zone0/temp", 90000)

    assert analyzer.reassess(Event.PERIODIC_CHECK, state) is Event.HIGH_CPU_LOAD
    assert analyzer.last_assessment.temperature == pytest.approx(90.0)
    assert analyzer.last_assessment.capacity == 80


def test_reassess_overrides_plug_event_from_telemetry(analyzer, state, sysfs):
    state.mode = PowerMode.POWERSAVE
    sysfs.write(f"{BAT}/status", "Discharging")

    assert analyzer.reassess(Event.POWER_PLUG_IN, state) is Event.UNKNOWN


def test_reassess_falls_back_to_observed_event(analyzer, state, sysfs):
    sysfs.write(f"{BAT}/capacity", "garbage")

    assert analyzer.reassess(Event.POWER_UNPLUG, state) is Event.POWER_UNPLUG
    assert analyzer.last_assessment is None
