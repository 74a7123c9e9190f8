import logging

from powereg.battery import AcpiType, PlatformProfile
from powereg.commands import (
    ApplyThresholdsCommand,
    SetEnergyPreferenceCommand,
    SetGovernorCommand,
    SetPlatformProfileCommand,
    SetTurboBoostCommand,
    run_all,
)
from powereg.cpu import EnergyPreference, ScalingGovernor

BAT = "/sys/class/power_supply/BAT0"


def test_commands_apply_settings(state, sysfs):
    results = run_all([
        SetGovernorCommand(state, ScalingGovernor.PERFORMANCE),
        SetEnergyPreferenceCommand(state, EnergyPreference.BALANCE_PERFORMANCE),
        SetPlatformProfileCommand(state, PlatformProfile.PERFORMANCE),
        SetTurboBoostCommand(state, False),
    ])

    assert results == [True, True, True, True]
    assert sysfs.snapshot() == {
        "governor": ["performance"] * 4,
        "epp": ["balance_performance"] * 4,
        "boost": "0",
        "profile": "performance",
    }


def test_failed_write_is_logged_and_reported(state, caplog):
    state.battery.platform_profile.close()
    with caplog.at_level(logging.ERROR):
        ok = SetPlatformProfileCommand(state, PlatformProfile.LOW_POWER).execute()

    assert not ok
    assert "platform profile to low-power" in caplog.text


def test_unsupported_setting_is_skipped_quietly(state, caplog):
    state.cpu.energy_preference = None
    with caplog.at_level(logging.ERROR):
        ok = SetEnergyPreferenceCommand(state, EnergyPreference.POWER).execute()

    assert not ok
    assert caplog.records == []


def test_apply_thresholds(state, sysfs):
    assert ApplyThresholdsCommand(state, 60, 80).execute()
    assert sysfs.read(f"{BAT}/charge_start_threshold") == "60"
    assert sysfs.read(f"{BAT}/charge_stop_threshold") == "80"


def test_apply_thresholds_rejects_invalid_pair(state, sysfs, caplog):
    with caplog.at_level(logging.ERROR):
        assert not ApplyThresholdsCommand(state, 80, 80).execute()

    assert "Invalid charge thresholds" in caplog.text
    assert sysfs.read(f"{BAT}/charge_start_threshold") == "40"
    assert sysfs.read(f"{BAT}/charge_stop_threshold") == "90"


def test_apply_thresholds_only_on_thinkpad(state, sysfs, caplog):
    state.acpi_type = AcpiType.IDEAPAD
    with caplog.at_level(logging.ERROR):
        assert not ApplyThresholdsCommand(state, 60, 80).execute()

    assert "ideapad" in caplog.text
    assert sysfs.read(f"{BAT}/charge_start_threshold") == "40"
