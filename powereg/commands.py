#!/usr/bin/env python3
"""
Command pattern implementation for hardware settings.

Each command performs one hardware write. Failures are logged and reported
through the return value so that the remaining commands of a mode change
still run.
"""

import logging
from abc import ABC, abstractmethod
from typing import Iterable, List

from .battery import AcpiType, PlatformProfile
from .cpu import EnergyPreference, ScalingGovernor
from .errors import PowerGovError, UnsupportedSettingError
from .system_state import SystemState


class Command(ABC):
    """Base command interface for the Command pattern."""

    description = "command"

    @abstractmethod
    def _apply(self) -> None:
        """Perform the write; may raise PowerGovError."""

    def execute(self) -> bool:
        """Run the command. Returns True if the setting was applied."""
        try:
            self._apply()
        except UnsupportedSettingError as exc:
            logging.debug("Skipping %s: %s", self.description, exc)
            return False
        except PowerGovError as exc:
            logging.error("Unable to set %s: %s", self.description, exc)
            return False
        logging.debug("%s applied", self.description)
        return True


class SetGovernorCommand(Command):
    """Broadcast a scaling governor to every core."""

    def __init__(self, state: SystemState, governor: ScalingGovernor):
        self.state = state
        self.governor = governor
        self.description = f"scaling governor to {governor.value}"

    def _apply(self) -> None:
        self.state.cpu.set_governor(self.governor)


class SetEnergyPreferenceCommand(Command):
    def __init__(self, state: SystemState, preference: EnergyPreference):
        self.state = state
        self.preference = preference
        self.description = f"energy preference to {preference.value}"

    def _apply(self) -> None:
        self.state.cpu.set_energy_preference(self.preference)


class SetPlatformProfileCommand(Command):
    def __init__(self, state: SystemState, profile: PlatformProfile):
        self.state = state
        self.profile = profile
        self.description = f"platform profile to {profile.to_string()}"

    def _apply(self) -> None:
        self.state.battery.set_platform_profile(self.profile)


class SetTurboBoostCommand(Command):
    def __init__(self, state: SystemState, enabled: bool):
        self.state = state
        self.enabled = enabled
        self.description = f"turbo boost {'on' if enabled else 'off'}"

    def _apply(self) -> None:
        self.state.cpu.set_turbo_boost(self.enabled)


class ApplyThresholdsCommand(Command):
    """
    Apply configured charge thresholds.

    Only ThinkPad firmware exposes usable thresholds. The pair is validated
    before anything is written.
    """

    def __init__(self, state: SystemState, start: int, stop: int):
        self.state = state
        self.start = start
        self.stop = stop
        self.description = f"charge thresholds to {start}-{stop}%"

    def _apply(self) -> None:
        if self.state.acpi_type is not AcpiType.THINKPAD:
            raise UnsupportedSettingError(
                f"charge thresholds on {self.state.acpi_type.name.lower()} chassis")
        self.state.battery.set_thresholds(self.start, self.stop)

    def execute(self) -> bool:
        # Rejected thresholds are a configuration mistake, not a debug detail.
        try:
            self._apply()
        except PowerGovError as exc:
            logging.error("Not applying %s: %s", self.description, exc)
            return False
        return True


def run_all(commands: Iterable[Command]) -> List[bool]:
    """Execute every command regardless of earlier failures."""
    return [cmd.execute() for cmd in commands]
