#!/usr/bin/env python3
"""
Power mode control logic module.

Decides the power mode from events and telemetry and applies the matching
bundle of hardware settings.
"""

import logging
import time
from typing import Dict, List, Tuple

from .analyzer import PowerAnalyzer
from .battery import ChargingStatus, PlatformProfile
from .commands import (
    Command,
    SetEnergyPreferenceCommand,
    SetGovernorCommand,
    SetPlatformProfileCommand,
    SetTurboBoostCommand,
    run_all,
)
from .config import ConfigManager
from .cpu import EnergyPreference, ScalingGovernor
from .errors import PowerGovError
from .events import Event
from .system_state import PowerMode, SystemState

# (mode, event) pairs that change the mode; every other pair keeps it.
TRANSITIONS: Dict[Tuple[PowerMode, Event], PowerMode] = {
    (PowerMode.PERFORMANCE, Event.POWER_UNPLUG): PowerMode.POWERSAVE,
    (PowerMode.PERFORMANCE, Event.LOW_BATTERY): PowerMode.POWERSAVE,
    (PowerMode.PERFORMANCE, Event.HIGH_CPU_TEMP): PowerMode.BALANCED,
    (PowerMode.PERFORMANCE, Event.HIGH_CPU_LOAD): PowerMode.BALANCED,

    (PowerMode.BALANCED, Event.POWER_PLUG_IN): PowerMode.PERFORMANCE,
    (PowerMode.BALANCED, Event.POWER_UNPLUG): PowerMode.POWERSAVE,
    (PowerMode.BALANCED, Event.LOW_BATTERY): PowerMode.POWERSAVE,
    (PowerMode.BALANCED, Event.LOAD_NORMALIZED): PowerMode.PERFORMANCE,

    (PowerMode.POWERSAVE, Event.POWER_PLUG_IN): PowerMode.PERFORMANCE,
}


def next_mode(mode: PowerMode, event: Event) -> PowerMode:
    """Transition table lookup; unlisted pairs leave the mode unchanged."""
    return TRANSITIONS.get((mode, event), mode)


def initial_mode(status: ChargingStatus) -> PowerMode:
    """Mode to start in: performance on AC, powersave otherwise."""
    if status in (ChargingStatus.CHARGING, ChargingStatus.NOT_CHARGING):
        return PowerMode.PERFORMANCE
    return PowerMode.POWERSAVE


def _powersave_commands(state: SystemState) -> List[Command]:
    return [
        SetGovernorCommand(state, ScalingGovernor.POWERSAVE),
        SetEnergyPreferenceCommand(state, EnergyPreference.POWER),
        SetPlatformProfileCommand(state, PlatformProfile.LOW_POWER),
        SetTurboBoostCommand(state, False),
    ]


def _read_status(state: SystemState) -> ChargingStatus:
    try:
        return state.battery.read_charging_status()
    except PowerGovError as exc:
        logging.warning("Charging status unavailable: %s", exc)
        return ChargingStatus.UNKNOWN


def mode_commands(state: SystemState, mode: PowerMode) -> List[Command]:
    """
    Hardware settings for a mode.

    Balanced degrades to powersave settings on battery; performance is
    refused on battery (no commands at all).
    """
    if mode is PowerMode.POWERSAVE:
        return _powersave_commands(state)

    if mode is PowerMode.BALANCED:
        if _read_status(state) is ChargingStatus.DISCHARGING:
            return _powersave_commands(state)
        return [
            SetGovernorCommand(state, ScalingGovernor.POWERSAVE),
            SetEnergyPreferenceCommand(state, EnergyPreference.BALANCE_POWER),
            SetPlatformProfileCommand(state, PlatformProfile.BALANCED),
            SetTurboBoostCommand(state, False),
        ]

    if mode is PowerMode.PERFORMANCE:
        try:
            status = state.battery.read_charging_status()
        except PowerGovError as exc:
            logging.warning("Charging status unavailable, not entering performance: %s", exc)
            return []
        if status is ChargingStatus.DISCHARGING:
            logging.debug("Performance mode refused on battery")
            return []
        return [
            SetGovernorCommand(state, ScalingGovernor.PERFORMANCE),
            SetEnergyPreferenceCommand(state, EnergyPreference.PERFORMANCE),
            SetPlatformProfileCommand(state, PlatformProfile.PERFORMANCE),
            SetTurboBoostCommand(state, True),
        ]

    raise ValueError(f"Unhandled power mode: {mode}")


def apply_mode(state: SystemState, mode: PowerMode) -> List[bool]:
    """Apply every setting of a mode; one failure does not stop the rest."""
    return run_all(mode_commands(state, mode))


class PowerStateMachine:
    """
    Event-driven power mode state machine.

    States: POWERSAVE, BALANCED, PERFORMANCE. Each event is first replaced
    by the telemetry reassessment, then looked up in the transition table,
    then the resulting mode's settings are (re)applied. Applying a mode is
    idempotent, so it happens every cycle.
    """

    def __init__(self, analyzer: PowerAnalyzer = None, config: ConfigManager = None):
        """Initialize the state machine with dependencies."""
        self.config = config or ConfigManager()
        self.analyzer = analyzer or PowerAnalyzer(self.config)
        self.last_event = Event.UNKNOWN
        self.last_log = 0.0

    def enter_initial_mode(self, state: SystemState) -> PowerMode:
        """Pick and apply the startup mode from the charging status."""
        state.mode = initial_mode(_read_status(state))
        logging.info("Initial mode: %s", state.mode.value)
        apply_mode(state, state.mode)
        return state.mode

    def handle_event(self, event: Event, state: SystemState) -> PowerMode:
        """
        Process one event: reassess, transition, apply.

        Returns:
            The mode the machine is in after this cycle.
        """
        resolved = self.analyzer.reassess(event, state)
        self.last_event = resolved

        previous = state.mode
        state.mode = next_mode(previous, resolved)
        if state.mode is not previous:
            logging.info("Mode %s → %s (%s)", previous.value, state.mode.value, resolved.value)

        apply_mode(state, state.mode)
        self.log_status(time.time(), state)
        return state.mode

    def log_status(self, now: float, state: SystemState) -> None:
        """Log system status periodically."""
        if now - self.last_log < self.config.log_interval:
            return

        self.last_log = now
        assessment = self.analyzer.last_assessment
        if assessment is None:
            telemetry = "telemetry=n/a"
        else:
            telemetry = "cap={}% bat={} temp={:.1f}°C load={:.1f}%".format(
                assessment.capacity,
                assessment.status.value.lower(),
                assessment.temperature,
                assessment.load,
            )

        logging.info("mode=%s event=%s %s", state.mode.value[:4], self.last_event.value, telemetry)
