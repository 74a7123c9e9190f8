#!/usr/bin/env python3
"""
Telemetry analysis module.

Derives, from live battery and CPU telemetry, which event the power state
machine should act on.
"""

import logging
from dataclasses import dataclass

from .battery import ChargingStatus
from .config import ConfigManager
from .errors import PowerGovError
from .events import Event
from .system_state import PowerMode, SystemState


@dataclass(frozen=True)
class Assessment:
    """Telemetry sampled for one reassessment."""
    capacity: int
    status: ChargingStatus
    temperature: float
    load: float


class PowerAnalyzer:
    """
    Re-derives the event from telemetry.

    Rules, first match wins:
    1. capacity at or below the low battery threshold → LOW_BATTERY
    2. not charging while in performance/balanced → POWER_UNPLUG
    3. charging while in powersave → POWER_PLUG_IN
    4. temperature or load at/above their thresholds → HIGH_CPU_LOAD
    5. charging while in balanced → LOAD_NORMALIZED
    6. otherwise → UNKNOWN

    High temperature and high load share one event (HIGH_CPU_LOAD).
    """

    def __init__(self, config: ConfigManager = None):
        self.config = config or ConfigManager()
        self.last_assessment = None

    def sample(self, state: SystemState) -> Assessment:
        """Read all telemetry the rules need. Blocks for the load window."""
        return Assessment(
            capacity=state.battery.read_capacity(),
            status=state.battery.read_charging_status(),
            temperature=state.cpu.read_temperature(),
            load=state.cpu.read_load(),
        )

    def classify(self, assessment: Assessment, mode: PowerMode) -> Event:
        """Apply the priority rules to one sample."""
        charging = assessment.status is ChargingStatus.CHARGING

        if assessment.capacity <= self.config.low_battery_capacity:
            return Event.LOW_BATTERY
        if not charging and mode in (PowerMode.PERFORMANCE, PowerMode.BALANCED):
            return Event.POWER_UNPLUG
        if charging and mode is PowerMode.POWERSAVE:
            return Event.POWER_PLUG_IN
        if (assessment.temperature >= self.config.high_cpu_temp
                or assessment.load >= self.config.high_cpu_load):
            return Event.HIGH_CPU_LOAD
        if charging and mode is PowerMode.BALANCED:
            return Event.LOAD_NORMALIZED
        return Event.UNKNOWN

    def reassess(self, observed: Event, state: SystemState) -> Event:
        """
        Event to act on this cycle.

        The telemetry-derived event replaces the observed one; if telemetry
        cannot be read, the observed event is used for this cycle only.
        """
        try:
            assessment = self.sample(state)
        except PowerGovError as exc:
            logging.warning("Telemetry unavailable (%s), acting on %s", exc, observed.value)
            return observed

        self.last_assessment = assessment
        return self.classify(assessment, state.mode)
