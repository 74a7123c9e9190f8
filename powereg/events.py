#!/usr/bin/env python3
"""
Event source for the power state machine.

Merges power_supply udev notifications with a fixed-interval periodic tick
and hands out one discrete Event per call.
"""

import logging
import time
from enum import Enum
from typing import Iterable, Optional

import pyudev

from .config import DEFAULT_AC_ADAPTERS
from .errors import UnsupportedPlatformError


class Event(Enum):
    POWER_PLUG_IN = "power plugged in"
    POWER_UNPLUG = "power unplugged"
    PERIODIC_CHECK = "periodic check"
    LOW_BATTERY = "low battery"
    HIGH_CPU_TEMP = "high cpu temp"
    HIGH_CPU_LOAD = "high cpu load"
    LOAD_NORMALIZED = "load normalized"
    UNKNOWN = "unknown"


def classify_device(device, ac_adapters: Iterable[str] = DEFAULT_AC_ADAPTERS) -> Event:
    """Translate one power_supply uevent into an Event."""
    if getattr(device, "action", None) != "change":
        return Event.UNKNOWN

    properties = device.properties
    if properties.get("POWER_SUPPLY_NAME") not in tuple(ac_adapters):
        return Event.UNKNOWN

    online = properties.get("POWER_SUPPLY_ONLINE")
    if online == "1":
        return Event.POWER_PLUG_IN
    if online == "0":
        return Event.POWER_UNPLUG
    return Event.UNKNOWN


class EventPoller:
    """
    Blocking event source.

    Guarantees a PERIODIC_CHECK at least once per interval even when udev
    stays silent; adapter plug changes are reported as soon as the uevent
    arrives.
    """

    def __init__(self, interval: float = 5, ac_adapters: Iterable[str] = DEFAULT_AC_ADAPTERS,
                 monitor: Optional[pyudev.Monitor] = None):
        """
        Args:
            interval: Seconds between periodic checks.
            ac_adapters: power_supply names treated as the AC adapter.
            monitor: Pre-built monitor (anything with poll(timeout));
                by default a netlink monitor filtered to power_supply.
        """
        self.interval = interval
        self.ac_adapters = tuple(ac_adapters)
        self.monitor = monitor if monitor is not None else self._create_monitor()
        self.last_periodic_check = time.monotonic()

    @staticmethod
    def _create_monitor() -> pyudev.Monitor:
        try:
            context = pyudev.Context()
            monitor = pyudev.Monitor.from_netlink(context)
            monitor.filter_by(subsystem="power_supply")
            monitor.start()
        except (OSError, ImportError) as exc:
            raise UnsupportedPlatformError(f"Unable to subscribe to power_supply uevents: {exc}") from exc
        return monitor

    def poll_next(self) -> Event:
        """Wait for the next event; at most until the periodic deadline."""
        elapsed = time.monotonic() - self.last_periodic_check
        if elapsed >= self.interval:
            self.last_periodic_check = time.monotonic()
            return Event.PERIODIC_CHECK

        device = self.monitor.poll(timeout=self.interval - elapsed)
        if device is None:
            # Deadline reached; the next call fires the periodic check.
            return Event.UNKNOWN

        event = classify_device(device, self.ac_adapters)
        logging.debug("uevent %s %s → %s", device.action,
                      device.properties.get("POWER_SUPPLY_NAME"), event.value)
        return event

    def close(self) -> None:
        """Release the netlink subscription (pyudev unrefs it on collection)."""
        self.monitor = None
