#!/usr/bin/env python3
"""
Configuration manager for the power governance daemon.

Handles loading and accessing configuration from a YAML file. Every
setting has a default, so an empty manager is a usable configuration.
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import InvalidThresholdError

DEFAULT_AC_ADAPTERS = ("AC", "ACAD", "ADP1", "AC0")


def user_config_path() -> Optional[Path]:
    """Per-user config file, resolved for the invoking user under sudo."""
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user:
        return Path("/home") / sudo_user / ".config/powereg/config.yaml"
    home = os.environ.get("HOME")
    if home:
        return Path(home) / ".config/powereg/config.yaml"
    return None


def find_config_file(specified_path: str = None) -> Optional[str]:
    """
    Find the configuration file.
    Searches in order: specified path, the user's config dir, /etc.
    """
    if specified_path:
        return specified_path if os.path.exists(specified_path) else None

    search_paths = [user_config_path(), Path("/etc/powereg/config.yaml")]
    for path in search_paths:
        if path is not None and path.exists():
            return str(path)
    return None


class ConfigManager:
    """
    Manages loading and accessing configuration from YAML file.
    Supports reloading configuration at runtime.
    """

    _instance = None

    def __new__(cls, config_path=None):
        """Singleton pattern to ensure only one config instance exists."""
        if cls._instance is None:
            cls._instance = super(ConfigManager, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config_path=None):
        """Initialize the configuration manager with a config file path."""
        if self._initialized:
            return

        self.config_path = config_path
        self._config: Dict[str, Any] = {}

        if config_path:
            self.reload()

        self._initialized = True

    def reload(self) -> None:
        """Reload configuration from YAML file."""
        if not self.config_path or not os.path.exists(self.config_path):
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ValueError(f"Error loading configuration: {str(e)}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"Error loading configuration: expected a mapping in {self.config_path}")
        self._config = data

    @property
    def _battery(self) -> Dict[str, Any]:
        return self._config.get("battery") or {}

    @property
    def log_file(self) -> str:
        """Log file for daemon output."""
        return self._config.get("log_file", "/var/log/powereg.log")

    @property
    def poll_interval(self) -> int:
        """Seconds between periodic reassessments when no udev event arrives."""
        return self._config.get("poll_interval", 5)

    @property
    def log_interval(self) -> int:
        """How often to write a status line (seconds)."""
        return self._config.get("log_interval", 60)

    @property
    def low_battery_capacity(self) -> int:
        """At or below this capacity (%) the machine is forced to powersave."""
        return self._config.get("low_battery_capacity", 25)

    @property
    def high_cpu_temp(self) -> int:
        """°C at which the CPU counts as running hot."""
        return self._config.get("high_cpu_temp", 85)

    @property
    def high_cpu_load(self) -> int:
        """Load (%) at which the CPU counts as saturated."""
        return self._config.get("high_cpu_load", 85)

    @property
    def battery_name(self) -> str:
        return self._battery.get("name", "BAT0")

    @property
    def charge_thresholds(self) -> Optional[Tuple[int, int]]:
        """(start, stop) charge thresholds, or None when not configured."""
        start = self._battery.get("start_threshold")
        stop = self._battery.get("stop_threshold")
        if start is None or stop is None:
            return None
        try:
            return int(start), int(stop)
        except (TypeError, ValueError):
            raise InvalidThresholdError(start, stop, "thresholds must be integers") from None

    @property
    def ac_adapters(self) -> Tuple[str, ...]:
        """power_supply names that identify the AC adapter."""
        return tuple(self._config.get("ac_adapters", DEFAULT_AC_ADAPTERS))

    @property
    def sysfs_root(self) -> str:
        """Prefix for all kernel paths (tests and containers)."""
        return self._config.get("sysfs_root", "/")
