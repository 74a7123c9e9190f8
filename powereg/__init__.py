"""
powereg - Power Governance Daemon.

An event-driven state machine that moves a Linux laptop between powersave,
balanced and performance modes by driving cpufreq, energy performance
preference, turbo boost and the ACPI platform profile.
"""

__version__ = "0.3.0"

# Core components
from .config import ConfigManager
from .handle import HardwareValueHandle
from .cpu import CpuController, CpuType, EnergyPreference, ScalingGovernor
from .battery import AcpiType, BatteryController, ChargingStatus, PlatformProfile
from .events import Event, EventPoller
from .system_state import PowerMode, SystemState
from .analyzer import PowerAnalyzer
from .controller import PowerStateMachine

# Re-export key components for easier importing by external modules/scripts if any.
# For internal use, direct imports like `from .config import ConfigManager` are preferred.
__all__ = [
    "ConfigManager",
    "HardwareValueHandle",
    "CpuController", "CpuType", "EnergyPreference", "ScalingGovernor",
    "BatteryController", "AcpiType", "ChargingStatus", "PlatformProfile",
    "Event", "EventPoller",
    "PowerMode", "SystemState",
    "PowerAnalyzer",
    "PowerStateMachine",
    "__version__"
]
