#!/usr/bin/env python3
"""
systemd service management for the powereg daemon.
"""

import logging
import os
import subprocess
from typing import List, Sequence

from .errors import PowerGovError

SERVICE_NAME = "powereg"
SERVICE_PATH = "/etc/systemd/system/powereg.service"
RUN_FLAG = "--daemon"

# Other power managers fight over the same sysfs knobs.
CONFLICTING_SERVICES = (
    "power-profiles-daemon.service",
    "tlp.service",
    "auto-cpufreq.service",
)

UNIT_TEMPLATE = """\
[Unit]
Description=PowerEG - Power Management Daemon
After=network.target

[Service]
Type=simple
User=root
ExecStart={binary} {flag}
Restart=on-failure
RestartSec=10

# Security and isolation options
ProtectSystem=strict
ProtectHome=yes
NoNewPrivileges=true
PrivateTmp=yes
ReadWritePaths=/sys /var/log

# Logging
StandardOutput=journal
StandardError=journal
SyslogIdentifier={name}

[Install]
WantedBy=multi-user.target
"""


class ServiceError(PowerGovError):
    """A systemctl step failed."""


def _systemctl(*args: str) -> subprocess.CompletedProcess:
    logging.info("Running 'systemctl %s'", " ".join(args))
    return subprocess.run(["systemctl", *args], capture_output=True, text=True)


def _checked(*args: str) -> None:
    try:
        result = _systemctl(*args)
    except OSError as exc:
        raise ServiceError(f"Failed to run 'systemctl {' '.join(args)}': {exc}") from exc
    if result.returncode != 0:
        raise ServiceError(f"systemctl {' '.join(args)} failed: {result.stderr.strip()}")


def is_service_active(name: str = SERVICE_NAME) -> bool:
    """True if systemd reports the unit as active."""
    try:
        result = _systemctl("is-active", name)
    except OSError as exc:
        logging.warning("Unable to query systemd: %s", exc)
        return False
    return result.stdout.strip().lower() == "active"


def render_unit(binary: str) -> str:
    return UNIT_TEMPLATE.format(binary=binary, flag=RUN_FLAG, name=SERVICE_NAME)


def stop_conflicting_services(services: Sequence[str] = CONFLICTING_SERVICES) -> List[str]:
    """Stop and disable active power managers. Returns the ones found."""
    found = []
    for service in services:
        if not is_service_active(service):
            continue
        found.append(service)
        logging.warning("Found running service: %s", service)
        for action in ("stop", "disable"):
            try:
                _checked(action, service)
            except ServiceError as exc:
                logging.error("Failed to %s %s: %s", action, service, exc)
                break

    if not found:
        logging.info("No conflicting power management services found")
    return found


def install_service(binary: str, unit_path: str = SERVICE_PATH) -> None:
    """Write the unit file, then enable and start the service."""
    stop_conflicting_services()

    try:
        with open(unit_path, "w") as f:
            f.write(render_unit(binary))
    except OSError as exc:
        raise ServiceError(f"Failed to write service file to {unit_path}: {exc}") from exc

    _checked("daemon-reload")
    _checked("enable", SERVICE_NAME)
    _checked("start", SERVICE_NAME)
    logging.info("powereg installed and started via systemd")


def uninstall_service(unit_path: str = SERVICE_PATH) -> None:
    """Disable and stop the service, then remove its unit file."""
    for action in ("disable", "stop"):
        try:
            _checked(action, SERVICE_NAME)
        except ServiceError as exc:
            logging.error("%s", exc)

    try:
        os.remove(unit_path)
    except OSError as exc:
        raise ServiceError(f"Failed to remove service file at {unit_path}: {exc}") from exc

    _checked("daemon-reload")
    logging.info("powereg uninstalled")
