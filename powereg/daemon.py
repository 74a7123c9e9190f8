#!/usr/bin/env python3
"""powereg - Event-Driven Power Governance Daemon

Switches a laptop between powersave, balanced and performance power modes
by driving cpufreq governors, energy performance preference, turbo boost
and the ACPI platform profile.

Features:
- Configuration loaded from YAML.
- AC adapter plug/unplug picked up from udev as it happens.
- Periodic reassessment of battery, CPU temperature and load.
- Charge thresholds applied at startup (ThinkPad).
- systemd service install/uninstall.
"""

import argparse
import logging
import os
import shutil
import sys

from .commands import ApplyThresholdsCommand
from .config import ConfigManager, find_config_file
from .controller import PowerStateMachine
from .errors import InvalidThresholdError, PowerGovError
from .events import EventPoller
from .service import ServiceError, install_service, is_service_active, uninstall_service
from .system_state import SystemState

CLEAR_SCREEN = "\x1b[2J\x1b[1;1H"


def setup_logging(log_file_path: str, log_level_str: str = "INFO") -> None:
    """Configure logging system for both file and console output."""
    log_level = getattr(logging, log_level_str.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]  # journald picks up stdout
    try:
        handlers.append(logging.FileHandler(log_file_path))
    except OSError as exc:
        print(f"[WARN] Cannot open log file {log_file_path}: {exc}", file=sys.stderr)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s [%(levelname)s] %(module)s: %(message)s',
        datefmt='%H:%M:%S',
        handlers=handlers,
    )
    logging.debug("Logging initialized at level %s", log_level_str.upper())


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="powereg",
        description="Event-driven power governance daemon.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("--daemon", action="store_true", help="Run the governance loop (service mode).")
    mode.add_argument("--live", action="store_true", help="Run the governance loop and show live telemetry.")
    mode.add_argument("--monitor", action="store_true", help="Show live telemetry without changing settings.")
    mode.add_argument("--install", action="store_true", help="Install and start the systemd service.")
    mode.add_argument("--uninstall", action="store_true", help="Stop and remove the systemd service.")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML configuration file. If not provided, searches in standard locations."
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level."
    )
    return parser.parse_args(argv)


def load_config(specified_path: str = None) -> ConfigManager:
    config_file_path = find_config_file(specified_path)
    if specified_path and not config_file_path:
        sys.exit(f"[ERR] Configuration file not found: {specified_path}")
    config = ConfigManager(config_file_path)
    return config


def apply_config(config: ConfigManager, state: SystemState) -> None:
    """Apply one-shot settings from the config (charge thresholds)."""
    try:
        thresholds = config.charge_thresholds
    except InvalidThresholdError as exc:
        logging.error("Not applying configured charge thresholds: %s", exc)
        return
    if thresholds is None:
        logging.info("No charge thresholds configured")
        return
    ApplyThresholdsCommand(state, *thresholds).execute()


def run_loop(state: SystemState, poller: EventPoller, machine: PowerStateMachine = None,
             display: bool = False) -> None:
    """
    Main event loop. Without a state machine only telemetry is displayed.
    """
    while True:
        if display:
            print(CLEAR_SCREEN + state.describe(), flush=True)
        event = poller.poll_next()
        if machine is not None:
            machine.handle_event(event, state)


def main(argv=None) -> None:
    """Main application entry point.

    Requires root privileges. Initializes components and enters the main
    event loop. Handles KeyboardInterrupt gracefully.
    """
    args = parse_args(argv)

    if os.geteuid() != 0:
        sys.exit("[ERR] powereg needs to be run with root privilege (sudo).")

    config = load_config(args.config)
    setup_logging(config.log_file, args.log_level)
    if config.config_path:
        logging.info("Using configuration from: %s", config.config_path)
    else:
        logging.warning("No configuration file found, using defaults")

    if args.install or args.uninstall:
        try:
            if args.install:
                if is_service_active():
                    logging.warning("powereg is already running in daemon mode")
                    return
                install_service(shutil.which("powereg") or os.path.abspath(sys.argv[0]))
            else:
                if not is_service_active():
                    logging.warning("powereg is not running in daemon mode")
                uninstall_service()
        except ServiceError as exc:
            logging.error("%s", exc)
            sys.exit(1)
        return

    if args.live and is_service_active():
        sys.exit("[ERR] powereg is already running in daemon mode, use 'sudo powereg --monitor'.")
    if args.monitor and not is_service_active():
        logging.warning("powereg is not running in daemon mode (use 'sudo powereg --install')")

    try:
        state = SystemState.from_system(config)
    except PowerGovError as exc:
        logging.critical("Unable to set up system state: %s", exc)
        sys.exit(1)

    poller = None
    try:
        poller = EventPoller(config.poll_interval, config.ac_adapters)
        machine = None
        if not args.monitor:
            apply_config(config, state)
            machine = PowerStateMachine(config=config)
            machine.enter_initial_mode(state)

        logging.info("Starting main event loop. Press Ctrl+C to exit.")
        run_loop(state, poller, machine, display=args.live or args.monitor)
    except KeyboardInterrupt:
        logging.info("KeyboardInterrupt received, exiting.")
    except PowerGovError as exc:
        logging.critical("Fatal error: %s", exc, exc_info=True)
        sys.exit(1)
    finally:
        if poller is not None:
            poller.close()
        state.close()


if __name__ == "__main__":
    main()
