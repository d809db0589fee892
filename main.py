#!/usr/bin/env python3
"""
Table Anomaly Monitor - Main Entry Point

Opens the monitored page in Chrome and watches its table for negative
quantities and error messages, alerting with a banner, row highlights,
a sound and optionally an e-mail.

Usage:
    python main.py --url https://example.com/inventory
"""

import argparse
import logging
import sys

from config.settings import MonitorSettings
from services.monitoring_daemon import run_daemon, setup_logging

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Table Anomaly Monitor")
    parser.add_argument("--url", help="Page to open (overrides MONITOR_URL)")
    parser.add_argument("--headless", action="store_true", default=None, help="Run Chrome without a window")
    parser.add_argument("--no-sound", dest="sound_enabled", action="store_false", default=None,
                        help="Do not play the alert sound")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("--env-file", help="Path of a .env file to load")
    return parser


def load_settings(args, environ=None):
    """
    Settings from the environment with command line overrides applied.

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    settings = MonitorSettings.from_env(environ=environ, env_file=args.env_file)
    settings = settings.with_overrides(
        monitor_url=args.url,
        headless=args.headless,
        sound_enabled=args.sound_enabled,
    )
    return settings.validate()


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging(debug=args.debug)

    try:
        settings = load_settings(args)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    print(f"🚀 Starting Table Anomaly Monitor...")
    print(f"📍 Page: {settings.monitor_url or '(current browser page)'}")
    print(f"🔧 Debug mode: {'ON' if args.debug else 'OFF'}")
    return run_daemon(settings)


if __name__ == "__main__":
    sys.exit(main())
