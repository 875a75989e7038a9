"""Command line entry point: ``python -m pyhiomehue``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from pyhiomehue import __version__
from pyhiomehue.app import HiomeHueService
from pyhiomehue.config import MATCH_SCHEMES, HiomeHueConfig
from pyhiomehue.exceptions import HiomeHueConfigError

_logger = logging.getLogger("pyhiomehue")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pyhiomehue",
        description="Turn Hue light groups on and off from Hiome occupancy sensors.",
    )
    parser.add_argument("--state-path", help="JSON file for the bridge credential and sensor state")
    parser.add_argument("--mqtt-host", help="Hiome MQTT broker host")
    parser.add_argument("--mqtt-port", type=int, help="Hiome MQTT broker port")
    parser.add_argument("--match-scheme", choices=sorted(MATCH_SCHEMES), help="How rooms are matched to groups")
    parser.add_argument("--no-auto-scan", action="store_true", help="Wait for a scan request before pairing")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides: dict[str, Any] = {}
    if args.state_path:
        overrides["state_path"] = args.state_path
    if args.mqtt_host:
        overrides["mqtt_host"] = args.mqtt_host
    if args.mqtt_port is not None:
        overrides["mqtt_port"] = args.mqtt_port
    if args.match_scheme:
        overrides["match_scheme"] = args.match_scheme
    if args.no_auto_scan:
        overrides["auto_scan"] = False

    try:
        config = HiomeHueConfig.from_env(**overrides)
    except HiomeHueConfigError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 2

    try:
        asyncio.run(HiomeHueService(config).run())
    except KeyboardInterrupt:
        _logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
