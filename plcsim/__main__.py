"""
Run the simulator in the foreground.

Usage: python -m plcsim [config.json] [--log-level LEVEL]
"""

import argparse
import sys
from typing import Optional

from . import plugin
from .errors import FatalSimulationError
from .logging import log_error, log_info


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="plcsim",
        description="OPC UA PLC telemetry simulator",
    )
    parser.add_argument(
        "config",
        nargs="?",
        default=None,
        help="Simulator configuration JSON file (default: built-in defaults)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override the configured log level (debug, info, warn, error)",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = create_parser().parse_args(argv)

    if not plugin.init(args.config, log_level=args.log_level):
        return 1

    try:
        if not plugin.start_loop():
            return 1
        plugin.wait()
    except KeyboardInterrupt:
        log_info("Interrupted, stopping simulator")
        return 0
    finally:
        error = plugin.server_error()
        plugin.cleanup()

    if isinstance(error, FatalSimulationError):
        log_error(f"Simulator terminated: {error}")
        return 3
    if error is not None:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
