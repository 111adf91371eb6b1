#!/usr/bin/env python3
"""
Pump.fun sandwich simulator CLI.

Prompts for a hypothetical victim buy and prints the front-run / victim /
back-run trace on a fresh bonding curve.

Usage:
    python3 run_simulator.py
    python3 run_simulator.py --config configs/detector.yaml
"""

import argparse
import sys

import logging_config
from sandwich_scanner.config_loader import get_default_config, load_scanner_config
from sandwich_scanner.exceptions import ConfigurationError, ValidationError
from sandwich_scanner.report import format_simulation_trace
from sandwich_scanner.simulation import read_victim_amount, run_simulation


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Simulate a sandwich attack on a fresh pump.fun curve",
    )

    parser.add_argument(
        "--config",
        default=None,
        help="Path to config YAML file (simulation and curve sections are used)",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    logging_config.setup_minimal()

    try:
        config = load_scanner_config(args.config) if args.config else get_default_config()
    except (ConfigurationError, ValidationError) as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    try:
        victim_sol_in = read_victim_amount()
    except ValidationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except EOFError:
        print("❌ No input provided", file=sys.stderr)
        return 1

    try:
        trace = run_simulation(victim_sol_in, config.simulation, config.curve)
    except ValidationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    print()
    print(format_simulation_trace(trace))
    return 0


if __name__ == "__main__":
    sys.exit(main())
