#!/usr/bin/env python3
"""
Pump.fun sandwich detector CLI.

Fetches a mint's recent transactions, replays them against the bonding curve
and prints the trade table, warnings and detected patterns.

Usage:
    python3 run_detector.py <MINT>
    python3 run_detector.py <MINT> --config configs/detector.yaml
    python3 run_detector.py <MINT> --limit 200 --verbose
"""

import argparse
import dataclasses
import sys
from pathlib import Path

from dotenv import load_dotenv

import logging_config
from pumpfun.source import SolanaRpcSource
from sandwich_scanner.config_loader import get_default_config, load_scanner_config
from sandwich_scanner.exceptions import (
    ConfigurationError,
    FetchError,
    NotFoundError,
    ValidationError,
)
from sandwich_scanner.metrics import get_metrics
from sandwich_scanner.pipeline import analyze_records
from sandwich_scanner.report import format_analysis

DEFAULT_CONFIG = Path(__file__).parent / "configs" / "detector.yaml"


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Detect sandwich attacks on a pump.fun token",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan the last 50 transactions of a mint
  python3 run_detector.py <MINT>

  # Scan deeper with verbose logging
  python3 run_detector.py <MINT> --limit 500 --verbose

Environment:
  SOLANA_RPC_URL   RPC endpoint (overrides HELIUS_API_KEY)
  HELIUS_API_KEY   Use the Helius mainnet endpoint
        """,
    )

    parser.add_argument("mint", help="Token mint address (base58)")

    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to config YAML file (default: {DEFAULT_CONFIG.name} if present)",
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of recent signatures to scan (overrides config)",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Debug logging, including skipped instructions",
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace):
    if args.config:
        config = load_scanner_config(args.config)
    elif DEFAULT_CONFIG.exists():
        config = load_scanner_config(DEFAULT_CONFIG)
    else:
        config = get_default_config()

    if args.limit is not None:
        if args.limit < 1:
            raise ValidationError(f"--limit must be at least 1, got {args.limit}")
        config = dataclasses.replace(
            config, fetch=dataclasses.replace(config.fetch, signature_limit=args.limit)
        )
    return config


def main(argv=None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    load_dotenv()

    if args.verbose:
        logging_config.setup_debug()
    else:
        logging_config.setup()

    try:
        config = load_config(args)
    except (ConfigurationError, ValidationError) as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    metrics = get_metrics()
    source = SolanaRpcSource(config.fetch, metrics)

    try:
        records = source.fetch_transactions(args.mint)
    except NotFoundError as e:
        print(f"❌ Mint not found: {e}", file=sys.stderr)
        return 1
    except FetchError as e:
        print(f"❌ Fetch failed: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
        return 1

    try:
        report = analyze_records(records, config.detector, config.curve, metrics)
    except ValidationError as e:
        print(f"❌ Analysis failed: {e}", file=sys.stderr)
        return 1

    print(format_analysis(report, args.mint))
    return 0


if __name__ == "__main__":
    sys.exit(main())
