"""
Logging configuration for cleaner output.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

APP_LOGGERS = ("sandwich_scanner", "pumpfun")


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Suppresses per-request logs from urllib3
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    - Applies the level to the scanner's own loggers
    """

    # Root logger - minimal format
    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    # Create console handler with clean format
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    # Minimal format: time + level + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.getLogger("__main__").setLevel(level)
    for name in APP_LOGGERS:
        logging.getLogger(name).setLevel(level)


def setup_minimal():
    """
    Only warnings and errors.
    Keeps the report readable when piping it somewhere.
    """
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows skipped instructions and HTTP connection details.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("urllib3").setLevel(logging.DEBUG)
