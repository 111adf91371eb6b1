"""
Common utilities and helper functions for the sandwich scanner.

This module provides centralized helpers for logging, unit conversion between
lamports/token base units and display values, and report formatting.
"""

import logging
from decimal import Decimal
from typing import Any, Dict, Optional, Union

LAMPORTS_PER_SOL = 1_000_000_000
TOKEN_DECIMALS = 6
TOKEN_UNIT = 10**TOKEN_DECIMALS


# Unit conversion utilities
def sol_to_lamports(sol: Union[str, float, Decimal]) -> int:
    """Convert a SOL amount to integer lamports, truncating sub-lamport dust."""
    return int(Decimal(str(sol)) * LAMPORTS_PER_SOL)


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert lamports to a Decimal SOL amount."""
    return Decimal(lamports) / Decimal(LAMPORTS_PER_SOL)


def tokens_to_ui(amount: int) -> Decimal:
    """Convert token base units to whole tokens."""
    return Decimal(amount) / Decimal(TOKEN_UNIT)


def format_sol(lamports: int, signed: bool = False, places: int = 6) -> str:
    """Format lamports as a SOL string (e.g. '1.250000 SOL')."""
    value = lamports_to_sol(lamports)
    if signed:
        return f"{value:+.{places}f} SOL"
    return f"{value:.{places}f} SOL"


def format_tokens(amount: int, places: int = 6) -> str:
    """Format token base units as whole tokens."""
    return f"{tokens_to_ui(amount):,.{places}f}"


def short_signature(sig: str) -> str:
    """Shorten a signature or address to 'abcd…wxyz'."""
    if len(sig) <= 8:
        return sig
    return f"{sig[:4]}…{sig[-4:]}"


# Math utilities
def calculate_percentage(value: Union[int, Decimal], total: Union[int, Decimal]) -> Decimal:
    """Calculate percentage with zero-division protection."""
    if total == 0:
        return Decimal("0")
    return (Decimal(value) / Decimal(total)) * Decimal("100")


# Logging utilities
def get_logger(
    name: str,
    level: Optional[Union[str, int]] = None,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level; when omitted the level is inherited from the
            package logger configured by logging_config
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        # Root handlers from logging_config.setup() would print twice
        logger.propagate = False

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger
