"""
Exception hierarchy for the sandwich scanner.

Provides specific exception types for the decode, curve, fetch and
configuration stages so callers can tell fatal failures from the ones that
only degrade a single instruction or trade.
"""

from typing import Any, Dict, Optional


class SandwichScannerError(Exception):
    """Base exception for all sandwich scanner related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(SandwichScannerError):
    """Raised when there are configuration-related issues."""

    pass


class ValidationError(SandwichScannerError):
    """Raised when validation of data or configuration fails."""

    pass


class OrderingError(ValidationError):
    """Raised when trades are replayed out of slot order."""

    def __init__(
        self,
        message: str,
        previous_key: Optional[tuple] = None,
        current_key: Optional[tuple] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.previous_key = previous_key
        self.current_key = current_key


# Decode errors: non-fatal, the instruction is skipped


class DecodeError(SandwichScannerError):
    """Raised when an instruction cannot be turned into a trade intent."""

    def __init__(
        self,
        message: str,
        program_id: Optional[str] = None,
        signature: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.program_id = program_id
        self.signature = signature


class UnknownVariantError(DecodeError):
    """Raised when the payload is not a recognized buy/sell instruction."""

    pass


class MalformedInstructionError(DecodeError):
    """Raised when the payload is shorter than its fixed-width fields."""

    pass


# Curve errors: non-fatal for the single trade, which is left unresolved


class CurveError(SandwichScannerError):
    """Raised when a trade cannot be applied to the bonding curve."""

    def __init__(
        self,
        message: str,
        side: Optional[str] = None,
        amount_in: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.side = side
        self.amount_in = amount_in


class InsufficientReservesError(CurveError):
    """Raised when a trade would drain real reserves below zero."""

    pass


class SlippageExceededError(CurveError):
    """Raised when a trade's output is below its minimum bound."""

    def __init__(
        self,
        message: str,
        side: Optional[str] = None,
        amount_in: Optional[int] = None,
        expected: Optional[int] = None,
        minimum: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, side, amount_in, details)
        self.expected = expected
        self.minimum = minimum


# Fetch errors: Timeout/RateLimited are retried, NotFound is fatal


class FetchError(SandwichScannerError):
    """Raised when transaction retrieval fails."""

    retryable = False

    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.endpoint = endpoint
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    """Raised when an RPC request times out."""

    retryable = True


class RateLimitedError(FetchError):
    """Raised when the RPC node rejects a request for rate limiting."""

    retryable = True


class NotFoundError(FetchError):
    """Raised when the mint is invalid or has no transactions."""

    pass
