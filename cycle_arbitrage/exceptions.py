"""
Exception hierarchy for the cycle arbitrage system.

Venue-local errors (subclasses of VenueError) exclude a single venue from the
current graph build or prune a single search branch. Everything else is fatal
for the refresh/search call that raised it and must reach the caller.
"""

from typing import Any, Dict, Optional


class CycleArbitrageError(Exception):
    """Base exception for all cycle arbitrage related errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(CycleArbitrageError):
    """Raised when the scan configuration cannot be loaded or validated."""

    pass


class VenueDefinitionError(CycleArbitrageError):
    """Raised when a venue definition list cannot be parsed."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source = source


class UnknownTokenError(CycleArbitrageError):
    """Raised when a mint has no index in the current token index."""

    def __init__(
        self,
        message: str,
        mint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.mint = mint


class ArithmeticOverflow(CycleArbitrageError):
    """Raised when an amount leaves the unsigned 128-bit range."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        value: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.operation = operation
        self.value = value


class VenueError(CycleArbitrageError):
    """Base class for errors that only disqualify one venue."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.venue = venue


class InvalidCurveParameters(VenueError):
    """Raised when reserves, fees or amplification cannot be priced."""

    pass


class ConvergenceFailure(VenueError):
    """Raised when the stable-curve Newton solve does not settle."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        iterations: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.iterations = iterations


class UnsupportedCurveType(VenueError):
    """Raised for an AMM curve discriminator this system cannot price."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        curve_type: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.curve_type = curve_type


class InvalidMint(VenueError):
    """Raised when a quote names a mint the venue does not hold."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        mint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.mint = mint


class MalformedAccountData(VenueError):
    """Raised when a refreshed account payload does not match its layout."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        account: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.account = account


class MissingAccount(VenueError):
    """Raised when a required account is absent from a refresh batch."""

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        account: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, venue, details)
        self.account = account
