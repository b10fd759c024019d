"""
Exception hierarchy for the spread monitor.

Quote failures are non-fatal: sources raise them, the poller captures
them per source and reports them alongside successful quotes.
"""

from typing import Any, Dict, Optional


class SpreadMonitorError(Exception):
    """Base exception for all spread monitor errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigError(SpreadMonitorError):
    """Raised when config is invalid or missing required fields."""

    pass


class QuoteError(SpreadMonitorError):
    """A single source failed to produce a quote this cycle."""

    kind = "quote_error"

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.source_id = source_id


class PoolNotFound(QuoteError):
    """Discovery returned the zero address, or the pool does not hold the pair."""

    kind = "pool_not_found"


class NoLiquidity(QuoteError):
    """Reserves or simulated output are zero."""

    kind = "no_liquidity"


class SimulationReverted(QuoteError):
    """Remote quoter simulation reverted."""

    kind = "simulation_reverted"

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        reason_code: Optional[str] = None,
        reason_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, source_id, details)
        self.reason_code = reason_code
        self.reason_name = reason_name

    @property
    def opaque(self) -> bool:
        return self.reason_code is None


class QuoteTimeout(QuoteError):
    """Remote call did not complete before its deadline."""

    kind = "timeout"

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, source_id, details)
        self.timeout_sec = timeout_sec


class TransportError(QuoteError):
    """Connectivity failure talking to the RPC endpoint."""

    kind = "transport_error"

    def __init__(
        self,
        message: str,
        source_id: Optional[str] = None,
        endpoint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, source_id, details)
        self.endpoint = endpoint
