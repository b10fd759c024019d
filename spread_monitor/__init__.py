"""
Cross-DEX spread monitor.

Polls a fixed trading pair across constant-product pools and
concentrated-liquidity quoters, normalizes the quotes and flags price
divergences. Read-only: it never signs or broadcasts transactions.
"""

PROJECT_NAME = "dex-spread-monitor"
VERSION = "0.1.0"

from spread_monitor.comparison import compare, spread_bps
from spread_monitor.config import MonitorConfig, PollingConfig, load_config
from spread_monitor.exceptions import (
    ConfigError,
    NoLiquidity,
    PoolNotFound,
    QuoteError,
    QuoteTimeout,
    SimulationReverted,
    SpreadMonitorError,
    TransportError,
)
from spread_monitor.normalizer import normalize
from spread_monitor.poller import HealthStatus, Poller, PollerState
from spread_monitor.sources import ConstantProductSource, QuoteSource, SimulatedQuoteSource
from spread_monitor.types import (
    Aligned,
    ArbitrageOpportunity,
    CycleResult,
    CycleStatus,
    Inconclusive,
    NormalizedPrice,
    Quote,
    SourceResult,
    TradingPair,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "Aligned",
    "ArbitrageOpportunity",
    "ConfigError",
    "ConstantProductSource",
    "CycleResult",
    "CycleStatus",
    "HealthStatus",
    "Inconclusive",
    "MonitorConfig",
    "NoLiquidity",
    "NormalizedPrice",
    "Poller",
    "PollerState",
    "PollingConfig",
    "PoolNotFound",
    "Quote",
    "QuoteError",
    "QuoteSource",
    "QuoteTimeout",
    "SimulatedQuoteSource",
    "SimulationReverted",
    "SourceResult",
    "SpreadMonitorError",
    "TradingPair",
    "TransportError",
    "compare",
    "load_config",
    "normalize",
    "spread_bps",
]
