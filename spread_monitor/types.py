"""
Core data types for cross-DEX spread monitoring.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .exceptions import QuoteError

DIRECTION_BUY_LOWER_SELL_HIGHER = "buy on lower, sell on higher"


class CycleStatus(Enum):
    """Outcome of a single polling cycle."""

    OPPORTUNITY = "opportunity"
    ALIGNED = "aligned"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class TradingPair:
    """
    Ordered pair of token identifiers.

    Addresses are stored lowercased so that checksummed and plain hex
    forms compare equal. Decimals and symbols ride along for the
    normalizer and reporter but are not part of equality.

    Attributes:
        base: Address of the token being sold (amount_in side)
        quote: Address of the token being received (amount_out side)
        base_decimals: Decimal precision of the base token
        quote_decimals: Decimal precision of the quote token
        base_symbol: Display symbol of the base token
        quote_symbol: Display symbol of the quote token
    """

    base: str
    quote: str
    base_decimals: int = field(default=18, compare=False)
    quote_decimals: int = field(default=18, compare=False)
    base_symbol: str = field(default="", compare=False)
    quote_symbol: str = field(default="", compare=False)

    def __post_init__(self):
        object.__setattr__(self, "base", self.base.strip().lower())
        object.__setattr__(self, "quote", self.quote.strip().lower())
        if not self.base or not self.quote:
            raise ValueError("Trading pair tokens must be non-empty")
        if self.base == self.quote:
            raise ValueError(f"Trading pair base and quote are identical: {self.base}")

    @property
    def name(self) -> str:
        base = self.base_symbol or self.base
        quote = self.quote_symbol or self.quote
        return f"{base}/{quote}"


@dataclass(frozen=True)
class Quote:
    """
    Raw output of a single quote source for a fixed input amount.

    Amounts are integers in each token's smallest unit. An amount_out of
    zero is a legitimate result, not a failure.
    """

    source_id: str
    pair: TradingPair
    amount_in: int
    amount_out: int
    decimals_in: int
    decimals_out: int
    gas_estimate: Optional[int] = None

    def __post_init__(self):
        if self.amount_in <= 0:
            raise ValueError(f"amount_in must be positive: {self.amount_in}")
        if self.amount_out < 0:
            raise ValueError(f"amount_out must be non-negative: {self.amount_out}")


@dataclass(frozen=True)
class SourceResult:
    """Per-source outcome of the fetch step: a quote or a captured failure."""

    source_id: str
    quote: Optional[Quote] = None
    error: Optional[QuoteError] = None

    def __post_init__(self):
        if (self.quote is None) == (self.error is None):
            raise ValueError("SourceResult needs exactly one of quote or error")

    @property
    def ok(self) -> bool:
        return self.quote is not None


@dataclass(frozen=True)
class NormalizedPrice:
    """Quote-token received per one whole base token."""

    source_id: str
    price_per_unit: Decimal


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """
    A profitable divergence between the highest and lowest source.

    Attributes:
        higher_source_id: Source paying the most quote token (sell there)
        lower_source_id: Source paying the least quote token (buy there)
        higher_price: Normalized price at the higher source
        lower_price: Normalized price at the lower source
        spread_bps: floor((higher - lower) * 10000 / lower)
        direction: Always "buy on lower, sell on higher"
    """

    higher_source_id: str
    lower_source_id: str
    higher_price: Decimal
    lower_price: Decimal
    spread_bps: int
    direction: str = DIRECTION_BUY_LOWER_SELL_HIGHER

    @property
    def price_difference(self) -> Decimal:
        """Quote token per base unit gained by selling high after buying low."""
        return self.higher_price - self.lower_price

    def describe(self) -> str:
        return f"buy on {self.lower_source_id}, sell on {self.higher_source_id}"


@dataclass(frozen=True)
class Aligned:
    """Prices equal, or spread not above the configured threshold."""

    spread_bps: int = 0


@dataclass(frozen=True)
class Inconclusive:
    """Fewer than two usable prices this cycle."""

    valid_sources: int = 0
    reason: str = ""


Outcome = Union[ArbitrageOpportunity, Aligned, Inconclusive]


@dataclass(frozen=True)
class CycleResult:
    """Everything one polling tick produced, handed to the reporter."""

    cycle: int
    timestamp: float
    pair: TradingPair
    amount_in: int
    results: List[SourceResult]
    prices: List[NormalizedPrice]
    outcome: Outcome
    duration_sec: float = 0.0

    @property
    def status(self) -> CycleStatus:
        if isinstance(self.outcome, ArbitrageOpportunity):
            return CycleStatus.OPPORTUNITY
        if isinstance(self.outcome, Aligned):
            return CycleStatus.ALIGNED
        return CycleStatus.INCONCLUSIVE

    @property
    def opportunity(self) -> Optional[ArbitrageOpportunity]:
        if isinstance(self.outcome, ArbitrageOpportunity):
            return self.outcome
        return None

    @property
    def failures(self) -> List[SourceResult]:
        return [r for r in self.results if not r.ok]

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict view for JSON rendering."""
        prices = {p.source_id: str(p.price_per_unit) for p in self.prices}
        sources = []
        for result in self.results:
            entry: Dict[str, Any] = {"source": result.source_id}
            if result.ok:
                entry["amount_out"] = str(result.quote.amount_out)
                entry["price"] = prices.get(result.source_id)
                if result.quote.gas_estimate is not None:
                    entry["gas_estimate"] = result.quote.gas_estimate
            else:
                entry["error"] = result.error.kind
                entry["message"] = str(result.error)
            sources.append(entry)

        data: Dict[str, Any] = {
            "cycle": self.cycle,
            "timestamp": self.timestamp,
            "pair": self.pair.name,
            "amount_in": str(self.amount_in),
            "status": self.status.value,
            "sources": sources,
            "duration_sec": round(self.duration_sec, 3),
        }
        opp = self.opportunity
        if opp is not None:
            data["opportunity"] = {
                "higher": opp.higher_source_id,
                "lower": opp.lower_source_id,
                "spread_bps": opp.spread_bps,
                "price_difference": str(opp.price_difference),
                "direction": opp.direction,
            }
        elif isinstance(self.outcome, Aligned):
            data["spread_bps"] = self.outcome.spread_bps
        else:
            data["reason"] = self.outcome.reason
        return data
