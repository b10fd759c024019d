"""
Opportunity detection across normalized prices.

Single source of truth for spread math: the poller, reporters and tests
all go through compare() / spread_bps().
"""

from decimal import ROUND_FLOOR, Decimal, localcontext
from typing import Iterable, List

from .normalizer import PRICE_PRECISION
from .types import Aligned, ArbitrageOpportunity, Inconclusive, NormalizedPrice, Outcome

BPS_PER_UNIT = 10_000


def spread_bps(higher: Decimal, lower: Decimal) -> int:
    """
    Relative spread in whole basis points, floored.

    spread_bps = floor((higher - lower) * 10000 / lower)

    Raises:
        ValueError: If lower is not positive
    """
    if lower <= 0:
        raise ValueError(f"lower price must be positive: {lower}")
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        raw = (higher - lower) * BPS_PER_UNIT / lower
        return int(raw.to_integral_value(rounding=ROUND_FLOOR))


def _pick(prices: List[NormalizedPrice], highest: bool) -> NormalizedPrice:
    # Ties go to the lexicographically first source_id, regardless of input order
    if highest:
        return min(prices, key=lambda p: (-p.price_per_unit, p.source_id))
    return min(prices, key=lambda p: (p.price_per_unit, p.source_id))


def compare(prices: Iterable[NormalizedPrice], threshold_bps: int = 0) -> Outcome:
    """
    Decide whether a cycle's prices diverge enough to be an opportunity.

    Zero prices (successful but empty quotes) are dropped before comparing,
    since they would make the spread undefined.

    Args:
        prices: Normalized prices, in any order
        threshold_bps: Spread must exceed this to count; 0 means any
            non-equal prices count

    Returns:
        ArbitrageOpportunity, Aligned, or Inconclusive (fewer than two prices)
    """
    if threshold_bps < 0:
        raise ValueError(f"threshold_bps must be non-negative: {threshold_bps}")

    usable = [p for p in prices if p.price_per_unit > 0]
    if len(usable) < 2:
        return Inconclusive(
            valid_sources=len(usable),
            reason=f"need at least 2 valid prices, got {len(usable)}",
        )

    high = _pick(usable, highest=True)
    low = _pick(usable, highest=False)
    if high.price_per_unit == low.price_per_unit:
        return Aligned(spread_bps=0)

    bps = spread_bps(high.price_per_unit, low.price_per_unit)
    if threshold_bps > 0 and bps <= threshold_bps:
        return Aligned(spread_bps=bps)

    return ArbitrageOpportunity(
        higher_source_id=high.source_id,
        lower_source_id=low.source_id,
        higher_price=high.price_per_unit,
        lower_price=low.price_per_unit,
        spread_bps=bps,
    )
