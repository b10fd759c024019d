"""
Scale raw quotes into comparable quote-per-base prices.
"""

from decimal import Decimal, localcontext
from typing import Iterable, List

from .types import NormalizedPrice, Quote, SourceResult

# Enough digits that 36-decimal token amounts survive division untouched
PRICE_PRECISION = 60


def normalize(quote: Quote) -> NormalizedPrice:
    """
    Convert a quote to quote-token received per one whole base token.

    price = (amount_out / 10^decimals_out) / (amount_in / 10^decimals_in)

    Args:
        quote: Successful quote with integer amounts

    Returns:
        NormalizedPrice with a Decimal price
    """
    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        out_units = Decimal(quote.amount_out).scaleb(-quote.decimals_out)
        in_units = Decimal(quote.amount_in).scaleb(-quote.decimals_in)
        price = out_units / in_units
    return NormalizedPrice(source_id=quote.source_id, price_per_unit=price)


def normalize_all(results: Iterable[SourceResult]) -> List[NormalizedPrice]:
    """Normalize every successful result, preserving source order."""
    return [normalize(r.quote) for r in results if r.ok]
