"""
Cycle reporters.

The poller hands each CycleResult to a Reporter; how it is rendered is up
to the implementation. Console output mirrors the scanner's colored
single-line style; JSON lines suit piping into other tools.
"""

import re
import sys
from typing import IO, Optional, Protocol, runtime_checkable

from .types import Aligned, ArbitrageOpportunity, CycleResult, Inconclusive
from .utils import format_duration, format_units, safe_json_dump, timestamp_to_iso


@runtime_checkable
class Reporter(Protocol):
    """Protocol for anything that consumes cycle results."""

    def report(self, result: CycleResult) -> None:
        """Render or forward one cycle result."""
        ...


# ANSI color codes for pretty output
class Colors:
    """ANSI color codes for terminal output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"

    @staticmethod
    def strip(text: str) -> str:
        """Remove all ANSI codes from text."""
        return re.sub(r"\033\[[0-9;]+m", "", text)


class ConsoleReporter:
    """Human-readable, optionally colored, per-cycle summary."""

    def __init__(self, stream: Optional[IO[str]] = None, color: Optional[bool] = None):
        self.stream = stream or sys.stdout
        if color is None:
            color = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.color = color

    def _c(self, code: str, text: str) -> str:
        return f"{code}{text}{Colors.RESET}" if self.color else text

    def format(self, result: CycleResult) -> str:
        c = Colors
        pair = result.pair
        prices = {p.source_id: p.price_per_unit for p in result.prices}

        header = (
            f"[{timestamp_to_iso(result.timestamp)}] cycle #{result.cycle} "
            f"{pair.name} in={format_units(result.amount_in, pair.base_decimals)} "
            f"({format_duration(result.duration_sec)})"
        )
        lines = [self._c(c.DIM, header)]

        for r in result.results:
            if r.ok:
                price = prices.get(r.source_id)
                price_text = f"{price:,.6f}" if price is not None else "n/a"
                line = (
                    f"  {r.source_id:<18} "
                    f"out={format_units(r.quote.amount_out, r.quote.decimals_out)} "
                    f"price={price_text}"
                )
                if r.quote.gas_estimate is not None:
                    line += self._c(c.DIM, f" gas~{r.quote.gas_estimate:,}")
                lines.append(line)
            else:
                lines.append(
                    f"  {r.source_id:<18} "
                    + self._c(c.RED, f"FAILED {r.error.kind}")
                    + self._c(c.DIM, f" {r.error}")
                )

        outcome = result.outcome
        if isinstance(outcome, ArbitrageOpportunity):
            lines.append(
                self._c(c.BOLD + c.GREEN, "  OPPORTUNITY ")
                + f"{outcome.spread_bps} bps: {outcome.higher_source_id} "
                f"({outcome.higher_price:,.6f}) > {outcome.lower_source_id} "
                f"({outcome.lower_price:,.6f}), difference {outcome.price_difference:,.6f} "
                f"{pair.quote_symbol or 'quote'}; {outcome.describe()}"
            )
        elif isinstance(outcome, Aligned):
            suffix = f" (spread {outcome.spread_bps} bps within threshold)" if outcome.spread_bps else ""
            lines.append(self._c(c.CYAN, "  ALIGNED") + suffix)
        elif isinstance(outcome, Inconclusive):
            lines.append(self._c(c.YELLOW, "  INCONCLUSIVE ") + outcome.reason)

        return "\n".join(lines)

    def report(self, result: CycleResult) -> None:
        print(self.format(result), file=self.stream, flush=True)


class JsonLinesReporter:
    """One compact JSON object per cycle."""

    def __init__(self, stream: Optional[IO[str]] = None):
        self.stream = stream or sys.stdout

    def report(self, result: CycleResult) -> None:
        self.stream.write(safe_json_dump(result.to_dict(), indent=None) + "\n")
        self.stream.flush()
