"""
Polling loop: fetch -> compare -> report on a fixed cadence.

One cycle fans out a quote request to every source concurrently, waits for
all of them to settle, normalizes the successful quotes, compares them and
hands a CycleResult to the reporter. Faults are contained per source and
per cycle; only stop() ends the loop.
"""

import asyncio
import time
from enum import Enum
from typing import Callable, List, Optional, Sequence

from .comparison import compare
from .config import PollingConfig
from .exceptions import QuoteError, TransportError
from .normalizer import normalize_all
from .reporter import Reporter
from .sources import QuoteSource
from .types import CycleResult, Inconclusive, NormalizedPrice, Outcome, SourceResult
from .utils import format_duration, get_logger

logger = get_logger(__name__)


class PollerState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    COMPARING = "comparing"
    REPORTING = "reporting"
    STOPPED = "stopped"


class HealthStatus(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


class Poller:
    """
    Drives the acquisition/comparison/report cycle.

    The stop flag is checked at every Idle -> Fetching transition; a cycle
    that already started runs to completion (in-flight calls drain).
    """

    def __init__(
        self,
        settings: PollingConfig,
        sources: Sequence[QuoteSource],
        reporter: Optional[Reporter] = None,
        on_health_change: Optional[Callable[[HealthStatus], None]] = None,
    ):
        """
        Args:
            settings: Immutable polling configuration
            sources: Quote sources, in report order
            reporter: Receives one CycleResult per cycle (optional)
            on_health_change: Called with the new status whenever health flips
        """
        ids = [s.source_id for s in sources]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate source ids: {ids}")

        self.settings = settings
        self.sources = list(sources)
        self.reporter = reporter
        self.on_health_change = on_health_change

        self.state = PollerState.IDLE
        self.health = HealthStatus.HEALTHY
        self.cycle_count = 0
        self.transport_failure_streak = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._stop_requested = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Request a cooperative stop. Safe to call more than once."""
        if not self._stop_requested:
            logger.info("Stop requested; no new cycles will start")
        self._stop_requested = True
        if self._stop_event is not None:
            self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.state == PollerState.STOPPED

    async def run(self, max_cycles: Optional[int] = None) -> None:
        """
        Main loop: cycle, then idle until the next tick boundary.

        Runs until stop() is called, max_cycles cycles have completed, or
        settings.once is set (one cycle).
        """
        if self.stopped:
            raise RuntimeError("Poller already stopped")
        if self.settings.once:
            max_cycles = 1

        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()

        loop = asyncio.get_running_loop()
        completed = 0
        try:
            while not self._stop_requested:
                started = loop.time()
                await self.run_cycle()
                completed += 1

                if max_cycles is not None and completed >= max_cycles:
                    break

                remaining = self.settings.interval_sec - (loop.time() - started)
                if remaining < 0:
                    logger.warning(
                        f"Cycle {self.cycle_count} overran the interval by "
                        f"{format_duration(-remaining)}; starting next cycle now"
                    )
                await self._idle(max(remaining, 0.0))
        finally:
            self.state = PollerState.STOPPED
            logger.info(f"Poller stopped after {completed} cycles")

    async def _idle(self, seconds: float) -> None:
        self.state = PollerState.IDLE
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> CycleResult:
        """
        Execute a single fetch -> compare -> report cycle.

        Never raises for source, comparison or reporter faults; such a
        cycle is reported as Inconclusive instead.
        """
        self.cycle_count += 1
        cycle = self.cycle_count
        timestamp = time.time()
        started = time.perf_counter()

        results: List[SourceResult] = []
        prices: List[NormalizedPrice] = []
        outcome: Outcome
        try:
            self.state = PollerState.FETCHING
            results = await self.fetch_all()

            self.state = PollerState.COMPARING
            prices = normalize_all(results)
            outcome = compare(prices, self.settings.spread_threshold_bps)
        except Exception as e:
            logger.error(f"Cycle {cycle} failed: {e}", exc_info=True)
            outcome = Inconclusive(
                valid_sources=len(prices), reason=f"cycle failed: {e}"
            )

        result = CycleResult(
            cycle=cycle,
            timestamp=timestamp,
            pair=self.settings.pair,
            amount_in=self.settings.amount_in,
            results=results,
            prices=prices,
            outcome=outcome,
            duration_sec=time.perf_counter() - started,
        )

        self._update_health(results)

        self.state = PollerState.REPORTING
        self._report(result)

        self.state = PollerState.IDLE
        return result

    async def fetch_all(self) -> List[SourceResult]:
        """Query every source concurrently and wait for all to settle."""
        return list(
            await asyncio.gather(*(self._fetch_one(source) for source in self.sources))
        )

    async def _fetch_one(self, source: QuoteSource) -> SourceResult:
        pair = self.settings.pair
        try:
            quote = await source.quote(pair, self.settings.amount_in)
        except QuoteError as e:
            logger.debug(f"{source.source_id}: {e.kind}: {e}")
            return SourceResult(source.source_id, error=e)
        except Exception as e:
            logger.warning(f"{source.source_id}: unexpected quote failure: {e}", exc_info=True)
            return SourceResult(
                source.source_id,
                error=QuoteError(f"unexpected failure: {e}", source_id=source.source_id),
            )
        return SourceResult(source.source_id, quote=quote)

    def _report(self, result: CycleResult) -> None:
        if self.reporter is None:
            return
        try:
            self.reporter.report(result)
        except Exception as e:
            logger.error(f"Reporter failed on cycle {result.cycle}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def _update_health(self, results: List[SourceResult]) -> None:
        transport_failed = any(isinstance(r.error, TransportError) for r in results)
        if transport_failed:
            self.transport_failure_streak += 1
        else:
            self.transport_failure_streak = 0

        if self.transport_failure_streak >= self.settings.degraded_after_cycles:
            new_health = HealthStatus.DEGRADED
        else:
            new_health = HealthStatus.HEALTHY

        if new_health == self.health:
            return

        self.health = new_health
        if new_health == HealthStatus.DEGRADED:
            logger.warning(
                f"RPC transport failing for {self.transport_failure_streak} consecutive cycles; "
                "health degraded"
            )
        else:
            logger.info("RPC transport recovered; health restored")

        if self.on_health_change is not None:
            try:
                self.on_health_change(new_health)
            except Exception as e:
                logger.error(f"Health callback failed: {e}", exc_info=True)
