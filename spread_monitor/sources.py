"""
Quote sources: one capability over heterogeneous liquidity models.

A source turns (pair, amount_in) into a Quote for that pair, or raises a
QuoteError subclass. Two variants exist:

- ConstantProductSource: reads reserves from a V2/Solidly pool and applies
  the fee-discounted x*y=k formula locally.
- SimulatedQuoteSource: delegates to a V3 QuoterV2 or V4 Quoter contract
  via a read-only eth_call.

Sources hold only immutable configuration (plus the constant-product
pool lookup cache) and are safe to share across concurrent cycles.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from web3 import Web3

from .adapters import v3, v4
from .adapters.errors import remote_call
from .adapters.v2 import FACTORY_STYLES, fetch_pool, find_pool, orient_reserves, swap_out
from .config import SOURCE_KINDS, MonitorConfig
from .exceptions import (
    ConfigError,
    NoLiquidity,
    PoolNotFound,
    QuoteError,
    QuoteTimeout,
    SimulationReverted,
)
from .types import Quote, TradingPair
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_SEC = 10.0


class QuoteSource(ABC):
    """Abstract base class for quote sources."""

    kind = "abstract"

    def __init__(
        self,
        source_id: str,
        web3: Web3,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        endpoint: Optional[str] = None,
    ):
        """
        Args:
            source_id: Unique name used in reports (e.g. "uniswap_v3")
            web3: Connected Web3 instance (shared, read-only use)
            timeout_sec: Deadline for a whole quote, including discovery
            endpoint: RPC URL, only used to label transport errors
        """
        if not source_id:
            raise ValueError("source_id must be non-empty")
        if timeout_sec <= 0:
            raise ValueError(f"timeout_sec must be positive: {timeout_sec}")
        self.source_id = source_id
        self.web3 = web3
        self.timeout_sec = timeout_sec
        self.endpoint = endpoint

    async def quote(self, pair: TradingPair, amount_in: int) -> Quote:
        """
        Quote amount_in of pair.base for pair.quote.

        Raises:
            ValueError: If amount_in is not positive
            QuoteError: PoolNotFound, NoLiquidity, SimulationReverted,
                QuoteTimeout or TransportError
        """
        if amount_in <= 0:
            raise ValueError(f"amount_in must be positive: {amount_in}")
        try:
            quote = await asyncio.wait_for(
                self._quote(pair, amount_in), timeout=self.timeout_sec
            )
        except asyncio.TimeoutError as e:
            raise QuoteTimeout(
                f"{self.source_id}: no response within {self.timeout_sec}s",
                source_id=self.source_id,
                timeout_sec=self.timeout_sec,
            ) from e
        except QuoteError as e:
            if e.source_id is None:
                e.source_id = self.source_id
            raise
        return quote

    @abstractmethod
    async def _quote(self, pair: TradingPair, amount_in: int) -> Quote:
        """Variant-specific remote read + output computation."""

    async def _call(self, fn, *args):
        return await remote_call(
            fn, *args, source_id=self.source_id, endpoint=self.endpoint
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.source_id!r})"


class ConstantProductSource(QuoteSource):
    """Uniswap V2 / Solidly style pool priced with the local x*y=k formula."""

    kind = "constant_product"

    def __init__(
        self,
        source_id: str,
        web3: Web3,
        factory: Optional[str] = None,
        factory_style: str = "v2",
        stable: bool = False,
        pool: Optional[str] = None,
        fee_bps: int = 30,
        **kwargs,
    ):
        super().__init__(source_id, web3, **kwargs)
        if factory is None and pool is None:
            raise ValueError(f"{source_id}: need a factory or a pool address")
        if factory_style not in FACTORY_STYLES:
            raise ValueError(f"{source_id}: unknown factory_style '{factory_style}'")
        if not 0 <= fee_bps < 10_000:
            raise ValueError(f"{source_id}: fee_bps out of range: {fee_bps}")
        self.factory = factory
        self.factory_style = factory_style
        self.stable = stable
        self.pool = pool
        self.fee_bps = fee_bps
        self._pool_cache: Dict[TradingPair, str] = {}

    async def resolve_pool(self, pair: TradingPair) -> str:
        """
        Locate the pool for a pair, once per pair.

        Raises:
            PoolNotFound: If the factory returns the zero address
        """
        if self.pool is not None:
            return self.pool
        cached = self._pool_cache.get(pair)
        if cached is not None:
            return cached

        pool = await self._call(
            find_pool,
            self.web3,
            self.factory,
            pair.base,
            pair.quote,
            self.factory_style,
            self.stable,
        )
        if pool is None:
            raise PoolNotFound(
                f"{self.source_id}: factory has no pool for {pair.name}",
                source_id=self.source_id,
                details={"factory": self.factory},
            )
        logger.debug(f"{self.source_id}: resolved {pair.name} pool {pool}")
        self._pool_cache[pair] = pool
        return pool

    async def _quote(self, pair: TradingPair, amount_in: int) -> Quote:
        pool = await self.resolve_pool(pair)

        try:
            token0, token1, r0, r1 = await self._call(fetch_pool, self.web3, pool)
        except SimulationReverted as e:
            raise PoolNotFound(
                f"{self.source_id}: pool {pool} rejected reserve read",
                source_id=self.source_id,
                details={"pool": pool},
            ) from e

        oriented = orient_reserves(token0, token1, r0, r1, pair.base, pair.quote)
        if oriented is None:
            raise PoolNotFound(
                f"{self.source_id}: pool {pool} does not hold {pair.name}",
                source_id=self.source_id,
                details={"pool": pool, "token0": token0, "token1": token1},
            )
        reserve_in, reserve_out = oriented
        if reserve_in == 0 or reserve_out == 0:
            raise NoLiquidity(
                f"{self.source_id}: empty reserves in {pool}",
                source_id=self.source_id,
                details={"reserve_in": reserve_in, "reserve_out": reserve_out},
            )

        amount_out = swap_out(amount_in, reserve_in, reserve_out, self.fee_bps)
        return Quote(
            source_id=self.source_id,
            pair=pair,
            amount_in=amount_in,
            amount_out=amount_out,
            decimals_in=pair.base_decimals,
            decimals_out=pair.quote_decimals,
        )


class SimulatedQuoteSource(QuoteSource):
    """
    Concentrated-liquidity source priced by a remote quoter simulation.

    quoter_version selects the call shape:
      - "v3": QuoterV2.quoteExactInputSingle with a fee tier
      - "v4": V4 Quoter.quoteExactInputSingle with a pool key (fee,
        tick spacing, hooks); base_currency/quote_currency let the native
        zero address stand in for a wrapped token
    """

    kind = "simulated_quote"

    def __init__(
        self,
        source_id: str,
        web3: Web3,
        quoter: str,
        fee: int,
        quoter_version: str = "v3",
        tick_spacing: Optional[int] = None,
        hooks: str = v4.ZERO_ADDRESS,
        hook_data: bytes = b"",
        base_currency: Optional[str] = None,
        quote_currency: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(source_id, web3, **kwargs)
        if quoter_version not in ("v3", "v4"):
            raise ValueError(f"{source_id}: unknown quoter_version '{quoter_version}'")
        if quoter_version == "v4" and tick_spacing is None:
            raise ValueError(f"{source_id}: v4 quoter needs tick_spacing")
        self.quoter = quoter
        self.fee = fee
        self.quoter_version = quoter_version
        self.tick_spacing = tick_spacing
        self.hooks = hooks
        self.hook_data = hook_data
        self.base_currency = base_currency
        self.quote_currency = quote_currency

    async def _quote(self, pair: TradingPair, amount_in: int) -> Quote:
        if self.quoter_version == "v3":
            amount_out, gas_estimate = await self._call(
                v3.quote_exact_input_single,
                self.web3,
                self.quoter,
                pair.base,
                pair.quote,
                amount_in,
                self.fee,
            )
        else:
            pool_key, zero_for_one = v4.build_pool_key(
                self.base_currency or pair.base,
                self.quote_currency or pair.quote,
                self.fee,
                self.tick_spacing,
                self.hooks,
            )
            amount_out, gas_estimate = await self._call(
                v4.quote_exact_input_single,
                self.web3,
                self.quoter,
                pool_key,
                zero_for_one,
                amount_in,
                self.hook_data,
            )

        if amount_out == 0:
            raise NoLiquidity(
                f"{self.source_id}: quoter returned zero output for {pair.name}",
                source_id=self.source_id,
            )

        return Quote(
            source_id=self.source_id,
            pair=pair,
            amount_in=amount_in,
            amount_out=amount_out,
            decimals_in=pair.base_decimals,
            decimals_out=pair.quote_decimals,
            gas_estimate=gas_estimate,
        )


def build_source(
    source_cfg: Dict[str, Any],
    web3: Web3,
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    endpoint: Optional[str] = None,
) -> QuoteSource:
    """
    Build one source from a parsed config entry.

    Raises:
        ConfigError: If the kind is unknown or parameters are invalid
    """
    kind = source_cfg.get("kind")
    source_id = source_cfg.get("id")
    common = {"timeout_sec": source_cfg.get("timeout_sec", timeout_sec), "endpoint": endpoint}

    try:
        if kind == "constant_product":
            return ConstantProductSource(
                source_id,
                web3,
                factory=source_cfg.get("factory"),
                factory_style=source_cfg.get("factory_style", "v2"),
                stable=bool(source_cfg.get("stable", False)),
                pool=source_cfg.get("pool"),
                fee_bps=int(source_cfg.get("fee_bps", 30)),
                **common,
            )
        if kind in ("v3_quoter", "v4_quoter"):
            return SimulatedQuoteSource(
                source_id,
                web3,
                quoter=source_cfg["quoter"],
                fee=int(source_cfg["fee"]),
                quoter_version=kind[:2],
                tick_spacing=source_cfg.get("tick_spacing"),
                hooks=source_cfg.get("hooks", v4.ZERO_ADDRESS),
                base_currency=source_cfg.get("base_currency"),
                quote_currency=source_cfg.get("quote_currency"),
                **common,
            )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Source '{source_id}' is invalid: {e}") from e

    raise ConfigError(
        f"Source '{source_id}' has invalid kind '{kind}' (must be one of {', '.join(SOURCE_KINDS)})"
    )


def build_sources(
    config: MonitorConfig, web3: Web3, endpoint: Optional[str] = None
) -> List[QuoteSource]:
    """
    Build all configured sources, in config order.

    endpoint is the URL connect() actually reached, which may be a fallback;
    it defaults to the primary rpc_url.
    """
    endpoint = endpoint or config.rpc_url
    sources = [
        build_source(cfg, web3, config.request_timeout_sec, endpoint)
        for cfg in config.sources
    ]
    logger.info(f"Configured {len(sources)} quote sources: {', '.join(s.source_id for s in sources)}")
    return sources
