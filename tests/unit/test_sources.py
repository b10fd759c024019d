"""
Unit tests for spread_monitor/sources.py and spread_monitor/adapters/errors.py

Web3 contracts are replaced with mocks keyed by address. The HTTP timeout
tests talk to a local socket that never answers; no external RPC is hit.
"""

import asyncio
import socket
from unittest.mock import MagicMock

import pytest
import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from spread_monitor.adapters.errors import decode_revert
from spread_monitor.adapters.v4 import ZERO_ADDRESS, build_pool_key
from spread_monitor.config import MonitorConfig
from spread_monitor.exceptions import (
    ConfigError,
    NoLiquidity,
    PoolNotFound,
    QuoteTimeout,
    SimulationReverted,
    TransportError,
)
from spread_monitor.sources import (
    ConstantProductSource,
    QuoteSource,
    SimulatedQuoteSource,
    build_source,
    build_sources,
)
from spread_monitor.types import Quote, TradingPair

WETH = "0x4200000000000000000000000000000000000006"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
FACTORY = "0x420DD381b31aEf6683db6B902084cB0FFECe40Da"
POOL = "0xcDAC0d6c6C59727a65F871236188350531885C43"
QUOTER_V3 = "0x3d4e44Eb1374240CE5F1B871ab261CD16335B76a"
QUOTER_V4 = "0x0d5e0f971ed27fbff6c2837bf31316121532048d"

PAIR = TradingPair(WETH, USDC, 18, 6, "WETH", "USDC")
ONE_WETH = 10**18


def make_web3(contracts):
    """Web3 double whose eth.contract() returns the mock registered for an address."""
    web3 = MagicMock()
    registry = {addr.lower(): mock for addr, mock in contracts.items()}
    web3.eth.contract.side_effect = lambda address, abi: registry[address.lower()]
    return web3


def make_factory(pool_addr=POOL, style="solidly"):
    factory = MagicMock()
    fn = factory.functions.getPool if style == "solidly" else factory.functions.getPair
    fn.return_value.call.return_value = pool_addr
    return factory


def make_pair(token0=WETH, token1=USDC, r0=1000 * 10**18, r1=2_000_000 * 10**6):
    pair = MagicMock()
    pair.functions.token0.return_value.call.return_value = token0
    pair.functions.token1.return_value.call.return_value = token1
    pair.functions.getReserves.return_value.call.return_value = [r0, r1, 1700000000]
    return pair


def make_quoter(result=None, error=None):
    quoter = MagicMock()
    call = quoter.functions.quoteExactInputSingle.return_value.call
    if error is not None:
        call.side_effect = error
    else:
        call.return_value = result
    return quoter


class TestConstantProductSource:
    """Constant-product pool quotes."""

    @pytest.mark.asyncio
    async def test_quote_from_reserves(self):
        factory = make_factory()
        web3 = make_web3({FACTORY: factory, POOL: make_pair()})
        source = ConstantProductSource(
            "aerodrome", web3, factory=FACTORY, factory_style="solidly"
        )

        quote = await source.quote(PAIR, ONE_WETH)

        expected = (ONE_WETH * 9970 * 2_000_000 * 10**6) // (
            1000 * 10**18 * 10000 + ONE_WETH * 9970
        )
        assert isinstance(quote, Quote)
        assert quote.source_id == "aerodrome"
        assert quote.amount_out == expected
        assert quote.decimals_in == 18
        assert quote.decimals_out == 6
        factory.functions.getPool.assert_called_once_with(
            Web3.to_checksum_address(WETH), Web3.to_checksum_address(USDC), False
        )

    @pytest.mark.asyncio
    async def test_reserves_oriented_by_token0(self):
        """If USDC sits in slot 0, reserves are swapped before the formula."""
        pair = make_pair(token0=USDC, token1=WETH, r0=2_000_000 * 10**6, r1=1000 * 10**18)
        web3 = make_web3({FACTORY: make_factory(), POOL: pair})
        source = ConstantProductSource("aero", web3, factory=FACTORY, factory_style="solidly")

        quote = await source.quote(PAIR, ONE_WETH)

        # ~1994 USDC for 1 WETH against a 2000 USDC/WETH pool, not dust
        assert 1_990 * 10**6 < quote.amount_out < 2_000 * 10**6

    @pytest.mark.asyncio
    async def test_pool_resolved_once(self):
        factory = make_factory(style="v2")
        web3 = make_web3({FACTORY: factory, POOL: make_pair()})
        source = ConstantProductSource("sushi", web3, factory=FACTORY)

        await source.quote(PAIR, ONE_WETH)
        await source.quote(PAIR, 2 * ONE_WETH)

        assert factory.functions.getPair.call_count == 1

    @pytest.mark.asyncio
    async def test_preconfigured_pool_skips_discovery(self):
        web3 = make_web3({POOL: make_pair()})
        source = ConstantProductSource("pinned", web3, pool=POOL)

        quote = await source.quote(PAIR, ONE_WETH)
        assert quote.amount_out > 0

    @pytest.mark.asyncio
    async def test_zero_address_is_pool_not_found(self):
        web3 = make_web3({FACTORY: make_factory(pool_addr=ZERO_ADDRESS)})
        source = ConstantProductSource("aero", web3, factory=FACTORY, factory_style="solidly")

        with pytest.raises(PoolNotFound) as exc:
            await source.quote(PAIR, ONE_WETH)
        assert exc.value.source_id == "aero"
        assert exc.value.kind == "pool_not_found"

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self):
        factory = make_factory(pool_addr=ZERO_ADDRESS)
        web3 = make_web3({FACTORY: factory, POOL: make_pair()})
        source = ConstantProductSource("aero", web3, factory=FACTORY, factory_style="solidly")

        with pytest.raises(PoolNotFound):
            await source.quote(PAIR, ONE_WETH)

        factory.functions.getPool.return_value.call.return_value = POOL
        quote = await source.quote(PAIR, ONE_WETH)
        assert quote.amount_out > 0

    @pytest.mark.asyncio
    async def test_pool_without_pair_tokens(self):
        other = "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb"
        web3 = make_web3({FACTORY: make_factory(), POOL: make_pair(token1=other)})
        source = ConstantProductSource("aero", web3, factory=FACTORY, factory_style="solidly")

        with pytest.raises(PoolNotFound):
            await source.quote(PAIR, ONE_WETH)

    @pytest.mark.asyncio
    async def test_zero_reserve_is_no_liquidity(self):
        web3 = make_web3({FACTORY: make_factory(), POOL: make_pair(r1=0)})
        source = ConstantProductSource("aero", web3, factory=FACTORY, factory_style="solidly")

        with pytest.raises(NoLiquidity):
            await source.quote(PAIR, ONE_WETH)

    @pytest.mark.asyncio
    async def test_dust_quote_is_valid_zero(self):
        """Positive reserves that floor to zero give a zero quote, not an error."""
        web3 = make_web3({POOL: make_pair(r0=10**30, r1=1)})
        source = ConstantProductSource("thin", web3, pool=POOL)

        quote = await source.quote(PAIR, 1)
        assert quote.amount_out == 0

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        pair = make_pair()
        pair.functions.getReserves.return_value.call.side_effect = ConnectionError("reset")
        web3 = make_web3({POOL: pair})
        source = ConstantProductSource("aero", web3, pool=POOL, endpoint="https://rpc")

        with pytest.raises(TransportError) as exc:
            await source.quote(PAIR, ONE_WETH)
        assert exc.value.endpoint == "https://rpc"

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self):
        source = ConstantProductSource("aero", MagicMock(), pool=POOL)
        with pytest.raises(ValueError):
            await source.quote(PAIR, 0)

    def test_requires_factory_or_pool(self):
        with pytest.raises(ValueError):
            ConstantProductSource("aero", MagicMock())


class TestSimulatedQuoteSource:
    """Quoter-backed quotes (V3 and V4)."""

    @pytest.mark.asyncio
    async def test_v3_quote(self):
        quoter = make_quoter(result=[2_001_500_000, 0, 2, 95_000])
        web3 = make_web3({QUOTER_V3: quoter})
        source = SimulatedQuoteSource("uniswap_v3", web3, quoter=QUOTER_V3, fee=3000)

        quote = await source.quote(PAIR, ONE_WETH)

        assert quote.amount_out == 2_001_500_000
        assert quote.gas_estimate == 95_000
        quoter.functions.quoteExactInputSingle.assert_called_once_with(
            (
                Web3.to_checksum_address(WETH),
                Web3.to_checksum_address(USDC),
                ONE_WETH,
                3000,
                0,
            )
        )

    @pytest.mark.asyncio
    async def test_v4_quote_with_native_currency(self):
        quoter = make_quoter(result=[1_999_000_000, 120_000])
        web3 = make_web3({QUOTER_V4: quoter})
        source = SimulatedQuoteSource(
            "uniswap_v4",
            web3,
            quoter=QUOTER_V4,
            fee=3000,
            quoter_version="v4",
            tick_spacing=60,
            base_currency=ZERO_ADDRESS,
        )

        quote = await source.quote(PAIR, ONE_WETH)

        assert quote.amount_out == 1_999_000_000
        assert quote.gas_estimate == 120_000
        args = quoter.functions.quoteExactInputSingle.call_args[0][0]
        pool_key, zero_for_one, amount, hook_data = args
        assert pool_key == (ZERO_ADDRESS, Web3.to_checksum_address(USDC), 3000, 60, ZERO_ADDRESS)
        assert zero_for_one is True
        assert amount == ONE_WETH
        assert hook_data == b""

    @pytest.mark.asyncio
    async def test_revert_preserves_reason_code(self):
        error = ContractLogicError("execution reverted", data="0x486aa307")
        web3 = make_web3({QUOTER_V4: make_quoter(error=error)})
        source = SimulatedQuoteSource(
            "uniswap_v4", web3, quoter=QUOTER_V4, fee=3000, quoter_version="v4", tick_spacing=60
        )

        with pytest.raises(SimulationReverted) as exc:
            await source.quote(PAIR, ONE_WETH)
        assert exc.value.reason_code == "0x486aa307"
        assert exc.value.reason_name == "PoolNotInitialized"
        assert not exc.value.opaque
        assert exc.value.source_id == "uniswap_v4"

    @pytest.mark.asyncio
    async def test_revert_without_data_is_opaque(self):
        error = ContractLogicError("execution reverted")
        web3 = make_web3({QUOTER_V3: make_quoter(error=error)})
        source = SimulatedQuoteSource("uniswap_v3", web3, quoter=QUOTER_V3, fee=500)

        with pytest.raises(SimulationReverted) as exc:
            await source.quote(PAIR, ONE_WETH)
        assert exc.value.opaque
        assert exc.value.reason_code is None

    @pytest.mark.asyncio
    async def test_zero_output_is_no_liquidity(self):
        web3 = make_web3({QUOTER_V3: make_quoter(result=[0, 0, 0, 0])})
        source = SimulatedQuoteSource("uniswap_v3", web3, quoter=QUOTER_V3, fee=3000)

        with pytest.raises(NoLiquidity):
            await source.quote(PAIR, ONE_WETH)

    @pytest.mark.asyncio
    async def test_provider_error_is_transport(self):
        web3 = make_web3({QUOTER_V3: make_quoter(error=Web3Exception("bad gateway"))})
        source = SimulatedQuoteSource("uniswap_v3", web3, quoter=QUOTER_V3, fee=3000)

        with pytest.raises(TransportError):
            await source.quote(PAIR, ONE_WETH)

    @pytest.mark.asyncio
    async def test_transport_timeout(self):
        web3 = make_web3({QUOTER_V3: make_quoter(error=requests.exceptions.ReadTimeout("Read timed out. (read timeout=10)"))})
        source = SimulatedQuoteSource("uniswap_v3", web3, quoter=QUOTER_V3, fee=3000)

        with pytest.raises(QuoteTimeout):
            await source.quote(PAIR, ONE_WETH)

    @pytest.mark.asyncio
    async def test_rpc_error_payload(self):
        error = ValueError({"code": -32005, "message": "limit exceeded"})
        web3 = make_web3({QUOTER_V3: make_quoter(error=error)})
        source = SimulatedQuoteSource("uniswap_v3", web3, quoter=QUOTER_V3, fee=3000)

        with pytest.raises(TransportError):
            await source.quote(PAIR, ONE_WETH)

    def test_v4_requires_tick_spacing(self):
        with pytest.raises(ValueError):
            SimulatedQuoteSource("v4", MagicMock(), quoter=QUOTER_V4, fee=3000, quoter_version="v4")


class SlowSource(QuoteSource):
    async def _quote(self, pair, amount_in):
        await asyncio.sleep(5)


class TestDeadline:
    """The per-source deadline."""

    @pytest.mark.asyncio
    async def test_deadline_raises_quote_timeout(self):
        source = SlowSource("slow", None, timeout_sec=0.05)

        with pytest.raises(QuoteTimeout) as exc:
            await source.quote(PAIR, ONE_WETH)
        assert exc.value.timeout_sec == 0.05
        assert exc.value.source_id == "slow"


class TestDecodeRevert:
    """Revert selector decoding."""

    def test_known_selector_in_data(self):
        err = ContractLogicError("execution reverted", data="0x486aa307")
        assert decode_revert(err) == ("0x486aa307", "PoolNotInitialized")

    def test_unknown_selector_kept(self):
        err = ContractLogicError("execution reverted", data="0xdeadbeef00000000")
        assert decode_revert(err) == ("0xdeadbeef", None)

    def test_name_in_message(self):
        err = ContractLogicError("execution reverted: PoolNotInitialized()")
        assert decode_revert(err) == ("0x486aa307", "PoolNotInitialized")

    def test_nothing_decodable(self):
        assert decode_revert(ContractLogicError("execution reverted")) == (None, None)


class TestPoolKey:
    """V4 pool key ordering."""

    def test_sorted_currencies(self):
        key, zero_for_one = build_pool_key(USDC, ZERO_ADDRESS, 500, 10)
        assert key.currency0 == ZERO_ADDRESS
        assert key.currency1 == Web3.to_checksum_address(USDC)
        assert zero_for_one is False

    def test_identical_currencies_rejected(self):
        with pytest.raises(ValueError):
            build_pool_key(USDC, USDC.lower(), 500, 10)


class TestBuildSources:
    """Construction from config entries."""

    def test_build_each_kind(self):
        web3 = MagicMock()
        cp = build_source(
            {"id": "aero", "kind": "constant_product", "factory": FACTORY, "factory_style": "solidly"},
            web3,
        )
        v3 = build_source({"id": "u3", "kind": "v3_quoter", "quoter": QUOTER_V3, "fee": 3000}, web3)
        v4 = build_source(
            {"id": "u4", "kind": "v4_quoter", "quoter": QUOTER_V4, "fee": 3000, "tick_spacing": 60},
            web3,
            timeout_sec=3,
        )

        assert isinstance(cp, ConstantProductSource)
        assert cp.stable is False
        assert isinstance(v3, SimulatedQuoteSource) and v3.quoter_version == "v3"
        assert isinstance(v4, SimulatedQuoteSource) and v4.quoter_version == "v4"
        assert v4.timeout_sec == 3

    def test_unknown_kind(self):
        with pytest.raises(ConfigError):
            build_source({"id": "x", "kind": "orderbook"}, MagicMock())

    def test_build_sources_from_config(self):
        config = MonitorConfig(
            {
                "rpc_url": "https://rpc.example",
                "request_timeout_sec": 4,
                "tokens": {
                    "WETH": {"address": WETH, "decimals": 18},
                    "USDC": {"address": USDC, "decimals": 6},
                },
                "pair": {"base": "WETH", "quote": "USDC"},
                "amount_in": ONE_WETH,
                "sources": [
                    {"id": "u3", "kind": "v3_quoter", "quoter": QUOTER_V3, "fee": 3000},
                    {"id": "aero", "kind": "constant_product", "pool": POOL},
                ],
            }
        )

        sources = build_sources(config, MagicMock())

        assert [s.source_id for s in sources] == ["u3", "aero"]
        assert all(s.timeout_sec == 4 for s in sources)
        assert all(s.endpoint == "https://rpc.example" for s in sources)

    def test_build_sources_labels_fallback_endpoint(self):
        config = MonitorConfig(
            {
                "rpc_url": "https://rpc.example",
                "fallback_rpc_urls": ["https://fallback.example"],
                "tokens": {
                    "WETH": {"address": WETH, "decimals": 18},
                    "USDC": {"address": USDC, "decimals": 6},
                },
                "pair": {"base": "WETH", "quote": "USDC"},
                "amount_in": ONE_WETH,
                "sources": [
                    {"id": "u3", "kind": "v3_quoter", "quoter": QUOTER_V3, "fee": 3000},
                    {"id": "aero", "kind": "constant_product", "pool": POOL},
                ],
            }
        )

        sources = build_sources(config, MagicMock(), "https://fallback.example")

        assert all(s.endpoint == "https://fallback.example" for s in sources)


@pytest.fixture
def silent_endpoint():
    """TCP listener that accepts connections and never answers."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(16)
    host, port = listener.getsockname()
    yield f"http://{host}:{port}"
    listener.close()


class TestHttpTimeout:
    """Read timeouts from a real HTTP provider."""

    @pytest.mark.asyncio
    async def test_read_timeout_is_quote_timeout(self, silent_endpoint):
        web3 = Web3(Web3.HTTPProvider(silent_endpoint, request_kwargs={"timeout": 0.2}))
        source = SimulatedQuoteSource(
            "uniswap_v3", web3, quoter=QUOTER_V3, fee=3000, timeout_sec=20
        )

        with pytest.raises(QuoteTimeout) as exc:
            await source.quote(PAIR, ONE_WETH)

        # Raised by the transport, not by the per-quote deadline
        assert exc.value.timeout_sec is None
        assert isinstance(exc.value.__cause__, requests.exceptions.Timeout)
        assert exc.value.source_id == "uniswap_v3"
