"""
Uniswap V4 adapter.

V4 pools live inside a singleton PoolManager and are identified by a pool
key rather than an address. Quotes come from the V4 Quoter, which
simulates the swap and reverts with the result internally; calling it via
eth_call gives us the decoded (amountOut, gasEstimate).
"""

from typing import NamedTuple, Optional, Tuple

from web3 import Web3

from ..abi import UNISWAP_V4_QUOTER_ABI

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class PoolKey(NamedTuple):
    """V4 pool identifier. currency0 must sort below currency1."""

    currency0: str
    currency1: str
    fee: int
    tick_spacing: int
    hooks: str = ZERO_ADDRESS


def build_pool_key(
    currency_in: str,
    currency_out: str,
    fee: int,
    tick_spacing: int,
    hooks: str = ZERO_ADDRESS,
) -> Tuple[PoolKey, bool]:
    """
    Build the pool key for a swap direction.

    Currencies are sorted by numeric address value, so the native-ETH zero
    address always becomes currency0.

    Returns:
        Tuple of (pool_key, zero_for_one) where zero_for_one is True when
        currency_in is currency0
    """
    a = Web3.to_checksum_address(currency_in)
    b = Web3.to_checksum_address(currency_out)
    if int(a, 16) == int(b, 16):
        raise ValueError(f"Pool key currencies are identical: {a}")

    zero_for_one = int(a, 16) < int(b, 16)
    c0, c1 = (a, b) if zero_for_one else (b, a)
    key = PoolKey(c0, c1, int(fee), int(tick_spacing), Web3.to_checksum_address(hooks))
    return key, zero_for_one


def quote_exact_input_single(
    web3: Web3,
    quoter_addr: str,
    pool_key: PoolKey,
    zero_for_one: bool,
    exact_amount: int,
    hook_data: bytes = b"",
) -> Tuple[int, Optional[int]]:
    """
    Simulate an exact input single-pool swap on Uniswap V4.

    Returns:
        Tuple of (amount_out, gas_estimate)

    Raises:
        ContractLogicError: If the quoter reverts (e.g. PoolNotInitialized)
    """
    quoter = web3.eth.contract(
        address=Web3.to_checksum_address(quoter_addr), abi=UNISWAP_V4_QUOTER_ABI
    )
    params = (tuple(pool_key), zero_for_one, exact_amount, hook_data)
    result = quoter.functions.quoteExactInputSingle(params).call()
    amount_out = int(result[0])
    gas_estimate = int(result[1]) if len(result) > 1 else None
    return amount_out, gas_estimate
