"""
Uniswap V2 style adapter for constant-product AMM pools.

Implements pool discovery, reserve fetching and swap simulation using the
x*y=k formula with the fee embedded in the input amount. All math is
exact integer arithmetic so results match the on-chain computation.
"""

from typing import Optional, Tuple

from web3 import Web3

from ..abi import SOLIDLY_FACTORY_ABI, UNISWAP_V2_FACTORY_ABI, UNISWAP_V2_PAIR_ABI

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

FEE_DENOMINATOR = 10_000

FACTORY_STYLES = ("v2", "solidly")


def find_pool(
    web3: Web3,
    factory_addr: str,
    token_a: str,
    token_b: str,
    style: str = "v2",
    stable: bool = False,
) -> Optional[str]:
    """
    Ask a factory for the pool holding two tokens.

    Args:
        web3: Web3 instance connected to the chain
        factory_addr: Factory contract address
        token_a: First token address
        token_b: Second token address
        style: "v2" for getPair(a, b), "solidly" for getPool(a, b, stable)
        stable: Solidly stable-curve flag (ignored for v2)

    Returns:
        Checksummed pool address, or None if the factory returned the zero address

    Raises:
        ValueError: If style is unknown
    """
    factory_addr = Web3.to_checksum_address(factory_addr)
    token_a = Web3.to_checksum_address(token_a)
    token_b = Web3.to_checksum_address(token_b)

    if style == "v2":
        factory = web3.eth.contract(address=factory_addr, abi=UNISWAP_V2_FACTORY_ABI)
        pool = factory.functions.getPair(token_a, token_b).call()
    elif style == "solidly":
        factory = web3.eth.contract(address=factory_addr, abi=SOLIDLY_FACTORY_ABI)
        pool = factory.functions.getPool(token_a, token_b, stable).call()
    else:
        raise ValueError(f"Unknown factory style: {style}")

    if not pool or int(pool, 16) == 0:
        return None
    return Web3.to_checksum_address(pool)


def fetch_pool(web3: Web3, pair_addr: str) -> Tuple[str, str, int, int]:
    """
    Fetch token addresses and reserves from a Uniswap V2 style pair.

    Args:
        web3: Web3 instance connected to the chain
        pair_addr: Address of the pair contract

    Returns:
        Tuple of (token0_addr, token1_addr, reserve0, reserve1)
    """
    pair = web3.eth.contract(
        address=Web3.to_checksum_address(pair_addr), abi=UNISWAP_V2_PAIR_ABI
    )
    token0 = pair.functions.token0().call()
    token1 = pair.functions.token1().call()
    reserves = pair.functions.getReserves().call()

    return (
        Web3.to_checksum_address(token0),
        Web3.to_checksum_address(token1),
        int(reserves[0]),
        int(reserves[1]),
    )


def orient_reserves(
    token0: str, token1: str, r0: int, r1: int, token_in: str, token_out: str
) -> Optional[Tuple[int, int]]:
    """
    Order a pool's reserves as (reserve_in, reserve_out) for a swap direction.

    Returns:
        (reserve_in, reserve_out), or None if the pool does not hold both tokens
    """
    t0, t1 = token0.lower(), token1.lower()
    tin, tout = token_in.lower(), token_out.lower()
    if (t0, t1) == (tin, tout):
        return r0, r1
    if (t0, t1) == (tout, tin):
        return r1, r0
    return None


def swap_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int = 30) -> int:
    """
    Calculate output amount for a V2 swap using the constant-product formula.

    Formula (fee in basis points, 30 bps gives the familiar 997/1000):
        amountInWithFee = amountIn * (10000 - feeBps)
        amountOut = amountInWithFee * reserveOut // (reserveIn * 10000 + amountInWithFee)

    Args:
        amount_in: Input token amount (smallest units)
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        fee_bps: Pool fee in basis points

    Returns:
        Output token amount (smallest units, floored)

    Raises:
        ValueError: If inputs are invalid (negative, zero reserves, fee out of range)
    """
    if amount_in < 0:
        raise ValueError(f"amount_in must be non-negative: {amount_in}")
    if reserve_in <= 0 or reserve_out <= 0:
        raise ValueError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if fee_bps < 0 or fee_bps >= FEE_DENOMINATOR:
        raise ValueError(f"fee_bps must be in [0, {FEE_DENOMINATOR}): {fee_bps}")

    amount_in_with_fee = amount_in * (FEE_DENOMINATOR - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator
