"""
Uniswap V3 style adapter for concentrated-liquidity pools.

V3 output depends on the liquidity distribution across ticks, so instead of
a closed-form formula we ask the QuoterV2 contract to simulate the swap
with an eth_call.
"""

from typing import Optional, Tuple

from web3 import Web3

from ..abi import UNISWAP_V3_QUOTER_V2_ABI


def quote_exact_input_single(
    web3: Web3,
    quoter_addr: str,
    token_in: str,
    token_out: str,
    amount_in: int,
    fee: int,
    sqrt_price_limit_x96: int = 0,
) -> Tuple[int, Optional[int]]:
    """
    Get a quote for an exact input single-pool swap on Uniswap V3.

    Args:
        web3: Web3 instance
        quoter_addr: Address of the QuoterV2 contract
        token_in: Input token address
        token_out: Output token address
        amount_in: Input amount in smallest units
        fee: Pool fee tier (e.g. 3000 for 0.3%)
        sqrt_price_limit_x96: Price limit, 0 for none

    Returns:
        Tuple of (amount_out, gas_estimate)

    Raises:
        ContractLogicError: If the quoter reverts (no pool, not initialized, ...)
    """
    quoter = web3.eth.contract(
        address=Web3.to_checksum_address(quoter_addr), abi=UNISWAP_V3_QUOTER_V2_ABI
    )
    params = (
        Web3.to_checksum_address(token_in),
        Web3.to_checksum_address(token_out),
        amount_in,
        fee,
        sqrt_price_limit_x96,
    )
    result = quoter.functions.quoteExactInputSingle(params).call()
    amount_out = int(result[0])
    gas_estimate = int(result[3]) if len(result) > 3 else None
    return amount_out, gas_estimate
