"""
DEX adapter modules for different AMM types.
"""

from .errors import decode_revert, remote_call
from .v2 import find_pool, fetch_pool, orient_reserves, swap_out

__all__ = [
    "decode_revert",
    "fetch_pool",
    "find_pool",
    "orient_reserves",
    "remote_call",
    "swap_out",
]
