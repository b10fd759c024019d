"""
RPC endpoint connection with fallback support.

Connection setup happens once at process start; the quote sources only
ever see the resulting Web3 instance.
"""

from typing import List

from web3 import Web3

from .utils import get_logger

logger = get_logger(__name__)


def connect(rpc_urls: List[str], request_timeout_sec: float = 10.0) -> Web3:
    """
    Connect to the first healthy endpoint.

    Args:
        rpc_urls: Endpoints in priority order
        request_timeout_sec: HTTP timeout applied to every request

    Returns:
        Connected Web3 instance

    Raises:
        ConnectionError: If every endpoint fails
    """
    last_error = None
    for rpc_url in rpc_urls:
        # Skip None or empty URLs
        if not rpc_url or not isinstance(rpc_url, str) or not rpc_url.strip():
            logger.debug(f"Skipping invalid RPC URL: {rpc_url}")
            continue

        try:
            logger.info(f"Connecting to RPC: {rpc_url}")
            if not rpc_url.startswith(("http://", "https://")):
                raise ValueError(f"Invalid RPC URL format: {rpc_url}")

            web3 = Web3(
                Web3.HTTPProvider(
                    rpc_url, request_kwargs={"timeout": request_timeout_sec}
                )
            )
            if not web3.is_connected():
                raise ConnectionError(f"Endpoint not reachable: {rpc_url}")

            block = web3.eth.block_number
            chain_id = web3.eth.chain_id
            logger.info(f"Connected to chain {chain_id} (block #{block:,})")
            return web3
        except Exception as e:
            last_error = e
            logger.warning(f"RPC connection failed: {e}")
            if rpc_url != rpc_urls[-1]:
                logger.info("Trying next endpoint...")

    raise ConnectionError(f"All RPC endpoints failed. Last error: {last_error}")
