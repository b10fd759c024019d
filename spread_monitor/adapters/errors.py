"""
Translation of web3/transport failures into quote errors.

Adapter functions are synchronous (web3 HTTP provider); `remote_call`
runs them in the default thread pool so several sources can be awaited
concurrently, and maps whatever they raise onto the QuoteError taxonomy.
"""

import asyncio
import re
from typing import Any, Callable, Optional, Tuple

import requests
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception

from ..exceptions import QuoteTimeout, SimulationReverted, TransportError

# 4-byte selectors we know how to name
KNOWN_REVERT_SELECTORS = {
    "0x486aa307": "PoolNotInitialized",
    "0x08c379a0": "Error",
    "0x4e487b71": "Panic",
}

_SELECTOR_RE = re.compile(r"0x[0-9a-fA-F]{8}")


def decode_revert(error: BaseException) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract the revert selector and its name from a web3 revert.

    Args:
        error: ContractLogicError (or RPC error) raised by an eth_call

    Returns:
        Tuple of (reason_code, reason_name); reason_code is None when the
        revert carried no decodable data
    """
    data = getattr(error, "data", None)
    if isinstance(data, dict):
        data = data.get("data")

    code = None
    if isinstance(data, (bytes, bytearray)) and len(data) >= 4:
        code = "0x" + bytes(data[:4]).hex()
    elif isinstance(data, str) and data.startswith("0x") and len(data) >= 10:
        code = data[:10].lower()

    if code is None:
        # Some nodes only put the selector (or the error name) in the message
        message = str(error)
        if "PoolNotInitialized" in message:
            return "0x486aa307", "PoolNotInitialized"
        match = _SELECTOR_RE.search(message)
        if match and match.group(0).lower() in KNOWN_REVERT_SELECTORS:
            code = match.group(0).lower()

    if code is None:
        return None, None
    return code, KNOWN_REVERT_SELECTORS.get(code)


def _is_rpc_error_payload(error: ValueError) -> bool:
    return bool(error.args) and isinstance(error.args[0], dict)


async def remote_call(
    fn: Callable[..., Any],
    *args: Any,
    source_id: Optional[str] = None,
    endpoint: Optional[str] = None,
) -> Any:
    """
    Run a blocking web3 read in the thread pool and translate failures.

    Raises:
        SimulationReverted: The call reverted (ContractLogicError)
        QuoteTimeout: The transport gave up waiting
        TransportError: Connectivity or RPC-level failure
    """
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, fn, *args)
    except ContractLogicError as e:
        code, name = decode_revert(e)
        label = name or code or "opaque"
        raise SimulationReverted(
            f"Call reverted ({label}): {e}",
            source_id=source_id,
            reason_code=code,
            reason_name=name,
        ) from e
    except (TimeoutError, requests.exceptions.Timeout, TimeExhausted) as e:
        raise QuoteTimeout(
            f"Transport timed out: {e}", source_id=source_id
        ) from e
    except (OSError, Web3Exception) as e:
        raise TransportError(
            f"RPC failure: {e}", source_id=source_id, endpoint=endpoint
        ) from e
    except ValueError as e:
        # web3 surfaces raw JSON-RPC error payloads as ValueError(dict)
        if not _is_rpc_error_payload(e):
            raise
        payload = e.args[0]
        if "revert" in str(payload.get("message", "")).lower():
            code, name = decode_revert(e)
            raise SimulationReverted(
                f"Call reverted ({name or code or 'opaque'}): {payload.get('message')}",
                source_id=source_id,
                reason_code=code,
                reason_name=name,
            ) from e
        raise TransportError(
            f"RPC error {payload.get('code')}: {payload.get('message')}",
            source_id=source_id,
            endpoint=endpoint,
        ) from e
