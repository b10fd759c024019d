"""
Display and logging helpers shared by the reporters, poller and CLI.
"""

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union


def timestamp_to_iso(timestamp: float) -> str:
    """Render a Unix timestamp as UTC ISO 8601."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def format_duration(seconds: float) -> str:
    """250ms, 2.50s, 1.5m or 2.0h."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.2f}s"
    if seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"


def format_units(amount: int, decimals: int, places: int = 6) -> str:
    """Render an integer token amount in whole units (display only)."""
    value = Decimal(amount).scaleb(-decimals)
    return f"{value:,.{places}f}"


def safe_json_dump(data: Any, **kwargs) -> str:
    """
    json.dumps that understands Decimal, Enum and dataclasses.

    Keyword arguments override the defaults (indent=2, ensure_ascii=False).
    """
    options = {"ensure_ascii": False, "indent": 2, "default": _to_json}
    options.update(kwargs)
    return json.dumps(data, **options)


def _to_json(obj: Any) -> Any:
    # Decimal prices keep full precision as strings
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return str(obj)


def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
) -> Union[logging.Logger, logging.LoggerAdapter]:
    """
    Module logger.

    When logging_config.setup() has configured the root logger, records
    propagate there. Otherwise the logger gets its own stream handler
    so library use outside the CLI still prints.

    Args:
        name: Logger name (typically __name__)
        level: Level applied if the logger has none yet
        extra: Context fields attached to every record

    Returns:
        Logger, or LoggerAdapter when extra is given
    """
    logger = logging.getLogger(name)
    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers and not logging.getLogger().handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
                datefmt="%H:%M:%S",
            )
        )
        logger.addHandler(handler)
        logger.propagate = False

    if extra:
        return logging.LoggerAdapter(logger, extra)
    return logger
