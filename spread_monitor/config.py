"""
Configuration loading and validation for the spread monitor.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ConfigError
from .types import TradingPair
from .utils import get_logger

logger = get_logger(__name__)

SOURCE_KINDS = ("constant_product", "v3_quoter", "v4_quoter")

DEFAULT_INTERVAL_MS = 30_000
DEFAULT_TIMEOUT_SEC = 10.0
DEFAULT_DEGRADED_AFTER = 5


def _number(value: Any, field: str, cast: type = int) -> Any:
    """Convert a scalar config value, reporting the field name on failure."""
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Config field '{field}' must be {cast.__name__}, got {value!r}") from e


@dataclass(frozen=True)
class PollingConfig:
    """
    Immutable settings handed to the Poller at construction.

    Attributes:
        pair: Monitored trading pair
        amount_in: Fixed quote size in base-token smallest units
        interval_sec: Cycle period, measured from cycle start
        spread_threshold_bps: Spread must exceed this to be an opportunity
        degraded_after_cycles: Consecutive transport-failing cycles before
            health is reported as degraded
        once: Run a single cycle and stop
    """

    pair: TradingPair
    amount_in: int
    interval_sec: float = DEFAULT_INTERVAL_MS / 1000
    spread_threshold_bps: int = 0
    degraded_after_cycles: int = DEFAULT_DEGRADED_AFTER
    once: bool = False

    def __post_init__(self):
        if self.amount_in <= 0:
            raise ValueError(f"amount_in must be positive: {self.amount_in}")
        if self.interval_sec < 0:
            raise ValueError(f"interval_sec must be non-negative: {self.interval_sec}")
        if self.spread_threshold_bps < 0:
            raise ValueError(
                f"spread_threshold_bps must be non-negative: {self.spread_threshold_bps}"
            )
        if self.degraded_after_cycles < 1:
            raise ValueError(
                f"degraded_after_cycles must be >= 1: {self.degraded_after_cycles}"
            )


class MonitorConfig:
    """
    Parsed and validated configuration for spread monitoring.

    Attributes:
        rpc_url: HTTP(S) RPC endpoint
        fallback_rpc_urls: Endpoints tried in order if rpc_url is down
        interval_ms: Milliseconds between cycle starts
        request_timeout_sec: Per-source quote deadline
        spread_threshold_bps: Minimum spread (exclusive) to report, 0 = any
        degraded_after_cycles: Transport-failure streak that flags degraded health
        once: If True, run a single cycle and exit
        tokens: Dict of {symbol -> {address, decimals}}
        pair: Dict with base/quote symbols
        amount_in: Quote size in base-token smallest units
        sources: Ordered list of source configs
    """

    def __init__(self, config_dict: Dict[str, Any]):
        """
        Parse and validate config from dictionary.

        Args:
            config_dict: Loaded YAML config

        Raises:
            ConfigError: If required fields missing or invalid
        """
        # RPC settings
        self.rpc_url: str = self._parse_rpc_url(config_dict)
        fallbacks = config_dict.get("fallback_rpc_urls", [])
        if not isinstance(fallbacks, list):
            raise ConfigError("fallback_rpc_urls must be a list")
        self.fallback_rpc_urls: List[str] = [str(u) for u in fallbacks]

        # Loop settings
        if "interval_ms" in config_dict:
            self.interval_ms: int = self._positive_int(config_dict, "interval_ms")
        else:
            self.interval_ms = DEFAULT_INTERVAL_MS

        self.request_timeout_sec: float = _number(
            config_dict.get("request_timeout_sec", DEFAULT_TIMEOUT_SEC), "request_timeout_sec", float
        )
        if self.request_timeout_sec <= 0:
            raise ConfigError("request_timeout_sec must be positive")
        if self.request_timeout_sec * 1000 >= self.interval_ms:
            logger.warning(
                f"request_timeout_sec ({self.request_timeout_sec}s) is not shorter than "
                f"the polling interval ({self.interval_ms}ms); slow cycles will delay the next tick"
            )

        self.spread_threshold_bps: int = _number(
            config_dict.get("spread_threshold_bps", 0), "spread_threshold_bps"
        )
        if self.spread_threshold_bps < 0:
            raise ConfigError("spread_threshold_bps must be >= 0")

        self.degraded_after_cycles: int = _number(
            config_dict.get("degraded_after_cycles", DEFAULT_DEGRADED_AFTER), "degraded_after_cycles"
        )
        if self.degraded_after_cycles < 1:
            raise ConfigError("degraded_after_cycles must be >= 1")

        self.once: bool = bool(config_dict.get("once", False))

        # Tokens and the monitored pair
        self.tokens: Dict[str, Dict[str, Any]] = self._parse_tokens(
            self._get_required(config_dict, "tokens", dict)
        )
        self.pair: Dict[str, str] = self._parse_pair(
            self._get_required(config_dict, "pair", dict), self.tokens
        )
        self.amount_in: int = self._parse_amount(config_dict)

        # Sources
        self.sources: List[Dict[str, Any]] = self._parse_sources(
            self._get_required(config_dict, "sources", list)
        )

    @staticmethod
    def _get_required(d: Dict, key: str, expected_type: type) -> Any:
        """Get required config field with type validation."""
        if key not in d:
            raise ConfigError(f"Missing required config field: {key}")
        val = d[key]
        if not isinstance(val, expected_type):
            raise ConfigError(
                f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}"
            )
        return val

    @staticmethod
    def _positive_int(d: Dict, key: str) -> int:
        val = d[key]
        if isinstance(val, bool) or not isinstance(val, int) or val <= 0:
            raise ConfigError(f"Config field '{key}' must be a positive integer, got {val!r}")
        return val

    @staticmethod
    def _parse_rpc_url(config_dict: Dict[str, Any]) -> str:
        """The rpc_url_env variable wins when set; rpc_url is the fallback."""
        env_name = config_dict.get("rpc_url_env")
        url = os.getenv(env_name) if env_name else None
        if not url:
            url = config_dict.get("rpc_url")
        if not url and env_name:
            raise ConfigError(
                f"RPC URL environment variable {env_name} not set and no rpc_url in config"
            )
        if not url:
            raise ConfigError("Missing required config field: rpc_url (or rpc_url_env)")
        if not isinstance(url, str):
            raise ConfigError(f"rpc_url must be str, got {type(url).__name__}")
        return url

    @staticmethod
    def _parse_tokens(tokens_raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Parse and validate tokens config."""
        tokens = {}
        for symbol, info in tokens_raw.items():
            if not isinstance(info, dict):
                raise ConfigError(f"Token '{symbol}' config must be a dict")
            if "address" not in info:
                raise ConfigError(f"Token '{symbol}' missing 'address'")
            if "decimals" not in info:
                raise ConfigError(f"Token '{symbol}' missing 'decimals'")

            decimals = _number(info["decimals"], f"tokens.{symbol}.decimals")
            if not 0 <= decimals <= 36:
                raise ConfigError(f"Token '{symbol}' decimals out of range: {decimals}")

            tokens[symbol] = {
                "address": str(info["address"]),
                "decimals": decimals,
            }
        return tokens

    @staticmethod
    def _parse_pair(pair_raw: Dict[str, Any], tokens: Dict[str, Dict[str, Any]]) -> Dict[str, str]:
        """Parse the monitored pair (token symbols)."""
        base = pair_raw.get("base")
        quote = pair_raw.get("quote")
        if not base or not quote:
            raise ConfigError("pair requires both 'base' and 'quote'")
        for symbol in (base, quote):
            if symbol not in tokens:
                raise ConfigError(f"pair token '{symbol}' not found in tokens config")
        if tokens[base]["address"].lower() == tokens[quote]["address"].lower():
            raise ConfigError(f"pair base and quote resolve to the same token: {base}/{quote}")
        return {"base": base, "quote": quote}

    def _parse_amount(self, config_dict: Dict[str, Any]) -> int:
        """amount_in is raw smallest units; amount_in_units is scaled by base decimals."""
        if "amount_in" in config_dict:
            return self._positive_int(config_dict, "amount_in")

        if "amount_in_units" in config_dict:
            decimals = self.tokens[self.pair["base"]]["decimals"]
            try:
                units = Decimal(str(config_dict["amount_in_units"]))
            except InvalidOperation as e:
                raise ConfigError(
                    f"amount_in_units is not a number: {config_dict['amount_in_units']!r}"
                ) from e
            raw = units.scaleb(decimals)
            if raw <= 0 or raw != raw.to_integral_value():
                raise ConfigError(
                    f"amount_in_units {units} is not a positive multiple of 10^-{decimals}"
                )
            return int(raw)

        raise ConfigError("Missing required config field: amount_in (or amount_in_units)")

    @staticmethod
    def _parse_sources(sources_raw: List[Any]) -> List[Dict[str, Any]]:
        """Parse and validate quote sources config."""
        sources = []
        seen = set()
        for i, src in enumerate(sources_raw):
            if not isinstance(src, dict):
                raise ConfigError(f"Source config {i} must be a dict")

            source_id = src.get("id")
            if not source_id:
                raise ConfigError(f"Source config {i} missing 'id'")
            if source_id in seen:
                raise ConfigError(f"Duplicate source id '{source_id}'")
            seen.add(source_id)

            kind = src.get("kind")
            if kind not in SOURCE_KINDS:
                raise ConfigError(
                    f"Source '{source_id}' has invalid kind '{kind}' "
                    f"(must be one of {', '.join(SOURCE_KINDS)})"
                )

            if kind == "constant_product":
                if not src.get("factory") and not src.get("pool"):
                    raise ConfigError(f"Source '{source_id}' needs 'factory' or 'pool'")
                style = src.get("factory_style", "v2")
                if style not in ("v2", "solidly"):
                    raise ConfigError(
                        f"Source '{source_id}' has invalid factory_style '{style}' (must be v2 or solidly)"
                    )
                fee_bps = _number(src.get("fee_bps", 30), f"sources.{source_id}.fee_bps")
                if not 0 <= fee_bps < 10_000:
                    raise ConfigError(f"Source '{source_id}' fee_bps out of range: {fee_bps}")
            else:
                for key in ("quoter", "fee"):
                    if src.get(key) is None:
                        raise ConfigError(f"Source '{source_id}' missing '{key}'")
                _number(src["fee"], f"sources.{source_id}.fee")
                if kind == "v4_quoter":
                    if src.get("tick_spacing") is None:
                        raise ConfigError(f"Source '{source_id}' missing 'tick_spacing'")
                    _number(src["tick_spacing"], f"sources.{source_id}.tick_spacing")

            if "timeout_sec" in src and _number(
                src["timeout_sec"], f"sources.{source_id}.timeout_sec", float
            ) <= 0:
                raise ConfigError(f"Source '{source_id}' timeout_sec must be positive")

            sources.append(dict(src))

        if len(sources) < 2:
            raise ConfigError(f"At least 2 sources are required, got {len(sources)}")
        return sources

    @property
    def interval_sec(self) -> float:
        return self.interval_ms / 1000.0

    @property
    def trading_pair(self) -> TradingPair:
        base = self.pair["base"]
        quote = self.pair["quote"]
        return TradingPair(
            base=self.tokens[base]["address"],
            quote=self.tokens[quote]["address"],
            base_decimals=self.tokens[base]["decimals"],
            quote_decimals=self.tokens[quote]["decimals"],
            base_symbol=base,
            quote_symbol=quote,
        )

    @property
    def polling(self) -> PollingConfig:
        """Immutable view handed to the Poller."""
        return PollingConfig(
            pair=self.trading_pair,
            amount_in=self.amount_in,
            interval_sec=self.interval_sec,
            spread_threshold_bps=self.spread_threshold_bps,
            degraded_after_cycles=self.degraded_after_cycles,
            once=self.once,
        )

    @property
    def rpc_urls(self) -> List[str]:
        """Primary endpoint followed by fallbacks, de-duplicated."""
        urls: List[str] = []
        for url in [self.rpc_url] + self.fallback_rpc_urls:
            if url and url not in urls:
                urls.append(url)
        return urls


def load_config(config_path: str, overrides: Optional[Dict[str, Any]] = None) -> MonitorConfig:
    """
    Load and validate config from YAML file.

    Args:
        config_path: Path to config YAML file
        overrides: Top-level keys that replace file values (CLI flags)

    Returns:
        Validated MonitorConfig instance

    Raises:
        ConfigError: If config invalid, unparsable or file not found
    """
    if not os.path.exists(config_path):
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse YAML: {e}") from e

    if not isinstance(config_dict, dict):
        raise ConfigError("Config file must contain a YAML dictionary")

    if overrides:
        config_dict.update(overrides)

    return MonitorConfig(config_dict)
