"""
Spread monitor CLI.

Polls the configured liquidity sources for one pair and prints each
cycle's prices and any arbitrage opportunity.

Usage:
    python3 run_monitor.py
    python3 run_monitor.py --config configs/base_weth_usdc.yaml
    python3 run_monitor.py --config configs/base_weth_usdc.yaml --once
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from . import logging_config
from .config import ConfigError, MonitorConfig, load_config
from .poller import HealthStatus, Poller
from .reporter import ConsoleReporter, JsonLinesReporter
from .rpc import connect
from .sources import build_sources
from .utils import get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG = "configs/base_weth_usdc.yaml"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Cross-DEX spread monitor (read-only, never trades)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config
  python3 run_monitor.py

  # Use custom config
  python3 run_monitor.py --config configs/base_weth_usdc.yaml

  # Single cycle (for testing/CI)
  python3 run_monitor.py --once

  # Ten cycles as JSON lines
  python3 run_monitor.py --cycles 10 --json
        """,
    )

    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG,
        help=f"Path to config YAML file (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single cycle and exit (overrides config setting)",
    )
    parser.add_argument(
        "--cycles",
        type=int,
        default=None,
        help="Stop after this many cycles",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit one JSON object per cycle instead of console text",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--debug", action="store_true", help="Verbose logging")
    verbosity.add_argument(
        "--quiet", action="store_true", help="Only log warnings and errors"
    )

    return parser.parse_args(argv)


def _log_health(status: HealthStatus) -> None:
    if status == HealthStatus.DEGRADED:
        logger.error("Monitoring degraded: RPC endpoint keeps failing")


async def run(config: MonitorConfig, poller: Poller, max_cycles: Optional[int]) -> None:
    """Run the poller with SIGINT/SIGTERM wired to a cooperative stop."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, poller.stop)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform (e.g. Windows)
            pass

    logger.info(
        f"Monitoring {config.trading_pair.name} across {len(poller.sources)} sources "
        f"every {config.interval_sec:g}s (threshold {config.spread_threshold_bps} bps)"
    )
    await poller.run(max_cycles=max_cycles)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, 1 for error)
    """
    args = parse_args(argv)
    load_dotenv()

    if args.debug:
        logging_config.setup_debug()
    elif args.quiet:
        logging_config.setup_minimal()
    else:
        logging_config.setup()

    overrides = {"once": True} if args.once else None
    try:
        config = load_config(args.config, overrides)
    except ConfigError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        return 1

    if args.cycles is not None and args.cycles <= 0:
        print("❌ --cycles must be positive", file=sys.stderr)
        return 1

    try:
        web3 = connect(config.rpc_urls, config.request_timeout_sec)
        sources = build_sources(config, web3, web3.provider.endpoint_uri)
    except (ConnectionError, ConfigError) as e:
        print(f"❌ Initialization failed: {e}", file=sys.stderr)
        return 1

    reporter = JsonLinesReporter() if args.json else ConsoleReporter()
    poller = Poller(config.polling, sources, reporter, on_health_change=_log_health)

    try:
        asyncio.run(run(config, poller, args.cycles))
    except KeyboardInterrupt:
        print("\n\n⏸ Stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
