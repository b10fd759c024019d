"""
Logging configuration for cleaner output.

Usage:
    from spread_monitor import logging_config
    logging_config.setup()
"""

import logging
import sys

PACKAGE_LOGGER = "spread_monitor"


def setup(level=logging.INFO):
    """
    Configure logging for readable console output.

    - Uses short timestamps (HH:MM:SS)
    - Quiets HTTP/provider chatter from web3 and urllib3
    - Routes spread_monitor module loggers through the root handler
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    # Module loggers created before setup() carry their own handler
    for name, logger in list(logging.Logger.manager.loggerDict.items()):
        if not isinstance(logger, logging.Logger):
            continue
        if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
            logger.handlers.clear()
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    logging.getLogger(PACKAGE_LOGGER).setLevel(level)


def setup_minimal():
    """Only warnings and errors."""
    setup(level=logging.WARNING)


def setup_debug():
    """
    Verbose logging for debugging.
    Shows provider requests too.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("web3").setLevel(logging.DEBUG)
