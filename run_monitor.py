#!/usr/bin/env python3
"""
Cross-DEX spread monitor launcher.
"""
import sys

from spread_monitor.cli import main

if __name__ == "__main__":
    sys.exit(main())
