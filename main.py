"""
Resample Risk Simulator - Main Entry Point
Command-line entry point for Monte Carlo trade-resampling simulations.
"""

import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cli import main


if __name__ == '__main__':
    sys.exit(main())
