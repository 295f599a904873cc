"""
Resample Risk Simulator - CLI Package

This package provides the command-line interface for the Resample Risk Simulator.

Usage:
    python main.py simulate --trades tradelog.csv --seed 42
    python main.py simulate --trades tradelog.csv --worst-case 5 --worst-case-mode guarantee
"""

import logging
from typing import List, Optional

from core.trading_types import SimulationError
from .system import RiskSimulatorSystem
from .parser import create_parser, initialize_logging, resolve_cli_config
from .commands import execute_command

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_SIMULATION_ERROR = 2


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point for the Resample Risk Simulator.

    This function:
    1. Parses command-line arguments
    2. Loads and resolves configuration
    3. Initializes logging
    4. Creates the RiskSimulatorSystem
    5. Dispatches to the appropriate command handler

    Returns:
        Process exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config, resolved = resolve_cli_config(args)
    except (SimulationError, OSError, ValueError) as e:
        parser.error(str(e))

    initialize_logging(
        config=config,
        log_level_override=args.log_level,
        log_file_override=args.log_file
    )

    system = RiskSimulatorSystem(config)

    try:
        execute_command(args.command, system, args, config, resolved)
    except SimulationError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return EXIT_SIMULATION_ERROR
    except OSError as e:
        logger.error(f"I/O error: {e}")
        return EXIT_IO_ERROR

    return EXIT_OK


__all__ = [
    'RiskSimulatorSystem',
    'main',
    'initialize_logging',
    'create_parser',
    'resolve_cli_config',
    'execute_command',
    'EXIT_OK',
    'EXIT_IO_ERROR',
    'EXIT_SIMULATION_ERROR',
]
