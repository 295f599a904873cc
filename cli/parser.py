"""
CLI argument parser and logging initialization.

This module handles command-line argument parsing, configuration resolution,
and logging setup for the Resample Risk Simulator.
"""

import argparse
import json
import os
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from config import (
    SystemConfig,
    get_config,
    load_simulation_config,
    load_logging_config,
)
from utils.logging_config import setup_logging_from_config

_HORIZON_PATTERN = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([ymd])\s*$', re.IGNORECASE)
_HORIZON_UNITS = {'y': 'years', 'm': 'months', 'd': 'days'}


def parse_horizon(text: str) -> Tuple[float, str]:
    """Parse '2y', '6m' or '90d' into (value, unit)."""
    match = _HORIZON_PATTERN.match(text)
    if not match:
        raise argparse.ArgumentTypeError(
            f"Invalid horizon {text!r}: expected a number followed by y, m or d (e.g. 6m)"
        )
    value = float(match.group(1))
    if value <= 0:
        raise argparse.ArgumentTypeError(f"Horizon must be positive, got {text!r}")
    return value, _HORIZON_UNITS[match.group(2).lower()]


def initialize_logging(
    config: SystemConfig,
    log_level_override: Optional[str] = None,
    log_file_override: Optional[str] = None
) -> None:
    """
    Initialize logging based on configuration and CLI overrides.

    Args:
        config: System configuration
        log_level_override: CLI override for log level
        log_file_override: CLI override for log file path
    """
    setup_logging_from_config(
        config.logging,
        logs_dir=os.path.join(config.base_dir, config.logs_dir),
        level_override=log_level_override,
        log_file_override=log_file_override,
    )


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser with all commands and options.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        description='Resample Risk Simulator - Monte Carlo trade resampling',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py simulate --trades tradelog.csv --seed 42
  python main.py simulate --trades tradelog.csv --strategies "Iron Condor" --resample-method percentage
  python main.py simulate --trades tradelog.csv --worst-case 5 --worst-case-mode guarantee
  python main.py simulate --trades tradelog.csv --horizon 6m --estimate-trades-per-year
        """
    )

    parser.add_argument(
        'command',
        choices=['simulate'],
        help='Command to execute'
    )

    parser.add_argument(
        '--trades',
        required=True,
        help='Trade log CSV export'
    )

    parser.add_argument(
        '--config', '-c',
        help='Path to a JSON parameter file (bare mapping or nested under "simulation")'
    )

    parser.add_argument(
        '--system-config',
        help='Path to a full system config JSON (paths, workers, logging, simulation)'
    )

    parser.add_argument(
        '--strategies',
        nargs='+',
        default=None,
        help='Only simulate these strategies (default: all)'
    )

    # Run size
    parser.add_argument(
        '--num-simulations', '-n',
        type=int,
        default=None,
        help='Number of trials, 100-10000 (default: from config or 1000)'
    )

    length = parser.add_mutually_exclusive_group()
    length.add_argument(
        '--simulation-length',
        type=int,
        default=None,
        help='Draws per trial (default: from config or 252)'
    )
    length.add_argument(
        '--horizon',
        type=parse_horizon,
        default=None,
        help='Simulation horizon as calendar time, e.g. 2y, 6m, 90d (uses trades per year)'
    )

    # Sampling
    parser.add_argument(
        '--resample-method',
        choices=['trades', 'daily', 'percentage'],
        default=None,
        help='Sampling basis (default: from config or trades)'
    )

    parser.add_argument(
        '--resample-percentage',
        type=float,
        default=None,
        help='Sample only the most recent P%% of the filtered trade count (default: 100)'
    )

    parser.add_argument(
        '--initial-capital',
        type=float,
        default=None,
        help='Starting capital (default: from config, else inferred from the trade log, else 100000)'
    )

    parser.add_argument(
        '--historical-initial-capital',
        type=float,
        default=None,
        help='Account capital at the start of the log, used for percentage returns of a strategy subset'
    )

    tpy = parser.add_mutually_exclusive_group()
    tpy.add_argument(
        '--trades-per-year',
        type=int,
        default=None,
        help='Annualization frequency (default: from config or 252)'
    )
    tpy.add_argument(
        '--estimate-trades-per-year',
        action='store_true',
        help='Estimate trades per year from the filtered trade dates'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for reproducible runs'
    )

    parser.add_argument(
        '--normalize-1-lot',
        action='store_true',
        help='Scale each trade to a single contract'
    )

    # Worst case
    parser.add_argument(
        '--worst-case',
        type=int,
        default=None,
        metavar='P',
        help='Enable worst-case injection at P%% of the simulation length (1-20)'
    )

    parser.add_argument(
        '--worst-case-mode',
        choices=['pool', 'guarantee'],
        default=None,
        help='pool: add synthetic losses to the pool; guarantee: reserve slots in every trial'
    )

    parser.add_argument(
        '--worst-case-based-on',
        choices=['simulation', 'historical'],
        default=None,
        help='Split the budget evenly or by each strategy\'s trade count'
    )

    parser.add_argument(
        '--worst-case-sizing',
        choices=['absolute', 'relative'],
        default=None,
        help='Inject historical dollar losses or the same fraction of capital'
    )

    # Execution
    parser.add_argument(
        '--workers',
        type=int,
        default=None,
        help='Worker threads (default: CPU count)'
    )

    parser.add_argument(
        '--progress',
        action='store_true',
        help='Show a progress bar'
    )

    parser.add_argument(
        '--output', '-o',
        help='Write the JSON report to this path (default: results/<run_id>/)'
    )

    parser.add_argument(
        '--include-simulations',
        action='store_true',
        help='Include every trial\'s equity curve in the JSON report'
    )

    parser.add_argument(
        '--logging-config',
        help='Path to logging config'
    )

    parser.add_argument(
        '--log-level', '-l',
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: from config or INFO)'
    )

    parser.add_argument(
        '--log-file',
        help='Log file path'
    )

    return parser


# CLI flag -> SimulationParams field, for plain value overrides
_PARAM_OVERRIDES = {
    'num_simulations': 'num_simulations',
    'simulation_length': 'simulation_length',
    'resample_method': 'resample_method',
    'initial_capital': 'initial_capital',
    'historical_initial_capital': 'historical_initial_capital',
    'trades_per_year': 'trades_per_year',
    'seed': 'random_seed',
    'worst_case_mode': 'worst_case_mode',
    'worst_case_based_on': 'worst_case_based_on',
    'worst_case_sizing': 'worst_case_sizing',
    'strategies': 'strategies',
}


def _sets_initial_capital(path: Optional[str], nested: bool) -> bool:
    """Whether a config file names initialCapital itself."""
    if not path:
        return False
    with open(path, 'r') as f:
        data = json.load(f)
    section = data.get('simulation', {} if nested else data)
    return 'initialCapital' in section or 'initial_capital' in section


def resolve_cli_config(args: argparse.Namespace) -> Tuple[SystemConfig, Dict[str, Any]]:
    """
    Resolve CLI arguments with config files into final configuration.

    Precedence: defaults < --system-config < --config < CLI flags.

    Args:
        args: Parsed command-line arguments

    Returns:
        Tuple of (SystemConfig, resolved_args dict with computed values)
    """
    if args.system_config:
        config = SystemConfig.load(args.system_config)
    else:
        config = get_config()

    if args.config:
        config.simulation = load_simulation_config(args.config)

    if args.logging_config:
        if os.path.exists(args.logging_config):
            config.logging = load_logging_config(args.logging_config)
        else:
            print(f"Warning: Logging config file not found: {args.logging_config}")

    overrides = {
        name: getattr(args, flag)
        for flag, name in _PARAM_OVERRIDES.items()
        if getattr(args, flag) is not None
    }
    # replace() re-runs enum coercion on the string choices
    params = replace(config.simulation, **overrides)

    if args.normalize_1_lot:
        params.normalize_to_1_lot = True
    if args.worst_case is not None:
        params.worst_case_enabled = True
        params.worst_case_percentage = args.worst_case
    params.check_types()
    config.simulation = params

    if args.workers is not None:
        config.num_workers = args.workers
    if args.progress:
        config.show_progress = True

    resolved = {
        'trades_path': args.trades,
        'horizon': args.horizon,
        'resample_percentage': args.resample_percentage,
        'estimate_trades_per_year': args.estimate_trades_per_year,
        'output': args.output,
        'include_simulations': args.include_simulations,
        'infer_initial_capital': not (
            args.initial_capital is not None
            or _sets_initial_capital(args.system_config, nested=True)
            or _sets_initial_capital(args.config, nested=False)
        ),
    }

    return config, resolved


def strategy_list(value: Optional[List[str]]) -> str:
    """Human-readable strategy selection for log lines."""
    return ', '.join(value) if value else 'all strategies'
