"""
Simulate command implementation.

This module handles the 'simulate' CLI command: load a trade log, run the
Monte Carlo simulation and write a report.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import argparse
    from config import SystemConfig
    from cli.system import RiskSimulatorSystem

from cli.parser import strategy_list

logger = logging.getLogger(__name__)


def execute_simulate(
    system: 'RiskSimulatorSystem',
    args: 'argparse.Namespace',
    config: 'SystemConfig',
    resolved: dict
) -> None:
    """
    Execute the simulate command.

    Args:
        system: RiskSimulatorSystem instance
        args: Parsed command-line arguments
        config: System configuration
        resolved: Resolved configuration values
    """
    trades = system.load_trades(resolved['trades_path'])
    params = system.resolve_params(trades, resolved)

    logger.info(f"Simulating {strategy_list(params.strategies)}...")
    result = system.run_simulation(trades, params)

    report_path = system.save_results(
        result,
        output=resolved.get('output'),
        include_simulations=resolved.get('include_simulations', False)
    )

    stats = result.statistics
    print("\n" + "=" * 60)
    print("  MONTE CARLO SUMMARY")
    print("=" * 60)
    print(f"  Trials: {params.num_simulations}  Length: {params.simulation_length}  "
          f"Method: {params.resample_method.value}")
    print(f"  Resample pool size: {result.actual_resample_pool_size}")
    print(f"  Mean final value: ${stats.mean_final_value:,.2f}")
    print(f"  Median final value: ${stats.median_final_value:,.2f}")
    print(f"  Median total return: {stats.median_total_return * 100:.2f}%")
    print(f"  Mean annualized return: {stats.mean_annualized_return * 100:.2f}%")
    print(f"  Mean max drawdown: {stats.mean_max_drawdown * 100:.2f}%")
    print(f"  Mean Sharpe ratio: {stats.mean_sharpe_ratio:.2f}")
    print(f"  Probability of profit: {stats.probability_of_profit * 100:.1f}%")
    print(f"  VaR (5% / 10% / 25%): "
          f"{stats.value_at_risk['p5'] * 100:.2f}% / "
          f"{stats.value_at_risk['p10'] * 100:.2f}% / "
          f"{stats.value_at_risk['p25'] * 100:.2f}%")
    if result.warnings:
        print(f"  Warnings: {len(result.warnings)}")
    print(f"  Report: {report_path}")
    print("=" * 60 + "\n")
