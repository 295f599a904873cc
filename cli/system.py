"""
RiskSimulatorSystem - Orchestrator for the Resample Risk Simulator.

This module contains the RiskSimulatorSystem class that coordinates trade-log
loading, parameter resolution, the Monte Carlo run and report output.
"""

import logging
import os
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from config import ResampleMethod, SimulationParams, SystemConfig, get_config
from core.data_pipeline import calculate_initial_capital_from_trades, filter_trades, load_trades_csv
from core.trading_types import HistoricalTrade
from simulation.monte_carlo import CancellationToken, MonteCarloResult, simulate
from utils.report_saver import generate_run_id, save_simulation_report, write_report_json
from utils.trade_frequency import (
    estimate_trades_per_year,
    format_trades_with_time,
    percentage_to_trades,
    time_to_trades,
)

logger = logging.getLogger(__name__)


class RiskSimulatorSystem:
    """
    Main orchestrator for the Resample Risk Simulator.

    Coordinates:
    - Trade log loading
    - Caller-side parameter resolution (window, horizon, frequency, capital)
    - Simulation
    - Report output
    """

    def __init__(self, config: Optional[SystemConfig] = None):
        self.config = config or get_config()

    def load_trades(self, path: str) -> List[HistoricalTrade]:
        """Load a trade log CSV."""
        return load_trades_csv(path)

    def resolve_params(
        self,
        trades: Sequence[HistoricalTrade],
        resolved: Dict[str, Any],
        params: Optional[SimulationParams] = None
    ) -> SimulationParams:
        """
        Fill in the values the simulator expects from its caller.

        - initial capital inferred from the full log (if not given explicitly)
        - trades per year estimated from the filtered trades (if requested)
        - simulation length from a calendar horizon (if given)
        - recency window from a percentage of the filtered trade count
        - historical capital for percentage returns of a strategy subset
        """
        params = replace(params or self.config.simulation)

        if resolved.get('infer_initial_capital'):
            inferred = calculate_initial_capital_from_trades(trades)
            if inferred > 0:
                params.initial_capital = inferred
                logger.info(f"Initial capital inferred from trade log: {inferred:,.2f}")
            else:
                logger.info(
                    f"Could not infer initial capital from trade log; using {params.initial_capital:,.2f}"
                )

        filtered = filter_trades(trades, params.strategies)

        if resolved.get('estimate_trades_per_year'):
            params.trades_per_year = estimate_trades_per_year(filtered, params.trades_per_year)
            logger.info(f"Estimated trades per year: {params.trades_per_year}")

        horizon = resolved.get('horizon')
        if horizon is not None:
            value, unit = horizon
            params.simulation_length = max(1, time_to_trades(value, unit, params.trades_per_year))
            logger.info(
                f"Horizon {value:g} {unit}: "
                f"{format_trades_with_time(params.simulation_length, params.trades_per_year)}"
            )

        resample_percentage = resolved.get('resample_percentage')
        if resample_percentage is not None and resample_percentage < 100:
            params.resample_window = percentage_to_trades(resample_percentage, len(filtered))
            logger.info(
                f"Resample window: last {params.resample_window} units per strategy "
                f"({resample_percentage:g}% of {len(filtered)} trades)"
            )

        is_subset = len(filtered) < len(trades)
        if (
            params.resample_method == ResampleMethod.PERCENTAGE
            and is_subset
            and params.historical_initial_capital is None
        ):
            params.historical_initial_capital = params.initial_capital
            logger.info(
                f"Using initial capital {params.initial_capital:,.2f} as historical capital "
                f"for the strategy subset"
            )

        return params

    def run_simulation(
        self,
        trades: Sequence[HistoricalTrade],
        params: SimulationParams,
        cancellation_token: Optional[CancellationToken] = None
    ) -> MonteCarloResult:
        return simulate(
            trades,
            params,
            num_workers=self.config.num_workers,
            show_progress=self.config.show_progress,
            cancellation_token=cancellation_token,
        )

    def save_results(
        self,
        result: MonteCarloResult,
        output: Optional[str] = None,
        include_simulations: bool = False
    ) -> str:
        """Write the report to output, or to a new run directory under results_dir."""
        if output:
            return write_report_json(result, output, include_simulations=include_simulations)

        run_id = generate_run_id("simulate", result.parameters.strategies)
        run_dir = save_simulation_report(
            result,
            base_dir=self.config.get_path('results'),
            run_id=run_id,
            include_simulations=include_simulations,
        )
        return os.path.join(run_dir, "report.json")
