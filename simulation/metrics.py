"""
Resample Risk Simulator - Trial Metrics and Aggregation
Percentile bands and summary statistics across Monte Carlo trials.
"""

import numpy as np
import pandas as pd
from typing import Dict, List
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)

# Bands reported at every step
BAND_PERCENTILES = (5, 25, 50, 75, 95)
# Final-return percentiles reported as value at risk
VAR_PERCENTILES = (5, 10, 25)


@dataclass
class PercentileBands:
    """Cross-trial cumulative-return percentiles at each step (0 = start)."""
    steps: np.ndarray
    p5: np.ndarray
    p25: np.ndarray
    p50: np.ndarray
    p75: np.ndarray
    p95: np.ndarray

    def to_dict(self) -> Dict[str, List]:
        return {
            'steps': self.steps.tolist(),
            'p5': self.p5.tolist(),
            'p25': self.p25.tolist(),
            'p50': self.p50.tolist(),
            'p75': self.p75.tolist(),
            'p95': self.p95.tolist(),
        }

    def to_frame(self) -> pd.DataFrame:
        """Bands as a DataFrame indexed by step."""
        return pd.DataFrame(
            {'p5': self.p5, 'p25': self.p25, 'p50': self.p50, 'p75': self.p75, 'p95': self.p95},
            index=pd.Index(self.steps, name='step'),
        )


@dataclass
class SimulationStatistics:
    """Summary statistics over all trials."""
    mean_final_value: float
    median_final_value: float
    std_final_value: float
    mean_total_return: float
    median_total_return: float
    mean_annualized_return: float
    median_annualized_return: float
    mean_max_drawdown: float
    median_max_drawdown: float
    mean_sharpe_ratio: float
    probability_of_profit: float
    value_at_risk: Dict[str, float]

    def to_dict(self) -> Dict:
        return {
            'meanFinalValue': self.mean_final_value,
            'medianFinalValue': self.median_final_value,
            'stdFinalValue': self.std_final_value,
            'meanTotalReturn': self.mean_total_return,
            'medianTotalReturn': self.median_total_return,
            'meanAnnualizedReturn': self.mean_annualized_return,
            'medianAnnualizedReturn': self.median_annualized_return,
            'meanMaxDrawdown': self.mean_max_drawdown,
            'medianMaxDrawdown': self.median_max_drawdown,
            'meanSharpeRatio': self.mean_sharpe_ratio,
            'probabilityOfProfit': self.probability_of_profit,
            'valueAtRisk': dict(self.value_at_risk),
        }


class MetricsCalculator:
    """
    Trial metrics over a matrix of cumulative-return curves.

    Curves have shape (n_trials, simulation_length + 1) and column 0 is the
    0.0 baseline. Percentiles use linear interpolation between order
    statistics (R-7, numpy's default). Standard deviations are population
    (ddof=0) and the risk-free rate is 0.
    """

    def __init__(
        self,
        initial_capital: float,
        trades_per_year: int,
        simulation_length: int
    ):
        self.initial_capital = initial_capital
        self.trades_per_year = trades_per_year
        self.simulation_length = simulation_length

    def _equity(self, curves: np.ndarray) -> np.ndarray:
        return 1.0 + np.atleast_2d(curves)

    # Per-trial metrics
    def final_values(self, curves: np.ndarray) -> np.ndarray:
        return self.initial_capital * (1.0 + np.atleast_2d(curves)[:, -1])

    def total_returns(self, curves: np.ndarray) -> np.ndarray:
        return np.atleast_2d(curves)[:, -1].copy()

    def annualized_return(self, total_return):
        """(1 + total)^(trades_per_year / length) - 1; -1.0 once the account is wiped out."""
        total = np.asarray(total_return, dtype=float)
        growth = 1.0 + total
        exponent = self.trades_per_year / self.simulation_length
        safe = np.where(growth > 0, growth, 1.0)
        result = np.where(growth > 0, np.power(safe, exponent) - 1.0, -1.0)
        return float(result) if result.ndim == 0 else result

    def max_drawdowns(self, curves: np.ndarray) -> np.ndarray:
        """Largest peak-to-trough decline of each trial, as a fraction of the peak."""
        equity = self._equity(curves)
        peak = np.maximum.accumulate(equity, axis=1)
        drawdown = (peak - equity) / peak
        return np.max(drawdown, axis=1)

    def step_returns(self, curves: np.ndarray) -> np.ndarray:
        """Per-step returns; 0 where the previous equity is not positive."""
        equity = self._equity(curves)
        prev, cur = equity[:, :-1], equity[:, 1:]
        ratio = np.divide(cur, prev, out=np.ones_like(cur), where=prev > 0)
        return ratio - 1.0

    def sharpe_ratios(self, curves: np.ndarray) -> np.ndarray:
        """Annualized Sharpe ratio of each trial's step returns."""
        returns = self.step_returns(curves)
        n_trials, n_returns = returns.shape
        if n_returns < 2:
            return np.zeros(n_trials)

        mean = np.mean(returns, axis=1)
        std = np.std(returns, axis=1)
        sharpe = np.zeros(n_trials)
        valid = std > 0
        sharpe[valid] = mean[valid] / std[valid] * np.sqrt(self.trades_per_year)
        return sharpe

    # Cross-trial aggregation
    def percentile_bands(self, curves: np.ndarray) -> PercentileBands:
        curves = np.atleast_2d(curves)
        bands = np.percentile(curves, BAND_PERCENTILES, axis=0)
        return PercentileBands(
            steps=np.arange(curves.shape[1]),
            p5=bands[0],
            p25=bands[1],
            p50=bands[2],
            p75=bands[3],
            p95=bands[4],
        )

    def statistics(self, curves: np.ndarray) -> SimulationStatistics:
        curves = np.atleast_2d(curves)
        final_values = self.final_values(curves)
        total_returns = self.total_returns(curves)
        annualized = self.annualized_return(total_returns)
        drawdowns = self.max_drawdowns(curves)
        sharpe = self.sharpe_ratios(curves)

        mean_total_return = float(np.mean(total_returns))
        var = np.percentile(total_returns, VAR_PERCENTILES)

        return SimulationStatistics(
            mean_final_value=float(np.mean(final_values)),
            median_final_value=float(np.median(final_values)),
            std_final_value=float(np.std(final_values)),
            mean_total_return=mean_total_return,
            median_total_return=float(np.median(total_returns)),
            mean_annualized_return=self.annualized_return(mean_total_return),
            median_annualized_return=float(np.median(annualized)),
            mean_max_drawdown=float(np.mean(drawdowns)),
            median_max_drawdown=float(np.median(drawdowns)),
            mean_sharpe_ratio=float(np.mean(sharpe)),
            probability_of_profit=float(np.mean(total_returns > 0)),
            value_at_risk={f"p{p}": float(v) for p, v in zip(VAR_PERCENTILES, var)},
        )
