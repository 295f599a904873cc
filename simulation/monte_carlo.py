"""
Resample Risk Simulator - Monte Carlo Trial Engine
Bootstrap resampling of historical return units into equity-curve trials.
"""

import numpy as np
from typing import Dict, List, Optional, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from concurrent.futures import ThreadPoolExecutor, as_completed
import logging
import os
import threading
from tqdm import tqdm

from config.settings import SimulationParams
from core.data_pipeline import filter_trades, group_by_strategy
from core.trading_types import (
    DataInsufficiencyError,
    HistoricalTrade,
    SimulationCancelledError,
    SimulationWarning,
)
from .metrics import MetricsCalculator, PercentileBands, SimulationStatistics
from .normalizer import ReturnNormalizer
from .resample_pool import build_resample_pool
from .worst_case import GuaranteedQuota, InjectionPlan, WorstCaseInjector

logger = logging.getLogger(__name__)

MIN_TRADES = 10
# Batches per worker; smaller batches give finer progress and cancellation
BATCHES_PER_WORKER = 4


class CancellationToken:
    """
    Cooperative cancellation flag, checked between trials.

        token = CancellationToken()
        threading.Timer(5.0, token.cancel).start()
        simulate(trades, params, cancellation_token=token)
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise SimulationCancelledError("Simulation cancelled")


@dataclass
class SimulationTrial:
    """One simulated path; equity_curve is cumulative return with a 0.0 baseline."""
    equity_curve: np.ndarray
    final_value: float
    total_return: float
    annualized_return: float
    max_drawdown: float
    sharpe_ratio: float

    def to_dict(self) -> Dict:
        return {
            'equityCurve': self.equity_curve.tolist(),
            'finalValue': self.final_value,
            'totalReturn': self.total_return,
            'annualizedReturn': self.annualized_return,
            'maxDrawdown': self.max_drawdown,
            'sharpeRatio': self.sharpe_ratio,
        }


@dataclass
class MonteCarloResult:
    """Output of a run. Treat as immutable."""
    simulations: List[SimulationTrial]
    percentiles: PercentileBands
    statistics: SimulationStatistics
    actual_resample_pool_size: int
    parameters: SimulationParams
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    warnings: List[SimulationWarning] = field(default_factory=list)
    injection_plan: Optional[InjectionPlan] = None
    master_seed: Optional[int] = None

    @property
    def equity_curves(self) -> np.ndarray:
        """All curves stacked, shape (num_simulations, simulation_length + 1)."""
        return np.vstack([trial.equity_curve for trial in self.simulations])

    def to_dict(self, include_simulations: bool = False) -> Dict:
        data = {
            'timestamp': self.timestamp.isoformat(),
            'parameters': self.parameters.to_dict(),
            'actualResamplePoolSize': self.actual_resample_pool_size,
            'masterSeed': None if self.master_seed is None else int(self.master_seed),
            'statistics': self.statistics.to_dict(),
            'percentiles': self.percentiles.to_dict(),
            'warnings': [w.to_dict() for w in self.warnings],
            'injectionPlan': self.injection_plan.to_dict() if self.injection_plan else None,
        }
        if include_simulations:
            data['simulations'] = [trial.to_dict() for trial in self.simulations]
        return data


def derive_trial_rng(master_seed: int, trial_index: int) -> np.random.Generator:
    """Per-trial generator; depends only on (master_seed, trial_index)."""
    return np.random.default_rng([master_seed, trial_index])


class TrialEngine:
    """
    Draws and folds trials against a fixed pool.

    Pool values and the guaranteed quota are read-only; each trial owns its
    own generator and curve buffer, so trials can run on any thread.
    """

    def __init__(
        self,
        pool_values: np.ndarray,
        simulation_length: int,
        initial_capital: float,
        compounding: bool,
        quota_values: Optional[np.ndarray] = None
    ):
        self.pool_values = np.asarray(pool_values, dtype=float)
        self.simulation_length = simulation_length
        self.initial_capital = initial_capital
        self.compounding = compounding
        self.quota_values = (
            np.asarray(quota_values, dtype=float) if quota_values is not None else np.empty(0)
        )
        self.n_ordinary = simulation_length - len(self.quota_values)

        if self.n_ordinary < 0:
            raise ValueError("Guaranteed quota exceeds the simulation length")
        if self.n_ordinary > 0 and len(self.pool_values) == 0:
            raise DataInsufficiencyError("Cannot draw from an empty resample pool")

    def draw(self, rng: np.random.Generator) -> np.ndarray:
        """Sampled values for one trial, in draw order."""
        if self.n_ordinary > 0:
            draws = self.pool_values[rng.integers(0, len(self.pool_values), size=self.n_ordinary)]
        else:
            draws = np.empty(0)
        if len(self.quota_values):
            draws = np.concatenate([draws, self.quota_values])
            rng.shuffle(draws)
        return draws

    def fold(self, draws: np.ndarray) -> np.ndarray:
        """Cumulative-return curve of length len(draws) + 1."""
        curve = np.empty(len(draws) + 1)
        curve[0] = 0.0
        if self.compounding:
            curve[1:] = np.cumprod(1.0 + draws) - 1.0
        else:
            curve[1:] = np.cumsum(draws) / self.initial_capital
        return curve

    def run_trial(self, master_seed: int, trial_index: int) -> np.ndarray:
        return self.fold(self.draw(derive_trial_rng(master_seed, trial_index)))

    def run_range(
        self,
        master_seed: int,
        start: int,
        stop: int,
        cancellation_token: Optional[CancellationToken] = None
    ) -> np.ndarray:
        """Trials [start, stop) stacked into a matrix."""
        curves = np.empty((stop - start, self.simulation_length + 1))
        for row, trial_index in enumerate(range(start, stop)):
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()
            curves[row] = self.run_trial(master_seed, trial_index)
        return curves


class MonteCarloSimulator:
    """
    Monte Carlo simulation by resampling historical trades.

    Usage:
        simulator = MonteCarloSimulator(params, num_workers=4)
        result = simulator.run(trades)
    """

    def __init__(
        self,
        params: SimulationParams,
        num_workers: Optional[int] = None,
        show_progress: bool = False,
        cancellation_token: Optional[CancellationToken] = None
    ):
        self.params = params
        self.num_workers = num_workers
        self.show_progress = show_progress
        self.cancellation_token = cancellation_token

    def run(self, trades: Sequence[HistoricalTrade]) -> MonteCarloResult:
        params = self.params
        params.validate()

        filtered = filter_trades(trades, params.strategies)
        if len(filtered) < MIN_TRADES:
            raise DataInsufficiencyError(
                f"Insufficient trades for Monte Carlo simulation. "
                f"Found {len(filtered)} trades, need at least {MIN_TRADES}."
            )

        grouped = group_by_strategy(filtered)
        logger.info(
            f"Starting simulation: {len(filtered)} trades, {len(grouped)} strategies, "
            f"method={params.resample_method.value}, trials={params.num_simulations}, "
            f"length={params.simulation_length}"
        )

        warnings: List[SimulationWarning] = []

        normalizer = ReturnNormalizer(
            resample_method=params.resample_method,
            normalize_to_1_lot=params.normalize_to_1_lot,
            historical_initial_capital=params.historical_initial_capital,
            is_subset=len(filtered) < len(trades),
        )
        normalized = normalizer.normalize(filtered)
        warnings.extend(normalized.warnings)

        pool = build_resample_pool(normalized.per_strategy, params.resample_window)

        plan = WorstCaseInjector(params).plan(grouped, warnings)
        sample_pool = plan.apply(pool) if plan is not None else pool
        quota = plan.quota_values() if isinstance(plan, GuaranteedQuota) else None

        engine = TrialEngine(
            pool_values=sample_pool.values(),
            simulation_length=params.simulation_length,
            initial_capital=params.initial_capital,
            compounding=params.is_compounding,
            quota_values=quota,
        )

        master_seed = params.random_seed
        if master_seed is None:
            master_seed = int(np.random.SeedSequence().entropy)

        curves = self._run_trials(engine, master_seed)

        calculator = MetricsCalculator(
            initial_capital=params.initial_capital,
            trades_per_year=params.trades_per_year,
            simulation_length=params.simulation_length,
        )
        trials = self._build_trials(curves, calculator)

        for warning in warnings:
            logger.warning(f"[{warning.code}] {warning.message}")

        result = MonteCarloResult(
            simulations=trials,
            percentiles=calculator.percentile_bands(curves),
            statistics=calculator.statistics(curves),
            actual_resample_pool_size=pool.effective_window_size,
            parameters=replace(params, strategies=list(params.strategies) if params.strategies else None),
            warnings=warnings,
            injection_plan=plan,
            master_seed=master_seed,
        )

        logger.info(
            f"Simulation complete: median return {result.statistics.median_total_return:.2%}, "
            f"P(profit) {result.statistics.probability_of_profit:.1%}"
        )
        return result

    def _resolve_workers(self) -> int:
        workers = self.num_workers or os.cpu_count() or 1
        return max(1, min(workers, self.params.num_simulations))

    def _run_trials(self, engine: TrialEngine, master_seed: int) -> np.ndarray:
        """Run all trials on a thread pool; rows come back in trial-index order."""
        n_trials = self.params.num_simulations
        token = self.cancellation_token
        if token is not None:
            token.raise_if_cancelled()

        workers = self._resolve_workers()
        n_batches = min(n_trials, workers * BATCHES_PER_WORKER)
        bounds = np.linspace(0, n_trials, n_batches + 1).astype(int)
        batches = [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]

        logger.debug(f"Running {n_trials} trials in {len(batches)} batches on {workers} workers")

        curves = np.empty((n_trials, self.params.simulation_length + 1))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(engine.run_range, master_seed, start, stop, token): (start, stop)
                for start, stop in batches
            }
            with tqdm(total=n_trials, desc="Simulating", unit="trial", disable=not self.show_progress) as bar:
                try:
                    for future in as_completed(futures):
                        start, stop = futures[future]
                        curves[start:stop] = future.result()
                        bar.update(stop - start)
                except SimulationCancelledError:
                    for pending in futures:
                        pending.cancel()
                    logger.info("Simulation cancelled; discarding partial results")
                    raise

        return curves

    def _build_trials(self, curves: np.ndarray, calculator: MetricsCalculator) -> List[SimulationTrial]:
        final_values = calculator.final_values(curves)
        total_returns = calculator.total_returns(curves)
        annualized = calculator.annualized_return(total_returns)
        drawdowns = calculator.max_drawdowns(curves)
        sharpe = calculator.sharpe_ratios(curves)

        return [
            SimulationTrial(
                equity_curve=curves[i].copy(),
                final_value=float(final_values[i]),
                total_return=float(total_returns[i]),
                annualized_return=float(annualized[i]),
                max_drawdown=float(drawdowns[i]),
                sharpe_ratio=float(sharpe[i]),
            )
            for i in range(len(curves))
        ]


def simulate(
    trades: Sequence[HistoricalTrade],
    params: SimulationParams,
    num_workers: Optional[int] = None,
    show_progress: bool = False,
    cancellation_token: Optional[CancellationToken] = None
) -> MonteCarloResult:
    """
    Run a Monte Carlo resampling simulation.

    Args:
        trades: Historical trades (not modified)
        params: Run parameters
        num_workers: Worker threads (None = os.cpu_count())
        show_progress: Show a tqdm progress bar
        cancellation_token: Checked between trials

    Returns:
        MonteCarloResult

    Raises:
        ConfigurationError: invalid parameters or a strategy filter matching no trades
        DataInsufficiencyError: fewer than 10 trades or an empty strategy pool
        SimulationCancelledError: the token fired before the run finished
    """
    simulator = MonteCarloSimulator(
        params,
        num_workers=num_workers,
        show_progress=show_progress,
        cancellation_token=cancellation_token,
    )
    return simulator.run(trades)
