"""Simulation module for Resample Risk Simulator."""

from .normalizer import (
    ReturnNormalizer,
    NormalizedReturns,
    scale_trade_to_one_lot,
    capital_before_trades,
)
from .resample_pool import ResamplePool, build_resample_pool
from .worst_case import (
    WorstCaseInjector,
    PoolAugmentation,
    GuaranteedQuota,
    InjectionPlan,
    LossMagnitude,
    resolve_loss_magnitude,
    simulation_budget,
    allocate_even,
    allocate_historical,
)
from .metrics import MetricsCalculator, PercentileBands, SimulationStatistics
from .monte_carlo import (
    MonteCarloSimulator,
    MonteCarloResult,
    SimulationTrial,
    TrialEngine,
    CancellationToken,
    derive_trial_rng,
    simulate,
)

__all__ = [
    # Normalization
    'ReturnNormalizer',
    'NormalizedReturns',
    'scale_trade_to_one_lot',
    'capital_before_trades',
    # Pool
    'ResamplePool',
    'build_resample_pool',
    # Worst case
    'WorstCaseInjector',
    'PoolAugmentation',
    'GuaranteedQuota',
    'InjectionPlan',
    'LossMagnitude',
    'resolve_loss_magnitude',
    'simulation_budget',
    'allocate_even',
    'allocate_historical',
    # Aggregation
    'MetricsCalculator',
    'PercentileBands',
    'SimulationStatistics',
    # Engine
    'MonteCarloSimulator',
    'MonteCarloResult',
    'SimulationTrial',
    'TrialEngine',
    'CancellationToken',
    'derive_trial_rng',
    'simulate',
]
