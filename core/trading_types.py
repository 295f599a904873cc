"""
Resample Risk Simulator - Shared Trading Types
Trade records, return units and the error taxonomy used across the simulator.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


# =============================================================================
# Exception Hierarchy for Simulation Runs
# =============================================================================
# All simulator exceptions inherit from SimulationError for unified catching.
# Nothing in the simulator retries; callers decide what to do with a failure.


class SimulationError(Exception):
    """
    Base exception for all simulator errors.

        try:
            result = simulate(trades, params)
        except SimulationError as e:
            logger.exception("Simulation failed")
            handle_error(e)
    """
    pass


class ConfigurationError(SimulationError):
    """
    Raised for invalid or contradictory parameters.

    Example:
        if params.initial_capital <= 0:
            raise ConfigurationError(
                f"initialCapital must be > 0, got {params.initial_capital}"
            )
    """
    pass


class DataInsufficiencyError(ConfigurationError):
    """
    Raised when the trade history cannot support a run: fewer than the
    minimum number of trades, or a strategy whose pool ends up empty.

    Example:
        if not pool.per_strategy[strategy]:
            raise DataInsufficiencyError(f"Resample pool for strategy '{strategy}' is empty")
    """
    pass


class SimulationCancelledError(SimulationError):
    """
    Raised when a cancellation token fires between trials.

    No partial result is produced; the in-flight batch is discarded.
    """
    pass


@dataclass(frozen=True)
class HistoricalTrade:
    """A closed trade from the trader's log. Never mutated by the simulator."""
    strategy: str
    date_opened: datetime
    pl: float
    date_closed: Optional[datetime] = None
    num_contracts: int = 1
    margin_req: float = 0.0
    funds_at_close: float = 0.0
    max_loss: Optional[float] = None


@dataclass(frozen=True)
class ReturnUnit:
    """
    The atom drawn during resampling.

    value is dollar P/L for the trades and daily bases, and a fractional
    return for the percentage basis.
    """
    strategy: str
    value: float
    basis: str  # 'trades', 'daily' or 'percentage'
    synthetic: bool = False


@dataclass(frozen=True)
class SimulationWarning:
    """A non-fatal issue collected during a run and returned with the result."""
    code: str  # numeric_anomaly, worst_case_budget_capped, ...
    message: str
    strategy: Optional[str] = None

    def to_dict(self) -> dict:
        return {'code': self.code, 'message': self.message, 'strategy': self.strategy}
