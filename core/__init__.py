"""Core module for Resample Risk Simulator."""

from .trading_types import (
    SimulationError,
    ConfigurationError,
    DataInsufficiencyError,
    SimulationCancelledError,
    HistoricalTrade,
    ReturnUnit,
    SimulationWarning,
)
from .data_pipeline import (
    load_trades_csv,
    trades_from_frame,
    filter_trades,
    group_by_strategy,
    calculate_initial_capital_from_trades,
)

__all__ = [
    # Exception hierarchy
    'SimulationError',
    'ConfigurationError',
    'DataInsufficiencyError',
    'SimulationCancelledError',
    # Records
    'HistoricalTrade',
    'ReturnUnit',
    'SimulationWarning',
    # Trade log
    'load_trades_csv',
    'trades_from_frame',
    'filter_trades',
    'group_by_strategy',
    'calculate_initial_capital_from_trades',
]
