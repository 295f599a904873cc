"""
Resample Risk Simulator - Return Normalizer
Converts historical trades into return units under the selected sampling basis.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import pandas as pd

from config.settings import ResampleMethod
from core.data_pipeline import group_by_strategy, sort_chronologically
from core.trading_types import (
    ConfigurationError,
    DataInsufficiencyError,
    HistoricalTrade,
    ReturnUnit,
    SimulationWarning,
)

logger = logging.getLogger(__name__)


def scale_trade_to_one_lot(trade: HistoricalTrade) -> float:
    """P/L of a single contract; unchanged when the contract count is not positive."""
    if trade.num_contracts > 0:
        return trade.pl / trade.num_contracts
    return trade.pl


def capital_before_trades(
    trades: Sequence[HistoricalTrade],
    starting_capital: Optional[float] = None,
    normalize_to_1_lot: bool = False
) -> List[float]:
    """
    Account capital immediately before each trade, in the order given.

    Without a starting capital this is read off the log (funds_at_close - pl).
    With one, capital is rebuilt as starting_capital plus the running sum of
    the preceding trades' P/L, so trades outside the list have no effect.
    Callers pass trades in chronological order.
    """
    if starting_capital is None:
        return [t.funds_at_close - t.pl for t in trades]

    capital = []
    running = starting_capital
    for trade in trades:
        capital.append(running)
        running += scale_trade_to_one_lot(trade) if normalize_to_1_lot else trade.pl
    return capital


@dataclass
class NormalizedReturns:
    """Per-strategy return units in chronological order, plus collected warnings."""
    per_strategy: Dict[str, List[ReturnUnit]]
    warnings: List[SimulationWarning] = field(default_factory=list)

    @property
    def total_units(self) -> int:
        return sum(len(units) for units in self.per_strategy.values())


class ReturnNormalizer:
    """
    Turns trades into ReturnUnits.

    - trades: one unit per trade, dollar P/L
    - daily: one unit per (strategy, date opened), summed dollar P/L
    - percentage: one unit per trade, P/L over capital before the trade
    """

    def __init__(
        self,
        resample_method: ResampleMethod = ResampleMethod.TRADES,
        normalize_to_1_lot: bool = False,
        historical_initial_capital: Optional[float] = None,
        is_subset: bool = False
    ):
        self.resample_method = ResampleMethod(resample_method)
        self.normalize_to_1_lot = normalize_to_1_lot
        self.historical_initial_capital = historical_initial_capital
        self.is_subset = is_subset

    def normalize(self, trades: Sequence[HistoricalTrade]) -> NormalizedReturns:
        """Normalize a filtered trade list. Strategies come back in lexicographic order."""
        warnings: List[SimulationWarning] = []

        if self.resample_method == ResampleMethod.DAILY:
            per_strategy = self._daily_units(trades)
        elif self.resample_method == ResampleMethod.PERCENTAGE:
            per_strategy = self._percentage_units(trades, warnings)
        else:
            per_strategy = {
                name: [self._unit(name, self._pl(t)) for t in group]
                for name, group in group_by_strategy(trades).items()
            }

        per_strategy = self._drop_non_finite(per_strategy, warnings)

        for name in sorted(per_strategy):
            if not per_strategy[name]:
                raise DataInsufficiencyError(
                    f"Strategy '{name}' has no usable {self.resample_method.value} returns "
                    f"after dropping invalid values"
                )

        logger.debug(
            f"Normalized {len(trades)} trades into "
            f"{sum(len(u) for u in per_strategy.values())} {self.resample_method.value} units"
        )
        return NormalizedReturns(per_strategy=per_strategy, warnings=warnings)

    def _pl(self, trade: HistoricalTrade) -> float:
        return scale_trade_to_one_lot(trade) if self.normalize_to_1_lot else trade.pl

    def _unit(self, strategy: str, value: float) -> ReturnUnit:
        return ReturnUnit(strategy=strategy, value=float(value), basis=self.resample_method.value)

    def _daily_units(self, trades: Sequence[HistoricalTrade]) -> Dict[str, List[ReturnUnit]]:
        if not trades:
            return {}
        frame = pd.DataFrame({
            'strategy': [t.strategy for t in trades],
            'date': [t.date_opened.date() for t in trades],
            'pl': [self._pl(t) for t in trades],
        })
        daily = frame.groupby(['strategy', 'date'], sort=True)['pl'].sum()

        per_strategy: Dict[str, List[ReturnUnit]] = {}
        for (strategy, _), pl in daily.items():
            per_strategy.setdefault(strategy, []).append(self._unit(strategy, pl))
        return {name: per_strategy[name] for name in sorted(per_strategy)}

    def _percentage_units(
        self,
        trades: Sequence[HistoricalTrade],
        warnings: List[SimulationWarning]
    ) -> Dict[str, List[ReturnUnit]]:
        ordered = sort_chronologically(trades)

        starting_capital = None
        if self.is_subset:
            if self.historical_initial_capital is None:
                warnings.append(SimulationWarning(
                    code='capital_basis_inferred',
                    message=(
                        "Strategy subset simulated on percentage basis without "
                        "historicalInitialCapital; using per-trade account capital, "
                        "which includes excluded strategies' P/L"
                    ),
                ))
            else:
                starting_capital = self.historical_initial_capital

        if starting_capital is None and ordered and all(t.funds_at_close == 0 for t in ordered):
            raise ConfigurationError(
                "Percentage basis reads account capital from Funds at Close, "
                "but every trade has funds_at_close 0 (column missing from the log?)"
            )

        capital = capital_before_trades(ordered, starting_capital, self.normalize_to_1_lot)

        per_strategy: Dict[str, List[ReturnUnit]] = {
            name: [] for name in sorted({t.strategy for t in ordered})
        }
        for trade, denominator in zip(ordered, capital):
            if not math.isfinite(denominator) or denominator <= 0:
                warnings.append(SimulationWarning(
                    code='numeric_anomaly',
                    message=(
                        f"Dropped trade opened {trade.date_opened:%Y-%m-%d %H:%M}: "
                        f"capital before trade is {denominator}"
                    ),
                    strategy=trade.strategy,
                ))
                continue
            per_strategy[trade.strategy].append(self._unit(trade.strategy, self._pl(trade) / denominator))
        return per_strategy

    def _drop_non_finite(
        self,
        per_strategy: Dict[str, List[ReturnUnit]],
        warnings: List[SimulationWarning]
    ) -> Dict[str, List[ReturnUnit]]:
        cleaned = {}
        for name, units in per_strategy.items():
            kept = [u for u in units if math.isfinite(u.value)]
            dropped = len(units) - len(kept)
            if dropped:
                warnings.append(SimulationWarning(
                    code='numeric_anomaly',
                    message=f"Dropped {dropped} non-finite return unit(s)",
                    strategy=name,
                ))
            cleaned[name] = kept
        return cleaned
