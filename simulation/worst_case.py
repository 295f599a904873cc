"""
Resample Risk Simulator - Worst-Case Injection
Synthetic maximum-loss units and the per-strategy budget that controls how
many of them a run sees.
"""

import math
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from config.settings import SimulationParams, WorstCaseBasis, WorstCaseMode, WorstCaseSizing
from core.trading_types import HistoricalTrade, ReturnUnit, SimulationWarning
from .resample_pool import ResamplePool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LossMagnitude:
    """Resolved worst-case loss for one strategy."""
    strategy: str
    magnitude: float
    source: str  # margin, max_loss, realized_loss, pl
    capital_ratio: float  # magnitude / capital before the supplying trade
    avg_contracts: int


@dataclass(frozen=True)
class PoolAugmentation:
    """Synthetic units appended to each strategy's pool."""
    units_per_strategy: Dict[str, int]
    units: Dict[str, ReturnUnit]

    @property
    def total(self) -> int:
        return sum(self.units_per_strategy.values())

    def synthetic_units(self) -> Dict[str, List[ReturnUnit]]:
        return {
            name: [self.units[name]] * count
            for name, count in sorted(self.units_per_strategy.items())
            if count > 0
        }

    def apply(self, pool: ResamplePool) -> ResamplePool:
        return pool.with_units(self.synthetic_units())

    def to_dict(self) -> Dict:
        return {
            'mode': WorstCaseMode.POOL.value,
            'unitsPerStrategy': dict(sorted(self.units_per_strategy.items())),
            'unitValues': {name: unit.value for name, unit in sorted(self.units.items())},
        }


@dataclass(frozen=True)
class GuaranteedQuota:
    """Draw slots reserved in every trial for synthetic units."""
    slots_per_strategy: Dict[str, int]
    units: Dict[str, ReturnUnit]

    @property
    def total(self) -> int:
        return sum(self.slots_per_strategy.values())

    def quota_values(self) -> np.ndarray:
        """Synthetic values for one trial, in lexicographic strategy order before shuffling."""
        values: List[float] = []
        for name in sorted(self.slots_per_strategy):
            values.extend([self.units[name].value] * self.slots_per_strategy[name])
        return np.array(values, dtype=float)

    def apply(self, pool: ResamplePool) -> ResamplePool:
        return pool

    def to_dict(self) -> Dict:
        return {
            'mode': WorstCaseMode.GUARANTEE.value,
            'slotsPerStrategy': dict(sorted(self.slots_per_strategy.items())),
            'unitValues': {name: unit.value for name, unit in sorted(self.units.items())},
        }


InjectionPlan = Union[PoolAugmentation, GuaranteedQuota]


def simulation_budget(simulation_length: int, percentage: float) -> int:
    """Synthetic draws per trial: ceil(length * p / 100) clamped to [1, length]."""
    requested = math.ceil(simulation_length * percentage / 100)
    return min(simulation_length, max(1, requested))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def allocate_even(budget: int, strategies: Sequence[str]) -> Dict[str, int]:
    """Split a budget evenly; the remainder goes round-robin in lexicographic order."""
    names = sorted(strategies)
    if not names:
        return {}
    share, remainder = divmod(budget, len(names))
    return {name: share + (1 if i < remainder else 0) for i, name in enumerate(names)}


def allocate_historical(
    trade_counts: Mapping[str, int],
    percentage: float,
    budget: int
) -> Tuple[Dict[str, int], bool]:
    """
    Allocate per-strategy counts proportional to each strategy's trade count.

    Each strategy asks for max(1, round(count * p / 100)). If the requests fit
    in the budget they are used as-is. Otherwise the total is capped at the
    budget: every strategy keeps 1 when the budget allows it and the rest is
    shared by largest remainder over the requests above 1.

    Returns:
        (allocation, capped)
    """
    names = sorted(trade_counts)
    raw = {name: max(1, _round_half_up(trade_counts[name] * percentage / 100)) for name in names}

    if sum(raw.values()) <= budget:
        return raw, False

    if budget < len(names):
        # Not enough for one each: the largest requests win, ties lexicographic
        ranked = sorted(names, key=lambda name: (-raw[name], name))
        winners = set(ranked[:budget])
        return {name: (1 if name in winners else 0) for name in names}, True

    allocation = {name: 1 for name in names}
    remaining = budget - len(names)
    extra_weights = {name: raw[name] - 1 for name in names}
    total_weight = sum(extra_weights.values())

    shares = {name: extra_weights[name] * remaining / total_weight for name in names}
    for name in names:
        allocation[name] += int(math.floor(shares[name]))
    leftover = budget - sum(allocation.values())

    by_fraction = sorted(names, key=lambda name: (-(shares[name] - math.floor(shares[name])), name))
    for name in by_fraction[:leftover]:
        allocation[name] += 1
    return allocation, True


def resolve_loss_magnitude(strategy: str, trades: Sequence[HistoricalTrade]) -> LossMagnitude:
    """
    Pick a strategy's worst-case loss.

    Order: largest positive margin requirement, else largest recorded max
    loss, else largest realized loss, else largest absolute P/L.
    """
    if not trades:
        raise ValueError(f"Cannot resolve a loss magnitude for '{strategy}' without trades")

    def largest(candidates):
        best = None
        for value, trade in candidates:
            if value > 0 and (best is None or value > best[0]):
                best = (value, trade)
        return best

    chain = (
        ('margin', [(t.margin_req, t) for t in trades]),
        ('max_loss', [(abs(t.max_loss), t) for t in trades if t.max_loss is not None]),
        ('realized_loss', [(-t.pl, t) for t in trades if t.pl < 0]),
    )
    source, chosen = 'pl', None
    for name, candidates in chain:
        chosen = largest(candidates)
        if chosen is not None:
            source = name
            break

    if chosen is None:
        trade = max(trades, key=lambda t: abs(t.pl))
        chosen = (abs(trade.pl), trade)

    magnitude, trade = chosen
    capital = max(1.0, trade.funds_at_close - trade.pl)

    contracts = [t.num_contracts for t in trades if t.num_contracts > 0]
    avg_contracts = max(1, _round_half_up(sum(contracts) / len(contracts))) if contracts else 1

    return LossMagnitude(
        strategy=strategy,
        magnitude=float(magnitude),
        source=source,
        capital_ratio=float(magnitude) / capital,
        avg_contracts=avg_contracts,
    )


class WorstCaseInjector:
    """Resolves the injection plan for a run before any trial is drawn."""

    def __init__(self, params: SimulationParams):
        self.params = params

    def synthetic_value(self, loss: LossMagnitude) -> float:
        """Value of one synthetic unit in the run's return basis."""
        params = self.params
        if loss.magnitude == 0:
            return 0.0

        if params.worst_case_sizing == WorstCaseSizing.RELATIVE:
            if params.is_compounding:
                return -loss.capital_ratio
            return -loss.capital_ratio * params.initial_capital

        dollars = loss.magnitude
        if params.normalize_to_1_lot:
            dollars /= loss.avg_contracts
        if params.is_compounding:
            capital = params.historical_initial_capital or params.initial_capital
            return -dollars / capital
        return -dollars

    def allocate(
        self,
        trades_by_strategy: Mapping[str, Sequence[HistoricalTrade]],
        warnings: List[SimulationWarning]
    ) -> Dict[str, int]:
        params = self.params
        budget = simulation_budget(params.simulation_length, params.worst_case_percentage)

        if params.worst_case_based_on == WorstCaseBasis.SIMULATION:
            return allocate_even(budget, list(trades_by_strategy))

        counts = {name: len(trades) for name, trades in trades_by_strategy.items()}
        allocation, capped = allocate_historical(counts, params.worst_case_percentage, budget)
        if capped:
            warnings.append(SimulationWarning(
                code='worst_case_budget_capped',
                message=(
                    f"Historical worst-case requests exceed {budget} of "
                    f"{params.simulation_length} draws ({params.worst_case_percentage}%); "
                    f"allocation capped to {allocation}"
                ),
            ))
        return allocation

    def plan(
        self,
        trades_by_strategy: Mapping[str, Sequence[HistoricalTrade]],
        warnings: Optional[List[SimulationWarning]] = None
    ) -> Optional[InjectionPlan]:
        """
        Build the injection plan, or None when worst-case injection is off.

        Args:
            trades_by_strategy: Filtered trades per included strategy
            warnings: List that collects non-fatal warnings
        """
        if not self.params.worst_case_enabled or not trades_by_strategy:
            return None
        if warnings is None:
            warnings = []

        counts = self.allocate(trades_by_strategy, warnings)

        units: Dict[str, ReturnUnit] = {}
        for name in sorted(trades_by_strategy):
            loss = resolve_loss_magnitude(name, trades_by_strategy[name])
            if loss.magnitude == 0:
                warnings.append(SimulationWarning(
                    code='worst_case_zero_magnitude',
                    message="No loss, margin or P/L to size a worst-case unit; injecting zero-value units",
                    strategy=name,
                ))
            units[name] = ReturnUnit(
                strategy=name,
                value=self.synthetic_value(loss),
                basis=self.params.resample_method.value,
                synthetic=True,
            )
            logger.debug(f"Worst-case unit for {name}: {units[name].value} (from {loss.source})")

        if self.params.worst_case_mode == WorstCaseMode.GUARANTEE:
            plan = GuaranteedQuota(slots_per_strategy=counts, units=units)
        else:
            plan = PoolAugmentation(units_per_strategy=counts, units=units)

        logger.info(f"Worst-case injection plan: {plan.to_dict()}")
        return plan
