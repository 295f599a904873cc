"""
Resample Risk Simulator - Resample Pool
Per-strategy sets of return units available for sampling.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np

from core.trading_types import DataInsufficiencyError, ReturnUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResamplePool:
    """
    Read-only pool built once per run.

    effective_window_size is the number of historical units retained after
    windowing. It does not count synthetic units added by pool augmentation.
    """
    per_strategy: Dict[str, List[ReturnUnit]]
    effective_window_size: int
    resample_window: Optional[int] = None

    @property
    def strategies(self) -> List[str]:
        return sorted(self.per_strategy)

    @property
    def size(self) -> int:
        """Number of units draws are taken from, synthetic ones included."""
        return sum(len(units) for units in self.per_strategy.values())

    def units(self) -> List[ReturnUnit]:
        """All units concatenated in lexicographic strategy order."""
        return [unit for name in self.strategies for unit in self.per_strategy[name]]

    def values(self) -> np.ndarray:
        return np.array([unit.value for unit in self.units()], dtype=float)

    def with_units(self, extra: Mapping[str, Sequence[ReturnUnit]]) -> 'ResamplePool':
        """Return a new pool with extra units appended to their strategies."""
        merged = {name: list(units) for name, units in self.per_strategy.items()}
        for name, units in extra.items():
            merged.setdefault(name, []).extend(units)
        return ResamplePool(
            per_strategy=merged,
            effective_window_size=self.effective_window_size,
            resample_window=self.resample_window,
        )


def build_resample_pool(
    per_strategy: Mapping[str, Sequence[ReturnUnit]],
    resample_window: Optional[int] = None
) -> ResamplePool:
    """
    Build the pool from chronologically ordered units.

    Args:
        per_strategy: Normalized units per strategy, oldest first
        resample_window: Keep only the most recent units per strategy (None = all)

    Raises:
        DataInsufficiencyError: if any strategy has no units
    """
    if not per_strategy:
        raise DataInsufficiencyError("Resample pool is empty: no strategies to sample from")

    retained: Dict[str, List[ReturnUnit]] = {}
    for name in sorted(per_strategy):
        units = list(per_strategy[name])
        if resample_window is not None:
            units = units[-resample_window:]
        if not units:
            raise DataInsufficiencyError(f"Resample pool for strategy '{name}' is empty")
        retained[name] = units

    size = sum(len(units) for units in retained.values())
    if resample_window is None:
        logger.info(f"Resample pool: {size} units across {len(retained)} strategies (using 100%)")
    else:
        logger.info(
            f"Resample pool: {size} units across {len(retained)} strategies "
            f"(window of {resample_window} per strategy)"
        )

    return ResamplePool(per_strategy=retained, effective_window_size=size, resample_window=resample_window)
