"""
Resample Risk Simulator - Trade Frequency Helpers
Conversions between calendar time, percentages of history and trade counts.
"""

import math
from typing import Sequence, Tuple

from core.trading_types import HistoricalTrade

MIN_TRADES_PER_YEAR = 10
DAYS_PER_YEAR = 365.25
TIME_UNITS = ('years', 'months', 'days')


def _round(value: float) -> int:
    # Half-up, so 2.5 -> 3 like the rest of the budget arithmetic
    return int(math.floor(value + 0.5))


def estimate_trades_per_year(trades: Sequence[HistoricalTrade], fallback: int) -> int:
    """
    Estimate annual trade frequency from the span of opening dates.

    Falls back to max(MIN_TRADES_PER_YEAR, fallback) when there are fewer than
    two trades or the span is under ~4 days.
    """
    floor_fallback = max(MIN_TRADES_PER_YEAR, fallback)
    if len(trades) < 2:
        return floor_fallback

    opened = sorted(t.date_opened for t in trades)
    days_elapsed = (opened[-1] - opened[0]).total_seconds() / 86400
    if days_elapsed <= 0:
        return floor_fallback

    years_elapsed = days_elapsed / DAYS_PER_YEAR
    if years_elapsed < 0.01:
        return floor_fallback

    return max(MIN_TRADES_PER_YEAR, _round(len(trades) / years_elapsed))


def percentage_to_trades(percentage: float, total_trades: int) -> int:
    """Trade count for a percentage of history, at least 1."""
    return max(1, _round(percentage / 100 * total_trades))


def time_to_trades(value: float, unit: str, trades_per_year: float) -> int:
    """Number of trades expected in a period of years, months or days."""
    if unit == 'months':
        return _round(value * trades_per_year / 12)
    if unit == 'days':
        return _round(value * trades_per_year / DAYS_PER_YEAR)
    if unit == 'years':
        return _round(value * trades_per_year)
    raise ValueError(f"Unknown time unit: {unit!r} (expected one of: {', '.join(TIME_UNITS)})")


def trades_to_time(trades: int, trades_per_year: float) -> Tuple[float, str]:
    """Express a trade count in the largest whole calendar unit."""
    years = trades / trades_per_year
    if years >= 1:
        return years, 'years'
    months = years * 12
    if months >= 1:
        return months, 'months'
    return years * DAYS_PER_YEAR, 'days'


def format_trades_with_time(trades: int, trades_per_year: float) -> str:
    """e.g. '252 trades (~1.0 years)'."""
    value, unit = trades_to_time(trades, trades_per_year)
    shown = f"{value:.1f}" if unit == 'years' else f"{_round(value)}"
    return f"{trades:,} trades (~{shown} {unit})"
