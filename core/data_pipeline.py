"""
Resample Risk Simulator - Trade Log Pipeline
Loads exported trade logs, applies the strategy inclusion filter and infers
starting capital.
"""

import math
import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .trading_types import ConfigurationError, HistoricalTrade

logger = logging.getLogger(__name__)

UNKNOWN_STRATEGY = "Unknown"

# Trade-log export headers
COL_DATE_OPENED = 'Date Opened'
COL_TIME_OPENED = 'Time Opened'
COL_DATE_CLOSED = 'Date Closed'
COL_PL = 'P/L'
COL_CONTRACTS = 'No. of Contracts'
COL_MARGIN = 'Margin Req.'
COL_FUNDS = 'Funds at Close'
COL_STRATEGY = 'Strategy'
COL_MAX_LOSS = 'Max Loss'

REQUIRED_COLUMNS = (COL_DATE_OPENED, COL_PL)


def load_trades_csv(path: str) -> List[HistoricalTrade]:
    """
    Load a trade-log CSV export into HistoricalTrade records.

    Args:
        path: Path to the CSV file

    Returns:
        Trades in file order
    """
    df = pd.read_csv(path)
    trades = trades_from_frame(df)
    logger.info(f"Loaded {len(trades)} trades from {path}")
    return trades


def trades_from_frame(df: pd.DataFrame) -> List[HistoricalTrade]:
    """Convert a trade-log DataFrame (export headers) into HistoricalTrade records."""
    df = df.rename(columns=lambda c: str(c).replace('\ufeff', '').strip())

    missing = [col for col in REQUIRED_COLUMNS if col not in df.columns]
    if missing:
        raise ConfigurationError(f"Trade log is missing required columns: {', '.join(missing)}")

    opened_raw = df[COL_DATE_OPENED].astype(str)
    if COL_TIME_OPENED in df.columns:
        opened_raw = opened_raw + ' ' + df[COL_TIME_OPENED].fillna('00:00:00').astype(str)
    date_opened = pd.to_datetime(opened_raw, errors='coerce')
    pl = pd.to_numeric(df[COL_PL], errors='coerce')

    bad_dates = date_opened.isna()
    if bad_dates.any():
        row = int(bad_dates.to_numpy().nonzero()[0][0])
        raise ConfigurationError(
            f"Invalid {COL_DATE_OPENED} in row {row + 1}: {df[COL_DATE_OPENED].iloc[row]!r}"
        )
    bad_pl = pl.isna()
    if bad_pl.any():
        row = int(bad_pl.to_numpy().nonzero()[0][0])
        raise ConfigurationError(f"Invalid {COL_PL} in row {row + 1}: {df[COL_PL].iloc[row]!r}")

    n = len(df)
    date_closed = (
        pd.to_datetime(df[COL_DATE_CLOSED], errors='coerce')
        if COL_DATE_CLOSED in df.columns else pd.Series([pd.NaT] * n)
    )
    contracts = _numeric_column(df, COL_CONTRACTS, default=1.0)
    margin = _numeric_column(df, COL_MARGIN, default=0.0)
    funds = _numeric_column(df, COL_FUNDS, default=0.0)
    if COL_FUNDS not in df.columns:
        logger.warning(f"Trade log has no '{COL_FUNDS}' column; funds_at_close defaults to 0")
    max_loss = _numeric_column(df, COL_MAX_LOSS, default=float('nan'))
    strategy = (
        df[COL_STRATEGY].fillna('').astype(str).str.strip()
        if COL_STRATEGY in df.columns else pd.Series([''] * n)
    )

    trades = []
    for i in range(n):
        closed = date_closed.iloc[i]
        loss = float(max_loss.iloc[i])
        trades.append(HistoricalTrade(
            strategy=strategy.iloc[i] or UNKNOWN_STRATEGY,
            date_opened=date_opened.iloc[i].to_pydatetime(),
            date_closed=None if pd.isna(closed) else closed.to_pydatetime(),
            pl=float(pl.iloc[i]),
            num_contracts=int(round(contracts.iloc[i])),
            margin_req=float(margin.iloc[i]),
            funds_at_close=float(funds.iloc[i]),
            max_loss=None if math.isnan(loss) else loss,
        ))
    return trades


def _numeric_column(df: pd.DataFrame, column: str, default: float) -> pd.Series:
    if column not in df.columns:
        return pd.Series([default] * len(df), dtype=float)
    return pd.to_numeric(df[column], errors='coerce').fillna(default).astype(float)


def filter_trades(
    trades: Sequence[HistoricalTrade],
    strategies: Optional[Iterable[str]] = None
) -> List[HistoricalTrade]:
    """
    Apply a strategy inclusion filter.

    Raises:
        ConfigurationError: if any requested strategy matches zero trades
    """
    if strategies is None:
        return list(trades)

    wanted = list(OrderedDict.fromkeys(strategies))
    present = {t.strategy for t in trades}
    unmatched = [s for s in wanted if s not in present]
    if unmatched:
        raise ConfigurationError(
            f"Strategy filter matched zero trades: {', '.join(repr(s) for s in unmatched)}"
        )

    selected = set(wanted)
    return [t for t in trades if t.strategy in selected]


def group_by_strategy(trades: Iterable[HistoricalTrade]) -> Dict[str, List[HistoricalTrade]]:
    """Group trades by strategy, keys sorted lexicographically, trades chronological."""
    grouped: Dict[str, List[HistoricalTrade]] = {}
    for trade in sort_chronologically(trades):
        grouped.setdefault(trade.strategy, []).append(trade)
    return {name: grouped[name] for name in sorted(grouped)}


def sort_chronologically(trades: Iterable[HistoricalTrade]) -> List[HistoricalTrade]:
    """Stable sort by open time."""
    return sorted(trades, key=lambda t: t.date_opened)


def calculate_initial_capital_from_trades(trades: Sequence[HistoricalTrade]) -> float:
    """
    Infer the account's starting capital as funds_at_close - pl of the
    chronologically first trade (ties: lower funds_at_close first).
    """
    if not trades:
        return 0.0
    first = min(trades, key=lambda t: (t.date_opened, t.funds_at_close))
    return first.funds_at_close - first.pl
