"""
Resample Risk Simulator - Trade Log Pipeline Tests
"""

import logging

import pandas as pd
import pytest
from datetime import datetime

from core.data_pipeline import (
    calculate_initial_capital_from_trades,
    filter_trades,
    group_by_strategy,
    load_trades_csv,
    trades_from_frame,
)
from core.trading_types import ConfigurationError, HistoricalTrade


CSV_HEADER = (
    '\ufeffDate Opened,Time Opened,Date Closed,P/L,No. of Contracts,'
    'Margin Req.,Funds at Close, Strategy ,Max Loss\n'
)


@pytest.fixture
def trade_log(tmp_path):
    """Create a three-row trade log with a BOM and padded headers."""
    path = tmp_path / "trades.csv"
    path.write_text(
        CSV_HEADER
        + "2024-01-03,09:45:00,2024-01-03,150.5,2,1000,100150.5,Iron Condor,-800\n"
        + "2024-01-02,10:00:00,2024-01-02,-75,1,500,100000,Put Spread,\n"
        + "2024-01-04,11:30:00,,20,,,,,\n",
        encoding='utf-8',
    )
    return path


class TestLoadTradesCsv:
    """Tests for load_trades_csv function."""

    def test_parses_rows(self, trade_log):
        """Test that every column is parsed."""
        trades = load_trades_csv(str(trade_log))

        assert len(trades) == 3
        first = trades[0]
        assert first.strategy == 'Iron Condor'
        assert first.date_opened == datetime(2024, 1, 3, 9, 45)
        assert first.date_closed == datetime(2024, 1, 3)
        assert first.pl == 150.5
        assert first.num_contracts == 2
        assert first.margin_req == 1000.0
        assert first.funds_at_close == 100150.5
        assert first.max_loss == -800.0

    def test_defaults_for_blank_fields(self, trade_log):
        """Test the defaults for blank fields."""
        trades = load_trades_csv(str(trade_log))

        assert trades[1].max_loss is None
        last = trades[2]
        assert last.strategy == 'Unknown'
        assert last.num_contracts == 1
        assert last.margin_req == 0.0
        assert last.funds_at_close == 0.0
        assert last.date_closed is None

    def test_file_order_kept(self, trade_log):
        """Test that trades come back in file order."""
        trades = load_trades_csv(str(trade_log))
        assert [t.pl for t in trades] == [150.5, -75.0, 20.0]

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises OSError."""
        with pytest.raises(OSError):
            load_trades_csv(str(tmp_path / "missing.csv"))


class TestTradesFromFrame:
    """Tests for trades_from_frame function."""

    def test_minimal_columns(self):
        """Test a frame with only the required columns."""
        df = pd.DataFrame({'Date Opened': ['2024-02-01'], 'P/L': [12.0]})
        trades = trades_from_frame(df)

        assert trades[0].strategy == 'Unknown'
        assert trades[0].date_opened == datetime(2024, 2, 1)

    def test_missing_funds_column_warns(self, caplog):
        """Test that a missing Funds at Close column is logged."""
        df = pd.DataFrame({'Date Opened': ['2024-02-01'], 'P/L': [12.0]})

        with caplog.at_level(logging.WARNING, logger='core.data_pipeline'):
            trades = trades_from_frame(df)

        assert trades[0].funds_at_close == 0.0
        assert "Funds at Close" in caplog.text

    def test_missing_required_column(self):
        """Test that a missing required column raises."""
        df = pd.DataFrame({'Date Opened': ['2024-02-01']})
        with pytest.raises(ConfigurationError, match="P/L"):
            trades_from_frame(df)

    def test_bad_pl_reports_row(self):
        """Test that an invalid P/L names its row."""
        df = pd.DataFrame({'Date Opened': ['2024-02-01', '2024-02-02'], 'P/L': ['10', 'abc']})
        with pytest.raises(ConfigurationError, match="row 2"):
            trades_from_frame(df)

    def test_bad_date_reports_row(self):
        """Test that an invalid date names its row."""
        df = pd.DataFrame({'Date Opened': ['not a date'], 'P/L': [1.0]})
        with pytest.raises(ConfigurationError, match="row 1"):
            trades_from_frame(df)


# ============================================================================
# Filtering and grouping
# ============================================================================

def make_trade(strategy, day, pl=10.0, funds=0.0):
    """Build a HistoricalTrade opened on the given March 2024 day."""
    return HistoricalTrade(strategy=strategy, date_opened=datetime(2024, 3, day), pl=pl, funds_at_close=funds)


@pytest.fixture
def trades():
    """Create trades across three strategies."""
    return [
        make_trade('B', 3),
        make_trade('A', 2),
        make_trade('B', 1),
        make_trade('C', 4),
    ]


class TestFilterTrades:
    """Tests for filter_trades function."""

    def test_none_keeps_all(self, trades):
        """Test that no filter keeps every trade."""
        assert filter_trades(trades) == trades

    def test_keeps_only_named(self, trades):
        """Test that only the named strategies are kept."""
        assert {t.strategy for t in filter_trades(trades, ['A', 'C'])} == {'A', 'C'}

    def test_unmatched_name_raises(self, trades):
        """Test that an unmatched strategy name raises."""
        with pytest.raises(ConfigurationError, match="'Z'"):
            filter_trades(trades, ['A', 'Z'])

    def test_input_not_modified(self, trades):
        """Test that the input list is not modified."""
        before = list(trades)
        filter_trades(trades, ['B'])
        assert trades == before


class TestGroupByStrategy:
    """Tests for group_by_strategy function."""

    def test_sorted_keys_chronological_trades(self, trades):
        """Test sorted keys and chronological trades."""
        grouped = group_by_strategy(trades)

        assert list(grouped) == ['A', 'B', 'C']
        assert [t.date_opened.day for t in grouped['B']] == [1, 3]


class TestInitialCapital:
    """Tests for calculate_initial_capital_from_trades function."""

    def test_from_earliest_trade(self):
        """Test inference from the earliest trade."""
        trades = [
            make_trade('A', 5, pl=100.0, funds=50100.0),
            make_trade('A', 2, pl=-200.0, funds=49800.0),
        ]
        assert calculate_initial_capital_from_trades(trades) == 50000.0

    def test_ties_prefer_lower_funds(self):
        """Test that ties prefer the lower funds_at_close."""
        trades = [
            make_trade('A', 2, pl=100.0, funds=60100.0),
            make_trade('B', 2, pl=100.0, funds=50100.0),
        ]
        assert calculate_initial_capital_from_trades(trades) == 50000.0

    def test_empty(self):
        """Test that an empty list gives zero."""
        assert calculate_initial_capital_from_trades([]) == 0.0
