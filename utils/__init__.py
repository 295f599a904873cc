"""
Resample Risk Simulator - Utilities Package
"""

from utils.logging_config import (
    setup_logging,
    setup_logging_from_config,
    get_logger,
)
from utils.trade_frequency import (
    MIN_TRADES_PER_YEAR,
    estimate_trades_per_year,
    percentage_to_trades,
    time_to_trades,
    trades_to_time,
    format_trades_with_time,
)
from utils.report_saver import (
    save_simulation_report,
    write_report_json,
    generate_run_id,
)

__all__ = [
    'setup_logging',
    'setup_logging_from_config',
    'get_logger',
    'MIN_TRADES_PER_YEAR',
    'estimate_trades_per_year',
    'percentage_to_trades',
    'time_to_trades',
    'trades_to_time',
    'format_trades_with_time',
    'save_simulation_report',
    'write_report_json',
    'generate_run_id',
]
