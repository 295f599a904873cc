"""
Resample Risk Simulator - Report Saver

Write a simulation run's report (parameters, statistics, percentile bands,
warnings) to disk for offline review.

Usage:
    from utils.report_saver import save_simulation_report, generate_run_id

    run_id = generate_run_id("simulate", result.parameters.strategies)
    save_simulation_report(result, base_dir="results", run_id=run_id)
"""

import json
import logging
import os
from datetime import datetime
from typing import TYPE_CHECKING, Optional, Sequence

import pandas as pd

if TYPE_CHECKING:
    from simulation.monte_carlo import MonteCarloResult

logger = logging.getLogger(__name__)

__all__ = ['save_simulation_report', 'write_report_json', 'generate_run_id']


def generate_run_id(command: str, strategies: Optional[Sequence[str]] = None) -> str:
    """
    Generate a unique run ID.

    Examples:
        >>> generate_run_id("simulate", ["IC", "BWB"])
        'simulate-BWB+IC-20241217_143052'
        >>> generate_run_id("simulate")
        'simulate-all-20241217_143052'
    """
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    label = '+'.join(sorted(strategies)) if strategies else 'all'
    label = ''.join(ch if ch.isalnum() or ch in '+-_' else '_' for ch in label)
    return f"{command}-{label}-{timestamp}"


def save_simulation_report(
    result: 'MonteCarloResult',
    base_dir: str = "results",
    run_id: Optional[str] = None,
    include_simulations: bool = False
) -> str:
    """
    Save a run report into its own directory.

    Creates:
        {base_dir}/{run_id}/
            report.json      - parameters, statistics, percentiles, warnings
            percentiles.csv  - percentile bands by step

    Returns:
        Path to the created run directory
    """
    run_id = run_id or generate_run_id("simulate", result.parameters.strategies)
    run_dir = os.path.join(base_dir, run_id)
    os.makedirs(run_dir, exist_ok=True)

    report_path = os.path.join(run_dir, "report.json")
    write_report_json(result, report_path, include_simulations=include_simulations)

    bands_path = os.path.join(run_dir, "percentiles.csv")
    _save_dataframe(result.percentiles.to_frame(), bands_path)
    logger.info(f"Saved percentile bands to {bands_path}")

    return run_dir


def write_report_json(
    result: 'MonteCarloResult',
    path: str,
    include_simulations: bool = False
) -> str:
    """Write the JSON report to an explicit path."""
    out_dir = os.path.dirname(path)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    with open(path, 'w') as f:
        json.dump(result.to_dict(include_simulations=include_simulations), f, indent=2)
    logger.info(f"Saved simulation report to {path}")
    return path


def _save_dataframe(df: pd.DataFrame, path: str) -> None:
    """Save DataFrame to CSV with consistent formatting."""
    df.to_csv(path, float_format='%.8f')
