"""Configuration module for Resample Risk Simulator."""

from .settings import (
    SystemConfig,
    SimulationParams,
    LoggingConfig,
    ResampleMethod,
    WorstCaseMode,
    WorstCaseBasis,
    WorstCaseSizing,
    MIN_SIMULATIONS,
    MAX_SIMULATIONS,
    get_config,
    # Standalone config loaders
    load_simulation_config,
    load_logging_config,
)

__all__ = [
    'SystemConfig',
    'SimulationParams',
    'LoggingConfig',
    'ResampleMethod',
    'WorstCaseMode',
    'WorstCaseBasis',
    'WorstCaseSizing',
    'MIN_SIMULATIONS',
    'MAX_SIMULATIONS',
    'get_config',
    # Standalone config loaders
    'load_simulation_config',
    'load_logging_config',
]
