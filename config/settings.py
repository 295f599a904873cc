"""
Resample Risk Simulator - Configuration Settings
Centralized configuration management for the simulator and its CLI.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional
from enum import Enum
import json
import math
import numbers
import os

from core.trading_types import ConfigurationError


class ResampleMethod(Enum):
    """Sampling basis for return units."""
    TRADES = "trades"
    DAILY = "daily"
    PERCENTAGE = "percentage"


class WorstCaseMode(Enum):
    """How synthetic worst-case losses enter a run."""
    POOL = "pool"
    GUARANTEE = "guarantee"


class WorstCaseBasis(Enum):
    """What the worst-case percentage is measured against."""
    SIMULATION = "simulation"
    HISTORICAL = "historical"


class WorstCaseSizing(Enum):
    """How each synthetic loss is sized."""
    ABSOLUTE = "absolute"
    RELATIVE = "relative"


MIN_SIMULATIONS = 100
MAX_SIMULATIONS = 10000
MIN_WORST_CASE_PERCENTAGE = 1
MAX_WORST_CASE_PERCENTAGE = 20

# camelCase keys used by parameter files and exports
_CAMEL_KEYS = {
    'num_simulations': 'numSimulations',
    'simulation_length': 'simulationLength',
    'resample_method': 'resampleMethod',
    'resample_window': 'resampleWindow',
    'initial_capital': 'initialCapital',
    'historical_initial_capital': 'historicalInitialCapital',
    'trades_per_year': 'tradesPerYear',
    'random_seed': 'randomSeed',
    'normalize_to_1_lot': 'normalizeTo1Lot',
    'worst_case_enabled': 'worstCaseEnabled',
    'worst_case_percentage': 'worstCasePercentage',
    'worst_case_mode': 'worstCaseMode',
    'worst_case_based_on': 'worstCaseBasedOn',
    'worst_case_sizing': 'worstCaseSizing',
    'strategies': 'strategies',
}

_ENUM_FIELDS = {
    'resample_method': ResampleMethod,
    'worst_case_mode': WorstCaseMode,
    'worst_case_based_on': WorstCaseBasis,
    'worst_case_sizing': WorstCaseSizing,
}

# Numeric fields checked before range validation; True = whole numbers only
_NUMERIC_FIELDS = {
    'num_simulations': True,
    'simulation_length': True,
    'resample_window': True,
    'initial_capital': False,
    'historical_initial_capital': False,
    'trades_per_year': True,
    'random_seed': True,
    'worst_case_percentage': True,
}
_OPTIONAL_FIELDS = ('resample_window', 'historical_initial_capital', 'random_seed')


def _is_number(value: Any, integer: bool = False) -> bool:
    """bool is excluded even though it subclasses int."""
    if isinstance(value, bool):
        return False
    if integer:
        return isinstance(value, numbers.Integral)
    return isinstance(value, numbers.Real)


@dataclass
class SimulationParams:
    """Monte Carlo run parameters."""
    num_simulations: int = 1000
    simulation_length: int = 252
    resample_method: ResampleMethod = ResampleMethod.TRADES
    resample_window: Optional[int] = None  # None = full pool
    initial_capital: float = 100000.0
    historical_initial_capital: Optional[float] = None  # strategy subsets only
    trades_per_year: int = 252
    random_seed: Optional[int] = None  # None = non-reproducible
    normalize_to_1_lot: bool = False

    # Worst-case injection
    worst_case_enabled: bool = False
    worst_case_percentage: int = 5
    worst_case_mode: WorstCaseMode = WorstCaseMode.POOL
    worst_case_based_on: WorstCaseBasis = WorstCaseBasis.SIMULATION
    worst_case_sizing: WorstCaseSizing = WorstCaseSizing.RELATIVE

    # Strategy inclusion filter (None = all strategies)
    strategies: Optional[List[str]] = None

    def __post_init__(self):
        """Coerce string values into their enum types."""
        for name, enum_cls in _ENUM_FIELDS.items():
            value = getattr(self, name)
            if not isinstance(value, enum_cls):
                try:
                    setattr(self, name, enum_cls(value))
                except ValueError as exc:
                    allowed = ', '.join(member.value for member in enum_cls)
                    raise ConfigurationError(
                        f"Invalid {_CAMEL_KEYS[name]}: {value!r} (expected one of: {allowed})"
                    ) from exc

    @property
    def is_compounding(self) -> bool:
        """Percentage basis compounds; trade and daily bases accumulate dollars."""
        return self.resample_method == ResampleMethod.PERCENTAGE

    def check_types(self) -> None:
        """Raise ConfigurationError for a numeric field or strategy list of the wrong type."""
        for name, integer in _NUMERIC_FIELDS.items():
            value = getattr(self, name)
            if value is None and name in _OPTIONAL_FIELDS:
                continue
            if not _is_number(value, integer):
                kind = 'an integer' if integer else 'a number'
                raise ConfigurationError(f"{_CAMEL_KEYS[name]} must be {kind}, got {value!r}")
        if self.strategies is not None and (
            not isinstance(self.strategies, (list, tuple))
            or not all(isinstance(s, str) for s in self.strategies)
        ):
            raise ConfigurationError(f"strategies must be a list of names, got {self.strategies!r}")

    def validate(self) -> None:
        """Raise ConfigurationError for any mistyped or out-of-range parameter."""
        self.check_types()
        if not MIN_SIMULATIONS <= self.num_simulations <= MAX_SIMULATIONS:
            raise ConfigurationError(
                f"numSimulations must be in [{MIN_SIMULATIONS}, {MAX_SIMULATIONS}], "
                f"got {self.num_simulations}"
            )
        if self.simulation_length < 1:
            raise ConfigurationError(f"simulationLength must be >= 1, got {self.simulation_length}")
        if not math.isfinite(self.initial_capital) or self.initial_capital <= 0:
            raise ConfigurationError(f"initialCapital must be > 0, got {self.initial_capital}")
        if self.historical_initial_capital is not None and (
            not math.isfinite(self.historical_initial_capital) or self.historical_initial_capital <= 0
        ):
            raise ConfigurationError(
                f"historicalInitialCapital must be > 0 when set, got {self.historical_initial_capital}"
            )
        if self.trades_per_year <= 0:
            raise ConfigurationError(f"tradesPerYear must be > 0, got {self.trades_per_year}")
        if self.resample_window is not None and self.resample_window < 1:
            raise ConfigurationError(f"resampleWindow must be >= 1 when set, got {self.resample_window}")
        if self.random_seed is not None and self.random_seed < 0:
            raise ConfigurationError(f"randomSeed must be >= 0 when set, got {self.random_seed}")
        if self.worst_case_enabled and not (
            MIN_WORST_CASE_PERCENTAGE <= self.worst_case_percentage <= MAX_WORST_CASE_PERCENTAGE
        ):
            raise ConfigurationError(
                f"worstCasePercentage must be in [{MIN_WORST_CASE_PERCENTAGE}, "
                f"{MAX_WORST_CASE_PERCENTAGE}], got {self.worst_case_percentage}"
            )
        if self.strategies is not None and len(self.strategies) == 0:
            raise ConfigurationError("strategies filter must name at least one strategy when set")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used by parameter files and exports."""
        result = {}
        for name, key in _CAMEL_KEYS.items():
            value = getattr(self, name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationParams':
        """Build from a mapping with either camelCase or snake_case keys."""
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Simulation parameters must be a JSON object, got {type(data).__name__}"
            )
        snake_by_camel = {camel: snake for snake, camel in _CAMEL_KEYS.items()}
        kwargs = {}
        for key, value in data.items():
            name = snake_by_camel.get(key, key)
            if name not in _CAMEL_KEYS:
                raise ConfigurationError(f"Unknown simulation parameter: {key}")
            kwargs[name] = value
        return cls(**kwargs)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_to_file: bool = False
    log_to_console: bool = True
    log_format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format: str = '%Y-%m-%d %H:%M:%S'
    max_file_size_mb: int = 10
    backup_count: int = 5
    log_filename_prefix: str = "risk_sim"


@dataclass
class SystemConfig:
    """Main system configuration."""
    # Paths
    base_dir: str = field(default_factory=lambda: os.getcwd())
    logs_dir: str = "logs"
    results_dir: str = "results"

    # Execution
    num_workers: Optional[int] = None  # None = os.cpu_count()
    show_progress: bool = False

    # Sub-configs
    simulation: SimulationParams = field(default_factory=SimulationParams)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def save(self, path: str):
        """Save configuration to JSON file."""
        data = {
            'base_dir': self.base_dir,
            'logs_dir': self.logs_dir,
            'results_dir': self.results_dir,
            'num_workers': self.num_workers,
            'show_progress': self.show_progress,
            'simulation': self.simulation.to_dict(),
            'logging': dict(self.logging.__dict__),
        }
        with open(path, 'w') as f:
            json.dump(data, f, indent=2)

    @classmethod
    def load(cls, path: str) -> 'SystemConfig':
        """Load configuration from JSON file."""
        data = _load_json(path)

        config = cls(
            simulation=SimulationParams.from_dict(data.get('simulation', {})),
            logging=_logging_from_dict(data.get('logging', {}))
        )

        for key in ['base_dir', 'logs_dir', 'results_dir', 'num_workers', 'show_progress']:
            if key in data:
                setattr(config, key, data[key])

        return config

    def get_path(self, subdir: str) -> str:
        """Get full path for a subdirectory."""
        path = os.path.join(self.base_dir, getattr(self, f"{subdir}_dir", subdir))
        os.makedirs(path, exist_ok=True)
        return path


def _logging_from_dict(data: Dict[str, Any]) -> LoggingConfig:
    if not isinstance(data, dict):
        raise ConfigurationError(f"Logging settings must be a JSON object, got {type(data).__name__}")
    known = {f.name for f in fields(LoggingConfig)}
    for key in data:
        if key not in known:
            raise ConfigurationError(f"Unknown logging setting: {key}")
    return LoggingConfig(**data)


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a JSON object: {path}")
    return data


def load_simulation_config(path: str) -> SimulationParams:
    """Load simulation parameters from a standalone JSON file.

    Accepts either a bare parameter mapping or one nested under "simulation".
    """
    data = _load_json(path)
    return SimulationParams.from_dict(data.get('simulation', data))


def load_logging_config(path: str) -> LoggingConfig:
    """Load logging settings from a standalone JSON file."""
    data = _load_json(path)
    return _logging_from_dict(data.get('logging', data))


# Default configuration instance
def get_config() -> SystemConfig:
    """Get default system configuration."""
    return SystemConfig()
