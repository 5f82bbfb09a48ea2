"""Core module containing types, configuration, and shared utilities."""

from promolift.core.types import (
    BaselineStatus,
    BaselineType,
    CalculationMethod,
    EffectRates,
    Granularity,
    Promotion,
    Scope,
)
from promolift.core.config import EngineConfig, Settings, get_settings, load_engine_config
from promolift.core.exceptions import (
    PromoliftError,
    ConfigurationError,
    InputValidationError,
    InsufficientDataError,
    InsufficientSeasonalHistoryError,
    BaselineNotFoundError,
    BaselineNotReadyError,
    NoOverlapError,
    InvalidStateTransitionError,
    CalculationError,
    CalculationTimeoutError,
    CalculationSupersededError,
    DataFetchError,
    StorageError,
)

__all__ = [
    # Types
    "BaselineStatus",
    "BaselineType",
    "CalculationMethod",
    "EffectRates",
    "Granularity",
    "Promotion",
    "Scope",
    # Config
    "EngineConfig",
    "Settings",
    "get_settings",
    "load_engine_config",
    # Exceptions
    "PromoliftError",
    "ConfigurationError",
    "InputValidationError",
    "InsufficientDataError",
    "InsufficientSeasonalHistoryError",
    "BaselineNotFoundError",
    "BaselineNotReadyError",
    "NoOverlapError",
    "InvalidStateTransitionError",
    "CalculationError",
    "CalculationTimeoutError",
    "CalculationSupersededError",
    "DataFetchError",
    "StorageError",
]
