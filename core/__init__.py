from .config import EngineSettings, load_settings
from .errors import (
    AdapterError,
    AdapterTimeoutError,
    BasketBusyError,
    BasketEngineError,
    BasketNotFoundError,
    DuplicateNameError,
    InactiveEntryError,
    InsufficientLiquidityError,
    InvalidStatusError,
    NotFoundError,
    OraclePriceUnavailableError,
    PlanValidationError,
    RebalancingDisabledError,
    RegistryNotFoundError,
    SlippageExceededError,
    StaleDataError,
    StateError,
    StrategyConfigNotFoundError,
    SymbolNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from .fixed_point import allocate_bps, compute_nav, floor_units, to_decimal, value_weights
from .logger import get_logger

__all__ = [
    "AdapterError",
    "AdapterTimeoutError",
    "BasketBusyError",
    "BasketEngineError",
    "BasketNotFoundError",
    "DuplicateNameError",
    "EngineSettings",
    "InactiveEntryError",
    "InsufficientLiquidityError",
    "InvalidStatusError",
    "NotFoundError",
    "OraclePriceUnavailableError",
    "PlanValidationError",
    "RebalancingDisabledError",
    "RegistryNotFoundError",
    "SlippageExceededError",
    "StaleDataError",
    "StateError",
    "StrategyConfigNotFoundError",
    "SymbolNotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "allocate_bps",
    "compute_nav",
    "floor_units",
    "get_logger",
    "load_settings",
    "to_decimal",
    "value_weights",
]
