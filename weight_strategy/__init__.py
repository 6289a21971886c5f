from .models import WeightInputs
from .strategies import (
    EqualWeightStrategy,
    FixedWeightStrategy,
    MarketCapWeightStrategy,
    RiskParityStrategy,
    SignalWeightedStrategy,
    WeightStrategy,
    default_weight_strategies,
    require_volatilities,
    water_fill,
)

__all__ = [
    "EqualWeightStrategy",
    "FixedWeightStrategy",
    "MarketCapWeightStrategy",
    "RiskParityStrategy",
    "SignalWeightedStrategy",
    "WeightInputs",
    "WeightStrategy",
    "default_weight_strategies",
    "require_volatilities",
    "water_fill",
]
