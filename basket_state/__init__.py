from .lifecycle import (
    apply_swap,
    bind_strategy,
    burn,
    close,
    create_basket,
    drawdown_breached,
    freeze,
    mark_to_market,
    mint,
    nav_per_unit,
    pause,
    set_fees,
    set_rebalancing_enabled,
    transition,
    unfreeze,
    unpause,
    update_signals,
    validate_state,
)
from .models import (
    BasketConstituent,
    BasketIndexState,
    BasketStatus,
    ExecutionStats,
    InKindTransfer,
    OptimizationSettings,
    PriceSource,
    RebalancingConfig,
    RiskMetrics,
    RiskSettings,
    StrategyConfig,
    WeightConfig,
)
from .store import InMemoryBasketStore, StrategyConfigStore

__all__ = [
    "BasketConstituent",
    "BasketIndexState",
    "BasketStatus",
    "ExecutionStats",
    "InKindTransfer",
    "InMemoryBasketStore",
    "OptimizationSettings",
    "PriceSource",
    "RebalancingConfig",
    "RiskMetrics",
    "RiskSettings",
    "StrategyConfig",
    "StrategyConfigStore",
    "WeightConfig",
    "apply_swap",
    "bind_strategy",
    "burn",
    "close",
    "create_basket",
    "drawdown_breached",
    "freeze",
    "mark_to_market",
    "mint",
    "nav_per_unit",
    "pause",
    "set_fees",
    "set_rebalancing_enabled",
    "transition",
    "unfreeze",
    "unpause",
    "update_signals",
    "validate_state",
]
