from .models import (
    DeferredDelta,
    PortfolioView,
    RebalanceDecision,
    TradeLeg,
    TradePlan,
    TriggerReason,
)
from .planner import build_trade_plan, max_drift_bps, validate_plan
from .policy import RebalancingPolicy, ThresholdRebalancingPolicy, default_rebalancing_policies
from .risk_reduction import RiskReductionPolicy

__all__ = [
    "DeferredDelta",
    "PortfolioView",
    "RebalanceDecision",
    "RebalancingPolicy",
    "RiskReductionPolicy",
    "ThresholdRebalancingPolicy",
    "TradeLeg",
    "TradePlan",
    "TriggerReason",
    "build_trade_plan",
    "default_rebalancing_policies",
    "max_drift_bps",
    "validate_plan",
]
