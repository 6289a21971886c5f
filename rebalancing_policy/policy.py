"""Rebalance trigger evaluation."""

from typing import Dict, Mapping, Optional, Protocol, Sequence

from basket_state.models import RebalancingConfig, RiskMetrics, RiskSettings
from core.constants import MAX_CONSTITUENTS

from .models import PortfolioView, RebalanceDecision, TriggerReason
from .planner import build_trade_plan, empty_plan, max_drift_bps, validate_targets
from .risk_reduction import RiskReductionPolicy


class RebalancingPolicy(Protocol):
    name: str

    def evaluate(
        self,
        view: PortfolioView,
        target_weights: Sequence[int],
        config: RebalancingConfig,
        risk_settings: RiskSettings,
        risk_metrics: Optional[RiskMetrics],
        elapsed_seconds: int,
        volatilities: Optional[Mapping[str, int]] = None,
        max_legs: int = MAX_CONSTITUENTS,
    ) -> RebalanceDecision:
        ...


class ThresholdRebalancingPolicy:
    """First match wins: drift beyond threshold, elapsed interval, drawdown breach.

    Drift and interval triggers wait out ``min_interval_seconds`` after the
    last rebalance. The orchestrator checks the drawdown watermark before it
    consults a policy, so the breach branch here serves direct callers.
    """

    name = "threshold"

    def evaluate(
        self,
        view: PortfolioView,
        target_weights: Sequence[int],
        config: RebalancingConfig,
        risk_settings: RiskSettings,
        risk_metrics: Optional[RiskMetrics],
        elapsed_seconds: int,
        volatilities: Optional[Mapping[str, int]] = None,
        max_legs: int = MAX_CONSTITUENTS,
    ) -> RebalanceDecision:
        validate_targets(view, target_weights)

        reason = TriggerReason.NONE
        if elapsed_seconds >= config.min_interval_seconds:
            if max_drift_bps(view.current_weights, target_weights) > config.drift_threshold_bps:
                reason = TriggerReason.DRIFT
            elif elapsed_seconds > config.max_interval_seconds:
                reason = TriggerReason.TIME

        if reason != TriggerReason.NONE:
            plan = build_trade_plan(view, target_weights, config, max_legs)
            return RebalanceDecision(should_rebalance=True, reason=reason, trade_plan=plan)
        if risk_metrics is not None and risk_metrics.breaches(risk_settings.max_drawdown_limit):
            return RiskReductionPolicy().evaluate(
                view, volatilities, risk_settings, config, max_legs=max_legs
            )
        return RebalanceDecision(
            should_rebalance=False,
            reason=TriggerReason.NONE,
            trade_plan=empty_plan(target_weights, config),
        )


def default_rebalancing_policies() -> Dict[str, RebalancingPolicy]:
    policy = ThresholdRebalancingPolicy()
    return {policy.name: policy}
