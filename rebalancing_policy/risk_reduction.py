"""Forced de-risking plan used when the drawdown watermark breaches its limit."""

from typing import List, Mapping, Optional

from basket_state.models import RebalancingConfig, RiskSettings
from core.constants import BPS_MAX, MAX_CONSTITUENTS
from weight_strategy.strategies import require_volatilities

from .models import PortfolioView, RebalanceDecision, TriggerReason
from .planner import build_trade_plan


class RiskReductionPolicy:
    """Move a fraction of every position into the least volatile constituent.

    Each non-haven weight gives up ``floor(weight * fraction / 10000)`` bps to
    the haven, the lowest-volatility constituent (ties go to the lowest index).
    """

    name = "risk_reduction"

    def evaluate(
        self,
        view: PortfolioView,
        volatilities: Optional[Mapping[str, int]],
        risk_settings: RiskSettings,
        config: RebalancingConfig,
        max_legs: int = MAX_CONSTITUENTS,
    ) -> RebalanceDecision:
        values = require_volatilities(view.tokens, volatilities)
        haven = min(range(len(values)), key=lambda index: (values[index], index))
        fraction = risk_settings.risk_reduction_fraction_bps

        targets: List[int] = list(view.current_weights)
        moved = 0
        for index, weight in enumerate(view.current_weights):
            if index == haven:
                continue
            shift = weight * fraction // BPS_MAX
            targets[index] -= shift
            moved += shift
        targets[haven] += moved
        if sum(targets) != BPS_MAX:
            # A valueless basket has no current weights to shift.
            targets = [BPS_MAX if index == haven else 0 for index in range(len(targets))]

        plan = build_trade_plan(view, targets, config, max_legs)
        return RebalanceDecision(
            should_rebalance=True,
            reason=TriggerReason.RISK_EMERGENCY,
            trade_plan=plan,
        )
