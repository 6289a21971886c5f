"""Deterministic trade-plan builder with validation."""

from decimal import Decimal, localcontext
from typing import Dict, List, Sequence, Tuple

from basket_state.models import RebalancingConfig
from core.constants import BPS_MAX, DECIMAL_PRECISION, MAX_CONSTITUENTS, MAX_SLIPPAGE_BPS
from core.errors import PlanValidationError, ValidationError
from core.fixed_point import floor_units

from .models import DeferredDelta, PortfolioView, TradeLeg, TradePlan


def max_drift_bps(current: Sequence[int], target: Sequence[int]) -> int:
    return max((abs(c - t) for c, t in zip(current, target)), default=0)


def empty_plan(target_weights: Sequence[int], config: RebalancingConfig) -> TradePlan:
    return TradePlan(
        legs=(),
        deferred=(),
        target_weights=tuple(target_weights),
        min_trade_value=config.min_trade_value,
    )


def build_trade_plan(
    view: PortfolioView,
    target_weights: Sequence[int],
    config: RebalancingConfig,
    max_legs: int = MAX_CONSTITUENTS,
) -> TradePlan:
    """Pair sells with buys so that each leg moves one value in both directions.

    Sells and buys are each ordered by descending size (ties by index) and
    matched with two pointers. Each leg carries the value its whole sell units
    realize, so the buy side never expects more than the sell side delivers.
    Paired transfers realizing less than ``min_trade_value``, that round to
    zero units, or beyond ``max_legs`` are deferred rather than traded.
    """

    validate_targets(view, target_weights)
    sells, buys = _signed_deltas(view, target_weights)

    pairs: List[Tuple[int, int, Decimal]] = []
    sell_at, buy_at = 0, 0
    sell_left = sells[0][1] if sells else Decimal(0)
    buy_left = buys[0][1] if buys else Decimal(0)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        while sell_at < len(sells) and buy_at < len(buys):
            value = min(sell_left, buy_left)
            pairs.append((sells[sell_at][0], buys[buy_at][0], value))
            sell_left -= value
            buy_left -= value
            if sell_left == 0:
                sell_at += 1
                if sell_at < len(sells):
                    sell_left = sells[sell_at][1]
            if buy_left == 0:
                buy_at += 1
                if buy_at < len(buys):
                    buy_left = buys[buy_at][1]

    legs: List[TradeLeg] = []
    deferred: List[DeferredDelta] = []
    for sell_index, buy_index, value in pairs:
        sell_token = view.tokens[sell_index]
        buy_token = view.tokens[buy_index]
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            amount_in = floor_units(value / view.prices[sell_index])
            realized = amount_in * view.prices[sell_index]
            expected_out = floor_units(realized / view.prices[buy_index])
        if (
            realized < config.min_trade_value
            or amount_in <= 0
            or expected_out <= 0
            or len(legs) >= max_legs
        ):
            deferred.append(DeferredDelta(sell_token, buy_token, value))
            continue
        legs.append(
            TradeLeg(
                sequence=len(legs) + 1,
                sell_token=sell_token,
                buy_token=buy_token,
                value=realized,
                amount_in=amount_in,
                expected_amount_out=expected_out,
                max_slippage_bps=config.max_slippage_bps,
            )
        )

    return TradePlan(
        legs=tuple(legs),
        deferred=tuple(deferred),
        target_weights=tuple(target_weights),
        min_trade_value=config.min_trade_value,
    )


def validate_plan(
    plan: TradePlan, view: PortfolioView, max_slippage_cap: int = MAX_SLIPPAGE_BPS
) -> None:
    _validate_sequence(plan.legs)
    _validate_legs(plan, view, min(max_slippage_cap, MAX_SLIPPAGE_BPS))
    _validate_balances(plan.legs, view)


def _validate_sequence(legs: Tuple[TradeLeg, ...]) -> None:
    sequences = [leg.sequence for leg in legs]
    if sequences != sorted(sequences) or len(set(sequences)) != len(sequences):
        raise PlanValidationError("Legs must be ordered by strictly increasing sequence.")


def _validate_legs(plan: TradePlan, view: PortfolioView, slippage_cap: int) -> None:
    known = set(view.tokens)
    for leg in plan.legs:
        if leg.sell_token not in known or leg.buy_token not in known:
            raise PlanValidationError(f"Leg {leg.sequence} references an unknown token.")
        if leg.sell_token == leg.buy_token:
            raise PlanValidationError(f"Leg {leg.sequence} sells and buys the same token.")
        if leg.amount_in <= 0 or leg.expected_amount_out <= 0:
            raise PlanValidationError(f"Leg {leg.sequence} must move a positive amount.")
        if leg.value < plan.min_trade_value:
            raise PlanValidationError(f"Leg {leg.sequence} is below the minimum trade value.")
        if not 0 <= leg.max_slippage_bps <= slippage_cap:
            raise PlanValidationError(
                f"Leg {leg.sequence} slippage exceeds {slippage_cap} bps."
            )


def _validate_balances(legs: Tuple[TradeLeg, ...], view: PortfolioView) -> None:
    index = view.index_by_token()
    selling: Dict[str, int] = {}
    for leg in legs:
        selling[leg.sell_token] = selling.get(leg.sell_token, 0) + leg.amount_in
    for token, amount in selling.items():
        if amount > view.balances[index[token]]:
            raise PlanValidationError(f"Plan sells more {token} than the basket holds.")


def _signed_deltas(
    view: PortfolioView, target_weights: Sequence[int]
) -> Tuple[List[Tuple[int, Decimal]], List[Tuple[int, Decimal]]]:
    sells: List[Tuple[int, Decimal]] = []
    buys: List[Tuple[int, Decimal]] = []
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for index, target in enumerate(target_weights):
            delta = Decimal(target) * view.nav / BPS_MAX - view.value_of(index)
            if delta < 0:
                sells.append((index, -delta))
            elif delta > 0:
                buys.append((index, delta))
    sells.sort(key=lambda item: (-item[1], item[0]))
    buys.sort(key=lambda item: (-item[1], item[0]))
    return sells, buys


def validate_targets(view: PortfolioView, target_weights: Sequence[int]) -> None:
    if len(target_weights) != len(view.tokens):
        raise ValidationError("Target weights must cover every constituent.")
    if any(not 0 <= weight <= BPS_MAX for weight in target_weights):
        raise ValidationError("Target weights must be within [0, 10000].")
    if sum(target_weights) != BPS_MAX:
        raise ValidationError("Target weights must sum to 10000 bps.")
