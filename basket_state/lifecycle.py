"""Basket state machine, invariant checks and in-kind creation/redemption."""

from dataclasses import replace
from decimal import Decimal, localcontext
from typing import Iterable, List, Optional, Sequence, Tuple

from core.constants import BPS_MAX, DECIMAL_PRECISION, MAX_CONSTITUENTS, RISK_SCORE_MAX
from core.errors import InvalidStatusError, UnauthorizedError, ValidationError
from core.fixed_point import allocate_bps, ceil_units, compute_nav, floor_units, value_weights

from .models import (
    BasketConstituent,
    BasketIndexState,
    BasketStatus,
    InKindTransfer,
    RiskMetrics,
    StrategyConfig,
)

_MUTABLE = (BasketStatus.ACTIVE,)


def create_basket(
    basket_id: int,
    authority: str,
    constituents: Sequence[Tuple[str, int]],
    prices: Sequence[Decimal],
    total_supply: int,
    strategy_config_id: int,
    now: int,
    manager: Optional[str] = None,
    fee_collector: Optional[str] = None,
    creation_fee_bps: int = 0,
    redemption_fee_bps: int = 0,
) -> BasketIndexState:
    """Seed an ACTIVE basket whose weights reflect the seeded balances at ``prices``.

    A basket seeded with no value gets equal weights so that the composition
    still sums to 10000 bps.
    """

    if not authority:
        raise ValidationError("authority is required.")
    if total_supply < 0:
        raise ValidationError("total_supply must be non-negative.")
    tokens = [token for token, _ in constituents]
    balances = [balance for _, balance in constituents]
    _validate_tokens(tokens)
    _validate_prices(prices, len(tokens))

    nav = compute_nav(balances, prices)
    if nav > 0:
        weights = value_weights(balances, prices)
    else:
        weights = allocate_bps([Decimal("1")] * len(tokens))

    state = BasketIndexState(
        basket_id=basket_id,
        authority=authority,
        manager=manager,
        fee_collector=fee_collector or authority,
        composition=_compose(tokens, balances, weights),
        total_value=nav,
        total_supply=total_supply,
        creation_fee_bps=creation_fee_bps,
        redemption_fee_bps=redemption_fee_bps,
        strategy_config_id=strategy_config_id,
        created_at=now,
        updated_at=now,
    )
    state = replace(state, risk_metrics=_next_risk_metrics(state, None))
    validate_state(state)
    return state


def validate_state(state: BasketIndexState) -> None:
    if not state.composition:
        raise ValidationError("Basket must hold at least one constituent.")
    _validate_tokens(state.tokens)
    for item in state.composition:
        if item.balance < 0:
            raise ValidationError(f"Balance of {item.token} must be non-negative.")
        if not 0 <= item.weight <= BPS_MAX:
            raise ValidationError(f"Weight of {item.token} must be within [0, 10000].")
    if state.status == BasketStatus.ACTIVE and sum(state.weights) != BPS_MAX:
        raise ValidationError("Active basket weights must sum to 10000 bps.")
    _validate_fee(state.creation_fee_bps, "creation_fee_bps")
    _validate_fee(state.redemption_fee_bps, "redemption_fee_bps")
    if state.total_supply < 0 or state.fees_collected < 0:
        raise ValidationError("Supply and collected fees must be non-negative.")
    if state.total_value < 0:
        raise ValidationError("total_value must be non-negative.")
    if state.last_rebalanced > state.updated_at:
        raise ValidationError("last_rebalanced cannot be after updated_at.")
    if state.updated_at < state.created_at:
        raise ValidationError("updated_at cannot precede created_at.")

    stats = state.execution_stats
    if stats.successful_executions + stats.failed_executions > stats.total_executions:
        raise ValidationError("Execution outcome counters exceed total executions.")

    if state.risk_metrics is not None:
        if not 0 <= state.risk_metrics.risk_score <= RISK_SCORE_MAX:
            raise ValidationError("risk_score must be within [0, 10000].")
        if state.risk_metrics.max_drawdown < 0:
            raise ValidationError("max_drawdown must be non-negative.")

    count = len(state.composition)
    for name, signals in (("ai_signals", state.ai_signals), ("external_signals", state.external_signals)):
        if signals and len(signals) != count:
            raise ValidationError(f"{name} must match the constituent count.")


def pause(state: BasketIndexState, actor: str, now: int) -> BasketIndexState:
    _require_actor(state, actor, allow_manager=True)
    _require_status(state, (BasketStatus.ACTIVE,), "pause")
    return _touch(state, now, status=BasketStatus.PAUSED)


def unpause(state: BasketIndexState, actor: str, now: int) -> BasketIndexState:
    _require_actor(state, actor, allow_manager=True)
    _require_status(state, (BasketStatus.PAUSED,), "unpause")
    return _touch(state, now, status=BasketStatus.ACTIVE)


def freeze(state: BasketIndexState, actor: str, now: int) -> BasketIndexState:
    _require_actor(state, actor)
    _require_status(state, (BasketStatus.ACTIVE, BasketStatus.PAUSED), "freeze")
    return _touch(state, now, status=BasketStatus.FROZEN)


def unfreeze(state: BasketIndexState, actor: str, now: int) -> BasketIndexState:
    """Return a frozen basket to PAUSED and acknowledge the current drawdown."""

    _require_actor(state, actor)
    _require_status(state, (BasketStatus.FROZEN,), "unfreeze")
    metrics = state.risk_metrics
    if metrics is not None:
        metrics = replace(metrics, acknowledged_drawdown=metrics.max_drawdown)
    return _touch(state, now, status=BasketStatus.PAUSED, risk_metrics=metrics)


def close(state: BasketIndexState, actor: str, now: int) -> BasketIndexState:
    _require_actor(state, actor)
    _require_status(
        state,
        (BasketStatus.ACTIVE, BasketStatus.PAUSED, BasketStatus.FROZEN),
        "close",
    )
    return _touch(state, now, status=BasketStatus.CLOSED)


def transition(state: BasketIndexState, target: BasketStatus, actor: str, now: int) -> BasketIndexState:
    """Move to ``target`` through the one operation that reaches it from here."""

    if target == BasketStatus.CLOSED:
        return close(state, actor, now)
    if target == BasketStatus.FROZEN:
        return freeze(state, actor, now)
    if target == BasketStatus.ACTIVE:
        return unpause(state, actor, now)
    if state.status == BasketStatus.FROZEN:
        return unfreeze(state, actor, now)
    return pause(state, actor, now)


def set_fees(
    state: BasketIndexState,
    actor: str,
    creation_fee_bps: int,
    redemption_fee_bps: int,
    now: int,
) -> BasketIndexState:
    _require_actor(state, actor)
    _require_status(state, _MUTABLE, "change fees")
    _validate_fee(creation_fee_bps, "creation_fee_bps")
    _validate_fee(redemption_fee_bps, "redemption_fee_bps")
    return _touch(
        state,
        now,
        creation_fee_bps=creation_fee_bps,
        redemption_fee_bps=redemption_fee_bps,
    )


def bind_strategy(
    state: BasketIndexState, actor: str, config: StrategyConfig, now: int
) -> BasketIndexState:
    _require_actor(state, actor)
    _require_status(state, _MUTABLE, "bind a strategy")
    if config.authority != state.authority:
        raise UnauthorizedError(
            f"Strategy config {config.config_id} belongs to a different authority."
        )
    return _touch(state, now, strategy_config_id=config.config_id)


def set_rebalancing_enabled(
    state: BasketIndexState, actor: str, enabled: bool, now: int
) -> BasketIndexState:
    _require_actor(state, actor)
    _require_status(state, _MUTABLE, "toggle rebalancing")
    return _touch(state, now, enable_rebalancing=enabled)


def update_signals(
    state: BasketIndexState,
    actor: str,
    now: int,
    ai_signals: Optional[Sequence[Decimal]] = None,
    external_signals: Optional[Sequence[Decimal]] = None,
) -> BasketIndexState:
    _require_actor(state, actor, allow_manager=True)
    _require_status(state, _MUTABLE, "update signals")
    changes = {}
    if ai_signals is not None:
        changes["ai_signals"] = tuple(Decimal(value) for value in ai_signals)
    if external_signals is not None:
        changes["external_signals"] = tuple(Decimal(value) for value in external_signals)
    updated = _touch(state, now, **changes)
    validate_state(updated)
    return updated


def mint(
    state: BasketIndexState, units: int, prices: Sequence[Decimal], now: int
) -> Tuple[BasketIndexState, InKindTransfer]:
    """Create ``units`` against a pro-rata in-kind deposit of every constituent."""

    _require_status(state, _MUTABLE, "mint")
    _require_clock(state, now)
    if units <= 0:
        raise ValidationError("Mint units must be positive.")
    if state.total_supply == 0:
        raise ValidationError("Cannot mint in kind into a basket with no supply.")
    _validate_prices(prices, len(state.composition))

    fee_units = units * state.creation_fee_bps // BPS_MAX
    deposits = tuple(
        ceil_units(Decimal(balance) * units / state.total_supply)
        for balance in state.balances
    )
    balances = [balance + deposit for balance, deposit in zip(state.balances, deposits)]
    updated = _revalue(
        replace(
            state,
            total_supply=state.total_supply + units,
            fees_collected=state.fees_collected + fee_units,
            updated_at=now,
        ),
        balances,
        prices,
    )
    validate_state(updated)
    return updated, InKindTransfer(units=units, fee_units=fee_units, amounts=deposits)


def burn(
    state: BasketIndexState, units: int, prices: Sequence[Decimal], now: int
) -> Tuple[BasketIndexState, InKindTransfer]:
    """Redeem ``units`` for a pro-rata in-kind withdrawal, retaining the fee."""

    _require_status(state, _MUTABLE, "burn")
    _require_clock(state, now)
    if units <= 0:
        raise ValidationError("Burn units must be positive.")
    if units > state.total_supply:
        raise ValidationError("Cannot burn more units than the outstanding supply.")
    _validate_prices(prices, len(state.composition))

    fee_units = units * state.redemption_fee_bps // BPS_MAX
    redeemed = units - fee_units
    withdrawals = tuple(
        floor_units(Decimal(balance) * redeemed / state.total_supply)
        for balance in state.balances
    )
    balances = [balance - taken for balance, taken in zip(state.balances, withdrawals)]
    updated = _revalue(
        replace(
            state,
            total_supply=state.total_supply - redeemed,
            fees_collected=state.fees_collected + fee_units,
            updated_at=now,
        ),
        balances,
        prices,
    )
    validate_state(updated)
    return updated, InKindTransfer(units=units, fee_units=fee_units, amounts=withdrawals)


def apply_swap(
    state: BasketIndexState,
    sell_token: str,
    buy_token: str,
    amount_in: int,
    amount_out: int,
    prices: Sequence[Decimal],
) -> BasketIndexState:
    """Fold one executed trade leg into balances, weights and NAV."""

    sell_index = state.index_of(sell_token)
    buy_index = state.index_of(buy_token)
    balances = list(state.balances)
    if amount_in > balances[sell_index]:
        raise ValidationError(f"Swap sells more {sell_token} than the basket holds.")
    balances[sell_index] -= amount_in
    balances[buy_index] += amount_out
    return _revalue(state, balances, prices)


def mark_to_market(state: BasketIndexState, prices: Sequence[Decimal]) -> BasketIndexState:
    """Revalue at ``prices`` and roll the drawdown watermark forward."""

    _validate_prices(prices, len(state.composition))
    revalued = _revalue(state, state.balances, prices)
    return replace(revalued, risk_metrics=_next_risk_metrics(revalued, state.risk_metrics))


def nav_per_unit(state: BasketIndexState) -> Decimal:
    if state.total_supply <= 0:
        return state.total_value
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return state.total_value / Decimal(state.total_supply)


def concentration_score(weights: Iterable[int]) -> int:
    """Herfindahl index of the weights on the 0..10000 scale."""

    return min(sum(weight * weight for weight in weights) // BPS_MAX, RISK_SCORE_MAX)


def drawdown_breached(state: BasketIndexState, limit: Decimal) -> bool:
    return state.risk_metrics is not None and state.risk_metrics.breaches(limit)


def _next_risk_metrics(state: BasketIndexState, previous: Optional[RiskMetrics]) -> RiskMetrics:
    previous = previous or RiskMetrics()
    current = nav_per_unit(state)
    peak = max(previous.peak_nav, current)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        drawdown = (peak - current) / peak if peak > 0 else Decimal("0")
    return RiskMetrics(
        risk_score=concentration_score(state.weights),
        max_drawdown=max(previous.max_drawdown, drawdown),
        peak_nav=peak,
        acknowledged_drawdown=previous.acknowledged_drawdown,
    )


def _revalue(
    state: BasketIndexState, balances: Sequence[int], prices: Sequence[Decimal]
) -> BasketIndexState:
    nav = compute_nav(balances, prices)
    weights = value_weights(balances, prices) if nav > 0 else state.weights
    return replace(
        state,
        composition=_compose(state.tokens, balances, weights),
        total_value=nav,
    )


def _compose(
    tokens: Sequence[str], balances: Sequence[int], weights: Sequence[int]
) -> Tuple[BasketConstituent, ...]:
    return tuple(
        BasketConstituent(token=token, balance=balance, weight=weight)
        for token, balance, weight in zip(tokens, balances, weights)
    )


def _touch(state: BasketIndexState, now: int, **changes) -> BasketIndexState:
    _require_clock(state, now)
    return replace(state, updated_at=now, **changes)


def _require_actor(state: BasketIndexState, actor: str, allow_manager: bool = False) -> None:
    if actor == state.authority:
        return
    if allow_manager and state.manager is not None and actor == state.manager:
        return
    raise UnauthorizedError(f"{actor} may not administer basket {state.basket_id}.")


def _require_status(
    state: BasketIndexState, allowed: Tuple[BasketStatus, ...], action: str
) -> None:
    if state.status not in allowed:
        raise InvalidStatusError(
            f"Cannot {action} basket {state.basket_id} while {state.status.value}."
        )


def _require_clock(state: BasketIndexState, now: int) -> None:
    if now < state.updated_at:
        raise ValidationError("Timestamps must not move backwards.")


def _validate_tokens(tokens: Sequence[str]) -> None:
    if not 1 <= len(tokens) <= MAX_CONSTITUENTS:
        raise ValidationError(f"Basket must hold between 1 and {MAX_CONSTITUENTS} constituents.")
    if any(not token for token in tokens):
        raise ValidationError("Constituent tokens must be non-empty.")
    if len(set(tokens)) != len(tokens):
        raise ValidationError("Constituent tokens must be unique.")


def _validate_prices(prices: Sequence[Decimal], count: int) -> None:
    if len(prices) != count:
        raise ValidationError("A price is required for every constituent.")
    bad: List[str] = [str(price) for price in prices if price <= 0]
    if bad:
        raise ValidationError(f"Prices must be positive, got {', '.join(bad)}.")


def _validate_fee(value: int, name: str) -> None:
    if not 0 <= value <= BPS_MAX:
        raise ValidationError(f"{name} must be within [0, 10000].")
