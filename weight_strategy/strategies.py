"""Pluggable target-weight algorithms.

Every strategy maps the same inputs to the same bps vector. Raw scores are
computed in ``Decimal`` and handed to ``allocate_bps``, which floors each
share and distributes the residual in ascending index order.
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from core.constants import BPS_MAX, DECIMAL_PRECISION
from core.errors import ValidationError
from core.fixed_point import allocate_bps, to_decimal

from .models import WeightInputs


class WeightStrategy(Protocol):
    name: str

    def compute_target_weights(
        self, inputs: WeightInputs, parameters: Mapping[str, object]
    ) -> Tuple[int, ...]:
        ...


class EqualWeightStrategy:
    name = "equal"

    def compute_target_weights(
        self, inputs: WeightInputs, parameters: Mapping[str, object]
    ) -> Tuple[int, ...]:
        _validate_inputs(inputs)
        return allocate_bps(_equal_scores(inputs))


class MarketCapWeightStrategy:
    name = "market_cap"

    def compute_target_weights(
        self, inputs: WeightInputs, parameters: Mapping[str, object]
    ) -> Tuple[int, ...]:
        _validate_inputs(inputs)
        return allocate_bps(_market_cap_scores(inputs))


class RiskParityStrategy:
    """Inverse-volatility weighting; the caller supplies the volatility estimate."""

    name = "risk_parity"

    def compute_target_weights(
        self, inputs: WeightInputs, parameters: Mapping[str, object]
    ) -> Tuple[int, ...]:
        _validate_inputs(inputs)
        volatilities = require_volatilities(inputs.tokens, inputs.volatilities)
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            scores = [Decimal(1) / Decimal(vol) for vol in volatilities]
        return allocate_bps(scores)


class SignalWeightedStrategy:
    """Blend a base weighting with signal shares, then clamp to per-asset bounds.

    Parameters:
        base: ``equal`` (default) or ``market_cap``.
        blend_bps: share of the signal component, default 5000.
        signal_source: ``ai`` (default), ``external`` or ``both`` (mean).
        min_weight_bps / max_weight_bps: per-asset bounds, default 0 / 10000.

    Negative signals count as zero.
    """

    name = "signal_weighted"

    def compute_target_weights(
        self, inputs: WeightInputs, parameters: Mapping[str, object]
    ) -> Tuple[int, ...]:
        _validate_inputs(inputs)
        count = len(inputs.tokens)
        blend = _int_param(parameters, "blend_bps", 5000)
        lower = _int_param(parameters, "min_weight_bps", 0)
        upper = _int_param(parameters, "max_weight_bps", BPS_MAX)
        if not 0 <= blend <= BPS_MAX:
            raise ValidationError("blend_bps must be within [0, 10000].")
        if not 0 <= lower <= upper <= BPS_MAX:
            raise ValidationError("Weight bounds must satisfy 0 <= min <= max <= 10000.")
        if lower * count > BPS_MAX or upper * count < BPS_MAX:
            raise ValidationError("Weight bounds are infeasible for this basket size.")

        base = str(parameters.get("base", "equal"))
        if base == "equal":
            base_scores = _equal_scores(inputs)
        elif base == "market_cap":
            base_scores = _market_cap_scores(inputs)
        else:
            raise ValidationError(f"Unknown base weighting '{base}'.")

        if blend > 0:
            signals = _select_signals(inputs, str(parameters.get("signal_source", "ai")))
        else:
            signals = [Decimal(0)] * count

        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            base_total = sum(base_scores, Decimal(0))
            signal_total = sum(signals, Decimal(0))
            if base_total <= 0:
                raise ValidationError("Base weighting has a zero total.")
            if signal_total <= 0 and blend > 0:
                raise ValidationError("Signal vector has a zero total.")
            blended = []
            for base_score, signal in zip(base_scores, signals):
                share = base_score / base_total * (BPS_MAX - blend)
                if blend > 0:
                    share += signal / signal_total * blend
                blended.append(share)

        return water_fill(blended, lower, upper)


class FixedWeightStrategy:
    name = "fixed"

    def compute_target_weights(
        self, inputs: WeightInputs, parameters: Mapping[str, object]
    ) -> Tuple[int, ...]:
        _validate_inputs(inputs)
        raw = parameters.get("weights")
        if raw is None:
            raise ValidationError("Fixed weighting requires a 'weights' parameter.")
        try:
            weights = tuple(int(value) for value in raw)
        except (TypeError, ValueError) as e:
            raise ValidationError("Fixed weights must be integers.") from e
        if len(weights) != len(inputs.tokens):
            raise ValidationError("Fixed weights must match the constituent count.")
        if any(not 0 <= weight <= BPS_MAX for weight in weights):
            raise ValidationError("Fixed weights must be within [0, 10000].")
        if sum(weights) != BPS_MAX:
            raise ValidationError("Fixed weights must sum to 10000 bps.")
        return weights


def default_weight_strategies() -> Dict[str, WeightStrategy]:
    strategies: List[WeightStrategy] = [
        EqualWeightStrategy(),
        MarketCapWeightStrategy(),
        RiskParityStrategy(),
        SignalWeightedStrategy(),
        FixedWeightStrategy(),
    ]
    return {strategy.name: strategy for strategy in strategies}


def require_volatilities(
    tokens: Sequence[str], volatilities: Optional[Mapping[str, int]]
) -> Tuple[int, ...]:
    if not volatilities:
        raise ValidationError("A volatility estimate is required for every constituent.")
    values = []
    for token in tokens:
        if token not in volatilities:
            raise ValidationError(f"Missing volatility for {token}.")
        value = int(volatilities[token])
        if value <= 0:
            raise ValidationError(f"Volatility for {token} must be positive.")
        values.append(value)
    return tuple(values)


def water_fill(scores: Sequence[Decimal], lower: int, upper: int) -> Tuple[int, ...]:
    """Allocate 10000 bps in proportion to ``scores`` with every entry in [lower, upper].

    Entries that breach a bound are pinned to it and the remaining bps are
    re-allocated over the free entries in proportion to their scores, until no
    free entry breaches.
    """

    count = len(scores)
    pinned: Dict[int, int] = {}
    while True:
        free = [index for index in range(count) if index not in pinned]
        remaining = BPS_MAX - sum(pinned.values())
        if not free:
            if remaining != 0:
                raise ValidationError("Weight bounds are infeasible for these scores.")
            break
        free_scores = [scores[index] for index in free]
        if sum(free_scores, Decimal(0)) <= 0:
            free_scores = [Decimal(1)] * len(free)
        proposal = dict(zip(free, allocate_bps(free_scores, total_bps=remaining)))
        over = [index for index in free if proposal[index] > upper]
        under = [index for index in free if proposal[index] < lower]
        if over:
            pinned.update((index, upper) for index in over)
        elif under:
            pinned.update((index, lower) for index in under)
        else:
            pinned.update(proposal)
            break
    return tuple(pinned[index] for index in range(count))


def _validate_inputs(inputs: WeightInputs) -> None:
    if not inputs.tokens:
        raise ValidationError("Cannot weight an empty constituent set.")
    count = len(inputs.tokens)
    if len(inputs.balances) != count or len(inputs.prices) != count:
        raise ValidationError("tokens, balances and prices must have the same length.")


def _equal_scores(inputs: WeightInputs) -> List[Decimal]:
    return [Decimal(1)] * len(inputs.tokens)


def _market_cap_scores(inputs: WeightInputs) -> List[Decimal]:
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return [Decimal(balance) * price for balance, price in zip(inputs.balances, inputs.prices)]


def _select_signals(inputs: WeightInputs, source: str) -> List[Decimal]:
    count = len(inputs.tokens)
    if source == "ai":
        vectors = [inputs.ai_signals]
    elif source == "external":
        vectors = [inputs.external_signals]
    elif source == "both":
        vectors = [inputs.ai_signals, inputs.external_signals]
    else:
        raise ValidationError(f"Unknown signal source '{source}'.")
    for vector in vectors:
        if len(vector) != count:
            raise ValidationError(f"{source} signals must match the constituent count.")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return [
            max(sum((vector[index] for vector in vectors), Decimal(0)) / len(vectors), Decimal(0))
            for index in range(count)
        ]


def _int_param(parameters: Mapping[str, object], key: str, default: int) -> int:
    value = parameters.get(key, default)
    try:
        return int(to_decimal(value))
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Parameter {key} must be an integer.") from e
