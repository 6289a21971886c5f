"""Fixed-point helpers for balances, prices and basis-point weights."""

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal, localcontext
from typing import List, Optional, Sequence, Tuple, Union

from .constants import BPS_MAX, DECIMAL_PRECISION
from .errors import ValidationError

Numeric = Union[Decimal, int, float, str]


def to_decimal(value: Numeric) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def floor_units(value: Decimal) -> int:
    """Round a non-negative amount down to whole smallest units."""

    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def ceil_units(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def compute_nav(balances: Sequence[int], prices: Sequence[Decimal]) -> Decimal:
    if len(balances) != len(prices):
        raise ValidationError("balances and prices must have the same length.")
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return sum(
            (Decimal(balance) * price for balance, price in zip(balances, prices)),
            Decimal("0"),
        )


def allocate_bps(
    raw: Sequence[Decimal],
    caps: Optional[Sequence[int]] = None,
    total_bps: int = BPS_MAX,
) -> Tuple[int, ...]:
    """Scale raw non-negative scores to integer bps summing to exactly ``total_bps``.

    Each share is floored; the residual is then handed out one bp at a time in
    ascending index order, skipping entries already at their cap.
    """

    if not raw:
        raise ValidationError("Cannot allocate weights over an empty set.")
    if caps is not None and len(caps) != len(raw):
        raise ValidationError("caps must match the number of weights.")
    if any(value < 0 for value in raw):
        raise ValidationError("Raw weights must be non-negative.")
    if total_bps < 0:
        raise ValidationError("Cannot allocate a negative bps total.")

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        total = sum(raw, Decimal("0"))
        if total <= 0:
            raise ValidationError("Raw weights must have a positive total.")
        weights: List[int] = [
            floor_units(value * total_bps / total) for value in raw
        ]

    if caps is not None:
        weights = [min(weight, cap) for weight, cap in zip(weights, caps)]

    residual = total_bps - sum(weights)
    while residual > 0:
        progressed = False
        for index in range(len(weights)):
            if residual == 0:
                break
            if caps is not None and weights[index] >= caps[index]:
                continue
            weights[index] += 1
            residual -= 1
            progressed = True
        if not progressed:
            raise ValidationError("Weight caps leave residual bps unassignable.")

    return tuple(weights)


def value_weights(balances: Sequence[int], prices: Sequence[Decimal]) -> Tuple[int, ...]:
    """Current composition weights implied by balances at the given prices."""

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        values = [Decimal(balance) * price for balance, price in zip(balances, prices)]
    return allocate_bps(values)
