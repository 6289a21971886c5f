"""Domain models for rebalancing decisions and trade plans."""

from dataclasses import dataclass
from decimal import Decimal, localcontext
from enum import Enum
from typing import Dict, Sequence, Tuple

from core.constants import DECIMAL_PRECISION
from core.errors import ValidationError
from core.fixed_point import compute_nav, value_weights


class TriggerReason(Enum):
    NONE = "NONE"
    DRIFT = "DRIFT"
    TIME = "TIME"
    RISK_EMERGENCY = "RISK_EMERGENCY"


@dataclass(frozen=True)
class PortfolioView:
    tokens: Tuple[str, ...]
    balances: Tuple[int, ...]
    prices: Tuple[Decimal, ...]
    nav: Decimal
    current_weights: Tuple[int, ...]

    @classmethod
    def from_balances(
        cls, tokens: Sequence[str], balances: Sequence[int], prices: Sequence[Decimal]
    ) -> "PortfolioView":
        if not (len(tokens) == len(balances) == len(prices)):
            raise ValidationError("tokens, balances and prices must have the same length.")
        nav = compute_nav(balances, prices)
        if nav > 0:
            weights = value_weights(balances, prices)
        else:
            weights = tuple(0 for _ in tokens)
        return cls(
            tokens=tuple(tokens),
            balances=tuple(balances),
            prices=tuple(prices),
            nav=nav,
            current_weights=weights,
        )

    def value_of(self, index: int) -> Decimal:
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            return Decimal(self.balances[index]) * self.prices[index]

    def index_by_token(self) -> Dict[str, int]:
        return {token: index for index, token in enumerate(self.tokens)}


@dataclass(frozen=True)
class TradeLeg:
    sequence: int
    sell_token: str
    buy_token: str
    value: Decimal
    amount_in: int
    expected_amount_out: int
    max_slippage_bps: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "sequence": self.sequence,
            "sell_token": self.sell_token,
            "buy_token": self.buy_token,
            "value": str(self.value),
            "amount_in": self.amount_in,
            "expected_amount_out": self.expected_amount_out,
            "max_slippage_bps": self.max_slippage_bps,
        }


@dataclass(frozen=True)
class DeferredDelta:
    """A paired transfer too small (or beyond the leg limit) to trade now."""

    sell_token: str
    buy_token: str
    value: Decimal


@dataclass(frozen=True)
class TradePlan:
    legs: Tuple[TradeLeg, ...]
    deferred: Tuple[DeferredDelta, ...]
    target_weights: Tuple[int, ...]
    min_trade_value: Decimal

    @property
    def is_empty(self) -> bool:
        return not self.legs


@dataclass(frozen=True)
class RebalanceDecision:
    should_rebalance: bool
    reason: TriggerReason
    trade_plan: TradePlan
