"""Execution outcomes reported to external triggers."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from basket_state.models import BasketStatus
from core.errors import BasketEngineError
from rebalancing_policy.models import TriggerReason


class LegStatus(Enum):
    EXECUTED = "EXECUTED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class LegOutcome:
    sequence: int
    sell_token: str
    buy_token: str
    status: LegStatus
    amount_in: int
    amount_out: int = 0
    fee: int = 0
    cost: int = 0
    latency_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "sequence": self.sequence,
            "sell_token": self.sell_token,
            "buy_token": self.buy_token,
            "status": self.status.value,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "fee": self.fee,
            "cost": self.cost,
            "latency_ms": self.latency_ms,
            "error": self.error,
        }


@dataclass(frozen=True)
class NoActionNeeded:
    basket_id: int
    reason: TriggerReason

    def to_dict(self) -> Dict[str, object]:
        return {
            "outcome": "no_action",
            "basket_id": self.basket_id,
            "reason": self.reason.value,
        }


@dataclass(frozen=True)
class Rebalanced:
    basket_id: int
    reason: TriggerReason
    legs_executed: int
    legs_failed: int
    new_nav: Decimal
    status: BasketStatus
    outcomes: Tuple[LegOutcome, ...] = ()

    def to_dict(self) -> Dict[str, object]:
        return {
            "outcome": "rebalanced",
            "basket_id": self.basket_id,
            "reason": self.reason.value,
            "legs_executed": self.legs_executed,
            "legs_failed": self.legs_failed,
            "new_nav": str(self.new_nav),
            "status": self.status.value,
            "legs": [outcome.to_dict() for outcome in self.outcomes],
        }


@dataclass(frozen=True)
class Rejected:
    basket_id: int
    reason: str
    error: BasketEngineError

    @property
    def retryable(self) -> bool:
        return self.error.retryable

    def to_dict(self) -> Dict[str, object]:
        return {
            "outcome": "rejected",
            "basket_id": self.basket_id,
            "reason": self.reason,
            "error": type(self.error).__name__,
            "retryable": self.retryable,
        }


ExecutionResult = Union[NoActionNeeded, Rebalanced, Rejected]
