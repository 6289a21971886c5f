"""Inputs shared by every target-weight algorithm."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional, Tuple


@dataclass(frozen=True)
class WeightInputs:
    tokens: Tuple[str, ...]
    balances: Tuple[int, ...]
    prices: Tuple[Decimal, ...]
    volatilities: Optional[Mapping[str, int]] = None  # annualized, bps
    ai_signals: Tuple[Decimal, ...] = ()
    external_signals: Tuple[Decimal, ...] = ()
