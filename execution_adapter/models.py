"""Adapter-facing models for price observations and swap fills."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class PriceSample:
    price: Decimal
    as_of: int
    volume: Decimal = Decimal("0")


@dataclass(frozen=True)
class PriceQuote:
    symbol: str
    price: Decimal
    as_of: int


@dataclass(frozen=True)
class SwapResult:
    amount_out: int
    fee: int  # output units
    cost: int  # execution cost units charged by the venue
