"""DEX capability and a deterministic in-memory venue."""

import threading
import time
from decimal import Decimal, localcontext
from typing import Dict, Mapping, Optional, Protocol, Tuple

from core.constants import BPS_MAX, DECIMAL_PRECISION
from core.errors import InsufficientLiquidityError, SlippageExceededError, ValidationError
from core.fixed_point import Numeric, floor_units, to_decimal

from .models import SwapResult

_DEFAULT_SWAP_COST = 21_000


class DexAdapter(Protocol):
    def quote(self, input_token: str, output_token: str, amount_in: int) -> int:
        ...

    def swap(
        self, input_token: str, output_token: str, amount_in: int, min_amount_out: int
    ) -> SwapResult:
        ...


class SimulatedDex:
    """Fills swaps at reference-price cross rates.

    A quote is the cross-rate output net of ``fee_bps``. A swap additionally
    loses ``slippage_bps`` of the quote before the minimum-output check, and
    draws the output from per-token liquidity when a limit has been set.
    """

    def __init__(
        self,
        prices: Optional[Mapping[str, Numeric]] = None,
        fee_bps: int = 30,
        slippage_bps: int = 0,
        cost_per_swap: int = _DEFAULT_SWAP_COST,
        latency_seconds: float = 0.0,
    ) -> None:
        if not 0 <= fee_bps < BPS_MAX or not 0 <= slippage_bps < BPS_MAX:
            raise ValidationError("fee_bps and slippage_bps must be within [0, 10000).")
        self.fee_bps = fee_bps
        self.slippage_bps = slippage_bps
        self.cost_per_swap = cost_per_swap
        self.latency_seconds = latency_seconds
        self._prices: Dict[str, Decimal] = {}
        self._liquidity: Dict[str, int] = {}
        self._lock = threading.Lock()
        for token, price in (prices or {}).items():
            self.set_price(token, price)

    def set_price(self, token: str, price: Numeric) -> None:
        value = to_decimal(price)
        if value <= 0:
            raise ValidationError(f"Reference price for {token} must be positive.")
        with self._lock:
            self._prices[token] = value

    def set_liquidity(self, token: str, amount: int) -> None:
        if amount < 0:
            raise ValidationError("Liquidity must be non-negative.")
        with self._lock:
            self._liquidity[token] = amount

    def quote(self, input_token: str, output_token: str, amount_in: int) -> int:
        self._wait()
        gross, fee = self._fill(input_token, output_token, amount_in)
        return gross - fee

    def swap(
        self, input_token: str, output_token: str, amount_in: int, min_amount_out: int
    ) -> SwapResult:
        self._wait()
        with self._lock:
            gross, fee = self._fill(input_token, output_token, amount_in)
            quoted = gross - fee
            amount_out = quoted - quoted * self.slippage_bps // BPS_MAX
            if amount_out < min_amount_out:
                raise SlippageExceededError(
                    f"{input_token}->{output_token} filled {amount_out}, minimum {min_amount_out}."
                )
            available = self._liquidity.get(output_token)
            if available is not None:
                if available < amount_out:
                    raise InsufficientLiquidityError(
                        f"{output_token} liquidity {available} below {amount_out}."
                    )
                self._liquidity[output_token] = available - amount_out
        return SwapResult(amount_out=amount_out, fee=fee, cost=self.cost_per_swap)

    def _fill(self, input_token: str, output_token: str, amount_in: int) -> Tuple[int, int]:
        if amount_in <= 0:
            raise ValidationError("amount_in must be positive.")
        if input_token == output_token:
            raise ValidationError("Cannot swap a token for itself.")
        price_in = self._prices.get(input_token)
        price_out = self._prices.get(output_token)
        if price_in is None or price_out is None:
            raise InsufficientLiquidityError(f"No route for {input_token}->{output_token}.")
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            gross = floor_units(Decimal(amount_in) * price_in / price_out)
        fee = gross * self.fee_bps // BPS_MAX
        return gross, fee

    def _wait(self) -> None:
        if self.latency_seconds > 0:
            time.sleep(self.latency_seconds)
