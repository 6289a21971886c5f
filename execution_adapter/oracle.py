"""Price oracle capability and an in-memory implementation with TWAP/VWAP windows."""

import threading
import time
from decimal import Decimal, localcontext
from typing import Callable, Dict, List, Optional, Protocol

from core.constants import DECIMAL_PRECISION
from core.errors import StaleDataError, SymbolNotFoundError, ValidationError
from core.fixed_point import Numeric, to_decimal

from .models import PriceQuote, PriceSample


class OracleAdapter(Protocol):
    def get_price(self, symbol: str, max_age_seconds: Optional[int] = None) -> PriceQuote:
        ...

    def get_twap(self, symbol: str, interval_seconds: int) -> PriceQuote:
        ...

    def get_vwap(self, symbol: str, interval_seconds: int) -> PriceQuote:
        ...


def _system_time() -> int:
    return int(time.time())


class InMemoryPriceOracle:
    """Keeps every recorded sample per symbol, ordered by observation time.

    ``time_provider`` supplies "now" in unix seconds for freshness and window
    calculations.
    """

    def __init__(self, time_provider: Optional[Callable[[], int]] = None) -> None:
        self._time_provider = time_provider or _system_time
        self._samples: Dict[str, List[PriceSample]] = {}
        self._lock = threading.Lock()

    def record(
        self, symbol: str, price: Numeric, as_of: int, volume: Numeric = 0
    ) -> None:
        sample = PriceSample(price=to_decimal(price), as_of=as_of, volume=to_decimal(volume))
        if sample.price <= 0:
            raise ValidationError(f"Price for {symbol} must be positive.")
        if sample.volume < 0:
            raise ValidationError(f"Volume for {symbol} must be non-negative.")
        with self._lock:
            samples = self._samples.setdefault(symbol, [])
            samples.append(sample)
            samples.sort(key=lambda item: item.as_of)

    def symbols(self) -> List[str]:
        return sorted(self._samples)

    def get_price(self, symbol: str, max_age_seconds: Optional[int] = None) -> PriceQuote:
        now = self._time_provider()
        latest = self._observed(symbol, now)[-1]
        if max_age_seconds is not None and now - latest.as_of > max_age_seconds:
            raise StaleDataError(
                f"{symbol} price is {now - latest.as_of}s old; limit is {max_age_seconds}s."
            )
        return PriceQuote(symbol=symbol, price=latest.price, as_of=latest.as_of)

    def get_twap(self, symbol: str, interval_seconds: int) -> PriceQuote:
        now = self._time_provider()
        start = now - interval_seconds
        samples = self._observed(symbol, now)
        latest = samples[-1]
        if latest.as_of < start:
            raise StaleDataError(f"No {symbol} observation in the last {interval_seconds}s.")

        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            weighted = Decimal(0)
            elapsed = 0
            for index, sample in enumerate(samples):
                until = samples[index + 1].as_of if index + 1 < len(samples) else now
                duration = min(until, now) - max(sample.as_of, start)
                if duration <= 0:
                    continue
                weighted += sample.price * duration
                elapsed += duration
            price = weighted / elapsed if elapsed else latest.price
        return PriceQuote(symbol=symbol, price=price, as_of=latest.as_of)

    def get_vwap(self, symbol: str, interval_seconds: int) -> PriceQuote:
        now = self._time_provider()
        start = now - interval_seconds
        window = [
            sample
            for sample in self._observed(symbol, now)
            if sample.as_of >= start and sample.volume > 0
        ]
        if not window:
            raise StaleDataError(f"No {symbol} volume in the last {interval_seconds}s.")
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            volume = sum((sample.volume for sample in window), Decimal(0))
            notional = sum((sample.price * sample.volume for sample in window), Decimal(0))
            price = notional / volume
        return PriceQuote(symbol=symbol, price=price, as_of=window[-1].as_of)

    def _observed(self, symbol: str, now: int) -> List[PriceSample]:
        samples = self._samples.get(symbol)
        if not samples:
            raise SymbolNotFoundError(f"No price feed for {symbol}.")
        observed = [sample for sample in list(samples) if sample.as_of <= now]
        if not observed:
            raise StaleDataError(f"No {symbol} observation at or before {now}.")
        return observed
