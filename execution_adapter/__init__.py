from .calls import call_with_timeout
from .dex import DexAdapter, SimulatedDex
from .models import PriceQuote, PriceSample, SwapResult
from .oracle import InMemoryPriceOracle, OracleAdapter

__all__ = [
    "DexAdapter",
    "InMemoryPriceOracle",
    "OracleAdapter",
    "PriceQuote",
    "PriceSample",
    "SimulatedDex",
    "SwapResult",
    "call_with_timeout",
]
