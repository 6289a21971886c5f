"""Environment-driven engine settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class EngineSettings:
    max_price_age_seconds: int = 60
    adapter_timeout_seconds: float = 5.0
    adapter_max_retries: int = 2
    lock_timeout_seconds: float = 10.0
    max_workers: int = 4

    def __post_init__(self) -> None:
        if self.max_price_age_seconds <= 0:
            raise RuntimeError("max_price_age_seconds must be positive")
        if self.adapter_timeout_seconds <= 0:
            raise RuntimeError("adapter_timeout_seconds must be positive")
        if self.adapter_max_retries < 0:
            raise RuntimeError("adapter_max_retries must be non-negative")
        if self.lock_timeout_seconds < 0:
            raise RuntimeError("lock_timeout_seconds must be non-negative")
        if self.max_workers <= 0:
            raise RuntimeError("max_workers must be positive")


def _parse(
    env: Mapping[str, str], name: str, cast: Callable[[str], T], default: T
) -> T:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise RuntimeError(f"{name} must be a valid {cast.__name__}") from e


def load_settings(env: Optional[Mapping[str, str]] = None) -> EngineSettings:
    source = os.environ if env is None else env
    defaults = EngineSettings()
    return EngineSettings(
        max_price_age_seconds=_parse(
            source, "BASKET_ENGINE_MAX_PRICE_AGE", int, defaults.max_price_age_seconds
        ),
        adapter_timeout_seconds=_parse(
            source, "BASKET_ENGINE_ADAPTER_TIMEOUT", float, defaults.adapter_timeout_seconds
        ),
        adapter_max_retries=_parse(
            source, "BASKET_ENGINE_ADAPTER_RETRIES", int, defaults.adapter_max_retries
        ),
        lock_timeout_seconds=_parse(
            source, "BASKET_ENGINE_LOCK_TIMEOUT", float, defaults.lock_timeout_seconds
        ),
        max_workers=_parse(source, "BASKET_ENGINE_MAX_WORKERS", int, defaults.max_workers),
    )
