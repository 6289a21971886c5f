"""In-memory persistence for basket snapshots and published strategy configs."""

import itertools
import threading
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from core.errors import BasketNotFoundError, StrategyConfigNotFoundError, ValidationError
from core.logger import get_logger

from .lifecycle import create_basket, validate_state
from .models import (
    BasketIndexState,
    OptimizationSettings,
    RebalancingConfig,
    RiskSettings,
    StrategyConfig,
    WeightConfig,
)

log = get_logger(__name__)


class InMemoryBasketStore:
    """Holds the latest committed snapshot per basket id.

    ``commit`` validates before replacing, so a rejected snapshot leaves the
    previous one in place.
    """

    def __init__(self) -> None:
        self._states: Dict[int, BasketIndexState] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def create(
        self,
        authority: str,
        constituents: Sequence[Tuple[str, int]],
        prices: Sequence[Decimal],
        total_supply: int,
        strategy_config_id: int,
        now: int,
        **options,
    ) -> BasketIndexState:
        with self._lock:
            basket_id = next(self._ids)
            state = create_basket(
                basket_id,
                authority,
                constituents,
                prices,
                total_supply,
                strategy_config_id,
                now,
                **options,
            )
            self._states[basket_id] = state
        log.info("created basket %s with %s constituents", basket_id, len(constituents))
        return state

    def load(self, basket_id: int) -> BasketIndexState:
        state = self._states.get(basket_id)
        if state is None:
            raise BasketNotFoundError(f"Basket {basket_id} not found.")
        return state

    def commit(self, state: BasketIndexState) -> BasketIndexState:
        validate_state(state)
        with self._lock:
            previous = self._states.get(state.basket_id)
            if previous is None:
                raise BasketNotFoundError(f"Basket {state.basket_id} not found.")
            if state.updated_at < previous.updated_at:
                raise ValidationError("Commit would move updated_at backwards.")
            self._states[state.basket_id] = state
        return state

    def basket_ids(self) -> Tuple[int, ...]:
        return tuple(sorted(self._states))


class StrategyConfigStore:
    """Append-only log of strategy configs; ids come from a monotonic counter."""

    def __init__(self) -> None:
        self._configs: List[StrategyConfig] = []
        self._by_id: Dict[int, StrategyConfig] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def publish(
        self,
        authority: str,
        weight_config: WeightConfig,
        rebalancing_config: RebalancingConfig,
        now: int,
        optimization_settings: Optional[OptimizationSettings] = None,
        risk_settings: Optional[RiskSettings] = None,
    ) -> StrategyConfig:
        if not authority:
            raise ValidationError("authority is required.")
        with self._lock:
            config = StrategyConfig(
                config_id=next(self._ids),
                authority=authority,
                weight_config=weight_config,
                rebalancing_config=rebalancing_config,
                optimization_settings=optimization_settings or OptimizationSettings(),
                risk_settings=risk_settings or RiskSettings(),
                created_at=now,
            )
            self._configs.append(config)
            self._by_id[config.config_id] = config
        log.info(
            "published strategy config %s (%s via %s)",
            config.config_id,
            weight_config.strategy_name,
            rebalancing_config.policy_name,
        )
        return config

    def revise(self, config_id: int, now: int, **changes) -> StrategyConfig:
        """Publish a new config derived from an existing one; the original stays."""

        base = self.get(config_id)
        return self.publish(
            authority=base.authority,
            weight_config=changes.get("weight_config", base.weight_config),
            rebalancing_config=changes.get("rebalancing_config", base.rebalancing_config),
            now=now,
            optimization_settings=changes.get(
                "optimization_settings", base.optimization_settings
            ),
            risk_settings=changes.get("risk_settings", base.risk_settings),
        )

    def get(self, config_id: int) -> StrategyConfig:
        config = self._by_id.get(config_id)
        if config is None:
            raise StrategyConfigNotFoundError(f"Strategy config {config_id} not found.")
        return config

    def history(self) -> Tuple[StrategyConfig, ...]:
        return tuple(self._configs)
