"""Evaluate-then-execute loop for one basket at a time."""

import threading
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import replace
from decimal import Decimal
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from basket_state.lifecycle import apply_swap, drawdown_breached, mark_to_market
from basket_state.models import BasketIndexState, BasketStatus, PriceSource, StrategyConfig
from basket_state.store import InMemoryBasketStore, StrategyConfigStore
from core.config import EngineSettings, load_settings
from core.constants import BPS_MAX
from core.errors import (
    AdapterError,
    BasketEngineError,
    InvalidStatusError,
    OraclePriceUnavailableError,
    RebalancingDisabledError,
    SlippageExceededError,
    ValidationError,
)
from core.logger import get_logger
from execution_adapter.calls import call_with_timeout
from execution_adapter.dex import DexAdapter
from rebalancing_policy.models import PortfolioView, RebalanceDecision, TradeLeg
from rebalancing_policy.planner import validate_plan
from rebalancing_policy.policy import default_rebalancing_policies
from rebalancing_policy.risk_reduction import RiskReductionPolicy
from registry.registry import EngineRegistries
from weight_strategy.models import WeightInputs
from weight_strategy.strategies import default_weight_strategies

from .locks import BasketLockManager
from .models import (
    ExecutionResult,
    LegOutcome,
    LegStatus,
    NoActionNeeded,
    Rebalanced,
    Rejected,
)

log = get_logger(__name__)

Operation = Callable[[BasketIndexState, int], BasketIndexState]


def _system_time() -> int:
    return int(time.time())


def seed_registries(registries: EngineRegistries, creator: str, now: int) -> None:
    """Register the built-in weight strategies and rebalancing policies."""

    for name, strategy in default_weight_strategies().items():
        registries.strategies.register(name, strategy, creator=creator, now=now)
    for name, policy in default_rebalancing_policies().items():
        registries.algorithms.register(name, policy, creator=creator, now=now)


class ExecutionOrchestrator:
    """Runs trigger evaluation and trade execution under a per-basket lease.

    Failures before the first commit come back as ``Rejected`` and leave the
    stored snapshot untouched. Failures of individual legs are recorded on the
    leg and in the execution stats; completed legs stay committed.

    Adapter calls run on a worker pool owned by each basket unless an
    executor is injected, so a hung venue only stalls its own basket.
    """

    def __init__(
        self,
        store: InMemoryBasketStore,
        configs: StrategyConfigStore,
        registries: EngineRegistries,
        settings: Optional[EngineSettings] = None,
        time_provider: Optional[Callable[[], int]] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._store = store
        self._configs = configs
        self._registries = registries
        self._settings = settings or load_settings()
        self._time_provider = time_provider or _system_time
        self._locks = BasketLockManager(self._settings.lock_timeout_seconds)
        self._shared_executor = executor
        self._executors: Dict[int, ThreadPoolExecutor] = {}
        self._executors_guard = threading.Lock()

    @property
    def store(self) -> InMemoryBasketStore:
        return self._store

    @property
    def configs(self) -> StrategyConfigStore:
        return self._configs

    @property
    def registries(self) -> EngineRegistries:
        return self._registries

    def now(self) -> int:
        return self._time_provider()

    def close(self) -> None:
        with self._executors_guard:
            owned = list(self._executors.values())
            self._executors.clear()
        for executor in owned:
            executor.shutdown(wait=False)

    def _executor_for(self, basket_id: int) -> Executor:
        if self._shared_executor is not None:
            return self._shared_executor
        with self._executors_guard:
            executor = self._executors.get(basket_id)
            if executor is None:
                executor = ThreadPoolExecutor(
                    max_workers=self._settings.max_workers,
                    thread_name_prefix=f"basket-{basket_id}-adapter",
                )
                self._executors[basket_id] = executor
            return executor

    def administer(self, basket_id: int, operation: Operation) -> BasketIndexState:
        """Apply a lifecycle operation to the latest snapshot and commit it."""

        with self._locks.lease(basket_id):
            state = self._store.load(basket_id)
            updated = operation(state, max(self._time_provider(), state.updated_at))
            return self._store.commit(updated)

    def evaluate_and_execute(
        self, basket_id: int, volatilities: Optional[Mapping[str, int]] = None
    ) -> ExecutionResult:
        try:
            with self._locks.lease(basket_id):
                return self._evaluate_and_execute(basket_id, volatilities)
        except BasketEngineError as e:
            return self._reject(basket_id, e)

    def _evaluate_and_execute(
        self, basket_id: int, volatilities: Optional[Mapping[str, int]]
    ) -> ExecutionResult:
        try:
            state = self._store.load(basket_id)
            self._check_status(state)
            config = self._configs.get(state.strategy_config_id)
            prices = self._fetch_prices(state, config)
            marked = mark_to_market(state, prices)
            breached = drawdown_breached(marked, config.risk_settings.max_drawdown_limit)
            if marked.status == BasketStatus.FROZEN and not breached:
                raise InvalidStatusError(
                    f"Basket {basket_id} is FROZEN; only a risk-reduction rebalance may run."
                )
            view = PortfolioView.from_balances(marked.tokens, marked.balances, prices)
            decision = self._decide(marked, config, view, prices, breached, volatilities)
            validate_plan(
                decision.trade_plan, view, config.rebalancing_config.max_slippage_bps
            )
            dex = self._registries.dexes.resolve(config.rebalancing_config.dex_name)
        except BasketEngineError as e:
            return self._reject(basket_id, e)

        freeze_pending = (
            breached
            and config.risk_settings.auto_freeze_on_breach
            and marked.status != BasketStatus.FROZEN
        )
        idle = not decision.should_rebalance or decision.trade_plan.is_empty
        if idle and not freeze_pending:
            log.info(
                "basket %s: no action (%s, %s deferred)",
                basket_id,
                decision.reason.value,
                len(decision.trade_plan.deferred),
            )
            return NoActionNeeded(basket_id=basket_id, reason=decision.reason)

        log.info(
            "basket %s: %s trigger, %s legs, %s deferred",
            basket_id,
            decision.reason.value,
            len(decision.trade_plan.legs),
            len(decision.trade_plan.deferred),
        )
        return self._execute(marked, config, prices, decision, dex, breached)

    def _check_status(self, state: BasketIndexState) -> None:
        if state.status in (BasketStatus.CLOSED, BasketStatus.PAUSED):
            raise InvalidStatusError(
                f"Basket {state.basket_id} is {state.status.value}; rebalancing is not allowed."
            )
        if not state.enable_rebalancing:
            raise RebalancingDisabledError(
                f"Rebalancing is disabled for basket {state.basket_id}."
            )

    def _decide(
        self,
        state: BasketIndexState,
        config: StrategyConfig,
        view: PortfolioView,
        prices: Tuple[Decimal, ...],
        breached: bool,
        volatilities: Optional[Mapping[str, int]],
    ) -> RebalanceDecision:
        rebalancing = config.rebalancing_config
        max_legs = config.optimization_settings.max_legs_per_plan
        if breached:
            log.warning(
                "basket %s: drawdown %s above limit %s",
                state.basket_id,
                state.risk_metrics.max_drawdown,
                config.risk_settings.max_drawdown_limit,
            )
            return RiskReductionPolicy().evaluate(
                view, volatilities, config.risk_settings, rebalancing, max_legs=max_legs
            )

        strategy = self._registries.strategies.resolve(config.weight_config.strategy_name)
        targets = strategy.compute_target_weights(
            WeightInputs(
                tokens=state.tokens,
                balances=state.balances,
                prices=prices,
                volatilities=volatilities,
                ai_signals=state.ai_signals,
                external_signals=state.external_signals,
            ),
            config.weight_config.parameters,
        )
        policy = self._registries.algorithms.resolve(rebalancing.policy_name)
        now = max(self._time_provider(), state.updated_at)
        elapsed = now - max(state.last_rebalanced, state.created_at)
        return policy.evaluate(
            view,
            targets,
            rebalancing,
            config.risk_settings,
            state.risk_metrics,
            elapsed,
            volatilities,
            max_legs=max_legs,
        )

    def _fetch_prices(
        self, state: BasketIndexState, config: StrategyConfig
    ) -> Tuple[Decimal, ...]:
        oracle = self._registries.oracles.resolve(config.rebalancing_config.oracle_name)
        source = config.optimization_settings.price_source
        interval = config.optimization_settings.price_interval_seconds
        prices: List[Decimal] = []
        for token in state.tokens:
            if source == PriceSource.TWAP:
                fn, args = oracle.get_twap, (token, interval)
            elif source == PriceSource.VWAP:
                fn, args = oracle.get_vwap, (token, interval)
            else:
                fn, args = oracle.get_price, (token, self._settings.max_price_age_seconds)
            quote = call_with_timeout(
                self._executor_for(state.basket_id),
                fn,
                *args,
                timeout=self._settings.adapter_timeout_seconds,
                retries=self._settings.adapter_max_retries,
                label=f"{source.value} price {token}",
            )
            if quote is None or quote.price <= 0:
                raise OraclePriceUnavailableError(f"No usable price for {token}.")
            prices.append(quote.price)
        return tuple(prices)

    def _execute(
        self,
        state: BasketIndexState,
        config: StrategyConfig,
        prices: Tuple[Decimal, ...],
        decision: RebalanceDecision,
        dex: DexAdapter,
        breached: bool,
    ) -> Rebalanced:
        now = max(self._time_provider(), state.updated_at)
        outcomes: List[LegOutcome] = []
        for leg in decision.trade_plan.legs:
            state, outcome = self._execute_leg(state, leg, dex, prices, now)
            outcomes.append(outcome)
            state = self._store.commit(state)

        executed = sum(1 for outcome in outcomes if outcome.status == LegStatus.EXECUTED)
        final = replace(
            mark_to_market(state, prices),
            last_rebalanced=now if executed else state.last_rebalanced,
            updated_at=now,
        )
        if breached and config.risk_settings.auto_freeze_on_breach:
            final = replace(final, status=BasketStatus.FROZEN)
            log.warning("basket %s: frozen after risk reduction", final.basket_id)
        final = self._store.commit(final)

        failed = len(outcomes) - executed
        log.info(
            "basket %s: %s legs executed, %s failed, nav %s",
            final.basket_id,
            executed,
            failed,
            final.total_value,
        )
        return Rebalanced(
            basket_id=final.basket_id,
            reason=decision.reason,
            legs_executed=executed,
            legs_failed=failed,
            new_nav=final.total_value,
            status=final.status,
            outcomes=tuple(outcomes),
        )

    def _execute_leg(
        self,
        state: BasketIndexState,
        leg: TradeLeg,
        dex: DexAdapter,
        prices: Tuple[Decimal, ...],
        now: int,
    ) -> Tuple[BasketIndexState, LegOutcome]:
        min_amount_out = leg.expected_amount_out * (BPS_MAX - leg.max_slippage_bps) // BPS_MAX
        timeout = self._settings.adapter_timeout_seconds
        started = time.perf_counter()
        try:
            quoted = call_with_timeout(
                self._executor_for(state.basket_id),
                dex.quote,
                leg.sell_token,
                leg.buy_token,
                leg.amount_in,
                timeout=timeout,
                retries=self._settings.adapter_max_retries,
                label=f"quote leg {leg.sequence}",
            )
            if quoted < min_amount_out:
                raise SlippageExceededError(
                    f"Quote {quoted} below minimum {min_amount_out} for leg {leg.sequence}."
                )
            # Swaps are not retried: a timed-out swap may still settle.
            fill = call_with_timeout(
                self._executor_for(state.basket_id),
                dex.swap,
                leg.sell_token,
                leg.buy_token,
                leg.amount_in,
                min_amount_out,
                timeout=timeout,
                label=f"swap leg {leg.sequence}",
            )
        except (AdapterError, ValidationError) as e:
            log.warning(
                "basket %s: leg %s %s->%s failed: %s",
                state.basket_id,
                leg.sequence,
                leg.sell_token,
                leg.buy_token,
                e,
            )
            failed = replace(
                state,
                execution_stats=state.execution_stats.record_failure(now),
                updated_at=now,
            )
            return failed, LegOutcome(
                sequence=leg.sequence,
                sell_token=leg.sell_token,
                buy_token=leg.buy_token,
                status=LegStatus.FAILED,
                amount_in=leg.amount_in,
                error=f"{type(e).__name__}: {e}",
            )

        latency_ms = (time.perf_counter() - started) * 1000
        swapped = apply_swap(
            state, leg.sell_token, leg.buy_token, leg.amount_in, fill.amount_out, prices
        )
        swapped = replace(
            swapped,
            execution_stats=swapped.execution_stats.record_success(fill.cost, latency_ms, now),
            updated_at=now,
        )
        return swapped, LegOutcome(
            sequence=leg.sequence,
            sell_token=leg.sell_token,
            buy_token=leg.buy_token,
            status=LegStatus.EXECUTED,
            amount_in=leg.amount_in,
            amount_out=fill.amount_out,
            fee=fill.fee,
            cost=fill.cost,
            latency_ms=latency_ms,
        )

    def _reject(self, basket_id: int, error: BasketEngineError) -> Rejected:
        log.warning(
            "basket %s: rejected with %s: %s", basket_id, type(error).__name__, error
        )
        return Rejected(basket_id=basket_id, reason=str(error), error=error)
