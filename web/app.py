"""Local-first FastAPI shell over the basket rebalancing engine."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from basket_state.lifecycle import set_fees, transition
from basket_state.models import (
    BasketStatus,
    OptimizationSettings,
    PriceSource,
    RebalancingConfig,
    RiskSettings,
    StrategyConfig,
    WeightConfig,
)
from basket_state.store import InMemoryBasketStore, StrategyConfigStore
from core.errors import AdapterError, NotFoundError, StateError, ValidationError
from core.logger import get_logger
from execution_adapter.dex import SimulatedDex
from execution_adapter.oracle import InMemoryPriceOracle
from execution_controller.models import Rejected
from execution_controller.orchestrator import ExecutionOrchestrator, seed_registries
from registry.models import RegistryKind
from registry.registry import EngineRegistries

log = get_logger(__name__)

app = FastAPI(title="Basket Engine", description="Local-first basket rebalancing shell")

_STATE: Dict[str, Optional[ExecutionOrchestrator]] = {"orchestrator": None}


class ConstituentInput(BaseModel):
    token: str
    balance: int


class CreateBasketRequest(BaseModel):
    authority: str
    constituents: List[ConstituentInput]
    prices: List[Decimal]
    total_supply: int
    strategy_config_id: int
    manager: Optional[str] = None
    fee_collector: Optional[str] = None
    creation_fee_bps: int = 0
    redemption_fee_bps: int = 0


class StrategyConfigRequest(BaseModel):
    authority: str
    strategy_name: str
    parameters: Dict[str, Any] = {}
    policy_name: str = "threshold"
    oracle_name: str
    dex_name: str
    drift_threshold_bps: int = 200
    max_interval_seconds: int = 86_400
    min_interval_seconds: int = 0
    max_slippage_bps: int = 50
    price_source: str = "SPOT"
    max_drawdown_limit: Decimal = Decimal("0.2")
    auto_freeze_on_breach: bool = True


class EvaluateRequest(BaseModel):
    volatilities: Optional[Dict[str, int]] = None


class StatusRequest(BaseModel):
    actor: str
    status: str


class FeesRequest(BaseModel):
    actor: str
    creation_fee_bps: int
    redemption_fee_bps: int


@app.middleware("http")
async def _local_only(request: Request, call_next):
    client = request.client
    if client is not None:
        host = client.host
        if host not in {"127.0.0.1", "::1", "testclient"}:
            return JSONResponse({"error": "Remote access disabled."}, status_code=403)
    return await call_next(request)


def _status_for(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, StateError):
        return 409
    if isinstance(exc, AdapterError):
        return 503
    return 400


async def _handle_errors(request: Request, exc: Exception):
    status_code = _status_for(exc)
    log.warning("%s %s failed with %s: %s", request.method, request.url.path, status_code, exc)
    return JSONResponse(
        {"error": str(exc), "type": type(exc).__name__}, status_code=status_code
    )


for _exc_class in (NotFoundError, StateError, ValidationError, AdapterError):
    app.add_exception_handler(_exc_class, _handle_errors)


@app.get("/api/baskets")
async def list_baskets():
    store = _orchestrator().store
    return {"baskets": [store.load(basket_id).to_dict() for basket_id in store.basket_ids()]}


@app.post("/api/baskets")
async def create_basket(payload: CreateBasketRequest):
    orchestrator = _orchestrator()
    config = orchestrator.configs.get(payload.strategy_config_id)
    constituents = tuple((item.token, item.balance) for item in payload.constituents)
    _seed_local_adapters(
        orchestrator, config, [token for token, _ in constituents], payload.prices
    )
    state = orchestrator.store.create(
        authority=payload.authority,
        constituents=constituents,
        prices=tuple(payload.prices),
        total_supply=payload.total_supply,
        strategy_config_id=payload.strategy_config_id,
        now=orchestrator.now(),
        manager=payload.manager,
        fee_collector=payload.fee_collector,
        creation_fee_bps=payload.creation_fee_bps,
        redemption_fee_bps=payload.redemption_fee_bps,
    )
    return state.to_dict()


@app.get("/api/baskets/{basket_id}")
async def get_basket(basket_id: int):
    return _orchestrator().store.load(basket_id).to_dict()


@app.post("/api/baskets/{basket_id}/evaluate")
def evaluate_basket(basket_id: int, payload: Optional[EvaluateRequest] = None):
    volatilities = payload.volatilities if payload is not None else None
    result = _orchestrator().evaluate_and_execute(basket_id, volatilities)
    if isinstance(result, Rejected):
        return JSONResponse(result.to_dict(), status_code=_status_for(result.error))
    return result.to_dict()


@app.post("/api/baskets/{basket_id}/status")
def set_status(basket_id: int, payload: StatusRequest):
    target = _parse_status(payload.status)
    state = _orchestrator().administer(
        basket_id, lambda current, now: transition(current, target, payload.actor, now)
    )
    return {"basket_id": state.basket_id, "status": state.status.value}


@app.post("/api/baskets/{basket_id}/fees")
def update_fees(basket_id: int, payload: FeesRequest):
    state = _orchestrator().administer(
        basket_id,
        lambda current, now: set_fees(
            current,
            payload.actor,
            payload.creation_fee_bps,
            payload.redemption_fee_bps,
            now,
        ),
    )
    return {
        "basket_id": state.basket_id,
        "creation_fee_bps": state.creation_fee_bps,
        "redemption_fee_bps": state.redemption_fee_bps,
    }


@app.get("/api/registries/{kind}")
async def list_registry(kind: str):
    registry = _orchestrator().registries.by_kind(_parse_kind(kind))
    return {"kind": registry.kind.value, "entries": [entry.to_dict() for entry in registry.entries()]}


@app.get("/api/strategy-configs")
async def list_strategy_configs():
    return {"configs": [config.to_dict() for config in _orchestrator().configs.history()]}


@app.post("/api/strategy-configs")
async def publish_strategy_config(payload: StrategyConfigRequest):
    orchestrator = _orchestrator()
    config = orchestrator.configs.publish(
        authority=payload.authority,
        weight_config=WeightConfig(payload.strategy_name, payload.parameters),
        rebalancing_config=RebalancingConfig(
            policy_name=payload.policy_name,
            oracle_name=payload.oracle_name,
            dex_name=payload.dex_name,
            drift_threshold_bps=payload.drift_threshold_bps,
            max_interval_seconds=payload.max_interval_seconds,
            min_interval_seconds=payload.min_interval_seconds,
            max_slippage_bps=payload.max_slippage_bps,
        ),
        now=orchestrator.now(),
        optimization_settings=OptimizationSettings(price_source=_parse_source(payload.price_source)),
        risk_settings=RiskSettings(
            max_drawdown_limit=payload.max_drawdown_limit,
            auto_freeze_on_breach=payload.auto_freeze_on_breach,
        ),
    )
    return config.to_dict()


def _parse_status(value: str) -> BasketStatus:
    try:
        return BasketStatus(value.upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unsupported basket status.") from exc


def _parse_kind(value: str) -> RegistryKind:
    try:
        return RegistryKind(value.upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unsupported registry kind.") from exc


def _parse_source(value: str) -> PriceSource:
    try:
        return PriceSource(value.upper())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Unsupported price source.") from exc


def _default_orchestrator() -> ExecutionOrchestrator:
    registries = EngineRegistries.empty()
    seed_registries(registries, creator="system", now=0)
    registries.oracles.register("memory", InMemoryPriceOracle(), creator="system", now=0)
    registries.dexes.register("simulated", SimulatedDex(), creator="system", now=0)
    return ExecutionOrchestrator(InMemoryBasketStore(), StrategyConfigStore(), registries)


def _orchestrator() -> ExecutionOrchestrator:
    orchestrator = _STATE["orchestrator"]
    if orchestrator is None:
        orchestrator = _default_orchestrator()
        _STATE["orchestrator"] = orchestrator
    return orchestrator


def configure(orchestrator: ExecutionOrchestrator) -> None:
    previous = _STATE["orchestrator"]
    if previous is not None and previous is not orchestrator:
        previous.close()
    _STATE["orchestrator"] = orchestrator


def _reset_state() -> None:
    previous = _STATE["orchestrator"]
    if previous is not None:
        previous.close()
    _STATE["orchestrator"] = None


def _seed_local_adapters(
    orchestrator: ExecutionOrchestrator,
    config: StrategyConfig,
    tokens: Sequence[str],
    prices: Sequence[Decimal],
) -> None:
    """Publish the creation prices to in-memory adapters so the shell can evaluate."""

    oracle = orchestrator.registries.oracles.resolve(config.rebalancing_config.oracle_name)
    dex = orchestrator.registries.dexes.resolve(config.rebalancing_config.dex_name)
    now = orchestrator.now()
    for token, price in zip(tokens, prices):
        if isinstance(oracle, InMemoryPriceOracle):
            oracle.record(token, price, as_of=now)
        if isinstance(dex, SimulatedDex):
            dex.set_price(token, price)
