"""Domain schemas for the basket index aggregate and its strategy bindings."""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple

from core.constants import (
    BPS_MAX,
    DEFAULT_DRIFT_THRESHOLD_BPS,
    DEFAULT_MAX_INTERVAL_SECONDS,
    DEFAULT_SLIPPAGE_BPS,
    MAX_SLIPPAGE_BPS,
)
from core.errors import ValidationError


class BasketStatus(Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    FROZEN = "FROZEN"
    CLOSED = "CLOSED"


class PriceSource(Enum):
    SPOT = "SPOT"
    TWAP = "TWAP"
    VWAP = "VWAP"


@dataclass(frozen=True)
class BasketConstituent:
    token: str
    balance: int  # smallest unit
    weight: int  # bps


@dataclass(frozen=True)
class ExecutionStats:
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0
    total_cost: int = 0
    avg_latency_ms: float = 0.0
    last_execution: int = 0

    def record_success(self, cost: int, latency_ms: float, now: int) -> "ExecutionStats":
        successful = self.successful_executions + 1
        avg = self.avg_latency_ms + (latency_ms - self.avg_latency_ms) / successful
        return replace(
            self,
            total_executions=self.total_executions + 1,
            successful_executions=successful,
            total_cost=self.total_cost + max(cost, 0),
            avg_latency_ms=avg,
            last_execution=max(now, self.last_execution),
        )

    def record_failure(self, now: int) -> "ExecutionStats":
        return replace(
            self,
            total_executions=self.total_executions + 1,
            failed_executions=self.failed_executions + 1,
            last_execution=max(now, self.last_execution),
        )

    def success_rate_bps(self) -> int:
        if self.total_executions == 0:
            return 0
        return self.successful_executions * BPS_MAX // self.total_executions


@dataclass(frozen=True)
class RiskMetrics:
    """Drawdown watermark and concentration score.

    ``max_drawdown`` is a fraction of ``peak_nav`` and never decreases.
    ``acknowledged_drawdown`` is the watermark level an authority has already
    reviewed when unfreezing.
    """

    risk_score: int = 0
    max_drawdown: Decimal = Decimal("0")
    peak_nav: Decimal = Decimal("0")
    acknowledged_drawdown: Decimal = Decimal("0")

    def breaches(self, limit: Decimal) -> bool:
        return self.max_drawdown > limit and self.max_drawdown > self.acknowledged_drawdown


@dataclass(frozen=True)
class BasketIndexState:
    basket_id: int
    authority: str
    fee_collector: str
    composition: Tuple[BasketConstituent, ...]
    total_value: Decimal
    total_supply: int
    strategy_config_id: int
    created_at: int
    updated_at: int
    manager: Optional[str] = None
    creation_fee_bps: int = 0
    redemption_fee_bps: int = 0
    fees_collected: int = 0
    status: BasketStatus = BasketStatus.ACTIVE
    enable_rebalancing: bool = True
    last_rebalanced: int = 0
    execution_stats: ExecutionStats = ExecutionStats()
    risk_metrics: Optional[RiskMetrics] = None
    ai_signals: Tuple[Decimal, ...] = ()
    external_signals: Tuple[Decimal, ...] = ()

    @property
    def tokens(self) -> Tuple[str, ...]:
        return tuple(item.token for item in self.composition)

    @property
    def balances(self) -> Tuple[int, ...]:
        return tuple(item.balance for item in self.composition)

    @property
    def weights(self) -> Tuple[int, ...]:
        return tuple(item.weight for item in self.composition)

    def index_of(self, token: str) -> int:
        for index, item in enumerate(self.composition):
            if item.token == token:
                return index
        raise ValidationError(f"Token {token} is not a constituent.")

    def to_dict(self) -> Dict[str, object]:
        result: Dict[str, object] = {
            "basket_id": self.basket_id,
            "authority": self.authority,
            "manager": self.manager,
            "fee_collector": self.fee_collector,
            "composition": [
                {"token": item.token, "balance": item.balance, "weight": item.weight}
                for item in self.composition
            ],
            "total_value": str(self.total_value),
            "total_supply": self.total_supply,
            "creation_fee_bps": self.creation_fee_bps,
            "redemption_fee_bps": self.redemption_fee_bps,
            "fees_collected": self.fees_collected,
            "status": self.status.value,
            "enable_rebalancing": self.enable_rebalancing,
            "last_rebalanced": self.last_rebalanced,
            "strategy_config_id": self.strategy_config_id,
            "execution_stats": {
                "total_executions": self.execution_stats.total_executions,
                "successful_executions": self.execution_stats.successful_executions,
                "failed_executions": self.execution_stats.failed_executions,
                "success_rate_bps": self.execution_stats.success_rate_bps(),
                "total_cost": self.execution_stats.total_cost,
                "avg_latency_ms": self.execution_stats.avg_latency_ms,
                "last_execution": self.execution_stats.last_execution,
            },
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.risk_metrics is not None:
            result["risk_metrics"] = {
                "risk_score": self.risk_metrics.risk_score,
                "max_drawdown": str(self.risk_metrics.max_drawdown),
                "peak_nav": str(self.risk_metrics.peak_nav),
            }
        return result


@dataclass(frozen=True)
class InKindTransfer:
    """Per-constituent amounts moved by a mint (deposits) or burn (withdrawals)."""

    units: int
    fee_units: int
    amounts: Tuple[int, ...]


@dataclass(frozen=True)
class WeightConfig:
    strategy_name: str
    parameters: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.strategy_name:
            raise ValidationError("strategy_name is required.")
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))


@dataclass(frozen=True)
class RebalancingConfig:
    policy_name: str
    oracle_name: str
    dex_name: str
    drift_threshold_bps: int = DEFAULT_DRIFT_THRESHOLD_BPS
    max_interval_seconds: int = DEFAULT_MAX_INTERVAL_SECONDS
    min_trade_value: Decimal = Decimal("1")
    max_slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    min_interval_seconds: int = 0

    def __post_init__(self) -> None:
        if not (self.policy_name and self.oracle_name and self.dex_name):
            raise ValidationError("policy, oracle and dex names are required.")
        if not 0 <= self.drift_threshold_bps <= BPS_MAX:
            raise ValidationError("drift_threshold_bps must be within [0, 10000].")
        if self.max_interval_seconds <= 0:
            raise ValidationError("max_interval_seconds must be positive.")
        if not 0 <= self.min_interval_seconds <= self.max_interval_seconds:
            raise ValidationError(
                "min_interval_seconds must be within [0, max_interval_seconds]."
            )
        if self.min_trade_value < 0:
            raise ValidationError("min_trade_value must be non-negative.")
        if not 0 <= self.max_slippage_bps <= MAX_SLIPPAGE_BPS:
            raise ValidationError(
                f"max_slippage_bps must be within [0, {MAX_SLIPPAGE_BPS}]."
            )


@dataclass(frozen=True)
class OptimizationSettings:
    price_source: PriceSource = PriceSource.SPOT
    price_interval_seconds: int = 1800
    max_legs_per_plan: int = 50

    def __post_init__(self) -> None:
        if self.price_interval_seconds <= 0:
            raise ValidationError("price_interval_seconds must be positive.")
        if self.max_legs_per_plan <= 0:
            raise ValidationError("max_legs_per_plan must be positive.")


@dataclass(frozen=True)
class RiskSettings:
    max_drawdown_limit: Decimal = Decimal("0.2")
    auto_freeze_on_breach: bool = True
    risk_reduction_fraction_bps: int = BPS_MAX

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.max_drawdown_limit <= Decimal("1"):
            raise ValidationError("max_drawdown_limit must be within [0, 1].")
        if not 0 < self.risk_reduction_fraction_bps <= BPS_MAX:
            raise ValidationError("risk_reduction_fraction_bps must be within (0, 10000].")


@dataclass(frozen=True)
class StrategyConfig:
    config_id: int
    authority: str
    weight_config: WeightConfig
    rebalancing_config: RebalancingConfig
    optimization_settings: OptimizationSettings
    risk_settings: RiskSettings
    created_at: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "config_id": self.config_id,
            "authority": self.authority,
            "weight_strategy": self.weight_config.strategy_name,
            "weight_parameters": {
                key: str(value) for key, value in self.weight_config.parameters.items()
            },
            "policy": self.rebalancing_config.policy_name,
            "oracle": self.rebalancing_config.oracle_name,
            "dex": self.rebalancing_config.dex_name,
            "drift_threshold_bps": self.rebalancing_config.drift_threshold_bps,
            "max_interval_seconds": self.rebalancing_config.max_interval_seconds,
            "min_interval_seconds": self.rebalancing_config.min_interval_seconds,
            "min_trade_value": str(self.rebalancing_config.min_trade_value),
            "max_slippage_bps": self.rebalancing_config.max_slippage_bps,
            "price_source": self.optimization_settings.price_source.value,
            "max_drawdown_limit": str(self.risk_settings.max_drawdown_limit),
            "created_at": self.created_at,
        }
