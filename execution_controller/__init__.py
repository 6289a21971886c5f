from .locks import BasketLockManager
from .models import (
    ExecutionResult,
    LegOutcome,
    LegStatus,
    NoActionNeeded,
    Rebalanced,
    Rejected,
)
from .orchestrator import ExecutionOrchestrator, seed_registries

__all__ = [
    "BasketLockManager",
    "ExecutionOrchestrator",
    "ExecutionResult",
    "LegOutcome",
    "LegStatus",
    "NoActionNeeded",
    "Rebalanced",
    "Rejected",
    "seed_registries",
]
