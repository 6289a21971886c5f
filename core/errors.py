"""Error taxonomy shared by every engine component.

Three families matter to callers:

* ``ValidationError`` - a bad weight, fee, plan or input. Never transient.
* ``StateError`` - invalid status transition, missing record, busy basket.
* ``AdapterError`` - oracle or DEX failure. Transient and scoped to one lookup
  or one trade leg.

``retryable`` tells an external trigger whether re-invoking later can succeed.
"""


class BasketEngineError(Exception):
    """Base class for all engine errors."""

    retryable = False


class ValidationError(BasketEngineError, ValueError):
    """Raised when an input or invariant check fails."""


class PlanValidationError(ValidationError):
    """Raised when a trade plan violates hard validation rules."""


class DuplicateNameError(ValidationError):
    """Raised when registering a name that already exists."""


class StateError(BasketEngineError, RuntimeError):
    """Raised when an operation is not allowed in the current state."""


class NotFoundError(StateError):
    """Raised when a keyed record does not exist."""


class BasketNotFoundError(NotFoundError):
    """Raised when a basket id is unknown to the store."""


class RegistryNotFoundError(NotFoundError):
    """Raised when a registry name is unknown."""


class StrategyConfigNotFoundError(NotFoundError):
    """Raised when a strategy config id is unknown."""


class InvalidStatusError(StateError):
    """Raised when the basket status forbids the requested operation."""


class InactiveEntryError(StateError):
    """Raised when an active-only lookup hits a deactivated entry."""


class UnauthorizedError(StateError):
    """Raised when the acting principal may not perform the operation."""


class RebalancingDisabledError(StateError):
    """Raised when rebalancing is switched off for a basket."""


class BasketBusyError(StateError):
    """Raised when another evaluation holds the basket lease."""

    retryable = True


class AdapterError(BasketEngineError, RuntimeError):
    """Raised when an oracle or DEX adapter call fails."""

    retryable = True


class OraclePriceUnavailableError(AdapterError):
    """Raised when a required constituent price cannot be obtained."""


class SymbolNotFoundError(AdapterError):
    """Raised when the oracle has no feed for a symbol."""


class StaleDataError(AdapterError):
    """Raised when the freshest observation is older than the bound."""


class SlippageExceededError(AdapterError):
    """Raised when realized or quoted output falls below the minimum."""


class InsufficientLiquidityError(AdapterError):
    """Raised when the venue cannot fill the requested size."""


class AdapterTimeoutError(AdapterError):
    """Raised when an adapter call exceeds its deadline."""
