"""Engine-wide numeric limits."""

BPS_MAX = 10_000

MAX_CONSTITUENTS = 50

MAX_SLIPPAGE_BPS = 1_000
DEFAULT_SLIPPAGE_BPS = 50

DEFAULT_DRIFT_THRESHOLD_BPS = 200
DEFAULT_MAX_INTERVAL_SECONDS = 86_400

RISK_SCORE_MAX = 10_000

DECIMAL_PRECISION = 50
