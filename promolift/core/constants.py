"""
Constants for PROMOLIFT.

Central location for magic numbers, default values, and configuration constants.
These values are documented and intentionally chosen - not optimized.
"""

# ============================================================
# CALENDAR
# ============================================================

# Periods in one seasonal cycle, by granularity
SEASONAL_CYCLE = {
    "daily": 7,       # day-of-week pattern
    "weekly": 52,     # week-of-year pattern
    "monthly": 12,
    "quarterly": 4,
}

# ============================================================
# BASELINE DEFAULTS
# ============================================================

DEFAULT_PERIODS_USED = 52
DEFAULT_OUTLIER_THRESHOLD = 2.0   # IQR multiplier
DEFAULT_CONFIDENCE_LEVEL = 0.85

# Series shorter than this skip outlier detection entirely
MIN_OUTLIER_POINTS = 4

# Half-width of the centered window used for the replacement median
OUTLIER_MEDIAN_HALF_WINDOW = 2

# ============================================================
# MODEL LIBRARY
# ============================================================

# Trailing window cap for (weighted) moving averages
MAX_MOVING_AVERAGE_WINDOW = 12

# Smoothing constants searched by exponential smoothing (0.1 - 0.9)
SMOOTHING_GRID = tuple(round(0.1 * i, 1) for i in range(1, 10))

# ============================================================
# EFFICIENCY SCORE
# ============================================================
# Placeholder policy, not derived from data. Overridable through engine.yaml
# but fixed for a deployment so scores stay reproducible.

EFFICIENCY_WEIGHTS = {
    "lift": 0.40,
    "roi": 0.40,
    "leakage": 0.20,   # rewarded for low cannibalization + pantry loading
}

assert abs(sum(EFFICIENCY_WEIGHTS.values()) - 1.0) < 0.001, "Weights must sum to 1.0"

# Lift (%) that earns the full lift component
LIFT_NORMALIZATION_CAP = 100.0

# ROI range mapped linearly onto [0, 1] for the ROI component
ROI_NORMALIZATION_FLOOR = -1.0   # total loss of the trade spend
ROI_NORMALIZATION_CAP = 3.0

# ============================================================
# DECOMPOSITION DEFAULTS
# ============================================================

DEFAULT_EFFECT_RATES = {
    "cannibalization_rate": 0.08,
    "pantry_loading_rate": 0.05,
    "halo_rate": 0.03,
    "pull_forward_rate": 0.04,
}

# ============================================================
# OPERATIONS
# ============================================================

DEFAULT_CALCULATION_TIMEOUT_SECONDS = 30.0

# Change in total base volume between recalculations that triggers a drift warning
DEFAULT_DRIFT_THRESHOLD_PCT = 15.0
