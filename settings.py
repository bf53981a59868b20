"""
Orca LP Scanner v1.0 - All weights, thresholds, and configuration.

Every tunable parameter lives here. No magic numbers in engine code.
Component config dataclasses take their defaults from this module.
"""

CONFIG_VERSION = "orca-scanner-1.0"

# ============================================================
# REGIME DETECTOR
# ============================================================

PRICE_HISTORY_DAYS = 60
VOL_SHORT_LOOKBACK = 7
VOL_LONG_LOOKBACK = 30
TRADING_DAYS_PER_YEAR = 365

# Min-max calibration bounds (lo, hi)
REGIME_NORM_BOUNDS = {
    "vol_30d": (35.0, 110.0),
    "vr": (0.8, 1.5),
    "funding_abs": (5.0, 80.0),
    "turnover_trend": (0.9, 1.25),
}

REGIME_WEIGHTS = {
    "vol_30d": 0.38,
    "vr": 0.26,
    "funding_abs": 0.18,
    "turnover_trend": 0.18,
}

REGIME_HIGH_CUTOFF = 0.72
REGIME_LOW_CUTOFF = 0.38
HYSTERESIS_HOLD_BAND = 0.05   # stay in HIGH/LOW while within this of the entry cutoff
HYSTERESIS_ENTER_BAND = 0.03  # MODERATE must clear the cutoff by more than this

TURNOVER_TREND_RISING = 1.15
TURNOVER_TREND_FALLING = 0.9

# Confidence: base + per-input increments
CONFIDENCE_BASE = 0.35
CONFIDENCE_INCREMENTS = {
    "vol_7d": 0.20,
    "vol_30d": 0.20,
    "vr": 0.10,
    "funding": 0.05,
    "turnover_trend": 0.10,
}
CONFIDENCE_FLOOR = 0.10
CONFIDENCE_CAP = 0.99

# ============================================================
# POOL STABILITY
# ============================================================

STABILITY_WINDOW_DAYS = 7
STABILITY_FALLBACK_SCORE = 0.25
STABILITY_DEFAULT_FOR_SCORING = 0.5   # pools with no history at all
STABILITY_FALLBACK_NOTE = (
    "Insufficient/non-positive 7d vol/TVL history; defaulted stability score to 0.25"
)

# ============================================================
# RANKING
# ============================================================

TVL_FLOOR_STABLE_USD = 250_000
TVL_FLOOR_LST_USD = 100_000
VOLUME_24H_FLOOR_USD = 50_000
RANKING_TOP_N = 10

RANKING_WEIGHTS = {
    "fee_apr": 0.34,
    "turnover": 0.28,
    "depth": 0.20,
    "tvl": 0.13,
}

FEE_APR_NORM_PCT = 120.0
TURNOVER_NORM = 1.25
DEPTH_NORM_RATIO = 0.08
TVL_NORM_LOG10 = 7.0
VALIDATION_BONUS = 0.05
REWARD_PENALTY = 0.03

# score × (STABILITY_FLOOR_MULT + STABILITY_SPAN_MULT × stability)
STABILITY_FLOOR_MULT = 0.6
STABILITY_SPAN_MULT = 0.4

# ============================================================
# SHORTLIST
# ============================================================

SHORTLIST_MAX_POOLS = 2
GUARDRAIL_MIN_TVL_USD = 150_000
GUARDRAIL_MIN_VOLUME_24H_USD = 75_000
GUARDRAIL_MIN_DEPTH_TVL_1PCT = 0.015

# Composite key: score + min(feeApr / DIV, CAP) + min(depth × MULT, CAP)
COMPOSITE_FEE_APR_DIVISOR = 5.0
COMPOSITE_FEE_APR_CAP = 20.0
COMPOSITE_DEPTH_MULT = 200.0
COMPOSITE_DEPTH_CAP = 10.0

# Exceptional stable-anchored pool admitted to LOW regime slot 2
EXCEPTIONAL_MIN_DEPTH_RATIO = 0.025
EXCEPTIONAL_MIN_FEE_APR_PCT = 25.0
EXCEPTIONAL_MIN_SCORE = 75.0

FEE_APR_STRONG_PCT = 25.0

# ============================================================
# RANGE PLANNER
# ============================================================

DEFAULT_SOL_VOL_PCT = 60.0
WEEKS_PER_YEAR = 52

# type: (factor, lo, hi) applied to SOL vol; None = raw SOL vol
VOL_PROXY_BY_TYPE = {
    "SOL-STABLE": None,
    "SOL-LST": (0.30, 8.0, 40.0),
    "LST-STABLE": (0.45, 10.0, 60.0),
    "LST-LST": (0.16, 3.0, 25.0),
}

# Conservative / Base / Aggressive
RANGE_MULTIPLIERS = {
    "SOL-STABLE": (0.8, 1.2, 1.8),
    "LST-STABLE": (0.9, 1.35, 2.0),
    "SOL-LST": (0.7, 1.1, 1.6),
    "LST-LST": (0.6, 0.9, 1.3),
}

REGIME_WIDTH_MULTIPLIER = {
    "LOW": 0.85,
    "MODERATE": 1.0,
    "HIGH": 1.25,
}

SOL_STABLE_BASE_MIN_LOW = 4.0
SOL_STABLE_BASE_MIN = 5.0
SOL_STABLE_BASE_MAX = 20.0

RANGE_MIN_HALF_WIDTH_PCT = 2.0
RANGE_MAX_HALF_WIDTH_PCT = 30.0

# ============================================================
# HEDGE PLANNER
# ============================================================

HEDGE_NOTIONAL_USD = 10_000
BASE_DELTA_FRACTION = {
    "SOL-STABLE": 0.45,
    "LST-STABLE": 0.25,
    "SOL-LST": 0.25,
    "LST-LST": 0.10,
}
DEFAULT_DELTA_FRACTION = 0.25

HEDGE_MULTIPLIER_BY_REGIME = {
    "LOW": 0.85,
    "MODERATE": 0.95,
    "HIGH": 1.0,
}

DELTA_ADJ_PIVOT = 0.1
DELTA_ADJ_WIDTH_DIVISOR = 20.0
DELTA_ADJ_MIN = 0.75
DELTA_ADJ_MAX = 1.15

FUNDING_PENALTY_APR_PCT = 20.0
FUNDING_PENALTY_FACTOR = 0.9
FUNDING_WARNING_APR_PCT = 25.0

HEDGE_MIN_DELTA_FRACTION = 0.08
HEDGE_LIQUIDITY_PROBE = 1_000_000_000_000
DEFAULT_SOL_SPOT_USD = 200.0
DEFAULT_BASE_WIDTH_PCT = 10.0

# ============================================================
# ALLOCATION
# ============================================================

ALLOCATION_HINTS = {
    "LOW": (70, 30),
    "LOW_EXCEPTIONAL": (80, 20),
    "MODERATE": (60, 40),
    "HIGH": (50, 50),
    "HIGH_MIXED": (80, 20),
}

# ============================================================
# ALERTS
# ============================================================

FUNDING_WARN_APR_PCT = 15.0
FUNDING_CRITICAL_APR_PCT = 25.0
TURNOVER_WARN_PCT = 6.0
TURNOVER_CRITICAL_PCT = 3.0
TVL_WARN_USD = 200_000
TVL_CRITICAL_USD = 120_000
DEPTH_WARN_PCT = 2.0
DEPTH_CRITICAL_PCT = 1.0

# Operator cadence profiles: edge distance as fraction of Base half-span
OPERATOR_PROFILES = {
    24: {
        "name": "DAILY",
        "delta_tolerance": 0.30,
        "min_liq_buffer_pct": 0.12,
        "preset_bias": "Base",
        "warn_edge_pct": 0.25,
        "act_edge_pct": 0.10,
    },
    48: {
        "name": "EVERY_48H",
        "delta_tolerance": 0.15,
        "min_liq_buffer_pct": 0.20,
        "preset_bias": "Conservative",
        "warn_edge_pct": 0.35,
        "act_edge_pct": 0.18,
    },
}
DEFAULT_CADENCE_HOURS = 24

# ============================================================
# PERFORMANCE LEDGER
# ============================================================

PERFORMANCE_LOOKBACK_DAYS = 7

# ============================================================
# FUNDING PROXY
# ============================================================

HOURS_PER_YEAR = 24 * 365

# ============================================================
# ON-CHAIN ENRICHMENT (depth heuristic)
# ============================================================

RPC_BATCH_SIZE = 100
DEPTH_BASE_FRACTION = 0.015
DEPTH_2PCT_MULT = 1.9
DEPTH_CONCENTRATION_TICKS = 16.0
DEPTH_CONCENTRATION_RANGE = (0.2, 3.0)
DEPTH_LIQUIDITY_LOG_DIVISOR = 8.0
DEPTH_LIQUIDITY_RANGE = (0.35, 1.5)
DEPTH_TURNOVER_BASE = 0.8
DEPTH_TURNOVER_RANGE = (0.6, 1.8)
