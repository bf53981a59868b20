"""
Normalization - clamps, min-max scaling and realized volatility (v1.0).
"""

import math
from typing import Optional, Sequence

import numpy as np

import settings as cfg


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return float(max(lo, min(hi, value)))


def is_finite(value) -> bool:
    return value is not None and isinstance(value, (int, float)) and math.isfinite(value)


def minmax_normalize(value: Optional[float], lo: float, hi: float) -> float:
    """
    Scale into [0, 1] against fixed calibration bounds.
    Missing or non-finite input maps to the neutral 0.5.
    """
    if not is_finite(value) or hi <= lo:
        return 0.5
    return clamp((value - lo) / (hi - lo))


def sample_stdev(values: Sequence[float]) -> float:
    """Sample standard deviation (ddof=1); 0 for fewer than two values."""
    if len(values) < 2:
        return 0.0
    sd = float(np.std(np.asarray(values, dtype=float), ddof=1))
    return sd if math.isfinite(sd) else 0.0


def realized_vol_pct_annualized(prices: Sequence[float], lookback_days: int) -> Optional[float]:
    """
    Annualized realized vol (%) from the last lookback_days+1 daily prices.

    Log-return sample stdev × √365 × 100. Returns None when there are fewer
    than lookback_days+1 prices or fewer than max(3, lookback_days-2)
    finite returns.
    """
    if len(prices) < lookback_days + 1:
        return None
    window = np.asarray(prices[-(lookback_days + 1):], dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        rets = np.log(window[1:] / window[:-1])
    rets = rets[np.isfinite(rets)]
    if len(rets) < max(3, lookback_days - 2):
        return None
    return sample_stdev(rets) * math.sqrt(cfg.TRADING_DAYS_PER_YEAR) * 100
