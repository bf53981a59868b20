"""
Operator cadence profiles.

How often the operator checks positions decides which preset to lean on
and how close to a range edge spot may drift before an alert fires.
"""

from dataclasses import dataclass
from typing import Optional

import settings as cfg


@dataclass(frozen=True)
class OperatorMode:
    name: str                      # DAILY | EVERY_48H
    monitor_cadence_hours: int
    delta_tolerance: float
    min_liq_buffer_pct: float
    preset_bias: str               # Base | Conservative
    warn_edge_pct: float           # fraction of Base half-span
    act_edge_pct: float


def normalize_cadence_hours(hours: Optional[object]) -> int:
    """48 stays 48; anything else (None, junk, 12, 72) is the daily cadence"""
    try:
        value = float(hours)
    except (TypeError, ValueError):
        return cfg.DEFAULT_CADENCE_HOURS
    return 48 if value == 48 else cfg.DEFAULT_CADENCE_HOURS


def get_operator_mode(hours: Optional[object] = None) -> OperatorMode:
    cadence = normalize_cadence_hours(hours)
    profile = cfg.OPERATOR_PROFILES[cadence]
    return OperatorMode(monitor_cadence_hours=cadence, **profile)
