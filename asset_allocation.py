"""
Asset Allocation Policy v1.0 - integer weights across the LP shortlist

Regime hints:
  LOW       70/30, or 80/20 when slot 2 is the exceptional SOL-STABLE
  MODERATE  60/40
  HIGH      50/50, or 80/20 when slot 2 is not stable-anchored

Hints are truncated to the selected pool count and normalised with
largest-remainder rounding so the weights always sum to exactly 100.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import settings as cfg
from lp_types import (
    STABLE_ANCHORED, AllocationItem, AllocationOutput, ReasonCode, RegimeLabel,
    ShortlistItem, ShortlistOutput,
)

logger = logging.getLogger(__name__)


# ============================================================
# CONFIG
# ============================================================

@dataclass(frozen=True)
class AllocationConfig:
    hints: Dict[str, Tuple[int, ...]] = field(default_factory=lambda: dict(cfg.ALLOCATION_HINTS))
    total_pct: int = 100
    version: str = cfg.CONFIG_VERSION


# ============================================================
# WEIGHTS
# ============================================================

def normalize_weights_largest_remainder(hints: Sequence[float], total: int = 100) -> List[int]:
    """
    Proportional integer shares of `total`.
    Floors every share, then hands the leftover points one by one to the
    largest fractional remainders (earlier entries win ties).
    """
    if not hints:
        return []
    clean = [h if math.isfinite(h) and h > 0 else 0.0 for h in hints]
    weight_sum = sum(clean)
    if weight_sum <= 0:
        clean = [1.0] * len(hints)
        weight_sum = float(len(hints))

    raw = [total * h / weight_sum for h in clean]
    floors = [int(math.floor(x)) for x in raw]
    leftover = total - sum(floors)
    order = sorted(range(len(raw)), key=lambda i: (-(raw[i] - floors[i]), i))
    for i in order[:leftover]:
        floors[i] += 1
    return floors


def weight_hints(regime: RegimeLabel, selected: Sequence[ShortlistItem],
                 config: AllocationConfig = AllocationConfig()) -> Tuple[List[int], str]:
    """(hints truncated to len(selected), rationale)"""
    n = len(selected)
    if n == 0:
        return [], "No pools selected."
    if n == 1:
        return [100], "Single selected pool receives the full allocation."

    second = selected[1]
    if regime == RegimeLabel.LOW:
        if second.has_reason(ReasonCode.EXCEPTIONAL_SOL_STABLE):
            key, why = "LOW_EXCEPTIONAL", "LOW regime: carry pool leads, exceptional SOL-STABLE capped at 20%."
        else:
            # decide_shortlist never fills LOW slot 2 otherwise; reached by shortlists built elsewhere
            key, why = "LOW", "LOW regime: carry pool leads 70/30."
    elif regime == RegimeLabel.HIGH:
        if second.type in STABLE_ANCHORED:
            key, why = "HIGH", "HIGH regime: two stable-anchored pools split evenly."
        else:
            key, why = "HIGH_MIXED", "HIGH regime: non-stable-anchored second slot capped at 20%."
    else:
        key, why = "MODERATE", "MODERATE regime: SOL-STABLE anchor 60, carry 40."

    return list(config.hints[key])[:n], why


def build_allocation_recommendation(shortlist: ShortlistOutput, config: AllocationConfig = None,
                                    generated_at: str = "") -> AllocationOutput:
    config = config or AllocationConfig()
    selected = sorted(shortlist.selected, key=lambda s: s.slot)[:shortlist.max_pools]

    hints, why = weight_hints(shortlist.regime, selected, config)
    weights = normalize_weights_largest_remainder(hints, config.total_pct)

    allocations = [
        AllocationItem(
            pool_address=item.pool_address,
            pool=item.pool,
            type=item.type,
            slot=item.slot,
            weight_pct=w,
            rationale=f"Slot {item.slot} {item.type.value} at {w}%",
        )
        for item, w in zip(selected, weights)
    ]

    notes = []
    if not allocations:
        notes.append("Shortlist is empty; no allocation recommended this run.")

    logger.info(f"  ✓ Allocation: {[a.weight_pct for a in allocations] or 'empty'}")

    return AllocationOutput(
        generated_at=generated_at or shortlist.generated_at,
        regime=shortlist.regime,
        max_pools=shortlist.max_pools,
        allocations=allocations,
        rationale=[why],
        notes=notes,
    )
