"""
Shortlist Decision Engine - pick at most two pools to deploy into
Version: 1.0.0

Guardrails are hard rejects, independent of regime:
  TVL            < min_tvl_usd            → GUARDRAIL_FAIL
  24h volume     < min_volume_24h_usd     → THIN_POOL_REJECT
  depth/TVL ±1%  < min_depth_tvl_1pct     → THIN_POOL_REJECT   (else DEPTH_OK)

Survivors are ordered by a composite key
  score + min(feeAPR / 5, 20) + min(depth_ratio × 200, 10)
and slots are filled by regime:
  LOW       carry pool (SOL-LST / LST-STABLE); slot 2 only for an exceptional SOL-STABLE
  MODERATE  SOL-STABLE anchor + carry pool
  HIGH      two SOL-STABLE pools
A fallback pass tops up unfilled regime slots from the remaining survivors.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import settings as cfg
from lp_types import (
    CARRY_TYPES, REJECT_CODES, DecisionReason, PoolRankingOutput, PoolUniverseType,
    RankedPool, ReasonCode, RegimeLabel, RegimeState, RejectedCandidate,
    ShortlistItem, ShortlistOutput,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShortlistConfig:
    max_pools: int = cfg.SHORTLIST_MAX_POOLS
    min_tvl_usd: float = cfg.GUARDRAIL_MIN_TVL_USD
    min_volume_24h_usd: float = cfg.GUARDRAIL_MIN_VOLUME_24H_USD
    min_depth_tvl_1pct: float = cfg.GUARDRAIL_MIN_DEPTH_TVL_1PCT
    composite_fee_apr_divisor: float = cfg.COMPOSITE_FEE_APR_DIVISOR
    composite_fee_apr_cap: float = cfg.COMPOSITE_FEE_APR_CAP
    composite_depth_mult: float = cfg.COMPOSITE_DEPTH_MULT
    composite_depth_cap: float = cfg.COMPOSITE_DEPTH_CAP
    exceptional_min_depth_ratio: float = cfg.EXCEPTIONAL_MIN_DEPTH_RATIO
    exceptional_min_fee_apr_pct: float = cfg.EXCEPTIONAL_MIN_FEE_APR_PCT
    exceptional_min_score: float = cfg.EXCEPTIONAL_MIN_SCORE
    fee_apr_strong_pct: float = cfg.FEE_APR_STRONG_PCT
    version: str = cfg.CONFIG_VERSION


# ═══════════════════════════════════════════════════════════════════════════════
# GUARDRAILS
# ═══════════════════════════════════════════════════════════════════════════════

def depth_ratio(pool: RankedPool) -> float:
    if pool.depth_tvl_1pct_ratio is not None:
        return pool.depth_tvl_1pct_ratio
    if pool.depth_usd_1pct is not None and pool.tvl_usd > 0:
        return pool.depth_usd_1pct / pool.tvl_usd
    return 0.0


def screen_guardrails(pool: RankedPool, config: ShortlistConfig = ShortlistConfig()) -> Tuple[bool, List[DecisionReason]]:
    """(passed, reasons); reasons always explain the depth check"""
    reasons = []
    ratio = depth_ratio(pool)

    if pool.tvl_usd < config.min_tvl_usd:
        reasons.append(DecisionReason(ReasonCode.GUARDRAIL_FAIL,
                                      f"TVL below guardrail (${pool.tvl_usd:,.0f} < ${config.min_tvl_usd:,.0f})"))
    if pool.volume_24h_usd < config.min_volume_24h_usd:
        reasons.append(DecisionReason(ReasonCode.THIN_POOL_REJECT,
                                      f"24h volume too low (${pool.volume_24h_usd:,.0f})"))
    if ratio < config.min_depth_tvl_1pct:
        reasons.append(DecisionReason(ReasonCode.THIN_POOL_REJECT,
                                      f"Depth/TVL(±1%) ratio too low ({ratio * 100:.2f}%)"))
    else:
        reasons.append(DecisionReason(ReasonCode.DEPTH_OK,
                                      f"Depth/TVL(±1%) ratio {ratio * 100:.2f}%"))

    return all(r.code not in REJECT_CODES for r in reasons), reasons


def composite_key(pool: RankedPool, config: ShortlistConfig = ShortlistConfig()) -> float:
    fee_term = min(pool.fee_apr_pct / config.composite_fee_apr_divisor, config.composite_fee_apr_cap)
    depth_term = min(depth_ratio(pool) * config.composite_depth_mult, config.composite_depth_cap)
    return pool.score + fee_term + depth_term


def is_exceptional_sol_stable(pool: RankedPool, config: ShortlistConfig = ShortlistConfig()) -> bool:
    return (
        pool.type == PoolUniverseType.SOL_STABLE and
        depth_ratio(pool) >= config.exceptional_min_depth_ratio and
        pool.fee_apr_pct >= config.exceptional_min_fee_apr_pct and
        pool.score >= config.exceptional_min_score
    )


# ═══════════════════════════════════════════════════════════════════════════════
# SLOT SELECTION
# ═══════════════════════════════════════════════════════════════════════════════

class _SlotPicker:
    """Accumulates picks in slot order; addresses stay distinct"""

    def __init__(self, passing: List[RankedPool], guard_reasons: dict, config: ShortlistConfig):
        self.passing = passing
        self.guard_reasons = guard_reasons
        self.config = config
        self.picks: List[Tuple[RankedPool, List[DecisionReason]]] = []
        self.used = set()

    def best(self, types=None, predicate=None) -> Optional[RankedPool]:
        for pool in self.passing:
            if pool.pool_address in self.used:
                continue
            if types is not None and pool.type not in types:
                continue
            if predicate is not None and not predicate(pool):
                continue
            return pool
        return None

    def add(self, pool: Optional[RankedPool], *reasons: DecisionReason) -> bool:
        if pool is None or pool.pool_address in self.used or len(self.picks) >= self.config.max_pools:
            return False
        trail = list(self.guard_reasons.get(pool.pool_address, []))
        trail.extend(reasons)
        if pool.fee_apr_pct >= self.config.fee_apr_strong_pct:
            trail.append(DecisionReason(ReasonCode.FEEAPR_STRONG, f"Fee APR {pool.fee_apr_pct:.1f}%"))
        self.picks.append((pool, trail))
        self.used.add(pool.pool_address)
        return True

    def fill(self, target: int) -> None:
        while len(self.picks) < min(target, self.config.max_pools):
            pool = self.best()
            if pool is None:
                return
            self.add(pool, DecisionReason(
                ReasonCode.FALLBACK_FILL,
                "Regime-preferred type unavailable; filled with best remaining guardrail-passing pool.",
            ))


def _regime_match(message: str) -> DecisionReason:
    return DecisionReason(ReasonCode.REGIME_MATCH, message)


def _pick_low(picker: _SlotPicker) -> None:
    carry = picker.best(CARRY_TYPES)
    picker.add(carry,
               _regime_match("LOW regime favours carry: SOL-LST / LST-STABLE first."),
               DecisionReason(ReasonCode.TYPE_TARGET, f"{carry.type.value} fills the carry slot.") if carry else None)
    picker.fill(1)

    exceptional = picker.best({PoolUniverseType.SOL_STABLE},
                              lambda p: is_exceptional_sol_stable(p, picker.config))
    picker.add(exceptional,
               _regime_match("LOW regime admits a second slot only for an exceptional SOL-STABLE pool."),
               DecisionReason(
                   ReasonCode.EXCEPTIONAL_SOL_STABLE,
                   f"Depth ≥ {picker.config.exceptional_min_depth_ratio:.3f}, "
                   f"feeAPR ≥ {picker.config.exceptional_min_fee_apr_pct:.0f}%, "
                   f"score ≥ {picker.config.exceptional_min_score:.0f}.",
               ))


def _pick_moderate(picker: _SlotPicker) -> None:
    anchor = picker.best({PoolUniverseType.SOL_STABLE})
    picker.add(anchor,
               _regime_match("MODERATE regime anchors on the best SOL-STABLE pool."),
               DecisionReason(ReasonCode.TYPE_TARGET, "SOL-STABLE anchor slot."))
    carry = picker.best(CARRY_TYPES)
    picker.add(carry,
               _regime_match("MODERATE regime pairs the anchor with a carry pool."),
               DecisionReason(ReasonCode.TYPE_TARGET, f"{carry.type.value} carry slot.") if carry else None)
    picker.fill(2)


def _pick_high(picker: _SlotPicker) -> None:
    for label in ("first", "second"):
        pool = picker.best({PoolUniverseType.SOL_STABLE})
        picker.add(pool,
                   _regime_match("HIGH regime prefers deep stable-anchored pools."),
                   DecisionReason(ReasonCode.TYPE_TARGET, f"SOL-STABLE {label} choice by composite key."))
    picker.fill(2)


def decide_shortlist(regime: RegimeState, rankings: PoolRankingOutput,
                     config: ShortlistConfig = None, generated_at: str = "") -> ShortlistOutput:
    """Apply guardrails and regime slot rules to the visible ranked pools."""
    config = config or ShortlistConfig()
    candidates = rankings.visible_pools()

    passing, rejected, guard_reasons = [], [], {}
    for pool in candidates:
        ok, reasons = screen_guardrails(pool, config)
        if ok:
            passing.append(pool)
            guard_reasons[pool.pool_address] = reasons
        else:
            rejected.append(RejectedCandidate(pool.pool_address, pool.pool, pool.type, reasons))

    passing.sort(key=lambda p: (-composite_key(p, config), p.rank))
    picker = _SlotPicker(passing, guard_reasons, config)

    if regime.regime == RegimeLabel.LOW:
        _pick_low(picker)
    elif regime.regime == RegimeLabel.HIGH:
        _pick_high(picker)
    else:
        _pick_moderate(picker)

    selected = []
    for slot, (pool, reasons) in enumerate(picker.picks, start=1):
        selected.append(ShortlistItem(
            slot=slot,
            pool_address=pool.pool_address,
            pool=pool.pool,
            type=pool.type,
            rank=pool.rank,
            score=pool.score,
            tvl_usd=pool.tvl_usd,
            volume_24h_usd=pool.volume_24h_usd,
            fee_apr_pct=pool.fee_apr_pct,
            depth_usd_1pct=pool.depth_usd_1pct,
            depth_usd_2pct=pool.depth_usd_2pct,
            depth_tvl_1pct_ratio=round(depth_ratio(pool), 4),
            reasons=[r for r in reasons if r is not None],
        ))

    notes = [f"Shortlist is capped at {config.max_pools} concurrent pools."]
    if not passing:
        notes.append("No candidate passed guardrails; shortlist is empty.")
    elif len(selected) < config.max_pools:
        notes.append(f"{len(selected)} pool(s) selected under {regime.regime.value} regime rules; "
                     f"remaining slot left empty.")

    logger.info(f"  ✓ Shortlist: {len(selected)}/{config.max_pools} selected "
                f"({len(passing)} passed guardrails, {len(rejected)} rejected)")

    return ShortlistOutput(
        generated_at=generated_at or regime.generated_at,
        regime=regime.regime,
        max_pools=config.max_pools,
        selected=selected,
        rejected=rejected,
        constraints={
            "min_depth_tvl_1pct_ratio": config.min_depth_tvl_1pct,
            "min_tvl_usd": config.min_tvl_usd,
            "min_volume_24h_usd": config.min_volume_24h_usd,
            "exceptional_min_depth_ratio": config.exceptional_min_depth_ratio,
            "exceptional_min_fee_apr_pct": config.exceptional_min_fee_apr_pct,
            "exceptional_min_score": config.exceptional_min_score,
        },
        summary={
            "candidates_considered": len(candidates),
            "passed_guardrails": len(passing),
            "selected_count": len(selected),
        },
        notes=notes,
    )
