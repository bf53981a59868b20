"""
LP Range Planner - Conservative / Base / Aggressive width presets per shortlisted pool
Version: 1.0.0

half_width = (type vol proxy / √52) × preset multiplier × regime width multiplier
SOL-STABLE Base is held to [4, 20] in LOW and [5, 20] otherwise; every preset
ends inside [2, 30].
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import settings as cfg
from lp_types import (
    PlanToken, PlansOutput, PoolPlan, PoolRankingOutput, PoolUniverseType,
    RangePreset, RankedPool, RegimeLabel, RegimeState, ShortlistOutput,
)
from normalization import clamp

logger = logging.getLogger(__name__)

PRESET_LABELS = ("Conservative", "Base", "Aggressive")


@dataclass(frozen=True)
class RangeConfig:
    default_sol_vol_pct: float = cfg.DEFAULT_SOL_VOL_PCT
    weeks_per_year: int = cfg.WEEKS_PER_YEAR
    vol_proxy_by_type: Dict[str, Optional[Tuple[float, float, float]]] = field(
        default_factory=lambda: dict(cfg.VOL_PROXY_BY_TYPE))
    multipliers: Dict[str, Tuple[float, float, float]] = field(
        default_factory=lambda: dict(cfg.RANGE_MULTIPLIERS))
    regime_width: Dict[str, float] = field(default_factory=lambda: dict(cfg.REGIME_WIDTH_MULTIPLIER))
    sol_stable_base_min_low: float = cfg.SOL_STABLE_BASE_MIN_LOW
    sol_stable_base_min: float = cfg.SOL_STABLE_BASE_MIN
    sol_stable_base_max: float = cfg.SOL_STABLE_BASE_MAX
    min_half_width_pct: float = cfg.RANGE_MIN_HALF_WIDTH_PCT
    max_half_width_pct: float = cfg.RANGE_MAX_HALF_WIDTH_PCT
    version: str = cfg.CONFIG_VERSION


def sol_vol_pct(regime: RegimeState, config: RangeConfig = RangeConfig()) -> float:
    m = regime.metrics
    for value in (m.vol_30d_pct, m.vol_7d_pct):
        if value is not None and math.isfinite(value):
            return value
    return config.default_sol_vol_pct


def vol_proxy_by_type(pool_type: PoolUniverseType, sol_vol: float,
                      config: RangeConfig = RangeConfig()) -> float:
    """Annualized vol estimate for the pair; LST pairs carry a fraction of SOL vol"""
    rule = config.vol_proxy_by_type.get(pool_type.value)
    if rule is None:
        return sol_vol
    factor, lo, hi = rule
    return clamp(sol_vol * factor, lo, hi)


def build_presets(pool_type: PoolUniverseType, regime_label: RegimeLabel, vol_annual: float,
                  spot: Optional[float] = None, config: RangeConfig = RangeConfig()) -> List[RangePreset]:
    weekly_sigma = vol_annual / math.sqrt(config.weeks_per_year)
    regime_mult = config.regime_width.get(regime_label.value, 1.0)
    mults = config.multipliers.get(pool_type.value, config.multipliers["SOL-STABLE"])

    presets = []
    for label, mult in zip(PRESET_LABELS, mults):
        hw = weekly_sigma * mult * regime_mult
        if pool_type == PoolUniverseType.SOL_STABLE and label == "Base":
            floor = (config.sol_stable_base_min_low if regime_label == RegimeLabel.LOW
                     else config.sol_stable_base_min)
            hw = clamp(hw, floor, config.sol_stable_base_max)
        hw = round(clamp(hw, config.min_half_width_pct, config.max_half_width_pct), 2)

        has_spot = spot is not None and math.isfinite(spot) and spot > 0
        presets.append(RangePreset(
            label=label,
            half_width_pct=hw,
            lower_pct=-hw,
            upper_pct=hw,
            lower_price=round(spot * (1 - hw / 100), 6) if has_spot else None,
            upper_price=round(spot * (1 + hw / 100), 6) if has_spot else None,
            rationale=f"~{mult * regime_mult:.1f}x weekly sigma proxy from {pool_type.value} volatility, "
                      f"scaled by regime",
        ))
    return presets


def _plan_tokens(row: Optional[RankedPool]) -> Tuple[Optional[PlanToken], Optional[PlanToken]]:
    if row is None or len(row.token_symbols) < 2 or len(row.token_mints) < 2:
        return None, None
    decimals = row.token_decimals or [None, None]
    return (
        PlanToken(mint=row.token_mints[0], symbol=row.token_symbols[0], decimals=decimals[0]),
        PlanToken(mint=row.token_mints[1], symbol=row.token_symbols[1], decimals=decimals[1]),
    )


def build_range_plans(shortlist: ShortlistOutput, regime: RegimeState, rankings: PoolRankingOutput,
                      operator_mode=None, config: RangeConfig = None,
                      generated_at: str = "") -> PlansOutput:
    """One PoolPlan per shortlisted pool; hedge is attached later by the hedge planner."""
    config = config or RangeConfig()
    by_address = rankings.by_address()
    sol_vol = sol_vol_pct(regime, config)
    regime_mult = config.regime_width.get(regime.regime.value, 1.0)
    preset_bias = getattr(operator_mode, "preset_bias", "Base")
    mode_name = getattr(operator_mode, "name", "DAILY")

    plans = []
    for item in shortlist.selected:
        row = by_address.get(item.pool_address)
        spot = row.spot_price if row else None
        vol = vol_proxy_by_type(item.type, sol_vol, config)
        token_a, token_b = _plan_tokens(row)
        plans.append(PoolPlan(
            pool_address=item.pool_address,
            pool=item.pool,
            type=item.type,
            spot_price=spot,
            volatility_proxy_pct_annual=round(vol, 2),
            regime_width_multiplier=regime_mult,
            presets=build_presets(item.type, regime.regime, vol, spot, config),
            recommended_preset=preset_bias,
            token_a=token_a,
            token_b=token_b,
        ))

    logger.info(f"  ✓ Range plans: {len(plans)} pools (SOL vol proxy {sol_vol:.1f}%, "
                f"regime width x{regime_mult})")

    return PlansOutput(
        generated_at=generated_at or regime.generated_at,
        regime={"label": regime.regime.value, "funding_apr_pct": regime.metrics.funding_apr_pct},
        operator_mode=mode_name,
        plans=plans,
        notes=[
            "Range presets are weekly-sigma proxies, not forecasts.",
            f"Recommended preset follows the {mode_name} operator profile ({preset_bias}).",
        ],
    )
