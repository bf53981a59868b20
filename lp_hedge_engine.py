"""
LP Hedge Engine v1.0
SOL short sizing per $10k deployed into a shortlisted pool.

Delta fraction comes from one of two paths:
- precise:  deposit ratio of the planned Base range at current price, quoted
            with whirlpool tick math and converted to USD
- fallback: per-type heuristic, adjusted by Base range width

hedge_usd_per_10k = 10_000 × fraction × regime multiplier × funding penalty
Below a 0.08 delta fraction the hedge is disabled (side NONE).
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Sequence, Tuple, Union

import lp_config
import settings as cfg
import tick_math
from lp_opportunities import normalize_token_symbol
from lp_types import (
    DepositRatioSource, HedgePlan, HedgeSide, PlansOutput, PoolPlan,
    PoolUniverseType, RankedPool,
)
from normalization import clamp

logger = logging.getLogger(__name__)

PRECISE_TYPES = {PoolUniverseType.SOL_STABLE, PoolUniverseType.SOL_LST, PoolUniverseType.LST_STABLE}


class HedgeMathError(ValueError):
    """Deposit-ratio computation could not complete; caller falls back to the heuristic"""


@dataclass(frozen=True)
class HedgeConfig:
    notional_usd: float = cfg.HEDGE_NOTIONAL_USD
    base_delta_fraction: Dict[str, float] = field(default_factory=lambda: dict(cfg.BASE_DELTA_FRACTION))
    default_delta_fraction: float = cfg.DEFAULT_DELTA_FRACTION
    regime_multiplier: Dict[str, float] = field(default_factory=lambda: dict(cfg.HEDGE_MULTIPLIER_BY_REGIME))
    delta_adj_pivot: float = cfg.DELTA_ADJ_PIVOT
    delta_adj_width_divisor: float = cfg.DELTA_ADJ_WIDTH_DIVISOR
    delta_adj_min: float = cfg.DELTA_ADJ_MIN
    delta_adj_max: float = cfg.DELTA_ADJ_MAX
    funding_penalty_apr_pct: float = cfg.FUNDING_PENALTY_APR_PCT
    funding_penalty_factor: float = cfg.FUNDING_PENALTY_FACTOR
    funding_warning_apr_pct: float = cfg.FUNDING_WARNING_APR_PCT
    min_delta_fraction: float = cfg.HEDGE_MIN_DELTA_FRACTION
    liquidity_probe: int = cfg.HEDGE_LIQUIDITY_PROBE
    default_sol_spot_usd: float = cfg.DEFAULT_SOL_SPOT_USD
    default_base_width_pct: float = cfg.DEFAULT_BASE_WIDTH_PCT
    version: str = cfg.CONFIG_VERSION


# ═══════════════════════════════════════════════════════════════════════════════
# DEPOSIT RATIO RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class PreciseRatio:
    """Risk-asset USD share from tick math"""
    risk_ratio: float
    token_a_ratio: float
    token_b_ratio: float
    token_a_symbol: str
    token_b_symbol: str
    risk_asset_label: str
    risk_asset_spot_usd: float
    provenance: str = "tick-math"


@dataclass
class HeuristicRatio:
    """Per-type delta fraction with the reason tick math was not used"""
    risk_ratio: float
    reason: str


DepositRatio = Union[PreciseRatio, HeuristicRatio]


# ═══════════════════════════════════════════════════════════════════════════════
# PRICES
# ═══════════════════════════════════════════════════════════════════════════════

def _valid_price(value) -> bool:
    return value is not None and isinstance(value, (int, float)) and math.isfinite(value) and value > 0


def derive_token_usd_prices(row: RankedPool, sol_spot_usd: float) -> Tuple[Optional[float], Optional[float]]:
    """
    USD price of token A and token B.
    Stables are $1, SOL-equivalents trade at SOL spot; a missing side is
    cross-derived from the pool price (token B per token A).
    """
    sym_a, sym_b = (normalize_token_symbol(s) for s in row.token_symbols[:2])
    price_a = price_b = None

    if sym_a in lp_config.STABLE_SYMBOLS:
        price_a = 1.0
    if sym_b in lp_config.STABLE_SYMBOLS:
        price_b = 1.0
    if sym_a in lp_config.SOL_EQUIVALENT_SYMBOLS:
        price_a = sol_spot_usd
    if sym_b in lp_config.SOL_EQUIVALENT_SYMBOLS:
        price_b = sol_spot_usd

    p = row.spot_price
    if _valid_price(p):
        if price_b is not None and price_a is None:
            price_a = p * price_b
        if price_a is not None and price_b is None:
            price_b = price_a / p
        if price_a is None and price_b is None:
            if sym_b in lp_config.STABLE_SYMBOLS:
                price_a, price_b = p, 1.0
            elif sym_a in lp_config.STABLE_SYMBOLS:
                price_a, price_b = 1.0, 1 / p

    return price_a, price_b


def resolve_sol_spot(rows: Sequence[RankedPool], prices: Sequence[float] = (),
                     default: float = cfg.DEFAULT_SOL_SPOT_USD) -> float:
    """Best SOL-STABLE pool spot, else the last daily close, else the default"""
    for row in rows:
        if row.type != PoolUniverseType.SOL_STABLE or not _valid_price(row.spot_price):
            continue
        sym_a = normalize_token_symbol(row.token_symbols[0]) if row.token_symbols else ""
        if sym_a in lp_config.SOL_SYMBOLS and row.spot_price > 1:
            return row.spot_price
        if sym_a in lp_config.STABLE_SYMBOLS and row.spot_price < 1:
            return 1 / row.spot_price
    if prices and _valid_price(prices[-1]):
        return float(prices[-1])
    return default


# ═══════════════════════════════════════════════════════════════════════════════
# DEPOSIT RATIO
# ═══════════════════════════════════════════════════════════════════════════════

def base_range_ticks(row: RankedPool, width_pct: float) -> Tuple[int, int]:
    """Initializable ticks bounding spot ± width; collapses widen to ±1 spacing"""
    dec_a, dec_b = row.token_decimals[0], row.token_decimals[1]
    lower = tick_math.initializable_tick_index(
        tick_math.price_to_tick_index(row.spot_price * (1 - width_pct / 100), dec_a, dec_b),
        row.tick_spacing, round_up=False)
    upper = tick_math.initializable_tick_index(
        tick_math.price_to_tick_index(row.spot_price * (1 + width_pct / 100), dec_a, dec_b),
        row.tick_spacing, round_up=True)
    if lower >= upper:
        lower = tick_math.initializable_tick_index(row.tick_current_index - row.tick_spacing,
                                                   row.tick_spacing, round_up=False)
        upper = tick_math.initializable_tick_index(row.tick_current_index + row.tick_spacing,
                                                   row.tick_spacing, round_up=True)
    return lower, upper


def compute_deposit_ratio_usd(row: RankedPool, lower_tick: int, upper_tick: int,
                              sqrt_price_x64: int, sol_spot_usd: float,
                              config: HedgeConfig = HedgeConfig()) -> PreciseRatio:
    """Quote a probe liquidity over [lower, upper) and split it into USD shares."""
    if not row.token_decimals or len(row.token_decimals) < 2:
        raise HedgeMathError("missing token decimals")
    dec_a, dec_b = row.token_decimals[0], row.token_decimals[1]

    probe = config.liquidity_probe
    try:
        est_a, est_b = tick_math.amounts_for_liquidity(sqrt_price_x64, lower_tick, upper_tick, probe)
    except tick_math.TickMathError as e:
        raise HedgeMathError(str(e)) from e

    amount_a = est_a / 10 ** dec_a / probe
    amount_b = est_b / 10 ** dec_b / probe
    if not math.isfinite(amount_a) or not math.isfinite(amount_b) or (amount_a <= 0 and amount_b <= 0):
        raise HedgeMathError("tick-math quote produced zero/invalid token estimates")

    sym_a, sym_b = row.token_symbols[0], row.token_symbols[1]
    price_a, price_b = derive_token_usd_prices(row, sol_spot_usd)
    if not _valid_price(price_a) or not _valid_price(price_b):
        raise HedgeMathError("missing token USD price conversion")

    usd_a = amount_a * price_a
    usd_b = amount_b * price_b
    total = usd_a + usd_b
    if not total > 0:
        raise HedgeMathError("non-positive USD total")

    a_risk = normalize_token_symbol(sym_a) in lp_config.SOL_EQUIVALENT_SYMBOLS
    b_risk = normalize_token_symbol(sym_b) in lp_config.SOL_EQUIVALENT_SYMBOLS
    if a_risk and b_risk:
        risk_ratio, label, risk_spot = 1.0, f"{sym_a}+{sym_b} (SOL-equivalent)", sol_spot_usd
    elif a_risk:
        risk_ratio, label, risk_spot = usd_a / total, sym_a, price_a
    elif b_risk:
        risk_ratio, label, risk_spot = usd_b / total, sym_b, price_b
    else:
        raise HedgeMathError("no SOL-equivalent side identified")

    return PreciseRatio(
        risk_ratio=risk_ratio,
        token_a_ratio=usd_a / total,
        token_b_ratio=usd_b / total,
        token_a_symbol=sym_a,
        token_b_symbol=sym_b,
        risk_asset_label=label,
        risk_asset_spot_usd=risk_spot,
    )


def _has_pool_math(row: Optional[RankedPool], pool_type: PoolUniverseType) -> bool:
    return (
        row is not None and
        pool_type in PRECISE_TYPES and
        row.tick_spacing is not None and
        row.tick_current_index is not None and
        bool(row.sqrt_price_x64) and
        _valid_price(row.spot_price) and
        bool(row.token_decimals) and len(row.token_decimals) >= 2
    )


def delta_adjustment(width_pct: float, config: HedgeConfig = HedgeConfig()) -> float:
    return clamp(1.0 + (config.delta_adj_pivot - width_pct / config.delta_adj_width_divisor),
                 config.delta_adj_min, config.delta_adj_max)


def deposit_ratio_for_plan(plan: PoolPlan, row: Optional[RankedPool], width_pct: float,
                           sol_spot_usd: float, config: HedgeConfig = HedgeConfig()) -> DepositRatio:
    heuristic = config.base_delta_fraction.get(plan.type.value, config.default_delta_fraction)
    if not _has_pool_math(row, plan.type):
        return HeuristicRatio(heuristic, "missing pool math metadata")
    try:
        lower, upper = base_range_ticks(row, width_pct)
        return compute_deposit_ratio_usd(row, lower, upper, int(row.sqrt_price_x64), sol_spot_usd, config)
    except (HedgeMathError, tick_math.TickMathError, ValueError) as e:
        logger.warning(f"Deposit ratio fallback for {plan.pool}: {e}")
        return HeuristicRatio(heuristic, str(e))


# ═══════════════════════════════════════════════════════════════════════════════
# HEDGE PLAN
# ═══════════════════════════════════════════════════════════════════════════════

def build_hedge_plan(plan: PoolPlan, row: Optional[RankedPool], regime_label: str,
                     funding_apr_pct: Optional[float], sol_spot_usd: float,
                     config: HedgeConfig = HedgeConfig()) -> HedgePlan:
    base = plan.preset("Base")
    width_pct = float(base.half_width_pct) if base else config.default_base_width_pct
    adj = delta_adjustment(width_pct, config)
    multiplier = config.regime_multiplier.get(regime_label, 1.0)
    funding_penalty = (config.funding_penalty_factor
                       if funding_apr_pct is not None and funding_apr_pct > config.funding_penalty_apr_pct
                       else 1.0)

    ratio = deposit_ratio_for_plan(plan, row, width_pct, sol_spot_usd, config)
    if isinstance(ratio, PreciseRatio):
        approx = ratio.risk_ratio * adj
        hedge_usd = config.notional_usd * ratio.risk_ratio * multiplier * funding_penalty
        note = "derived from deposit ratio for planned Base range at current price"
        source = DepositRatioSource.PRECISE
    else:
        approx = ratio.risk_ratio * adj
        hedge_usd = config.notional_usd * approx * multiplier * funding_penalty
        note = f"fallback heuristic used: {ratio.reason}"
        source = DepositRatioSource.FALLBACK

    hedge_sol = hedge_usd / sol_spot_usd
    enabled = approx >= config.min_delta_fraction
    warning = None
    if funding_apr_pct is not None and funding_apr_pct > config.funding_warning_apr_pct:
        warning = f"Funding APR {funding_apr_pct:.1f}% is elevated; trim hedge size or use partial hedge."

    if enabled:
        note += "; hedge normalized per $10k with regime multiplier and SOL short sizing."
    else:
        note += "; no hedge suggested because estimated SOL delta fraction is low."

    precise = ratio if isinstance(ratio, PreciseRatio) else None
    return HedgePlan(
        enabled=enabled,
        side=HedgeSide.SHORT_SOL if enabled else HedgeSide.NONE,
        delta_estimate_sol_per_10k_usd=round(config.notional_usd * approx / sol_spot_usd, 4),
        recommended_short_sol_per_10k_usd=round(hedge_sol, 4) if enabled else 0.0,
        recommended_short_notional_usd_per_10k_usd=round(hedge_usd, 2) if enabled else 0.0,
        hedge_multiplier=round(multiplier, 2),
        funding_penalty=funding_penalty,
        approx_delta_fraction=round(approx, 4),
        deposit_ratio_source=source,
        note=note,
        deposit_ratio_risk_asset_usd=round(precise.risk_ratio, 4) if precise else None,
        deposit_ratio_token_a_usd=round(precise.token_a_ratio, 4) if precise else None,
        deposit_ratio_token_b_usd=round(precise.token_b_ratio, 4) if precise else None,
        deposit_ratio_token_a_symbol=precise.token_a_symbol if precise else None,
        deposit_ratio_token_b_symbol=precise.token_b_symbol if precise else None,
        risk_asset_label=precise.risk_asset_label if precise else None,
        funding_apr_pct=funding_apr_pct,
        warning=warning,
    )


def apply_hedge_plans(plans: PlansOutput, rankings_by_address: Dict[str, RankedPool] = None,
                      sol_spot_usd: Optional[float] = None,
                      config: HedgeConfig = None) -> PlansOutput:
    """Attach a HedgePlan to every pool plan; returns a new PlansOutput"""
    config = config or HedgeConfig()
    rankings_by_address = rankings_by_address or {}
    spot = sol_spot_usd if _valid_price(sol_spot_usd) else config.default_sol_spot_usd
    label = str(plans.regime.get("label", "MODERATE"))
    funding = plans.regime.get("funding_apr_pct")

    hedged = []
    for plan in plans.plans:
        hedge = build_hedge_plan(plan, rankings_by_address.get(plan.pool_address),
                                 label, funding, spot, config)
        hedged.append(replace(plan, hedge=hedge))
        logger.info(f"  Hedge {plan.pool}: {hedge.side.value} "
                    f"{hedge.recommended_short_sol_per_10k_usd} SOL/$10k ({hedge.deposit_ratio_source.value})")

    notes = list(plans.notes)
    notes.append(f"Hedge sizing uses SOL spot ${spot:,.2f} and is normalized per $10k deployed.")
    return replace(plans, plans=hedged, notes=notes)
