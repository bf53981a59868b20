"""
LP Opportunities Scanner - Classify and rank Orca whirlpools
Version: 1.0.0

Функционал:
- Классификация пар: SOL-STABLE, SOL-LST, LST-STABLE, LST-LST, STABLE-STABLE
- Фильтрация по TVL и 24h Volume
- Композитный скор: fee APR, turnover, depth, TVL, стабильность
- Бакеты по типам пулов (STABLE-STABLE скрыт)
"""

import logging
import math
import re
from dataclasses import asdict, dataclass, field, replace
from typing import Dict, List, Optional, Tuple

import lp_config
import settings as cfg
from lp_types import (
    OnchainEnrichment, Pool, PoolRankingOutput, PoolUniverseType,
    RankedPool, RegimeState, StabilityMetric,
)
from normalization import clamp

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONFIG
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RankingConfig:
    tvl_floor_stable_usd: float = cfg.TVL_FLOOR_STABLE_USD
    tvl_floor_lst_usd: float = cfg.TVL_FLOOR_LST_USD
    volume_24h_floor_usd: float = cfg.VOLUME_24H_FLOOR_USD
    top_n: int = cfg.RANKING_TOP_N
    weights: Dict[str, float] = field(default_factory=lambda: dict(cfg.RANKING_WEIGHTS))
    fee_apr_norm_pct: float = cfg.FEE_APR_NORM_PCT
    turnover_norm: float = cfg.TURNOVER_NORM
    depth_norm_ratio: float = cfg.DEPTH_NORM_RATIO
    tvl_norm_log10: float = cfg.TVL_NORM_LOG10
    validation_bonus: float = cfg.VALIDATION_BONUS
    reward_penalty: float = cfg.REWARD_PENALTY
    stability_default: float = cfg.STABILITY_DEFAULT_FOR_SCORING
    version: str = cfg.CONFIG_VERSION


# ═══════════════════════════════════════════════════════════════════════════════
# CLASSIFICATION
# ═══════════════════════════════════════════════════════════════════════════════

def normalize_token_symbol(symbol: str) -> str:
    """Strip non-alphanumerics and uppercase: 'jitoSOL' -> 'JITOSOL'"""
    return re.sub(r"[^A-Za-z0-9]", "", symbol or "").upper()


def get_token_class(symbol: str) -> Optional[str]:
    s = normalize_token_symbol(symbol)
    if s in lp_config.SOL_SYMBOLS:
        return "sol"
    if s in lp_config.LST_SYMBOLS:
        return "lst"
    if s in lp_config.STABLE_SYMBOLS:
        return "stable"
    return None


def classify_pair(symbol_a: str, symbol_b: str) -> Optional[PoolUniverseType]:
    """Pair type from token symbols; None drops the pool from the universe"""
    classes = (get_token_class(symbol_a), get_token_class(symbol_b))
    pair = set(classes)

    if pair == {"sol", "stable"}:
        return PoolUniverseType.SOL_STABLE
    if pair == {"sol", "lst"}:
        return PoolUniverseType.SOL_LST
    if pair == {"stable", "lst"}:
        return PoolUniverseType.LST_STABLE
    if classes == ("stable", "stable"):
        return PoolUniverseType.STABLE_STABLE
    if classes == ("lst", "lst"):
        return PoolUniverseType.LST_LST
    return None


def classify_pool(pool: Pool) -> Optional[PoolUniverseType]:
    return classify_pair(pool.token_a.symbol, pool.token_b.symbol)


def tvl_floor(pool_type: PoolUniverseType, config: RankingConfig = RankingConfig()) -> float:
    if pool_type in (PoolUniverseType.SOL_STABLE, PoolUniverseType.STABLE_STABLE):
        return config.tvl_floor_stable_usd
    return config.tvl_floor_lst_usd


def passes_thresholds(pool: Pool, pool_type: PoolUniverseType,
                      config: RankingConfig = RankingConfig()) -> bool:
    if pool.tvl_usd < tvl_floor(pool_type, config):
        return False
    if pool.stats_24h.volume < config.volume_24h_floor_usd:
        return False
    return True


def select_universe_pools(pools: List[Pool]) -> List[Pool]:
    """Pools with a recognised pair type"""
    return [p for p in pools if classify_pool(p) is not None]


def select_threshold_pools(pools: List[Pool], config: RankingConfig = RankingConfig()) -> List[Pool]:
    """Universe pools that clear the TVL / volume floors"""
    out = []
    for pool in pools:
        pool_type = classify_pool(pool)
        if pool_type is not None and passes_thresholds(pool, pool_type, config):
            out.append(pool)
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# SCORING
# ═══════════════════════════════════════════════════════════════════════════════

def fee_apr_pct(pool: Pool) -> float:
    """24h volume × fee tier × 365 × 100 / TVL"""
    if pool.tvl_usd <= 0:
        return 0.0
    return pool.stats_24h.volume * pool.fee_tier_rate * 365 * 100 / pool.tvl_usd


def volume_tvl(pool: Pool) -> float:
    return pool.stats_24h.volume / pool.tvl_usd if pool.tvl_usd > 0 else 0.0


def score_pool(pool: Pool,
               onchain: Optional[OnchainEnrichment] = None,
               stability: Optional[StabilityMetric] = None,
               config: RankingConfig = RankingConfig()) -> Tuple[float, str]:
    """
    Returns (score 0-100, explanation).
    Base composite is scaled by (0.6 + 0.4 × stability).
    """
    fee_apr = fee_apr_pct(pool)
    turnover = volume_tvl(pool)
    d1 = (onchain.depth_usd_1pct if onchain else None) or 0.0
    d2 = (onchain.depth_usd_2pct if onchain else None) or 0.0

    w = config.weights
    depth_norm = clamp((d1 + 0.5 * d2) / max(pool.tvl_usd, 1) / config.depth_norm_ratio)
    tvl_norm = clamp(math.log10(max(pool.tvl_usd, 1)) / config.tvl_norm_log10)
    fee_apr_norm = clamp(fee_apr / config.fee_apr_norm_pct)
    turnover_norm = clamp(turnover / config.turnover_norm)
    bonus = config.validation_bonus if onchain and onchain.validated else 0.0
    penalty = config.reward_penalty if pool.rewards_active_count > 0 else 0.0

    raw = (
        w["fee_apr"] * fee_apr_norm +
        w["turnover"] * turnover_norm +
        w["depth"] * depth_norm +
        w["tvl"] * tvl_norm +
        bonus - penalty
    )
    stability_score = clamp(stability.stability_score if stability else config.stability_default)
    score = clamp(raw) * 100 * (cfg.STABILITY_FLOOR_MULT + cfg.STABILITY_SPAN_MULT * stability_score)

    notes = [f"feeAPR {fee_apr:.1f}%", f"turnover {turnover * 100:.1f}%/day"]
    if onchain and onchain.depth_usd_1pct is not None:
        notes.append(f"depth±1% ~${onchain.depth_usd_1pct:,.0f}")
    if stability:
        notes.append(f"stability {stability.stability_score * 100:.0f}%")
    if pool.rewards_active_count > 0:
        plural = "s" if pool.rewards_active_count > 1 else ""
        notes.append(f"{pool.rewards_active_count} active reward{plural}")
    if stability and stability.stability_note:
        notes.append("stability history sparse")

    return round(score, 2), "; ".join(notes)


def _ranked_row(pool: Pool, pool_type: PoolUniverseType,
                onchain: Optional[OnchainEnrichment],
                stability: Optional[StabilityMetric],
                config: RankingConfig) -> RankedPool:
    score, explanation = score_pool(pool, onchain, stability, config)
    d1 = onchain.depth_usd_1pct if onchain else None
    d2 = onchain.depth_usd_2pct if onchain else None
    decimals = None
    if pool.token_a.decimals is not None and pool.token_b.decimals is not None:
        decimals = [pool.token_a.decimals, pool.token_b.decimals]
    spot = pool.price if pool.price is not None and math.isfinite(pool.price) else None

    return RankedPool(
        rank=0,
        pool_address=pool.address,
        pool=pool.label,
        type=pool_type,
        fee_tier_pct=round(pool.fee_tier_rate * 100, 4),
        tvl_usd=round(pool.tvl_usd, 2),
        volume_24h_usd=round(pool.stats_24h.volume, 2),
        fee_apr_pct=round(fee_apr_pct(pool), 2),
        volume_tvl=round(volume_tvl(pool), 4),
        score=score,
        explanation=explanation,
        validated_onchain=bool(onchain and onchain.validated),
        token_symbols=[pool.token_a.symbol, pool.token_b.symbol],
        token_mints=[pool.token_a.address, pool.token_b.address],
        token_decimals=decimals,
        spot_price=round(spot, 8) if spot is not None else None,
        tick_spacing=pool.tick_spacing,
        tick_current_index=pool.tick_current_index,
        sqrt_price_x64=pool.sqrt_price_raw,
        depth_usd_1pct=round(d1, 2) if d1 is not None else None,
        depth_usd_2pct=round(d2, 2) if d2 is not None else None,
        depth_tvl_1pct_ratio=round(d1 / pool.tvl_usd, 4) if d1 is not None and pool.tvl_usd > 0 else None,
        depth_method=onchain.depth_method if onchain else None,
        stability_score=stability.stability_score if stability else None,
        mean_vol_tvl_7d=stability.mean_vol_tvl_7d if stability else None,
        stdev_vol_tvl_7d=stability.stdev_vol_tvl_7d if stability else None,
        stability_note=stability.stability_note if stability else None,
    )


def _rerank(rows: List[RankedPool]) -> List[RankedPool]:
    return [replace(row, rank=i) for i, row in enumerate(rows, start=1)]


# ═══════════════════════════════════════════════════════════════════════════════
# RANKING
# ═══════════════════════════════════════════════════════════════════════════════

def build_pool_rankings(pools: List[Pool],
                        regime: RegimeState,
                        onchain_by_pool: Dict[str, OnchainEnrichment],
                        stability_by_pool: Optional[Dict[str, StabilityMetric]] = None,
                        config: RankingConfig = None,
                        generated_at: str = "") -> PoolRankingOutput:
    """Classify, threshold, score, sort and bucket the fetched pools."""
    config = config or RankingConfig()
    stability_by_pool = stability_by_pool or {}

    eligible = []
    for pool in pools:
        pool_type = classify_pool(pool)
        if pool_type is not None:
            eligible.append((pool, pool_type))

    filtered = [(p, t) for p, t in eligible if passes_thresholds(p, t, config)]

    rows = [
        _ranked_row(p, t, onchain_by_pool.get(p.address), stability_by_pool.get(p.address), config)
        for p, t in filtered
    ]
    rows.sort(key=lambda r: (-r.score, -r.volume_24h_usd))
    ranked = _rerank(rows)

    buckets: Dict[str, List[RankedPool]] = {t: [] for t in lp_config.VISIBLE_POOL_TYPES}
    for row in ranked:
        if row.type.value in buckets:
            buckets[row.type.value].append(row)
    buckets = {k: v[:config.top_n] for k, v in buckets.items()}

    visible = [r for r in ranked if r.type != PoolUniverseType.STABLE_STABLE]
    top = _rerank(visible[:config.top_n])

    logger.info(f"  ✓ Ranked: {len(eligible)} universe → {len(filtered)} after thresholds → "
                f"{len(top)} visible top")

    return PoolRankingOutput(
        generated_at=generated_at or regime.generated_at,
        regime={"label": regime.regime, "confidence": regime.confidence, "score": regime.score},
        config=asdict(config),
        counts={
            "fetched_pools": len(pools),
            "eligible_universe": len(eligible),
            "after_thresholds": len(filtered),
            "ranked": len(top),
        },
        pools=top,
        top_pools_overall=top,
        buckets=buckets,
        notes=[
            "Universe includes SOL-stable, SOL-LST, LST-STABLE, LST-LST, and internal STABLE-STABLE pools "
            "(LSTs limited to jitoSOL/mSOL/bSOL).",
            "STABLE-STABLE pools are kept internally for analysis but excluded from top_pools_overall and buckets.",
            "Depth values are heuristic approximations until tick-array parsing is implemented.",
        ],
    )
