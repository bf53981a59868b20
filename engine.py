"""
Regime Engine v1.0 - SOL volatility regime with hysteresis.

Pipeline:
  prices → realized vol (7d/30d) → VR
  pools  → aggregate volume/TVL trend
  funding proxy
        → min-max normalize → weighted score → cutoffs → hysteresis → output

The previous RegimeState is the only cross-run state and is read through
a RegimeStateStore.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Protocol, Sequence, Tuple

import lp_config
import settings as cfg
from event_log import iso_ts, utc_now
from lp_outputs import read_json, write_json
from lp_types import FundingProxy, Pool, RegimeHysteresis, RegimeLabel, RegimeMetrics, RegimeState
from normalization import clamp, minmax_normalize, realized_vol_pct_annualized

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegimeConfig:
    norm_bounds: Dict[str, Tuple[float, float]] = field(default_factory=lambda: dict(cfg.REGIME_NORM_BOUNDS))
    weights: Dict[str, float] = field(default_factory=lambda: dict(cfg.REGIME_WEIGHTS))
    high_cutoff: float = cfg.REGIME_HIGH_CUTOFF
    low_cutoff: float = cfg.REGIME_LOW_CUTOFF
    hold_band: float = cfg.HYSTERESIS_HOLD_BAND
    enter_band: float = cfg.HYSTERESIS_ENTER_BAND
    short_lookback: int = cfg.VOL_SHORT_LOOKBACK
    long_lookback: int = cfg.VOL_LONG_LOOKBACK
    version: str = cfg.CONFIG_VERSION


# ============================================================
# STATE STORE
# ============================================================

class RegimeStateStore(Protocol):
    def load(self) -> Optional[RegimeState]:
        ...

    def save(self, state: RegimeState) -> None:
        ...


class JsonRegimeStateStore:
    """Previous regime read back from regime_state.json"""

    def __init__(self, path=None):
        self.path = Path(path or Path(lp_config.OUTPUT_DIR) / lp_config.REGIME_STATE_FILE)

    def load(self) -> Optional[RegimeState]:
        if not self.path.exists():
            return None
        try:
            return RegimeState.from_dict(read_json(self.path))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Regime state load failed ({self.path}): {e}")
            return None

    def save(self, state: RegimeState) -> None:
        write_json(self.path, state)


class MemoryRegimeStateStore:
    def __init__(self, state: Optional[RegimeState] = None):
        self.state = state

    def load(self) -> Optional[RegimeState]:
        return self.state

    def save(self, state: RegimeState) -> None:
        self.state = state


# ============================================================
# SIGNALS
# ============================================================

def aggregate_turnover(pools: Sequence[Pool]) -> dict:
    """Universe-wide volume/TVL for 24h, 7d-avg and 30d-avg plus trend"""
    universe = [p for p in pools if p.tvl_usd > 0]
    out = {
        "volume_tvl_24h": None,
        "volume_tvl_7d_avg": None,
        "volume_tvl_30d_avg": None,
        "trend_ratio": None,
        "trend_label": "unknown",
    }
    if not universe:
        return out

    tvl = sum(p.tvl_usd for p in universe)
    out["volume_tvl_24h"] = sum(p.stats_24h.volume for p in universe) / tvl
    out["volume_tvl_7d_avg"] = sum(p.stats_7d.volume / 7 for p in universe) / tvl
    out["volume_tvl_30d_avg"] = sum(p.stats_30d.volume / 30 for p in universe) / tvl

    if out["volume_tvl_30d_avg"] > 0:
        ratio = out["volume_tvl_7d_avg"] / out["volume_tvl_30d_avg"]
        out["trend_ratio"] = ratio
        if ratio > cfg.TURNOVER_TREND_RISING:
            out["trend_label"] = "rising"
        elif ratio < cfg.TURNOVER_TREND_FALLING:
            out["trend_label"] = "falling"
        else:
            out["trend_label"] = "flat"
    return out


def proposed_label(score: float, config: RegimeConfig = RegimeConfig()) -> RegimeLabel:
    if score >= config.high_cutoff:
        return RegimeLabel.HIGH
    if score <= config.low_cutoff:
        return RegimeLabel.LOW
    return RegimeLabel.MODERATE


def apply_hysteresis(score: float, previous: Optional[RegimeLabel],
                     config: RegimeConfig = RegimeConfig()) -> Tuple[RegimeLabel, bool]:
    """
    Returns (label, applied).
    HIGH/LOW hold while the score stays within hold_band of their cutoff;
    MODERATE only leaves once the score clears a cutoff by enter_band.
    """
    raw = proposed_label(score, config)
    if previous is None:
        return raw, False

    label = raw
    if previous == RegimeLabel.HIGH and score >= config.high_cutoff - config.hold_band:
        label = RegimeLabel.HIGH
    elif previous == RegimeLabel.LOW and score <= config.low_cutoff + config.hold_band:
        label = RegimeLabel.LOW
    elif previous == RegimeLabel.MODERATE:
        if score > config.high_cutoff + config.enter_band:
            label = RegimeLabel.HIGH
        elif score < config.low_cutoff - config.enter_band:
            label = RegimeLabel.LOW
        else:
            label = RegimeLabel.MODERATE

    return label, label != raw


def compute_confidence(available: Dict[str, bool]) -> float:
    """Additive on computable inputs; floor 0.1, cap 0.99"""
    total = cfg.CONFIDENCE_BASE + sum(
        inc for key, inc in cfg.CONFIDENCE_INCREMENTS.items() if available.get(key)
    )
    return round(clamp(total, cfg.CONFIDENCE_FLOOR, cfg.CONFIDENCE_CAP), 3)


# ============================================================
# MAIN ENGINE
# ============================================================

class RegimeEngine:
    """Orca Regime Engine v1.0"""

    VERSION = "1.0"

    def __init__(self, store: RegimeStateStore = None, config: RegimeConfig = None):
        self.store = store if store is not None else JsonRegimeStateStore()
        self.config = config or RegimeConfig()

    def process(self,
                prices: Sequence[float],
                pools_for_turnover: Sequence[Pool],
                funding: FundingProxy,
                price_source: str = "coingecko:solana",
                now: Optional[datetime] = None) -> RegimeState:
        c = self.config

        # ── 1. Volatility ─────────────────────────────────────
        vol_7d = realized_vol_pct_annualized(prices, c.short_lookback)
        vol_30d = realized_vol_pct_annualized(prices, c.long_lookback)
        vr = vol_7d / vol_30d if vol_7d is not None and vol_30d is not None and vol_30d > 0 else None

        # ── 2. Turnover + funding ─────────────────────────────
        turnover = aggregate_turnover(pools_for_turnover)
        funding_apr = funding.funding_apr_pct if funding else None

        # ── 3. Score ──────────────────────────────────────────
        b = c.norm_bounds
        norms = {
            "vol_30d": minmax_normalize(vol_30d, *b["vol_30d"]),
            "vr": minmax_normalize(vr, *b["vr"]),
            "funding_abs": minmax_normalize(abs(funding_apr or 0.0), *b["funding_abs"]),
            "turnover_trend": minmax_normalize(turnover["trend_ratio"], *b["turnover_trend"]),
        }
        score = sum(c.weights[k] * norms[k] for k in c.weights)

        # ── 4. Hysteresis vs previous run ─────────────────────
        previous = self.store.load()
        prev_label = previous.regime if previous else None
        label, applied = apply_hysteresis(score, prev_label, c)

        reasons = []
        if vol_30d is not None:
            reasons.append(f"30d realized vol {vol_30d:.1f}%")
        if vr is not None:
            reasons.append(f"VR {vr:.2f} ({'accelerating' if vr > 1 else 'cooling'} short-term vol)")
        if funding_apr is not None:
            reasons.append(f"SOL perp funding proxy {funding_apr:.1f}% APR")
        if turnover["trend_ratio"] is not None:
            reasons.append(f"Volume/TVL trend {turnover['trend_label']} ({turnover['trend_ratio']:.2f}x)")
        if applied:
            reasons.append(f"Hysteresis held {label.value} (raw score {score:.3f} vs previous {prev_label.value})")

        confidence = compute_confidence({
            "vol_7d": vol_7d is not None,
            "vol_30d": vol_30d is not None,
            "vr": vr is not None,
            "funding": funding_apr is not None,
            "turnover_trend": turnover["trend_ratio"] is not None,
        })

        state = RegimeState(
            generated_at=iso_ts(now or utc_now()),
            regime=label,
            confidence=confidence,
            score=round(score, 4),
            metrics=RegimeMetrics(
                vol_7d_pct=vol_7d,
                vol_30d_pct=vol_30d,
                vr=vr,
                funding_apr_pct=funding_apr,
                volume_tvl_24h=turnover["volume_tvl_24h"],
                volume_tvl_7d_avg=turnover["volume_tvl_7d_avg"],
                volume_tvl_30d_avg=turnover["volume_tvl_30d_avg"],
                volume_tvl_trend_ratio=turnover["trend_ratio"],
                volume_tvl_trend_label=turnover["trend_label"],
            ),
            reasons=reasons,
            hysteresis=RegimeHysteresis(
                previous_regime=prev_label,
                previous_score=previous.score if previous else None,
                applied=applied,
            ),
            data_sources={
                "spot_vol": price_source,
                "funding": funding.source if funding else "unavailable",
                "pools": "orca:v2/solana/pools",
            },
            notes=[
                "Volume/TVL trend is derived from the filtered Orca SOL/LST/stable universe aggregate.",
                "Funding currently uses a fixed borrow-rate proxy annualized to APR.",
            ],
            config_version=c.version,
        )

        logger.info(f"  Regime: {label.value} (score={state.score}, conf={confidence}, "
                    f"hysteresis={'applied' if applied else 'no'})")
        return state
