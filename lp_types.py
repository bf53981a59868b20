"""
LP Types - Shared data model for the Orca scanner pipeline
Version: 1.0.0

Every stage output is a dataclass serialised with asdict() + json.dump.
Enums subclass str so they serialise to their plain value.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class RegimeLabel(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


class PoolUniverseType(str, Enum):
    SOL_STABLE = "SOL-STABLE"
    SOL_LST = "SOL-LST"
    LST_STABLE = "LST-STABLE"
    LST_LST = "LST-LST"
    STABLE_STABLE = "STABLE-STABLE"


STABLE_ANCHORED = {PoolUniverseType.SOL_STABLE}
CARRY_TYPES = {PoolUniverseType.SOL_LST, PoolUniverseType.LST_STABLE}


class ReasonCode(str, Enum):
    DEPTH_OK = "DEPTH_OK"
    GUARDRAIL_FAIL = "GUARDRAIL_FAIL"
    THIN_POOL_REJECT = "THIN_POOL_REJECT"
    REGIME_MATCH = "REGIME_MATCH"
    TYPE_TARGET = "TYPE_TARGET"
    FEEAPR_STRONG = "FEEAPR_STRONG"
    EXCEPTIONAL_SOL_STABLE = "EXCEPTIONAL_SOL_STABLE"
    FALLBACK_FILL = "FALLBACK_FILL"


REJECT_CODES = {ReasonCode.GUARDRAIL_FAIL, ReasonCode.THIN_POOL_REJECT}


class HedgeSide(str, Enum):
    SHORT_SOL = "SHORT_SOL"
    NONE = "NONE"


class DepositRatioSource(str, Enum):
    PRECISE = "precise"
    FALLBACK = "fallback"


class Severity(str, Enum):
    INFO = "info"
    WARN = "warn"
    CRITICAL = "critical"


class AlertKind(str, Enum):
    FUNDING_SPIKE = "FUNDING_SPIKE"
    VOLUME_TVL_COLLAPSE = "VOLUME_TVL_COLLAPSE"
    TVL_FLIGHT = "TVL_FLIGHT"
    DEPTH_COLLAPSE = "DEPTH_COLLAPSE"
    RANGE_EDGE_WARN = "RANGE_EDGE_WARN"
    RANGE_EDGE_ACTION = "RANGE_EDGE_ACTION"


# ═══════════════════════════════════════════════════════════════════════════════
# PROVIDER RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class TokenInfo:
    address: str
    symbol: str
    name: Optional[str] = None
    decimals: Optional[int] = None


@dataclass
class PoolStatsWindow:
    volume: float = 0.0
    fees: float = 0.0
    rewards: float = 0.0
    yield_over_tvl: float = 0.0


@dataclass
class Pool:
    """Whirlpool record as returned by the pool listing provider"""
    address: str
    pool_type: str
    tick_spacing: int
    fee_rate: float            # parts per million
    fee_tier_rate: float       # fee_rate / 1e6
    liquidity_raw: str
    liquidity: float
    tvl_usd: float
    token_a: TokenInfo
    token_b: TokenInfo
    stats_24h: PoolStatsWindow = field(default_factory=PoolStatsWindow)
    stats_7d: PoolStatsWindow = field(default_factory=PoolStatsWindow)
    stats_30d: PoolStatsWindow = field(default_factory=PoolStatsWindow)
    rewards_active_count: int = 0
    sqrt_price_raw: Optional[str] = None
    tick_current_index: Optional[int] = None
    price: Optional[float] = None   # token B per token A
    updated_at: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.token_a.symbol}/{self.token_b.symbol}"


@dataclass
class StabilityMetric:
    stability_score: float
    mean_vol_tvl_7d: float
    stdev_vol_tvl_7d: float
    stability_note: Optional[str] = None


@dataclass
class OnchainEnrichment:
    pool_address: str
    validated: bool
    rpc_endpoint: str
    validation_note: Optional[str] = None
    account_owner: Optional[str] = None
    lamports: Optional[int] = None
    depth_usd_1pct: Optional[float] = None
    depth_usd_2pct: Optional[float] = None
    depth_method: str = "none"
    depth_note: Optional[str] = None


@dataclass
class FundingProxy:
    source: str
    symbol: str
    funding_apr_pct: Optional[float]
    raw_rate: Optional[float] = None
    rate_period: Optional[str] = None
    as_of: Optional[str] = None
    note: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# REGIME
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RegimeMetrics:
    vol_7d_pct: Optional[float] = None
    vol_30d_pct: Optional[float] = None
    vr: Optional[float] = None
    funding_apr_pct: Optional[float] = None
    volume_tvl_24h: Optional[float] = None
    volume_tvl_7d_avg: Optional[float] = None
    volume_tvl_30d_avg: Optional[float] = None
    volume_tvl_trend_ratio: Optional[float] = None
    volume_tvl_trend_label: str = "unknown"


@dataclass
class RegimeHysteresis:
    previous_regime: Optional[RegimeLabel] = None
    previous_score: Optional[float] = None
    applied: bool = False


@dataclass
class RegimeState:
    generated_at: str
    regime: RegimeLabel
    confidence: float
    score: float
    metrics: RegimeMetrics = field(default_factory=RegimeMetrics)
    reasons: List[str] = field(default_factory=list)
    hysteresis: RegimeHysteresis = field(default_factory=RegimeHysteresis)
    data_sources: Dict[str, str] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)
    config_version: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "RegimeState":
        """Rebuild from a serialised regime_state.json. Raises on a bad label."""
        hyst = data.get("hysteresis") or {}
        prev = hyst.get("previous_regime")
        return cls(
            generated_at=str(data.get("generated_at", "")),
            regime=RegimeLabel(data["regime"]),
            confidence=float(data.get("confidence", 0.0)),
            score=float(data["score"]),
            metrics=RegimeMetrics(**(data.get("metrics") or {})),
            reasons=list(data.get("reasons") or []),
            hysteresis=RegimeHysteresis(
                previous_regime=RegimeLabel(prev) if prev else None,
                previous_score=hyst.get("previous_score"),
                applied=bool(hyst.get("applied", False)),
            ),
            data_sources=dict(data.get("data_sources") or {}),
            notes=list(data.get("notes") or []),
            config_version=str(data.get("config_version", "")),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# RANKING
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RankedPool:
    rank: int
    pool_address: str
    pool: str
    type: PoolUniverseType
    fee_tier_pct: float
    tvl_usd: float
    volume_24h_usd: float
    fee_apr_pct: float
    volume_tvl: float
    score: float
    explanation: str
    validated_onchain: bool
    token_symbols: List[str]
    token_mints: List[str]
    token_decimals: Optional[List[int]] = None
    spot_price: Optional[float] = None
    tick_spacing: Optional[int] = None
    tick_current_index: Optional[int] = None
    sqrt_price_x64: Optional[str] = None
    depth_usd_1pct: Optional[float] = None
    depth_usd_2pct: Optional[float] = None
    depth_tvl_1pct_ratio: Optional[float] = None
    depth_method: Optional[str] = None
    stability_score: Optional[float] = None
    mean_vol_tvl_7d: Optional[float] = None
    stdev_vol_tvl_7d: Optional[float] = None
    stability_note: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RankedPool":
        known = set(cls.__dataclass_fields__)
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["type"] = PoolUniverseType(data["type"])
        return cls(**kwargs)


@dataclass
class PoolRankingOutput:
    generated_at: str
    regime: Dict[str, object]
    config: Dict[str, object]
    counts: Dict[str, int]
    pools: List[RankedPool]               # legacy alias of top_pools_overall
    top_pools_overall: List[RankedPool]
    buckets: Dict[str, List[RankedPool]]
    notes: List[str] = field(default_factory=list)

    def visible_pools(self) -> List[RankedPool]:
        """Top list plus every bucket entry, first occurrence wins."""
        seen = set()
        out = []
        for row in list(self.top_pools_overall) + [r for rows in self.buckets.values() for r in rows]:
            if row.type == PoolUniverseType.STABLE_STABLE or row.pool_address in seen:
                continue
            seen.add(row.pool_address)
            out.append(row)
        return out

    def by_address(self) -> Dict[str, RankedPool]:
        return {row.pool_address: row for row in self.visible_pools()}

    @classmethod
    def from_dict(cls, data: dict) -> "PoolRankingOutput":
        top = [RankedPool.from_dict(r) for r in (data.get("top_pools_overall") or data.get("pools") or [])]
        buckets = {
            k: [RankedPool.from_dict(r) for r in rows]
            for k, rows in (data.get("buckets") or {}).items()
        }
        return cls(
            generated_at=str(data.get("generated_at", "")),
            regime=dict(data.get("regime") or {}),
            config=dict(data.get("config") or {}),
            counts=dict(data.get("counts") or {}),
            pools=top,
            top_pools_overall=top,
            buckets=buckets,
            notes=list(data.get("notes") or []),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# SHORTLIST
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class DecisionReason:
    code: ReasonCode
    message: str


@dataclass
class ShortlistItem:
    slot: int
    pool_address: str
    pool: str
    type: PoolUniverseType
    rank: int
    score: float
    tvl_usd: float
    volume_24h_usd: float
    fee_apr_pct: float
    depth_usd_1pct: Optional[float] = None
    depth_usd_2pct: Optional[float] = None
    depth_tvl_1pct_ratio: Optional[float] = None
    reasons: List[DecisionReason] = field(default_factory=list)

    def has_reason(self, code: ReasonCode) -> bool:
        return any(r.code == code for r in self.reasons)

    @classmethod
    def from_dict(cls, data: dict) -> "ShortlistItem":
        known = set(cls.__dataclass_fields__)
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["type"] = PoolUniverseType(data["type"])
        kwargs["reasons"] = [
            DecisionReason(code=ReasonCode(r["code"]), message=r.get("message", ""))
            for r in data.get("reasons") or []
        ]
        return cls(**kwargs)


@dataclass
class RejectedCandidate:
    pool_address: str
    pool: str
    type: PoolUniverseType
    reasons: List[DecisionReason]


@dataclass
class ShortlistOutput:
    generated_at: str
    regime: RegimeLabel
    max_pools: int
    selected: List[ShortlistItem]
    rejected: List[RejectedCandidate] = field(default_factory=list)
    constraints: Dict[str, float] = field(default_factory=dict)
    summary: Dict[str, int] = field(default_factory=dict)
    notes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "ShortlistOutput":
        return cls(
            generated_at=str(data.get("generated_at", "")),
            regime=RegimeLabel(data["regime"]),
            max_pools=int(data.get("max_pools", 2)),
            selected=[ShortlistItem.from_dict(s) for s in data.get("selected") or []],
            constraints=dict(data.get("constraints") or {}),
            summary=dict(data.get("summary") or {}),
            notes=list(data.get("notes") or []),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# PLANS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class RangePreset:
    label: str                 # Conservative | Base | Aggressive
    half_width_pct: float
    lower_pct: float
    upper_pct: float
    lower_price: Optional[float] = None
    upper_price: Optional[float] = None
    rationale: str = ""


@dataclass
class HedgePlan:
    enabled: bool
    side: HedgeSide
    delta_estimate_sol_per_10k_usd: float
    recommended_short_sol_per_10k_usd: float
    recommended_short_notional_usd_per_10k_usd: float
    hedge_multiplier: float
    funding_penalty: float
    approx_delta_fraction: float
    deposit_ratio_source: DepositRatioSource
    note: str
    deposit_ratio_risk_asset_usd: Optional[float] = None
    deposit_ratio_token_a_usd: Optional[float] = None
    deposit_ratio_token_b_usd: Optional[float] = None
    deposit_ratio_token_a_symbol: Optional[str] = None
    deposit_ratio_token_b_symbol: Optional[str] = None
    risk_asset_label: Optional[str] = None
    funding_apr_pct: Optional[float] = None
    warning: Optional[str] = None


@dataclass
class PlanToken:
    mint: str
    symbol: str
    decimals: Optional[int] = None


@dataclass
class PoolPlan:
    pool_address: str
    pool: str
    type: PoolUniverseType
    spot_price: Optional[float]
    volatility_proxy_pct_annual: float
    regime_width_multiplier: float
    presets: List[RangePreset]
    recommended_preset: str = "Base"
    token_a: Optional[PlanToken] = None
    token_b: Optional[PlanToken] = None
    hedge: Optional[HedgePlan] = None

    def preset(self, label: str) -> Optional[RangePreset]:
        return next((p for p in self.presets if p.label == label), None)

    @classmethod
    def from_dict(cls, data: dict) -> "PoolPlan":
        return cls(
            pool_address=data["pool_address"],
            pool=data.get("pool", ""),
            type=PoolUniverseType(data["type"]),
            spot_price=data.get("spot_price"),
            volatility_proxy_pct_annual=float(data.get("volatility_proxy_pct_annual", 0.0)),
            regime_width_multiplier=float(data.get("regime_width_multiplier", 1.0)),
            presets=[RangePreset(**p) for p in data.get("presets") or []],
            recommended_preset=data.get("recommended_preset", "Base"),
        )


@dataclass
class PlansOutput:
    generated_at: str
    regime: Dict[str, object]     # {label, funding_apr_pct}
    operator_mode: str
    plans: List[PoolPlan]
    notes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "PlansOutput":
        return cls(
            generated_at=str(data.get("generated_at", "")),
            regime=dict(data.get("regime") or {}),
            operator_mode=str(data.get("operator_mode", "DAILY")),
            plans=[PoolPlan.from_dict(p) for p in data.get("plans") or []],
            notes=list(data.get("notes") or []),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# ALLOCATION / ALERTS / PERFORMANCE
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AllocationItem:
    pool_address: str
    pool: str
    type: PoolUniverseType
    slot: int
    weight_pct: int
    rationale: str


@dataclass
class AllocationOutput:
    generated_at: str
    regime: RegimeLabel
    max_pools: int
    allocations: List[AllocationItem]
    rationale: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)


@dataclass
class AlertMetric:
    name: str
    value: float
    threshold: float


@dataclass
class Alert:
    id: str
    severity: Severity
    kind: AlertKind
    message: str
    metric: AlertMetric
    pool_address: Optional[str] = None
    pool: Optional[str] = None


@dataclass
class AlertsOutput:
    generated_at: str
    regime: RegimeLabel
    operator_mode: str
    alerts: List[Alert]
    notes: List[str] = field(default_factory=list)


@dataclass
class PerformanceSnapshot:
    """One ledger row per run"""
    ts: str
    regime: str
    regime_score: float
    funding_apr_pct: Optional[float]
    shortlist_count: int
    shortlisted_pools: List[dict]
    alerts_count: int


@dataclass
class PerformanceSummary:
    generated_at: Optional[str]
    lookback_days: int
    snapshots: List[dict]
    summary: Dict[str, object]
    notes: List[str] = field(default_factory=list)
