"""
LP Alert Monitor - threshold alerts for the current shortlist
Version: 1.0.0

Stateless: every run re-evaluates
- funding proxy APR           ≥15% warn, ≥25% critical
- per shortlisted pool
    24h volume/TVL            <6% warn,  <3% critical
    TVL                       <$200k warn, <$120k critical
    depth/TVL at ±1%          <2% warn,  <1% critical
    spot vs Base range edge   operator profile warn/act fractions of the half-span

The range edge is measured against the range deployed from the previous run
(deployed_plans) using the spot from this run's listing (spot_by_address).
A pool with no earlier plan is measured against its fresh range, which is
centred on spot and never alerts.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import settings as cfg
from lp_types import (
    Alert, AlertKind, AlertMetric, AlertsOutput, PlansOutput, PoolRankingOutput,
    RegimeState, Severity, ShortlistOutput,
)
from operator_mode import OperatorMode, get_operator_mode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertThresholds:
    funding_warn_apr_pct: float = cfg.FUNDING_WARN_APR_PCT
    funding_critical_apr_pct: float = cfg.FUNDING_CRITICAL_APR_PCT
    turnover_warn_pct: float = cfg.TURNOVER_WARN_PCT
    turnover_critical_pct: float = cfg.TURNOVER_CRITICAL_PCT
    tvl_warn_usd: float = cfg.TVL_WARN_USD
    tvl_critical_usd: float = cfg.TVL_CRITICAL_USD
    depth_warn_pct: float = cfg.DEPTH_WARN_PCT
    depth_critical_pct: float = cfg.DEPTH_CRITICAL_PCT
    version: str = cfg.CONFIG_VERSION


# ═══════════════════════════════════════════════════════════════════════════════
# RANGE EDGE
# ═══════════════════════════════════════════════════════════════════════════════

def edge_distance_fraction(spot: float, lower: float, upper: float) -> Optional[float]:
    """
    Distance from spot to the nearest edge as a fraction of the half-span.
    1.0 at the centre, 0.0 on an edge, negative outside the range.
    """
    half_span = (upper - lower) / 2
    if half_span <= 0:
        return None
    return min(spot - lower, upper - spot) / half_span


def _range_edge_alert(plan, spot: float, mode: OperatorMode) -> Optional[Alert]:
    base = plan.preset("Base")
    if base is None or base.lower_price is None or base.upper_price is None:
        return None
    frac = edge_distance_fraction(spot, base.lower_price, base.upper_price)
    if frac is None:
        return None

    if frac <= mode.act_edge_pct:
        kind, severity, threshold = AlertKind.RANGE_EDGE_ACTION, Severity.CRITICAL, mode.act_edge_pct
        verb = "outside" if frac < 0 else "at"
        message = (f"{plan.pool} spot is {verb} the Base range edge "
                   f"({frac * 100:.1f}% of half-span left); rebalance now.")
    elif frac <= mode.warn_edge_pct:
        kind, severity, threshold = AlertKind.RANGE_EDGE_WARN, Severity.WARN, mode.warn_edge_pct
        message = (f"{plan.pool} spot is close to the Base range edge "
                   f"({frac * 100:.1f}% of half-span left).")
    else:
        return None

    return Alert(
        id=f"range-edge-{plan.pool_address}",
        severity=severity,
        kind=kind,
        message=message,
        metric=AlertMetric("edgeDistanceHalfSpanFraction", round(frac, 4), threshold),
        pool_address=plan.pool_address,
        pool=plan.pool,
    )


def deployed_plans(current: PlansOutput, previous: Optional[PlansOutput]) -> PlansOutput:
    """
    Ranges an operator is sitting in: the previous run's plan for each pool
    it covered, this run's plan for pools that are new to the shortlist.
    """
    if previous is None:
        return current
    earlier = {p.pool_address: p for p in previous.plans}
    return PlansOutput(
        generated_at=current.generated_at,
        regime=current.regime,
        operator_mode=current.operator_mode,
        plans=[earlier.get(p.pool_address, p) for p in current.plans],
        notes=current.notes,
    )


def spot_by_address(rankings: PoolRankingOutput) -> Dict[str, float]:
    """Latest listed spot per visible pool"""
    return {
        address: row.spot_price
        for address, row in rankings.by_address().items()
        if row.spot_price
    }


# ═══════════════════════════════════════════════════════════════════════════════
# ALERTS
# ═══════════════════════════════════════════════════════════════════════════════

def build_alerts(regime: RegimeState, rankings: PoolRankingOutput, shortlist: ShortlistOutput,
                 plans: PlansOutput, operator_mode: OperatorMode = None,
                 thresholds: AlertThresholds = None,
                 spot_overrides: Dict[str, float] = None,
                 generated_at: str = "") -> AlertsOutput:
    """Threshold alerts; spot_overrides replaces plan spot per pool address"""
    t = thresholds or AlertThresholds()
    mode = operator_mode or get_operator_mode()
    spot_overrides = spot_overrides or {}
    alerts: List[Alert] = []
    rows = rankings.by_address()

    funding = regime.metrics.funding_apr_pct
    if funding is not None and funding >= t.funding_warn_apr_pct:
        alerts.append(Alert(
            id="funding-spike",
            severity=Severity.CRITICAL if funding >= t.funding_critical_apr_pct else Severity.WARN,
            kind=AlertKind.FUNDING_SPIKE,
            message=f"Funding proxy is elevated at {funding:.2f}% APR.",
            metric=AlertMetric("fundingAprPct", funding, t.funding_warn_apr_pct),
        ))

    plans_by_address = {p.pool_address: p for p in plans.plans}

    for item in shortlist.selected:
        row = rows.get(item.pool_address)
        if row is None:
            continue
        vol_tvl_pct = row.volume_tvl * 100
        depth_pct = (row.depth_tvl_1pct_ratio or 0.0) * 100

        if vol_tvl_pct < t.turnover_warn_pct:
            alerts.append(Alert(
                id=f"vol-collapse-{row.pool_address}",
                severity=Severity.CRITICAL if vol_tvl_pct < t.turnover_critical_pct else Severity.WARN,
                kind=AlertKind.VOLUME_TVL_COLLAPSE,
                message=f"{row.pool} turnover is weak ({vol_tvl_pct:.1f}% vol/TVL 24h).",
                metric=AlertMetric("volumeTvlPct", round(vol_tvl_pct, 2), t.turnover_warn_pct),
                pool_address=row.pool_address,
                pool=row.pool,
            ))

        if row.tvl_usd < t.tvl_warn_usd:
            alerts.append(Alert(
                id=f"tvl-flight-{row.pool_address}",
                severity=Severity.CRITICAL if row.tvl_usd < t.tvl_critical_usd else Severity.WARN,
                kind=AlertKind.TVL_FLIGHT,
                message=f"{row.pool} TVL is near thin-pool territory (${row.tvl_usd:,.0f}).",
                metric=AlertMetric("tvlUsd", row.tvl_usd, t.tvl_warn_usd),
                pool_address=row.pool_address,
                pool=row.pool,
            ))

        if depth_pct < t.depth_warn_pct:
            alerts.append(Alert(
                id=f"depth-collapse-{row.pool_address}",
                severity=Severity.CRITICAL if depth_pct < t.depth_critical_pct else Severity.WARN,
                kind=AlertKind.DEPTH_COLLAPSE,
                message=f"{row.pool} depth has fallen to {depth_pct:.2f}% of TVL at ±1%.",
                metric=AlertMetric("depthTvl1PctRatioPct", round(depth_pct, 2), t.depth_warn_pct),
                pool_address=row.pool_address,
                pool=row.pool,
            ))

        plan = plans_by_address.get(row.pool_address)
        spot = spot_overrides.get(row.pool_address, plan.spot_price if plan else None)
        if plan is not None and spot:
            edge = _range_edge_alert(plan, spot, mode)
            if edge:
                alerts.append(edge)

    counts = {s: sum(1 for a in alerts if a.severity == s) for s in Severity}
    logger.info(f"  ✓ Alerts: {len(alerts)} "
                f"(critical={counts[Severity.CRITICAL]}, warn={counts[Severity.WARN]})")

    return AlertsOutput(
        generated_at=generated_at or regime.generated_at,
        regime=regime.regime,
        operator_mode=mode.name,
        alerts=alerts,
        notes=[
            "Threshold-based monitor. Alerts are heuristic and intended for weekly-active LP workflows.",
            f"Range-edge thresholds follow the {mode.name} profile "
            f"(warn ≤ {mode.warn_edge_pct:.2f}, act ≤ {mode.act_edge_pct:.2f} of Base half-span).",
        ],
    )
