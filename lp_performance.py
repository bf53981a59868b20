"""
Performance Ledger - one JSON line per run plus a rolling summary
Version: 1.0.0

The ledger is append-only. The summary is recomputed from it each time and
carries the latest snapshot timestamp as generated_at, so summarising an
unchanged ledger twice gives identical output.
"""

import logging
import math
from dataclasses import asdict
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional

import lp_config
import settings as cfg
from event_log import JsonlEventLog, iso_ts, parse_ts, utc_now
from lp_types import (
    PerformanceSnapshot, PerformanceSummary, PoolRankingOutput, RegimeLabel,
    RegimeState, ShortlistOutput,
)

logger = logging.getLogger(__name__)

SUMMARY_NOTE = "Performance summary is a rolling snapshot ledger summary, not realized PnL."


def default_ledger() -> JsonlEventLog:
    return JsonlEventLog(Path(lp_config.DATA_DIR) / lp_config.PERFORMANCE_LEDGER_FILE)


def _alerts_count(alerts) -> int:
    if alerts is None:
        return 0
    if isinstance(alerts, dict):
        return len(alerts.get("alerts") or [])
    return len(alerts.alerts)


def build_performance_snapshot(regime: RegimeState, rankings: PoolRankingOutput,
                               shortlist: ShortlistOutput, alerts,
                               now: Optional[datetime] = None) -> PerformanceSnapshot:
    rows = rankings.by_address()
    pools = []
    for item in shortlist.selected:
        row = rows.get(item.pool_address)
        pools.append({
            "pool_address": item.pool_address,
            "pool": item.pool,
            "type": item.type.value,
            "score": item.score,
            "fee_apr_pct": item.fee_apr_pct,
            "volume_tvl": row.volume_tvl if row else None,
        })
    return PerformanceSnapshot(
        ts=iso_ts(now or utc_now()),
        regime=regime.regime.value,
        regime_score=regime.score,
        funding_apr_pct=regime.metrics.funding_apr_pct,
        shortlist_count=len(shortlist.selected),
        shortlisted_pools=pools,
        alerts_count=_alerts_count(alerts),
    )


def append_performance_snapshot(snapshot: PerformanceSnapshot, log: JsonlEventLog = None) -> JsonlEventLog:
    log = log or default_ledger()
    log.append(asdict(snapshot))
    return log


def summarize_snapshots(records: Iterable[dict], lookback_days: int = cfg.PERFORMANCE_LOOKBACK_DAYS,
                        now: Optional[datetime] = None) -> PerformanceSummary:
    cutoff = (now or utc_now()) - timedelta(days=lookback_days)
    snapshots: List[dict] = []
    for rec in records:
        ts = parse_ts(rec.get("ts"))
        if ts is not None and ts >= cutoff:
            snapshots.append(rec)

    regime_counts = {label.value: 0 for label in RegimeLabel}
    for s in snapshots:
        if s.get("regime") in regime_counts:
            regime_counts[s["regime"]] += 1

    funding = [
        s["funding_apr_pct"] for s in snapshots
        if isinstance(s.get("funding_apr_pct"), (int, float)) and math.isfinite(s["funding_apr_pct"])
    ]
    avg_funding = round(sum(funding) / len(funding), 3) if funding else None
    latest = snapshots[-1]["ts"] if snapshots else None

    return PerformanceSummary(
        generated_at=latest,
        lookback_days=lookback_days,
        snapshots=snapshots,
        summary={
            "snapshot_count": len(snapshots),
            "avg_funding_apr_pct": avg_funding,
            "regime_counts": regime_counts,
            "latest_snapshot_ts": latest,
        },
        notes=[SUMMARY_NOTE],
    )


def summarize_ledger(log: JsonlEventLog = None, lookback_days: int = cfg.PERFORMANCE_LOOKBACK_DAYS,
                     now: Optional[datetime] = None) -> PerformanceSummary:
    """Rolling summary over the trailing window; corrupt ledger lines are skipped"""
    log = log or default_ledger()
    summary = summarize_snapshots(log.scan(), lookback_days, now)
    logger.info(f"  ✓ Performance: {summary.summary['snapshot_count']} snapshots in {lookback_days}d window")
    return summary
