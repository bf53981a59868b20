"""
Pool Stability Tracker - 7-day turnover stability per pool.

Each run appends one {ts, pools:[{pool_address, tvl_usd, volume_24h_usd}]}
snapshot. Stability over the trailing window:

    daily   = mean(volume/TVL) per UTC calendar day
    score   = 1 / (1 + stdev/mean)      (sample stdev, clamped to [0, 1])

Fewer than two days or a non-positive mean falls back to 0.25 with a note.
"""

import itertools
import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, Iterable, Optional, Sequence

import settings as cfg
from event_log import JsonlEventLog, iso_ts, parse_ts, utc_now
from lp_types import Pool, StabilityMetric
from normalization import clamp, sample_stdev

logger = logging.getLogger(__name__)


def pool_stats_record(pools: Iterable[Pool], now: Optional[datetime] = None) -> dict:
    """One history record covering every fetched pool"""
    return {
        "ts": iso_ts(now or utc_now()),
        "pools": [
            {
                "pool_address": p.address,
                "tvl_usd": float(p.tvl_usd or 0),
                "volume_24h_usd": float(p.stats_24h.volume or 0),
            }
            for p in pools
        ],
    }


def append_pool_stats_snapshot(pools: Iterable[Pool], log: JsonlEventLog,
                               now: Optional[datetime] = None) -> dict:
    record = pool_stats_record(pools, now)
    log.append(record)
    return record


def _daily_turnover(records: Iterable[dict], since: datetime) -> Dict[str, Dict[str, list]]:
    by_pool: Dict[str, Dict[str, list]] = defaultdict(lambda: defaultdict(list))
    for snap in records:
        ts = parse_ts(snap.get("ts"))
        rows = snap.get("pools")
        if ts is None or ts < since or not isinstance(rows, list):
            continue
        day = ts.date().isoformat()
        for row in rows:
            if not isinstance(row, dict) or not row.get("pool_address"):
                continue
            try:
                tvl = float(row.get("tvl_usd") or 0)
                vol = float(row.get("volume_24h_usd") or 0)
            except (TypeError, ValueError):
                continue
            by_pool[row["pool_address"]][day].append(vol / tvl if tvl > 0 else 0.0)
    return by_pool


def stability_from_daily(daily: list) -> StabilityMetric:
    """Score a chronological series of daily vol/TVL averages"""
    daily = [x for x in daily if math.isfinite(x)]
    mean = sum(daily) / len(daily) if daily else 0.0
    sd = sample_stdev(daily) if len(daily) > 1 else 0.0

    if not math.isfinite(mean) or mean <= 0 or len(daily) < 2:
        return StabilityMetric(
            stability_score=cfg.STABILITY_FALLBACK_SCORE,
            mean_vol_tvl_7d=mean if math.isfinite(mean) else 0.0,
            stdev_vol_tvl_7d=sd if math.isfinite(sd) else 0.0,
            stability_note=cfg.STABILITY_FALLBACK_NOTE,
        )

    score = 1 / (1 + sd / mean)
    return StabilityMetric(
        stability_score=round(clamp(score), 4),
        mean_vol_tvl_7d=round(mean, 6),
        stdev_vol_tvl_7d=round(sd, 6),
    )


def compute_pool_stability_metrics(log: JsonlEventLog,
                                   window_days: int = cfg.STABILITY_WINDOW_DAYS,
                                   now: Optional[datetime] = None,
                                   pending: Sequence[dict] = ()) -> Dict[str, StabilityMetric]:
    """
    Stability metric per pool address seen in the trailing window.
    `pending` records not yet appended to the log count after the logged ones.
    """
    since = (now or utc_now()) - timedelta(days=window_days)
    by_pool = _daily_turnover(itertools.chain(log.scan(since=since), pending), since)

    out = {}
    for address, day_map in by_pool.items():
        days = sorted(day_map)[-window_days:]
        daily = [sum(day_map[d]) / max(1, len(day_map[d])) for d in days]
        out[address] = stability_from_daily(daily)

    fallback = sum(1 for m in out.values() if m.stability_note)
    logger.info(f"  ✓ Stability: {len(out)} pools ({fallback} on fallback score)")
    return out
