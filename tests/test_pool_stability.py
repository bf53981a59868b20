#!/usr/bin/env python3
"""Tests for turnover stability history and scoring."""

import math
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from event_log import JsonlEventLog
from factories import make_pool
from pool_stability import (
    append_pool_stats_snapshot, compute_pool_stability_metrics, pool_stats_record, stability_from_daily,
)

ADDR = "C" * 32
NOW = datetime(2026, 1, 10, 12, tzinfo=timezone.utc)


def test_single_day_history_falls_back() -> None:
    metric = stability_from_daily([0.4])
    assert metric.stability_score == 0.25
    assert metric.stability_note
    assert math.isfinite(metric.mean_vol_tvl_7d)


def test_zero_turnover_falls_back() -> None:
    metric = stability_from_daily([0.0, 0.0, 0.0])
    assert metric.stability_score == 0.25
    assert metric.stability_note


def test_constant_turnover_is_fully_stable() -> None:
    metric = stability_from_daily([0.5, 0.5, 0.5])
    assert metric.stability_score == 1.0
    assert metric.stability_note is None


def test_volatile_turnover_scores_lower() -> None:
    steady = stability_from_daily([0.5, 0.55, 0.45, 0.5])
    choppy = stability_from_daily([0.1, 0.9, 0.05, 1.2])
    assert choppy.stability_score < steady.stability_score
    assert 0.0 <= choppy.stability_score <= 1.0


def test_compute_metrics_buckets_by_day(tmp_path) -> None:
    log = JsonlEventLog(tmp_path / "history.jsonl")
    for days_ago, volume in ((3, 200_000), (2, 200_000), (1, 200_000)):
        pool = make_pool(ADDR, tvl=1_000_000, volume_24h=volume)
        append_pool_stats_snapshot([pool], log, NOW - timedelta(days=days_ago))
    # second snapshot on the same day averages into one bucket
    append_pool_stats_snapshot([make_pool(ADDR, tvl=1_000_000, volume_24h=200_000)], log,
                               NOW - timedelta(days=1, hours=2))

    metrics = compute_pool_stability_metrics(log, window_days=7, now=NOW)
    assert metrics[ADDR].stability_score == 1.0
    assert metrics[ADDR].mean_vol_tvl_7d == pytest.approx(0.2)


def test_old_snapshots_outside_window_are_ignored(tmp_path) -> None:
    log = JsonlEventLog(tmp_path / "history.jsonl")
    append_pool_stats_snapshot([make_pool(ADDR, volume_24h=900_000)], log, NOW - timedelta(days=30))
    append_pool_stats_snapshot([make_pool(ADDR, volume_24h=100_000)], log, NOW - timedelta(hours=1))

    metrics = compute_pool_stability_metrics(log, window_days=7, now=NOW)
    assert metrics[ADDR].stability_score == 0.25


def test_corrupt_history_lines_are_skipped(tmp_path) -> None:
    path = tmp_path / "history.jsonl"
    log = JsonlEventLog(path)
    append_pool_stats_snapshot([make_pool(ADDR)], log, NOW - timedelta(days=2))
    with path.open("a", encoding="utf-8") as f:
        f.write("{broken\n")
        f.write("[1, 2, 3]\n")
    append_pool_stats_snapshot([make_pool(ADDR)], log, NOW - timedelta(days=1))

    metrics = compute_pool_stability_metrics(log, now=NOW)
    assert ADDR in metrics
    assert log.count() == 2


def test_pending_record_counts_without_writing(tmp_path) -> None:
    log = JsonlEventLog(tmp_path / "history.jsonl")
    append_pool_stats_snapshot([make_pool(ADDR, tvl=1_000_000, volume_24h=300_000)], log,
                               NOW - timedelta(days=1))
    pending = pool_stats_record([make_pool(ADDR, tvl=1_000_000, volume_24h=300_000)], NOW)

    metrics = compute_pool_stability_metrics(log, window_days=7, now=NOW, pending=[pending])
    assert metrics[ADDR].stability_score == 1.0
    assert log.count() == 1

    stale = pool_stats_record([make_pool(ADDR)], NOW - timedelta(days=20))
    metrics = compute_pool_stability_metrics(log, window_days=7, now=NOW, pending=[stale])
    assert metrics[ADDR].stability_score == 0.25
