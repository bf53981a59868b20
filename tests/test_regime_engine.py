#!/usr/bin/env python3
"""Tests for regime scoring, hysteresis and state persistence."""

import math
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from engine import (
    JsonRegimeStateStore, MemoryRegimeStateStore, RegimeEngine,
    aggregate_turnover, apply_hysteresis, compute_confidence, proposed_label,
)
from factories import make_pool, make_regime
from lp_outputs import write_json
from lp_types import FundingProxy, RegimeLabel
from normalization import minmax_normalize, realized_vol_pct_annualized

NOW = datetime(2026, 1, 10, tzinfo=timezone.utc)


def _funding(apr):
    return FundingProxy(source="test", symbol="SOL", funding_apr_pct=apr)


def _prices(n: int = 60, amplitude: float = 0.02):
    out, p = [], 100.0
    for i in range(n):
        p *= 1 + (amplitude if i % 2 == 0 else -amplitude)
        out.append(p)
    return out


def test_minmax_normalize_missing_is_neutral() -> None:
    assert minmax_normalize(None, 0, 1) == 0.5
    assert minmax_normalize(float("nan"), 0, 1) == 0.5
    assert minmax_normalize(2.0, 0, 1) == 1.0
    assert minmax_normalize(-1.0, 0, 1) == 0.0


def test_realized_vol_needs_enough_history() -> None:
    assert realized_vol_pct_annualized([100, 101, 102], 7) is None
    vol = realized_vol_pct_annualized(_prices(), 30)
    assert vol is not None and vol > 0 and math.isfinite(vol)


def test_proposed_label_cutoffs() -> None:
    assert proposed_label(0.72) == RegimeLabel.HIGH
    assert proposed_label(0.38) == RegimeLabel.LOW
    assert proposed_label(0.5) == RegimeLabel.MODERATE


def test_hysteresis_holds_high_within_band() -> None:
    label, applied = apply_hysteresis(0.68, RegimeLabel.HIGH)
    assert label == RegimeLabel.HIGH
    assert applied is True


def test_hysteresis_releases_high_outside_band() -> None:
    label, applied = apply_hysteresis(0.60, RegimeLabel.HIGH)
    assert label == RegimeLabel.MODERATE
    assert applied is False


def test_hysteresis_holds_low_within_band() -> None:
    assert apply_hysteresis(0.42, RegimeLabel.LOW) == (RegimeLabel.LOW, True)
    assert apply_hysteresis(0.37, RegimeLabel.LOW) == (RegimeLabel.LOW, False)
    assert apply_hysteresis(0.44, RegimeLabel.LOW) == (RegimeLabel.MODERATE, False)


def test_hysteresis_moderate_needs_clear_break() -> None:
    assert apply_hysteresis(0.74, RegimeLabel.MODERATE) == (RegimeLabel.MODERATE, True)
    assert apply_hysteresis(0.76, RegimeLabel.MODERATE) == (RegimeLabel.HIGH, False)
    assert apply_hysteresis(0.36, RegimeLabel.MODERATE) == (RegimeLabel.MODERATE, True)
    assert apply_hysteresis(0.34, RegimeLabel.MODERATE) == (RegimeLabel.LOW, False)


def test_hysteresis_without_previous_uses_raw_label() -> None:
    assert apply_hysteresis(0.68, None) == (RegimeLabel.MODERATE, False)


def test_confidence_floor_and_cap() -> None:
    assert compute_confidence({}) == 0.35
    full = compute_confidence({k: True for k in ("vol_7d", "vol_30d", "vr", "funding", "turnover_trend")})
    assert full == 0.99


def test_aggregate_turnover_trend_label() -> None:
    pool = make_pool("A" * 32, tvl=1_000_000, volume_24h=100_000)
    pool.stats_7d.volume = 7 * 150_000
    pool.stats_30d.volume = 30 * 100_000
    out = aggregate_turnover([pool])
    assert out["trend_ratio"] == pytest.approx(1.5)
    assert out["trend_label"] == "rising"
    assert aggregate_turnover([])["trend_label"] == "unknown"


def test_engine_process_reads_previous_state() -> None:
    store = MemoryRegimeStateStore(make_regime(RegimeLabel.HIGH, score=0.75))
    engine = RegimeEngine(store=store)
    state = engine.process(_prices(), [make_pool("B" * 32)], _funding(3.5), "test", NOW)

    assert state.hysteresis.previous_regime == RegimeLabel.HIGH
    assert state.hysteresis.previous_score == 0.75
    assert 0.1 <= state.confidence <= 0.99
    assert state.generated_at == "2026-01-10T00:00:00.000Z"


def test_engine_missing_inputs_degrade_confidence() -> None:
    engine = RegimeEngine(store=MemoryRegimeStateStore())
    state = engine.process([], [], _funding(None), "test", NOW)
    assert state.metrics.vol_30d_pct is None
    assert state.confidence == 0.35
    assert state.regime in set(RegimeLabel)


def test_json_store_round_trip_and_corrupt_file(tmp_path) -> None:
    path = tmp_path / "regime_state.json"
    store = JsonRegimeStateStore(path)
    assert store.load() is None

    write_json(path, make_regime(RegimeLabel.LOW, score=0.3))
    loaded = store.load()
    assert loaded.regime == RegimeLabel.LOW
    assert loaded.score == 0.3

    path.write_text("{not json", encoding="utf-8")
    assert store.load() is None
