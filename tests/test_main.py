#!/usr/bin/env python3
"""End-to-end scanner runs with stubbed providers."""

import json
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import lp_config
import main
from data_pipeline import PoolFetchError, PriceSeriesError
from engine import MemoryRegimeStateStore
from factories import make_pool
from lp_onchain import heuristic_enrichment
from lp_outputs import OUTPUT_FILES
from lp_types import FundingProxy
from main import Providers, run_scan
from performance_snapshot import run_snapshot

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)


def _pools():
    return [
        make_pool("S" * 32, "SOL", "USDC", tvl=3_000_000, volume_24h=2_000_000),
        make_pool("T" * 32, "jitoSOL", "SOL", tvl=1_500_000, volume_24h=400_000, price=1.2),
        make_pool("U" * 32, "USDC", "USDT", tvl=9_000_000, volume_24h=6_000_000, price=1.0),
    ]


def _prices():
    return [150.0 * (1 + 0.02 * (-1) ** i) for i in range(40)], "test:prices"


def _funding(apr=4.0):
    return lambda: FundingProxy(source="test", symbol="SOL", funding_apr_pct=apr)


def _providers(**overrides):
    base = dict(
        fetch_pools=_pools,
        fetch_prices=_prices,
        fetch_funding=_funding(),
        enrich_onchain=lambda pools: heuristic_enrichment(pools, "stub", rpc_endpoint="test"),
    )
    base.update(overrides)
    return Providers(**base)


def _read(out_dir, name):
    return json.loads((out_dir / name).read_text(encoding="utf-8"))


def test_full_run_writes_every_output(tmp_path) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"
    assert run_scan(_providers(), out_dir, data_dir, now=NOW) == 0

    for name in OUTPUT_FILES:
        text = (out_dir / name).read_text(encoding="utf-8")
        assert text.endswith("\n")
        json.loads(text)

    rankings = _read(out_dir, lp_config.POOL_RANKINGS_FILE)
    assert all(row["type"] != "STABLE-STABLE" for row in rankings["top_pools_overall"])

    shortlist = _read(out_dir, lp_config.SHORTLIST_FILE)
    allocation = _read(out_dir, lp_config.ALLOCATION_FILE)
    assert 1 <= len(shortlist["selected"]) <= 2
    assert sum(a["weight_pct"] for a in allocation["allocations"]) == 100

    plans = _read(out_dir, lp_config.PLANS_FILE)
    assert all(p["hedge"] is not None for p in plans["plans"])

    performance = _read(out_dir, lp_config.PERFORMANCE_FILE)
    assert performance["summary"]["snapshot_count"] == 1
    assert (data_dir / lp_config.POOL_STATS_HISTORY_FILE).exists()


def test_second_run_reads_previous_regime(tmp_path) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"
    assert run_scan(_providers(), out_dir, data_dir, now=NOW) == 0
    first = _read(out_dir, lp_config.REGIME_STATE_FILE)
    assert first["hysteresis"]["previous_regime"] is None

    assert run_scan(_providers(), out_dir, data_dir, now=NOW + timedelta(days=1)) == 0
    second = _read(out_dir, lp_config.REGIME_STATE_FILE)
    assert second["hysteresis"]["previous_regime"] == first["regime"]
    assert second["hysteresis"]["previous_score"] == first["score"]
    assert _read(out_dir, lp_config.PERFORMANCE_FILE)["summary"]["snapshot_count"] == 2


def test_pool_fetch_failure_writes_nothing(tmp_path) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"

    def down():
        raise PoolFetchError("orca-api: 503")

    assert run_scan(_providers(fetch_pools=down), out_dir, data_dir, now=NOW) == 1
    assert not out_dir.exists() or not any(out_dir.iterdir())
    assert not (data_dir / lp_config.PERFORMANCE_LEDGER_FILE).exists()
    assert not (data_dir / lp_config.POOL_STATS_HISTORY_FILE).exists()


def test_price_failure_is_fatal(tmp_path) -> None:
    def no_prices():
        raise PriceSeriesError("SOL daily price series unavailable")

    assert run_scan(_providers(fetch_prices=no_prices), tmp_path / "out", tmp_path / "data", now=NOW) == 1
    assert not (tmp_path / "out").exists()


def test_funding_and_onchain_failures_degrade(tmp_path) -> None:
    out_dir = tmp_path / "out"

    def funding_down():
        raise RuntimeError("rate endpoint unreachable")

    def rpc_down(pools):
        raise RuntimeError("rpc timeout")

    providers = _providers(fetch_funding=funding_down, enrich_onchain=rpc_down)
    assert run_scan(providers, out_dir, tmp_path / "data", now=NOW) == 0

    regime = _read(out_dir, lp_config.REGIME_STATE_FILE)
    assert regime["metrics"]["funding_apr_pct"] is None
    assert regime["data_sources"]["funding"] == "unavailable"
    assert regime["confidence"] < 1.0

    rankings = _read(out_dir, lp_config.POOL_RANKINGS_FILE)
    assert all(row["validated_onchain"] is False for row in rankings["pools"])


def test_dry_run_writes_nothing(tmp_path) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"
    assert run_scan(_providers(), out_dir, data_dir, dry_run=True, now=NOW) == 0
    assert not out_dir.exists()
    assert not data_dir.exists()


def test_cadence_48_uses_slow_profile(tmp_path) -> None:
    out_dir = tmp_path / "out"
    assert run_scan(_providers(), out_dir, tmp_path / "data", cadence_hours=48, now=NOW) == 0
    assert _read(out_dir, lp_config.PLANS_FILE)["operator_mode"] == "EVERY_48H"
    assert _read(out_dir, lp_config.ALERTS_FILE)["operator_mode"] == "EVERY_48H"


def test_snapshot_companion_rebuilds_missing_alerts(tmp_path) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"
    assert run_scan(_providers(), out_dir, data_dir, now=NOW) == 0
    (out_dir / lp_config.ALERTS_FILE).unlink()

    assert run_snapshot(out_dir, data_dir, now=NOW + timedelta(hours=1)) == 0
    performance = _read(out_dir, lp_config.PERFORMANCE_FILE)
    assert performance["summary"]["snapshot_count"] == 2
    assert performance["generated_at"] == "2026-01-10T13:00:00.000Z"


def test_snapshot_companion_needs_outputs(tmp_path) -> None:
    assert run_snapshot(tmp_path / "out", tmp_path / "data", now=NOW) == 1


def test_injected_store_carries_regime_between_runs(tmp_path) -> None:
    store = MemoryRegimeStateStore()
    assert run_scan(_providers(), tmp_path / "a", tmp_path / "data", now=NOW, store=store) == 0
    first = store.state
    assert first is not None
    assert first.hysteresis.previous_regime is None

    assert run_scan(_providers(), tmp_path / "b", tmp_path / "data",
                    now=NOW + timedelta(days=1), store=store) == 0
    second = _read(tmp_path / "b", lp_config.REGIME_STATE_FILE)
    assert second["hysteresis"]["previous_regime"] == first.regime.value
    assert second["hysteresis"]["previous_score"] == first.score
    assert store.state.generated_at == second["generated_at"]


def test_dry_run_leaves_store_untouched(tmp_path) -> None:
    store = MemoryRegimeStateStore()
    assert run_scan(_providers(), tmp_path / "out", tmp_path / "data", dry_run=True, now=NOW, store=store) == 0
    assert store.state is None


def test_failed_output_write_skips_history_and_ledger(tmp_path, monkeypatch) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"
    store = MemoryRegimeStateStore()

    def disk_full(payloads, output_dir=None):
        raise OSError("No space left on device")

    monkeypatch.setattr(main, "write_outputs", disk_full)
    assert run_scan(_providers(), out_dir, data_dir, now=NOW, store=store) == 1
    assert store.state is None
    assert not (data_dir / lp_config.POOL_STATS_HISTORY_FILE).exists()
    assert not (data_dir / lp_config.PERFORMANCE_LEDGER_FILE).exists()


def test_spot_drift_against_previous_range_alerts(tmp_path) -> None:
    out_dir, data_dir = tmp_path / "out", tmp_path / "data"
    assert run_scan(_providers(), out_dir, data_dir, now=NOW) == 0
    assert not any(a["id"].startswith("range-edge-") for a in _read(out_dir, lp_config.ALERTS_FILE)["alerts"])

    plan = _read(out_dir, lp_config.PLANS_FILE)["plans"][0]
    base = next(p for p in plan["presets"] if p["label"] == "Base")
    half_span = (base["upper_price"] - base["lower_price"]) / 2
    drifted = base["lower_price"] + 0.2 * half_span

    def moved_pools():
        return [replace(p, price=drifted) if p.address == plan["pool_address"] else p for p in _pools()]

    assert run_scan(_providers(fetch_pools=moved_pools), out_dir, data_dir,
                    now=NOW + timedelta(days=1)) == 0
    alerts = {a["id"]: a for a in _read(out_dir, lp_config.ALERTS_FILE)["alerts"]}
    edge = alerts[f"range-edge-{plan['pool_address']}"]
    assert edge["kind"] == "RANGE_EDGE_WARN"
    assert edge["severity"] == "warn"
    assert abs(edge["metric"]["value"] - 0.2) < 1e-3
