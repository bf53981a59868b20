#!/usr/bin/env python3
"""Tests for whirlpool tick math and hedge sizing."""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import tick_math
from factories import make_ranked
from lp_hedge_engine import (
    HedgeMathError, PreciseRatio, apply_hedge_plans, compute_deposit_ratio_usd,
    derive_token_usd_prices, resolve_sol_spot,
)
from lp_types import (
    DepositRatioSource, HedgeSide, PlansOutput, PoolPlan, PoolUniverseType, RangePreset,
)

SOL_STABLE = PoolUniverseType.SOL_STABLE


def _with_pool_math(row, tick_spacing=4):
    dec_a, dec_b = row.token_decimals
    tick = tick_math.price_to_tick_index(row.spot_price, dec_a, dec_b)
    row.tick_spacing = tick_spacing
    row.tick_current_index = tick
    row.sqrt_price_x64 = str(tick_math.sqrt_price_x64_from_tick(tick))
    return row


def _plan(row, width=10.0):
    return PoolPlan(
        pool_address=row.pool_address,
        pool=row.pool,
        type=row.type,
        spot_price=row.spot_price,
        volatility_proxy_pct_annual=60.0,
        regime_width_multiplier=1.0,
        presets=[RangePreset("Base", width, -width, width)],
    )


def _plans(rows, label="MODERATE", funding=3.5, width=10.0):
    return PlansOutput(
        generated_at="2026-01-10T00:00:00.000Z",
        regime={"label": label, "funding_apr_pct": funding},
        operator_mode="DAILY",
        plans=[_plan(r, width) for r in rows],
    )


# ─── tick math ───────────────────────────────────────────────

def test_sqrt_price_at_tick_zero_is_one() -> None:
    assert tick_math.sqrt_price_x64_from_tick(0) == 1 << 64


def test_sqrt_price_is_monotonic_and_bounded() -> None:
    assert tick_math.sqrt_price_x64_from_tick(-10) < tick_math.sqrt_price_x64_from_tick(10)
    with pytest.raises(tick_math.TickMathError):
        tick_math.sqrt_price_x64_from_tick(tick_math.MAX_TICK + 1)


def test_price_tick_round_trip() -> None:
    tick = tick_math.price_to_tick_index(150.0, 9, 6)
    assert tick_math.tick_index_to_price(tick, 9, 6) == pytest.approx(150.0, rel=1e-4)


def test_initializable_tick_index_snaps_to_spacing() -> None:
    assert tick_math.initializable_tick_index(-7, 4) == -8
    assert tick_math.initializable_tick_index(-7, 4, round_up=True) == -4
    assert tick_math.initializable_tick_index(8, 4, round_up=True) == 8


def test_amounts_outside_range_are_single_sided() -> None:
    below = tick_math.sqrt_price_x64_from_tick(-200)
    above = tick_math.sqrt_price_x64_from_tick(200)
    a, b = tick_math.amounts_for_liquidity(below, -100, 100, 10 ** 12)
    assert a > 0 and b == 0
    a, b = tick_math.amounts_for_liquidity(above, -100, 100, 10 ** 12)
    assert a == 0 and b > 0
    with pytest.raises(tick_math.TickMathError):
        tick_math.amounts_for_liquidity(above, 100, 100, 1)


# ─── prices ──────────────────────────────────────────────────

def test_derive_prices_cross_derives_unknown_side() -> None:
    row = make_ranked("S" * 32, SOL_STABLE, 70, symbols=("BONK", "USDC"), spot=0.00002)
    price_a, price_b = derive_token_usd_prices(row, 150.0)
    assert price_b == 1.0
    assert price_a == pytest.approx(0.00002)


def test_resolve_sol_spot_prefers_pool_then_series_then_default() -> None:
    row = make_ranked("S" * 32, SOL_STABLE, 70, spot=142.5)
    assert resolve_sol_spot([row], [130.0]) == 142.5
    assert resolve_sol_spot([], [130.0]) == 130.0
    assert resolve_sol_spot([], []) == 200.0


# ─── deposit ratio / hedge ───────────────────────────────────

def test_precise_deposit_ratio_is_roughly_balanced_at_centre() -> None:
    row = _with_pool_math(make_ranked("S" * 32, SOL_STABLE, 70, spot=150.0))
    lower = tick_math.initializable_tick_index(row.tick_current_index - 1000, 4)
    upper = tick_math.initializable_tick_index(row.tick_current_index + 1000, 4, round_up=True)

    ratio = compute_deposit_ratio_usd(row, lower, upper, int(row.sqrt_price_x64), 150.0)
    assert isinstance(ratio, PreciseRatio)
    assert 0.4 < ratio.risk_ratio < 0.6
    assert ratio.token_a_ratio + ratio.token_b_ratio == pytest.approx(1.0)
    assert ratio.risk_asset_label == "SOL"


def test_deposit_ratio_without_sol_side_raises() -> None:
    row = _with_pool_math(make_ranked("S" * 32, SOL_STABLE, 70, symbols=("USDT", "USDC"), spot=1.0))
    lower = tick_math.initializable_tick_index(row.tick_current_index - 100, 4)
    upper = tick_math.initializable_tick_index(row.tick_current_index + 100, 4, round_up=True)
    with pytest.raises(HedgeMathError, match="no SOL-equivalent side"):
        compute_deposit_ratio_usd(row, lower, upper, int(row.sqrt_price_x64), 150.0)


def test_precise_hedge_plan() -> None:
    row = _with_pool_math(make_ranked("S" * 32, SOL_STABLE, 70, spot=150.0))
    out = apply_hedge_plans(_plans([row]), {row.pool_address: row}, sol_spot_usd=150.0)
    hedge = out.plans[0].hedge

    assert hedge.deposit_ratio_source == DepositRatioSource.PRECISE
    assert hedge.enabled and hedge.side == HedgeSide.SHORT_SOL
    expected_usd = 10_000 * hedge.deposit_ratio_risk_asset_usd * 0.95
    assert hedge.recommended_short_notional_usd_per_10k_usd == pytest.approx(expected_usd, abs=1.0)
    assert hedge.recommended_short_sol_per_10k_usd == pytest.approx(expected_usd / 150.0, abs=0.01)
    assert hedge.note.startswith("derived from deposit ratio")


def test_both_sides_sol_equivalent_is_full_delta() -> None:
    row = _with_pool_math(make_ranked("T" * 32, PoolUniverseType.SOL_LST, 70,
                                      symbols=("jitoSOL", "SOL"), spot=1.2), tick_spacing=1)
    hedge = apply_hedge_plans(_plans([row]), {row.pool_address: row}, 150.0).plans[0].hedge
    assert hedge.deposit_ratio_risk_asset_usd == 1.0
    assert hedge.risk_asset_label == "jitoSOL+SOL (SOL-equivalent)"


def test_missing_metadata_uses_heuristic() -> None:
    row = make_ranked("S" * 32, SOL_STABLE, 70)
    hedge = apply_hedge_plans(_plans([row]), {row.pool_address: row}, 150.0).plans[0].hedge

    assert hedge.deposit_ratio_source == DepositRatioSource.FALLBACK
    assert hedge.note.startswith("fallback heuristic used: missing pool math metadata")
    # 0.45 × clamp(1 + 0.1 − 10/20, 0.75, 1.15)
    assert hedge.approx_delta_fraction == pytest.approx(0.3375)
    assert hedge.recommended_short_notional_usd_per_10k_usd == pytest.approx(10_000 * 0.3375 * 0.95, abs=0.01)


def test_low_delta_disables_hedge() -> None:
    row = make_ranked("U" * 32, PoolUniverseType.LST_LST, 70, symbols=("mSOL", "jitoSOL"), spot=1.0)
    hedge = apply_hedge_plans(_plans([row]), {row.pool_address: row}, 150.0).plans[0].hedge

    assert not hedge.enabled
    assert hedge.side == HedgeSide.NONE
    assert hedge.recommended_short_sol_per_10k_usd == 0.0
    assert hedge.note.endswith("no hedge suggested because estimated SOL delta fraction is low.")


def test_funding_penalty_and_warning() -> None:
    row = make_ranked("S" * 32, SOL_STABLE, 70)
    hedge = apply_hedge_plans(_plans([row], label="HIGH", funding=30.0), {}, 150.0).plans[0].hedge

    assert hedge.funding_penalty == 0.9
    assert hedge.hedge_multiplier == 1.0
    assert hedge.warning == "Funding APR 30.0% is elevated; trim hedge size or use partial hedge."


def test_invalid_sol_spot_defaults() -> None:
    row = make_ranked("S" * 32, SOL_STABLE, 70)
    hedge = apply_hedge_plans(_plans([row]), {}, sol_spot_usd=float("nan")).plans[0].hedge
    assert hedge.delta_estimate_sol_per_10k_usd == pytest.approx(10_000 * 0.3375 / 200.0, abs=1e-4)
