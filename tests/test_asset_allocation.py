#!/usr/bin/env python3
"""Tests for largest-remainder allocation weights."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from asset_allocation import normalize_weights_largest_remainder, weight_hints
from factories import make_ranked
from lp_types import PoolUniverseType, RegimeLabel, ShortlistItem


def _item(slot, pool_type):
    row = make_ranked(str(slot) * 32, pool_type, score=70)
    return ShortlistItem(slot=slot, pool_address=row.pool_address, pool=row.pool, type=pool_type,
                         rank=slot, score=row.score, tvl_usd=row.tvl_usd,
                         volume_24h_usd=row.volume_24h_usd, fee_apr_pct=row.fee_apr_pct)


def test_hints_pass_through_when_already_integral() -> None:
    assert normalize_weights_largest_remainder([60, 40]) == [60, 40]


def test_truncated_equal_hints_split_evenly() -> None:
    assert normalize_weights_largest_remainder([1, 1, 1][:2]) == [50, 50]


def test_largest_remainder_sums_to_total() -> None:
    assert normalize_weights_largest_remainder([1, 1, 1]) == [34, 33, 33]
    weights = normalize_weights_largest_remainder([7, 11, 13])
    assert sum(weights) == 100
    assert all(isinstance(w, int) and w >= 0 for w in weights)


def test_degenerate_hints_fall_back_to_equal_weights() -> None:
    assert normalize_weights_largest_remainder([0, 0]) == [50, 50]
    assert normalize_weights_largest_remainder([float("nan"), 1]) == [0, 100]
    assert normalize_weights_largest_remainder([]) == []


def test_single_pool_gets_everything() -> None:
    hints, _ = weight_hints(RegimeLabel.HIGH, [_item(1, PoolUniverseType.SOL_STABLE)])
    assert hints == [100]


def test_regime_hints() -> None:
    stable_pair = [_item(1, PoolUniverseType.SOL_STABLE), _item(2, PoolUniverseType.SOL_STABLE)]
    mixed = [_item(1, PoolUniverseType.SOL_STABLE), _item(2, PoolUniverseType.SOL_LST)]
    carry_then_stable = [_item(1, PoolUniverseType.SOL_LST), _item(2, PoolUniverseType.SOL_STABLE)]

    assert weight_hints(RegimeLabel.HIGH, stable_pair)[0] == [50, 50]
    assert weight_hints(RegimeLabel.HIGH, mixed)[0] == [80, 20]
    assert weight_hints(RegimeLabel.MODERATE, mixed)[0] == [60, 40]
    assert weight_hints(RegimeLabel.LOW, carry_then_stable)[0] == [70, 30]
