#!/usr/bin/env python3
"""Tests for the pool listing, price series and funding proxy providers."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd
import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import data_pipeline
from data_pipeline import (
    PoolFetchError, PriceSeriesError, fetch_funding_proxy, fetch_orca_pools,
    fetch_sol_daily_prices, map_pool,
)


def _raw(address, tvl, pool_type="whirlpool", **extra):
    row = {
        "address": address,
        "poolType": pool_type,
        "tickSpacing": 4,
        "feeRate": 400,
        "liquidity": "123456789",
        "tvlUsdc": str(tvl),
        "tokenA": {"address": "mintA", "symbol": "SOL", "decimals": 9},
        "tokenB": {"address": "mintB", "symbol": "USDC", "decimals": 6},
        "stats": {"24h": {"volume": "50000"}, "7d": {"volume": 350000}},
        "price": "150.5",
        "sqrtPrice": "7158907771305786000",
        "tickCurrentIndex": -18970,
    }
    row.update(extra)
    return row


class _Response:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status} error")

    def json(self):
        return self.payload


class _Session:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append(dict(params or {}))
        return self.responses.pop(0)


def test_map_pool_parses_strings_and_rewards() -> None:
    pool = map_pool(_raw("A", 1_000_000, rewards=[{"active": True}, {"emissionsPerSecond": "0"}]))
    assert pool.tvl_usd == 1_000_000.0
    assert pool.fee_tier_rate == 0.0004
    assert pool.stats_24h.volume == 50_000.0
    assert pool.stats_30d.volume == 0.0
    assert pool.rewards_active_count == 1
    assert pool.token_a.decimals == 9
    assert pool.tick_current_index == -18970
    assert pool.price == 150.5


def test_pagination_dedupes_and_filters() -> None:
    session = _Session([
        _Response({"data": [_raw("A", 100), _raw("B", 300), _raw("S", 900, pool_type="splash")],
                   "meta": {"cursor": {"next": "c1"}}}),
        _Response({"data": [_raw("A", 200), "junk"], "meta": {"cursor": {"next": None}}}),
    ])
    pools = fetch_orca_pools(session=session)

    assert [p.address for p in pools] == ["B", "A"]
    assert pools[1].tvl_usd == 200.0
    assert session.calls[1]["cursor"] == "c1"


def test_http_failure_is_fatal() -> None:
    with pytest.raises(PoolFetchError):
        fetch_orca_pools(session=_Session([_Response({}, status=503)]))


def test_price_series_falls_back_to_coingecko(monkeypatch) -> None:
    monkeypatch.setattr(data_pipeline, "fetch_sol_price_yahoo", lambda days: pd.Series(dtype=float))
    monkeypatch.setattr(data_pipeline, "fetch_sol_price_coingecko", lambda days: pd.Series([140.0, 150.0]))

    prices, source = fetch_sol_daily_prices()
    assert prices == [140.0, 150.0]
    assert source == "coingecko:solana"


def test_price_series_unavailable_is_fatal(monkeypatch) -> None:
    empty = lambda days: pd.Series(dtype=float)
    monkeypatch.setattr(data_pipeline, "fetch_sol_price_yahoo", empty)
    monkeypatch.setattr(data_pipeline, "fetch_sol_price_coingecko", empty)
    with pytest.raises(PriceSeriesError):
        fetch_sol_daily_prices()


def test_funding_proxy_annualizes_hourly_rate() -> None:
    proxy = fetch_funding_proxy(datetime(2026, 1, 10, tzinfo=timezone.utc))
    rate = data_pipeline.lp_config.FUNDING_BORROW_RATE_PCT_PER_HOUR
    assert proxy.funding_apr_pct == pytest.approx(rate * 24 * 365, abs=1e-3)
    assert proxy.source == "fixed-borrow-rate"
    assert proxy.as_of == "2026-01-10T00:00:00.000Z"
