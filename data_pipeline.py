"""
Data Pipeline - fetches all scanner inputs from free public APIs.

Sources:
  Pools:
    Orca v2 REST API (whirlpools on Solana, cursor-paginated)
  SOL spot series (volatility):
    Primary:  Yahoo Finance (SOL-USD)
    Fallback: CoinGecko market_chart/range (sub-daily points, bucketed to daily)
  Funding:
    Fixed borrow-rate proxy annualized to APR (no network call)

Pools and the price series are required: failure raises and aborts the run.
"""

import math
import time
import logging
from datetime import datetime
from typing import List, Optional, Tuple

import pandas as pd
import requests
import yfinance as yf

import lp_config
import settings as cfg
from event_log import iso_ts, utc_now
from lp_types import FundingProxy, Pool, PoolStatsWindow, TokenInfo

logger = logging.getLogger(__name__)


class DataFetchError(RuntimeError):
    """Required upstream data could not be fetched"""


class PoolFetchError(DataFetchError):
    pass


class PriceSeriesError(DataFetchError):
    pass


def _to_num(value, fallback: float = 0.0) -> float:
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    return n if math.isfinite(n) else fallback


def _to_int(value) -> Optional[int]:
    if value is None:
        return None
    n = _to_num(value, float("nan"))
    return int(n) if math.isfinite(n) else None


# ============================================================
# ORCA API - POOL UNIVERSE
# ============================================================

def _map_stats_window(raw) -> PoolStatsWindow:
    raw = raw or {}
    return PoolStatsWindow(
        volume=_to_num(raw.get("volume")),
        fees=_to_num(raw.get("fees")),
        rewards=_to_num(raw.get("rewards")),
        yield_over_tvl=_to_num(raw.get("yieldOverTvl")),
    )


def _map_token(raw, mint_fallback) -> TokenInfo:
    raw = raw or {}
    return TokenInfo(
        address=str(raw.get("address") or mint_fallback or ""),
        symbol=str(raw.get("symbol") or ""),
        name=str(raw["name"]) if raw.get("name") else None,
        decimals=_to_int(raw.get("decimals")),
    )


def map_pool(raw: dict) -> Pool:
    """Map one Orca API pool record to a Pool"""
    fee_rate = _to_num(raw.get("feeRate"))
    rewards = raw.get("rewards") if isinstance(raw.get("rewards"), list) else []
    active_rewards = [
        r for r in rewards
        if isinstance(r, dict) and (bool(r.get("active")) or _to_num(r.get("emissionsPerSecond")) > 0)
    ]
    stats = raw.get("stats") or {}
    price = raw.get("price")

    return Pool(
        address=str(raw.get("address") or ""),
        pool_type=str(raw.get("poolType") or ""),
        tick_spacing=int(_to_num(raw.get("tickSpacing"))),
        fee_rate=fee_rate,
        fee_tier_rate=fee_rate / 1_000_000,
        liquidity_raw=str(raw.get("liquidity") if raw.get("liquidity") is not None else "0"),
        liquidity=_to_num(raw.get("liquidity")),
        tvl_usd=_to_num(raw.get("tvlUsdc")),
        token_a=_map_token(raw.get("tokenA"), raw.get("tokenMintA")),
        token_b=_map_token(raw.get("tokenB"), raw.get("tokenMintB")),
        stats_24h=_map_stats_window(stats.get("24h")),
        stats_7d=_map_stats_window(stats.get("7d")),
        stats_30d=_map_stats_window(stats.get("30d")),
        rewards_active_count=len(active_rewards),
        sqrt_price_raw=str(raw["sqrtPrice"]) if raw.get("sqrtPrice") is not None else None,
        tick_current_index=_to_int(raw.get("tickCurrentIndex")),
        price=_to_num(price, float("nan")) if price is not None else None,
        updated_at=str(raw["updatedAt"]) if raw.get("updatedAt") else None,
    )


def fetch_orca_pools_page(cursor: Optional[str] = None, session=None) -> dict:
    """Fetch one page of the Orca pool listing."""
    params = {
        "size": lp_config.ORCA_PAGE_SIZE,
        "sortBy": "tvl",
        "sortDirection": "desc",
    }
    if cursor:
        params["cursor"] = cursor

    http = session or requests
    resp = http.get(
        lp_config.ORCA_POOLS_API,
        params=params,
        headers={"accept": "application/json"},
        timeout=lp_config.HTTP_TIMEOUT,
    )
    resp.raise_for_status()
    return resp.json()


def fetch_orca_pools(max_pages: int = lp_config.ORCA_MAX_PAGES, session=None) -> List[Pool]:
    """
    Fetch every whirlpool across cursor pages.
    De-duplicated by address, sorted by TVL descending.
    Raises PoolFetchError on any HTTP or payload failure.
    """
    by_address = {}
    cursor = None
    page = 0

    try:
        for page in range(max_pages):
            payload = fetch_orca_pools_page(cursor, session=session)
            rows = payload.get("data") if isinstance(payload.get("data"), list) else []
            for raw in rows:
                if not isinstance(raw, dict):
                    continue
                pool = map_pool(raw)
                if not pool.address or pool.pool_type != lp_config.ORCA_POOL_TYPE:
                    continue
                by_address[pool.address] = pool

            next_cursor = ((payload.get("meta") or {}).get("cursor") or {}).get("next")
            if not next_cursor or next_cursor == cursor:
                break
            cursor = next_cursor
    except (requests.RequestException, ValueError) as e:
        raise PoolFetchError(f"orca-api: {e}") from e

    pools = sorted(by_address.values(), key=lambda p: p.tvl_usd, reverse=True)
    logger.info(f"  ✓ Orca whirlpools: {len(pools)} pools ({page + 1} page(s))")
    return pools


# ============================================================
# SOL SPOT SERIES - YAHOO (PRIMARY) / COINGECKO (FALLBACK)
# ============================================================

def fetch_sol_price_yahoo(days: int = cfg.PRICE_HISTORY_DAYS) -> pd.Series:
    """Daily SOL-USD closes from Yahoo Finance, oldest first."""
    try:
        data = yf.download(lp_config.YAHOO_SOL_TICKER, period=f"{days}d", progress=False, auto_adjust=True)

        if data.empty:
            logger.warning("Yahoo SOL-USD returned empty data")
            return pd.Series(dtype=float)

        close = data["Close"]
        # Handle MultiIndex columns from yfinance
        if hasattr(close, "columns"):
            close = close.iloc[:, 0]

        close.index = pd.to_datetime(close.index).date
        close = close.astype(float)
        close = close[close > 0].dropna()
        return close.groupby(level=0).last().sort_index()

    except Exception as e:
        logger.error(f"Yahoo SOL-USD failed: {e}")
        return pd.Series(dtype=float)


def fetch_sol_price_coingecko(days: int = cfg.PRICE_HISTORY_DAYS, session=None) -> pd.Series:
    """
    Fallback: SOL-USD from CoinGecko market_chart/range.
    Keeps the last observation of each UTC day.
    """
    to_sec = int(time.time())
    from_sec = to_sec - days * 24 * 60 * 60
    url = f"{lp_config.COINGECKO_BASE}/coins/{lp_config.COINGECKO_SOL_ID}/market_chart/range"
    params = {"vs_currency": "usd", "from": from_sec, "to": to_sec}

    try:
        http = session or requests
        resp = http.get(url, params=params, headers={"accept": "application/json"},
                        timeout=lp_config.HTTP_TIMEOUT)
        resp.raise_for_status()
        data = resp.json().get("prices") or []

        if not data:
            return pd.Series(dtype=float)

        df = pd.DataFrame(data, columns=["timestamp", "price"])
        df = df[pd.to_numeric(df["price"], errors="coerce") > 0].sort_values("timestamp")
        df["date"] = pd.to_datetime(df["timestamp"], unit="ms", utc=True).dt.date
        return df.groupby("date")["price"].last().astype(float)

    except Exception as e:
        logger.error(f"CoinGecko SOL market chart failed: {e}")
        return pd.Series(dtype=float)


def fetch_sol_daily_prices(days: int = cfg.PRICE_HISTORY_DAYS) -> Tuple[List[float], str]:
    """
    Daily SOL prices for volatility, oldest first, with source label.
    Raises PriceSeriesError when every source fails.
    """
    series = fetch_sol_price_yahoo(days)
    source = "yahoo:SOL-USD"

    if series.empty:
        logger.warning("  Yahoo failed, trying CoinGecko market chart...")
        series = fetch_sol_price_coingecko(days)
        source = "coingecko:solana"

    if series.empty:
        logger.error("  ✗ SOL price: ALL SOURCES FAILED")
        raise PriceSeriesError("SOL daily price series unavailable from yahoo and coingecko")

    prices = [float(p) for p in series.tolist()]
    logger.info(f"  ✓ SOL price: {len(prices)} days, last=${prices[-1]:,.2f} ({source})")
    return prices, source


# ============================================================
# FUNDING PROXY
# ============================================================

def fixed_borrow_rate_funding_apr_pct(hourly_rate_pct: float = lp_config.FUNDING_BORROW_RATE_PCT_PER_HOUR) -> float:
    return hourly_rate_pct * cfg.HOURS_PER_YEAR


def fetch_funding_proxy(now: Optional[datetime] = None) -> FundingProxy:
    """SOL funding proxy from a fixed hourly borrow rate."""
    rate = lp_config.FUNDING_BORROW_RATE_PCT_PER_HOUR
    apr = fixed_borrow_rate_funding_apr_pct(rate)
    return FundingProxy(
        source="fixed-borrow-rate",
        symbol="SOL",
        funding_apr_pct=round(apr, 3),
        raw_rate=rate / 100,
        rate_period="hour",
        as_of=iso_ts(now or utc_now()),
        note=f"Derived from fixed borrow rate {rate}%/hr (APR = rate * 24 * 365).",
    )
