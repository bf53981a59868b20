"""
Orca LP Scanner v1.0
Regime → Rankings → Shortlist → Range/Hedge plans → Allocation → Alerts → Ledger

Usage:
  python main.py               # Full run: fetch, compute, write public/data/orca/*.json
  python main.py --dry-run     # Compute and log, write nothing
  python main.py --cadence-48  # EVERY_48H operator profile (default: MONITOR_CADENCE_HOURS)
"""

import sys
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

# Load .env before lp_config reads the environment
from dotenv import load_dotenv
load_dotenv()

import lp_config
from asset_allocation import build_allocation_recommendation
from data_pipeline import DataFetchError, fetch_funding_proxy, fetch_orca_pools, fetch_sol_daily_prices
from engine import JsonRegimeStateStore, RegimeEngine, RegimeStateStore
from event_log import JsonlEventLog, iso_ts, utc_now
from lp_hedge_engine import apply_hedge_plans, resolve_sol_spot
from lp_monitor import build_alerts, deployed_plans, spot_by_address
from lp_onchain import enrich_pools_onchain, heuristic_enrichment
from lp_opportunities import build_pool_rankings, select_threshold_pools, select_universe_pools
from lp_outputs import read_json, write_outputs
from lp_performance import build_performance_snapshot, summarize_snapshots
from lp_range_planner import build_range_plans
from lp_shortlist import decide_shortlist
from lp_types import (
    AlertsOutput, AllocationOutput, FundingProxy, OnchainEnrichment, PerformanceSnapshot,
    PerformanceSummary, PlansOutput, Pool, PoolRankingOutput, RegimeState, ShortlistOutput,
)
from operator_mode import OperatorMode, get_operator_mode
from pool_stability import compute_pool_stability_metrics, pool_stats_record

# ── Logging ───────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")


@dataclass
class Providers:
    """External collaborators for one run"""
    fetch_pools: Callable[[], List[Pool]] = fetch_orca_pools
    fetch_prices: Callable[[], Tuple[List[float], str]] = fetch_sol_daily_prices
    fetch_funding: Callable[[], FundingProxy] = fetch_funding_proxy
    enrich_onchain: Callable[[List[Pool]], Dict[str, OnchainEnrichment]] = enrich_pools_onchain


@dataclass
class ScanResult:
    regime: RegimeState
    rankings: PoolRankingOutput
    shortlist: ShortlistOutput
    plans: PlansOutput
    allocation: AllocationOutput
    alerts: AlertsOutput
    performance: PerformanceSummary
    snapshot: PerformanceSnapshot
    stats_record: dict

    def payloads(self) -> Dict[str, object]:
        return {
            lp_config.REGIME_STATE_FILE: self.regime,
            lp_config.POOL_RANKINGS_FILE: self.rankings,
            lp_config.SHORTLIST_FILE: self.shortlist,
            lp_config.PLANS_FILE: self.plans,
            lp_config.ALLOCATION_FILE: self.allocation,
            lp_config.ALERTS_FILE: self.alerts,
            lp_config.PERFORMANCE_FILE: self.performance,
        }


def _funding_or_unavailable(future) -> FundingProxy:
    try:
        return future.result()
    except Exception as e:
        logger.warning(f"  ⚠️ Funding proxy failed: {e}")
        return FundingProxy(source="unavailable", symbol="SOL", funding_apr_pct=None,
                            note=f"Funding proxy unavailable: {e}")


def _onchain_or_heuristic(future, pools: List[Pool]) -> Dict[str, OnchainEnrichment]:
    try:
        return future.result()
    except Exception as e:
        logger.warning(f"  ⚠️ On-chain enrichment failed, using heuristic depth: {e}")
        return heuristic_enrichment(pools, f"On-chain enrichment failed: {e}")


def _previous_plans(output_dir: Path) -> Optional[PlansOutput]:
    path = output_dir / lp_config.PLANS_FILE
    if not path.exists():
        return None
    try:
        return PlansOutput.from_dict(read_json(path))
    except (OSError, ValueError, KeyError) as e:
        logger.warning(f"  ⚠️ Previous plans unreadable, range edges use this run: {e}")
        return None


def compute_scan(providers: Providers, output_dir: Path, stats_log: JsonlEventLog,
                 ledger: JsonlEventLog, mode: OperatorMode, now: datetime,
                 store: RegimeStateStore = None) -> ScanResult:
    """
    Every stage in order; raises DataFetchError when pools or prices are unavailable.
    Nothing is written here: history, ledger and regime state are persisted by run_scan.
    """
    generated_at = iso_ts(now)

    # ── 1. Fetch data ─────────────────────────────────────
    pools = providers.fetch_pools()
    prices, price_source = providers.fetch_prices()

    universe = select_universe_pools(pools)
    threshold_pools = select_threshold_pools(pools)
    logger.info(f"Universe: {len(universe)} pools, {len(threshold_pools)} above thresholds")

    # ── 2. Turnover stability ─────────────────────────────
    stats_record = pool_stats_record(pools, now)
    stability = compute_pool_stability_metrics(stats_log, now=now, pending=[stats_record])

    # ── 3. Funding + on-chain (fan-out) ───────────────────
    with ThreadPoolExecutor(max_workers=2) as executor:
        funding_future = executor.submit(providers.fetch_funding)
        onchain_future = executor.submit(providers.enrich_onchain, threshold_pools)
        funding = _funding_or_unavailable(funding_future)
        onchain = _onchain_or_heuristic(onchain_future, threshold_pools)

    # ── 4. Regime ─────────────────────────────────────────
    if store is None:
        store = JsonRegimeStateStore(output_dir / lp_config.REGIME_STATE_FILE)
    regime = RegimeEngine(store=store).process(prices, universe, funding, price_source, now)

    # ── 5. Rankings + shortlist ───────────────────────────
    rankings = build_pool_rankings(pools, regime, onchain, stability, generated_at=generated_at)
    shortlist = decide_shortlist(regime, rankings, generated_at=generated_at)

    # ── 6. Plans ──────────────────────────────────────────
    plans = build_range_plans(shortlist, regime, rankings, mode, generated_at=generated_at)
    sol_spot = resolve_sol_spot(rankings.top_pools_overall, prices)
    plans = apply_hedge_plans(plans, rankings.by_address(), sol_spot)

    # ── 7. Allocation + alerts ────────────────────────────
    allocation = build_allocation_recommendation(shortlist, generated_at=generated_at)
    deployed = deployed_plans(plans, _previous_plans(output_dir))
    alerts = build_alerts(regime, rankings, shortlist, deployed, mode,
                          spot_overrides=spot_by_address(rankings), generated_at=generated_at)

    # ── 8. Ledger summary (append happens in run_scan) ────
    snapshot = build_performance_snapshot(regime, rankings, shortlist, alerts, now)
    performance = summarize_snapshots(list(ledger.scan()) + [asdict(snapshot)], now=now)

    return ScanResult(regime, rankings, shortlist, plans, allocation, alerts, performance, snapshot,
                      stats_record)


def run_scan(providers: Providers = None, output_dir=None, data_dir=None,
             cadence_hours=None, dry_run: bool = False,
             now: Optional[datetime] = None, store: RegimeStateStore = None) -> int:
    """Full pipeline. Returns the process exit code; a failed run writes nothing."""
    providers = providers or Providers()
    out_dir = Path(output_dir or lp_config.OUTPUT_DIR)
    data_path = Path(data_dir or lp_config.DATA_DIR)
    now = now or utc_now()
    mode = get_operator_mode(cadence_hours if cadence_hours is not None else lp_config.MONITOR_CADENCE_HOURS)
    stats_log = JsonlEventLog(data_path / lp_config.POOL_STATS_HISTORY_FILE)
    if store is None:
        store = JsonRegimeStateStore(out_dir / lp_config.REGIME_STATE_FILE)
    ledger = JsonlEventLog(data_path / lp_config.PERFORMANCE_LEDGER_FILE)

    logger.info("=" * 50)
    logger.info("ORCA LP SCANNER v1.0")
    logger.info(f"Operator mode: {mode.name} ({mode.monitor_cadence_hours}h)")
    logger.info("=" * 50)

    try:
        result = compute_scan(providers, out_dir, stats_log, ledger, mode, now, store=store)
    except DataFetchError as e:
        logger.error(f"Run aborted, required data unavailable: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Run aborted: {e}")
        return 1

    # ── 9. Persist ────────────────────────────────────────
    if dry_run:
        logger.info("Dry run - skipping output, regime state, history and ledger writes")
    else:
        try:
            write_outputs(result.payloads(), out_dir)
            store.save(result.regime)
            stats_log.append(result.stats_record)
            ledger.append(asdict(result.snapshot))
        except OSError as e:
            logger.error(f"Writing outputs failed: {e}")
            return 1

    # ── 10. Summary ───────────────────────────────────────
    logger.info("-" * 50)
    logger.info(f"REGIME: {result.regime.regime.value} | Score: {result.regime.score:.3f} | "
                f"Conf: {result.regime.confidence:.2f}")
    for item, alloc in zip(result.shortlist.selected, result.allocation.allocations):
        logger.info(f"  Slot {item.slot}: {item.pool} ({item.type.value}) "
                    f"score={item.score:.1f} → {alloc.weight_pct}%")
    if not result.shortlist.selected:
        logger.info("  Shortlist empty")
    for alert in result.alerts.alerts:
        logger.warning(f"  ALERT [{alert.severity.value}] {alert.message}")
    logger.info("Done.")
    return 0


def main():
    args = set(sys.argv[1:])
    cadence = 48 if "--cadence-48" in args else None
    sys.exit(run_scan(cadence_hours=cadence, dry_run="--dry-run" in args))


if __name__ == "__main__":
    main()
