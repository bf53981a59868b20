"""
Performance Snapshot v1.0 - ledger-only run.

Re-reads the latest regime / rankings / shortlist / alerts outputs, appends
one ledger row and rewrites performance.json. When alerts.json is missing,
alerts are rebuilt from plans.json against the spot listed in
pool_rankings.json.

Usage:
  python performance_snapshot.py
"""

import sys
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
load_dotenv()

import lp_config
from event_log import JsonlEventLog
from lp_monitor import build_alerts, spot_by_address
from lp_outputs import read_json, write_json
from lp_performance import append_performance_snapshot, build_performance_snapshot, summarize_ledger
from lp_types import PlansOutput, PoolRankingOutput, RegimeState, ShortlistOutput
from operator_mode import get_operator_mode

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("performance_snapshot")


def _load_alerts(base: Path, regime, rankings, shortlist):
    path = base / lp_config.ALERTS_FILE
    if path.exists():
        return read_json(path)
    logger.warning(f"{path} missing - rebuilding alerts from plans")
    plans = PlansOutput.from_dict(read_json(base / lp_config.PLANS_FILE))
    mode = get_operator_mode(lp_config.MONITOR_CADENCE_HOURS)
    return build_alerts(regime, rankings, shortlist, plans, mode,
                        spot_overrides=spot_by_address(rankings))


def run_snapshot(output_dir=None, data_dir=None, now: Optional[datetime] = None) -> int:
    base = Path(output_dir or lp_config.OUTPUT_DIR)
    ledger = JsonlEventLog(Path(data_dir or lp_config.DATA_DIR) / lp_config.PERFORMANCE_LEDGER_FILE)

    try:
        regime = RegimeState.from_dict(read_json(base / lp_config.REGIME_STATE_FILE))
        rankings = PoolRankingOutput.from_dict(read_json(base / lp_config.POOL_RANKINGS_FILE))
        shortlist = ShortlistOutput.from_dict(read_json(base / lp_config.SHORTLIST_FILE))
        alerts = _load_alerts(base, regime, rankings, shortlist)
    except (OSError, ValueError, KeyError) as e:
        logger.error(f"Performance snapshot failed: {e}")
        return 1

    snapshot = build_performance_snapshot(regime, rankings, shortlist, alerts, now)
    append_performance_snapshot(snapshot, ledger)
    summary = summarize_ledger(ledger, now=now)
    summary_path = write_json(base / lp_config.PERFORMANCE_FILE, summary)

    logger.info(f"Appended performance snapshot → {ledger.path}")
    logger.info(f"Ledger snapshots: {ledger.count()}")
    logger.info(f"Wrote performance summary → {summary_path}")
    return 0


if __name__ == "__main__":
    sys.exit(run_snapshot())
