"""
LP Configuration - Endpoints, Token Sets, File Paths
Version: 1.0.0

Сеть: Solana
Протокол: Orca Whirlpools
"""

import os

from operator_mode import normalize_cadence_hours

# ═══════════════════════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

ORCA_POOLS_API = os.getenv("ORCA_POOLS_API", "https://api.orca.so/v2/solana/pools")
ORCA_PAGE_SIZE = 500
ORCA_MAX_PAGES = 20
ORCA_POOL_TYPE = "whirlpool"
WHIRLPOOL_PROGRAM_ID = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"

SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com").strip()
SOLANA_COMMITMENT = "confirmed"

COINGECKO_BASE = "https://api.coingecko.com/api/v3"
COINGECKO_SOL_ID = "solana"
YAHOO_SOL_TICKER = "SOL-USD"

HTTP_TIMEOUT = 20  # seconds

# ═══════════════════════════════════════════════════════════════════════════════
# TOKEN SETS (normalized symbols: alphanumerics only, uppercase)
# ═══════════════════════════════════════════════════════════════════════════════

SOL_SYMBOLS = {"SOL", "WSOL"}
LST_SYMBOLS = {"JITOSOL", "MSOL", "BSOL"}
STABLE_SYMBOLS = {"USDC", "USDT", "USDG", "PYUSD", "ONYC"}

# Priced at SOL spot for hedge math
SOL_EQUIVALENT_SYMBOLS = SOL_SYMBOLS | LST_SYMBOLS

VISIBLE_POOL_TYPES = ("SOL-STABLE", "SOL-LST", "LST-STABLE", "LST-LST")

# ═══════════════════════════════════════════════════════════════════════════════
# FILES
# ═══════════════════════════════════════════════════════════════════════════════

OUTPUT_DIR = os.getenv("ORCA_OUTPUT_DIR", "public/data/orca")
DATA_DIR = os.getenv("ORCA_DATA_DIR", "data")

POOL_STATS_HISTORY_FILE = "orca_pool_stats_history.jsonl"
PERFORMANCE_LEDGER_FILE = "performance_ledger.jsonl"

REGIME_STATE_FILE = "regime_state.json"
POOL_RANKINGS_FILE = "pool_rankings.json"
SHORTLIST_FILE = "shortlist.json"
PLANS_FILE = "plans.json"
ALLOCATION_FILE = "allocation.json"
ALERTS_FILE = "alerts.json"
PERFORMANCE_FILE = "performance.json"

# ═══════════════════════════════════════════════════════════════════════════════
# OPERATOR / FUNDING
# ═══════════════════════════════════════════════════════════════════════════════

def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


# 48 selects the 48h profile, anything else (unset, "48h", "12") is daily
MONITOR_CADENCE_HOURS = normalize_cadence_hours(os.getenv("MONITOR_CADENCE_HOURS", "24"))
FUNDING_BORROW_RATE_PCT_PER_HOUR = _env_float("FUNDING_BORROW_RATE_PCT_PER_HOUR", 0.0004)
