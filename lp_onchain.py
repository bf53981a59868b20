"""
On-Chain Enrichment - Solana account validation + heuristic depth
Version: 1.0.0

Checks each pool account exists via JSON-RPC getMultipleAccounts and is
owned by the Whirlpool program, then attaches a ±1% / ±2% depth
approximation derived from TVL, liquidity magnitude, turnover and tick
spacing. Tick arrays are not parsed, so
every depth figure is tagged `heuristic_no_tick_arrays`.

Best-effort: RPC failures mark pools unvalidated, they never abort the run.
"""

import logging
import math
import re
from typing import Dict, List, Optional, Tuple

import requests

import lp_config
import settings as cfg
from lp_types import OnchainEnrichment, Pool
from normalization import clamp

logger = logging.getLogger(__name__)

DEPTH_METHOD = "heuristic_no_tick_arrays"
DEPTH_NOTE = (
    "Approximation (TVL/liquidity/tick-spacing heuristic). "
    "Tick arrays are not parsed yet in this implementation."
)

_BASE58_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_valid_pubkey(address: str) -> bool:
    return bool(address) and bool(_BASE58_RE.match(address))


# ═══════════════════════════════════════════════════════════════════════════════
# DEPTH HEURISTIC
# ═══════════════════════════════════════════════════════════════════════════════

def approx_depth(pool: Pool) -> Tuple[float, float]:
    """(depth ±1%, depth ±2%) in USD"""
    tvl = max(0.0, pool.tvl_usd)
    vol = max(0.0, pool.stats_24h.volume)
    tick_spacing = max(1, pool.tick_spacing or 1)
    liquidity_mag = math.log10(pool.liquidity + 1) if pool.liquidity > 0 else 0.0
    turnover = vol / tvl if tvl > 0 else 0.0

    concentration = clamp(cfg.DEPTH_CONCENTRATION_TICKS / tick_spacing, *cfg.DEPTH_CONCENTRATION_RANGE)
    liquidity_factor = clamp(liquidity_mag / cfg.DEPTH_LIQUIDITY_LOG_DIVISOR, *cfg.DEPTH_LIQUIDITY_RANGE)
    turnover_factor = clamp(cfg.DEPTH_TURNOVER_BASE + math.log10(1 + turnover * 10), *cfg.DEPTH_TURNOVER_RANGE)
    base = tvl * cfg.DEPTH_BASE_FRACTION * concentration * liquidity_factor * turnover_factor

    return max(0.0, base), max(0.0, base * cfg.DEPTH_2PCT_MULT)


def _heuristic_row(pool: Pool, rpc_endpoint: str, validated: bool,
                   note: Optional[str] = None, owner: Optional[str] = None,
                   lamports: Optional[int] = None) -> OnchainEnrichment:
    d1, d2 = approx_depth(pool)
    return OnchainEnrichment(
        pool_address=pool.address,
        validated=validated,
        validation_note=note,
        rpc_endpoint=rpc_endpoint,
        account_owner=owner,
        lamports=lamports,
        depth_usd_1pct=d1,
        depth_usd_2pct=d2,
        depth_method=DEPTH_METHOD,
        depth_note=DEPTH_NOTE,
    )


def heuristic_enrichment(pools: List[Pool], note: str,
                         rpc_endpoint: str = lp_config.SOLANA_RPC_URL) -> Dict[str, OnchainEnrichment]:
    """Unvalidated rows with heuristic depth for every pool"""
    return {p.address: _heuristic_row(p, rpc_endpoint, False, note) for p in pools}


# ═══════════════════════════════════════════════════════════════════════════════
# SOLANA RPC
# ═══════════════════════════════════════════════════════════════════════════════

class SolanaRpcClient:
    """Minimal JSON-RPC client over requests"""

    def __init__(self, rpc_url: str = None, commitment: str = None, session=None):
        self.rpc_url = (rpc_url or lp_config.SOLANA_RPC_URL).strip()
        self.commitment = commitment or lp_config.SOLANA_COMMITMENT
        self.session = session or requests.Session()
        self._request_id = 0

    def call(self, method: str, params: list):
        self._request_id += 1
        resp = self.session.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params},
            timeout=lp_config.HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        body = resp.json()
        if body.get("error"):
            raise RuntimeError(f"rpc {method}: {body['error']}")
        return body.get("result")

    def get_multiple_accounts(self, addresses: List[str]) -> List[Optional[dict]]:
        """Account infos (or None for missing) in request order; data omitted."""
        result = self.call("getMultipleAccounts", [
            addresses,
            {"encoding": "base64", "commitment": self.commitment, "dataSlice": {"offset": 0, "length": 0}},
        ])
        values = (result or {}).get("value") or []
        if len(values) != len(addresses):
            raise RuntimeError(f"rpc getMultipleAccounts returned {len(values)} of {len(addresses)} accounts")
        return values


def enrich_pools_onchain(pools: List[Pool], client: SolanaRpcClient = None) -> Dict[str, OnchainEnrichment]:
    """Validate pool accounts in batches and attach heuristic depth."""
    client = client or SolanaRpcClient()
    endpoint = client.rpc_url
    out: Dict[str, OnchainEnrichment] = {}

    valid: List[Pool] = []
    for pool in pools:
        if is_valid_pubkey(pool.address):
            valid.append(pool)
        else:
            out[pool.address] = _heuristic_row(pool, endpoint, False, "Invalid pool public key")

    batch_size = cfg.RPC_BATCH_SIZE
    for i in range(0, len(valid), batch_size):
        batch = valid[i:i + batch_size]
        try:
            infos = client.get_multiple_accounts([p.address for p in batch])
        except (requests.RequestException, RuntimeError, ValueError) as e:
            logger.warning(f"  ⚠️ RPC batch {i // batch_size + 1} failed: {e}")
            for pool in batch:
                out[pool.address] = _heuristic_row(pool, endpoint, False, f"RPC error: {e}")
            continue

        for pool, info in zip(batch, infos):
            if not info:
                out[pool.address] = _heuristic_row(pool, endpoint, False, "Pool account not found on RPC")
                continue
            owner = info.get("owner")
            if owner != lp_config.WHIRLPOOL_PROGRAM_ID:
                out[pool.address] = _heuristic_row(
                    pool, endpoint, False, "Pool account is not owned by the Whirlpool program",
                    owner=owner, lamports=info.get("lamports"),
                )
                continue
            out[pool.address] = _heuristic_row(
                pool, endpoint, True,
                owner=owner,
                lamports=info.get("lamports"),
            )

    validated = sum(1 for e in out.values() if e.validated)
    logger.info(f"  ✓ On-chain: {validated}/{len(pools)} pool accounts validated ({endpoint})")
    return out
