"""
Output Writer - pretty-printed JSON artifacts for the scanner run
Version: 1.0.0

Every artifact is overwritten in full. The writer is only called once
all stages have computed, so a failing run leaves the previous files.
"""

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List

import numpy as np

import lp_config

logger = logging.getLogger(__name__)

OUTPUT_FILES = (
    lp_config.REGIME_STATE_FILE,
    lp_config.POOL_RANKINGS_FILE,
    lp_config.SHORTLIST_FILE,
    lp_config.PLANS_FILE,
    lp_config.ALLOCATION_FILE,
    lp_config.ALERTS_FILE,
    lp_config.PERFORMANCE_FILE,
)


def to_jsonable(obj):
    """Dataclass → plain dict; anything else returned as-is"""
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    return obj


def _convert(obj):
    # Convert non-serializable types
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating,)):
        return float(obj)
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(payload) -> str:
    return json.dumps(to_jsonable(payload), indent=2, ensure_ascii=False, default=_convert) + "\n"


def write_json(path, payload) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps(payload), encoding="utf-8")
    return path


def read_json(path) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_outputs(payloads: Dict[str, object], output_dir=None) -> List[Path]:
    """Write every artifact keyed by file name; unknown keys are rejected"""
    out_dir = Path(output_dir or lp_config.OUTPUT_DIR)
    unknown = set(payloads) - set(OUTPUT_FILES)
    if unknown:
        raise ValueError(f"Unknown output file(s): {sorted(unknown)}")

    written = []
    for name in OUTPUT_FILES:
        if name in payloads:
            written.append(write_json(out_dir / name, payloads[name]))
            logger.info(f"  ✓ wrote {out_dir / name}")
    return written


def missing_outputs(output_dir=None) -> List[str]:
    """Expected artifact paths that do not exist, sorted"""
    out_dir = Path(output_dir or lp_config.OUTPUT_DIR)
    return sorted(str(out_dir / name) for name in OUTPUT_FILES if not (out_dir / name).exists())
