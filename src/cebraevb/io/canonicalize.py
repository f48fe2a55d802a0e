# src/cebraevb/io/canonicalize.py
from __future__ import annotations
from typing import Dict, Iterable

import pandas as pd

_CANON_KEYS = {
    # canonical_key: tuple of fallback source keys (matched case-insensitively)
    "board":        ("board", "brd", "BOARD"),
    "channel":      ("channel", "ch", "chan", "CHANNEL"),
    # CoMPASS writes TIMETAG in ps
    "timestamp":    ("timestamp", "timetag", "time", "t", "t_ns", "TIMETAG"),
    "energy":       ("energy", "e", "energy_long", "ENERGY"),
    "energy_short": ("energy_short", "energyshort", "eshort", "ENERGYSHORT"),
    "flags":        ("flags", "FLAGS"),
    # Optional pre-built event number
    "event":        ("event", "event_id", "evt", "EVENT"),
}

REQUIRED = ("board", "channel", "timestamp", "energy")

def _first(columns: Dict[str, str], names: Iterable[str]):
    for k in names:
        hit = columns.get(k.lower())
        if hit is not None:
            return hit
    return None

def canonicalize_hit_table(df: pd.DataFrame) -> pd.DataFrame:
    """
    Return a copy of df with canonical column names:
        board, channel, timestamp, energy, energy_short, flags [, event]
    Missing energy_short / flags are filled with 0. Other source columns are
    kept untouched so they can travel along as hit extras.
    """
    lookup = {str(c).strip().lower(): c for c in df.columns}
    rename = {}
    for canon, names in _CANON_KEYS.items():
        src = _first(lookup, names)
        if src is not None and src not in rename:
            rename[src] = canon

    out = df.rename(columns=rename)
    missing = [k for k in REQUIRED if k not in out.columns]
    if missing:
        raise ValueError(f"Hit table is missing required columns: {missing} (have {list(df.columns)})")

    if "energy_short" not in out.columns:
        out["energy_short"] = 0.0
    if "flags" not in out.columns:
        out["flags"] = 0
    return out
