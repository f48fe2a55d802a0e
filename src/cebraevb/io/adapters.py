"""
cebraevb.io.adapters

Readers that turn tabular digitizer hit lists into built events, i.e. lists
of cebraevb.physics.hits.RawHit, one list per event, for the column builder.

Design goals
------------
- Keep I/O concerns isolated from aggregation.
- Normalize units on ingest: times -> ns.
- Be tolerant to schema variants by using a small, explicit column map
  (see cebraevb.io.canonicalize).
- Remain side-effect free: yield Python objects; writing is handled downstream.

Entry points
------------
- class TableAdapter: reads CSV / Parquet / HDF5 hit tables.
- function build_events_by_window(hits, window_ns): time-coincidence grouping.
- function make_adapter(cfg): factory from the [io.adapter] TOML section.

Config (example)
----------------
[io.adapter]
type = "table"
time_units = "ps"               # "ns" | "ps"
coincidence_window_ns = 3000.0  # only used when the table has no event column
"""
from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Literal

import pandas as pd

from cebraevb.io.canonicalize import canonicalize_hit_table
from cebraevb.physics.hits import RawHit

_CANON_COLUMNS = ("board", "channel", "timestamp", "energy", "energy_short", "flags", "event")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def build_events_by_window(hits: Iterable[RawHit], window_ns: float) -> Iterator[List[RawHit]]:
    """
    Group hits into events by time coincidence.

    Hits are sorted by timestamp; an event is closed as soon as a hit lies
    more than window_ns after the first hit of the event.
    """
    if window_ns < 0:
        raise ValueError(f"coincidence window must be >= 0, got {window_ns}")
    ordered = sorted(hits, key=lambda h: h.timestamp)
    event: List[RawHit] = []
    t0 = 0.0
    for h in ordered:
        if event and (h.timestamp - t0) > window_ns:
            yield event
            event = []
        if not event:
            t0 = h.timestamp
        event.append(h)
    if event:
        yield event


# ---------------------------------------------------------------------------
# Base adapter API
# ---------------------------------------------------------------------------

class BaseAdapter:
    """
    Abstract adapter interface.

    Yields built events (lists of RawHit) with timestamps in ns.
    """

    def iter_events(self, path: str) -> Iterator[List[RawHit]]:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# Table adapter
# ---------------------------------------------------------------------------

class TableAdapter(BaseAdapter):
    """
    Read tabular hit lists (one row per hit).

    Supported inputs: CSV (.csv/.txt, ',' or ';' separated), Parquet
    (.parquet/.pq), HDF (.h5/.hdf5, pandas layout).

    If the table carries an event column, rows sharing an event number form
    one event (events in first-appearance order, hits in row order); rows
    with a blank event number are kept together as one event of their own.
    Otherwise events are built with a coincidence window.
    """

    def __init__(
        self,
        time_units: Literal["ns", "ps"] = "ns",
        coincidence_window_ns: float = 3000.0,
    ) -> None:
        if time_units not in ("ns", "ps"):
            raise ValueError(f"Unknown time_units: {time_units!r}")
        self.time_scale = 0.001 if time_units == "ps" else 1.0
        self.coincidence_window_ns = float(coincidence_window_ns)

    def read_table(self, path: str | Path) -> pd.DataFrame:
        p = Path(path)
        suffix = p.suffix.lower()

        if suffix in {".csv", ".txt"}:
            # CoMPASS writes ';' separated files; let pandas sniff the separator
            df = pd.read_csv(p, sep=None, engine="python")
        elif suffix in {".parquet", ".pq"}:
            df = pd.read_parquet(p)
        elif suffix in {".h5", ".hdf5"}:
            df = pd.read_hdf(p)
        else:
            raise ValueError(f"Unrecognized hit table: {p.name} (expected .csv/.txt/.parquet/.h5)")
        return canonicalize_hit_table(df)

    def _rows_to_hits(self, df: pd.DataFrame) -> List[RawHit]:
        extra_cols = [c for c in df.columns if c not in _CANON_COLUMNS]
        hits: List[RawHit] = []
        for r in df.to_dict("records"):
            extras: Dict[str, Any] = {c: r[c] for c in extra_cols}
            hits.append(RawHit(
                board=int(r["board"]),
                channel=int(r["channel"]),
                energy=float(r["energy"]),
                energy_short=float(r["energy_short"]),
                timestamp=float(r["timestamp"]) * self.time_scale,
                flags=int(r["flags"]),
                extras=extras,
            ))
        return hits

    def iter_events(self, path: str) -> Iterator[List[RawHit]]:
        df = self.read_table(path)
        if "event" in df.columns:
            for _, grp in df.groupby("event", sort=False, dropna=False):
                yield self._rows_to_hits(grp)
            return
        yield from build_events_by_window(self._rows_to_hits(df), self.coincidence_window_ns)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def make_adapter(cfg: Dict) -> BaseAdapter:
    """
    Create an adapter from a config dict (from TOML/CLI).

    Expected keys under [io.adapter]:
      type: "table"
      time_units: "ns" | "ps"
      coincidence_window_ns: float
    """
    typ = (cfg.get("type") or "table").lower()

    if typ == "table":
        return TableAdapter(
            time_units=cfg.get("time_units", "ns"),
            coincidence_window_ns=float(cfg.get("coincidence_window_ns", 3000.0)),
        )

    raise ValueError(f"Unknown adapter type: {typ}")
