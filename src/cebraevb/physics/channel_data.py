# src/cebraevb/physics/channel_data.py
"""
cebraevb.physics.channel_data

Columnar event aggregation for the CeBrA detector array.

Each built event contributes exactly one row. Every CeBrA channel owns three
columns (energy, short-gate energy, time); a channel that did not fire in an
event gets INVALID_VALUE in that row, so all columns always have the same
length.

Ownership: finalize() hands the column storage out as numpy arrays and the
aggregator becomes unusable. Use a fresh ChannelData for the next batch and
concat_columns() to join batches/shards afterwards.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from cebraevb.config.channel_map import ChannelMapEntry, ChannelType
from cebraevb.physics.hits import RawHit

INVALID_VALUE = -1.0e6

# bytes per stored cell (float64)
_CELL_BYTES = np.dtype(np.float64).itemsize


class ChannelDataField(Enum):
    """Output columns, in canonical export order."""
    Cebra0Energy = 0
    Cebra1Energy = 1
    Cebra2Energy = 2
    Cebra3Energy = 3
    Cebra4Energy = 4
    Cebra5Energy = 5
    Cebra6Energy = 6

    Cebra0Short = 7
    Cebra1Short = 8
    Cebra2Short = 9
    Cebra3Short = 10
    Cebra4Short = 11
    Cebra5Short = 12
    Cebra6Short = 13

    Cebra0Time = 14
    Cebra1Time = 15
    Cebra2Time = 16
    Cebra3Time = 17
    Cebra4Time = 18
    Cebra5Time = 19
    Cebra6Time = 20

    @classmethod
    def fields(cls) -> Tuple["ChannelDataField", ...]:
        return _FIELDS


# Built once; Enum iteration follows definition order
_FIELDS: Tuple[ChannelDataField, ...] = tuple(ChannelDataField)


def fields() -> Tuple[ChannelDataField, ...]:
    return _FIELDS


# role -> (energy, short, time)
ROLE_FIELDS: Dict[ChannelType, Tuple[ChannelDataField, ChannelDataField, ChannelDataField]] = {
    role: (
        ChannelDataField[f"{role.value}Energy"],
        ChannelDataField[f"{role.value}Short"],
        ChannelDataField[f"{role.value}Time"],
    )
    for role in (
        ChannelType.Cebra0,
        ChannelType.Cebra1,
        ChannelType.Cebra2,
        ChannelType.Cebra3,
        ChannelType.Cebra4,
        ChannelType.Cebra5,
        ChannelType.Cebra6,
    )
}


class ChannelResolver(Protocol):
    def resolve(self, uuid: int) -> Optional[ChannelMapEntry | ChannelType]: ...


@dataclass
class AggregateDiagnostics:
    events: int = 0
    hits: int = 0
    unmapped: int = 0
    ignored_role: int = 0
    overwritten: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)

    def inc(self, reason: str) -> None:
        self.reasons[reason] = self.reasons.get(reason, 0) + 1


def _role_of(resolved: Any) -> Any:
    if isinstance(resolved, ChannelMapEntry):
        return resolved.channel_type
    return resolved


class ChannelData:
    """
    Growable column set, one column per ChannelDataField.

    States: accumulating (append_event any number of times) -> finalized
    (after finalize(); any further call raises RuntimeError).
    """

    def __init__(self) -> None:
        # Columns must always come out in the same order, so keep an explicit
        # ordered list built from the registry
        self._columns: Optional[List[Tuple[ChannelDataField, List[float]]]] = [
            (f, []) for f in fields()
        ]
        self._index: Dict[ChannelDataField, List[float]] = {f: col for f, col in self._columns}
        self.rows = 0
        self.diagnostics = AggregateDiagnostics()

    @property
    def finalized(self) -> bool:
        return self._columns is None

    def _require_open(self, action: str) -> None:
        if self._columns is None:
            raise RuntimeError(f"ChannelData already finalized; cannot {action}")

    def column(self, f: ChannelDataField) -> Tuple[float, ...]:
        """Snapshot of one column (accumulating state only)."""
        self._require_open("read columns")
        if not isinstance(f, ChannelDataField):
            raise TypeError(f"Not a ChannelDataField: {f!r}")
        return tuple(self._index[f])

    def used_size(self) -> int:
        """Approximate bytes held by the column storage."""
        if self._columns is None:
            return 0
        return sum(len(col) for _, col in self._columns) * _CELL_BYTES

    # To keep columns all same length, push invalid values as necessary
    def _push_defaults(self) -> None:
        for _, col in self._columns:
            if len(col) < self.rows:
                col.append(INVALID_VALUE)

    # Update the last element (current row) of a column
    def _set_value(self, f: ChannelDataField, value: float) -> None:
        if not isinstance(f, ChannelDataField):
            raise TypeError(f"Not a ChannelDataField: {f!r}")
        self._index[f][-1] = float(value)

    def append_event(self, hits: Sequence[RawHit], resolver: ChannelResolver) -> None:
        """
        Add one event as a new row.

        Hits whose id is not in the resolver, or whose role has no columns
        here (focal-plane detectors, monitors...), are skipped. If two hits
        map to the same role the later one wins.
        """
        self._require_open("append events")
        diag = self.diagnostics
        self.rows += 1
        self._push_defaults()
        diag.events += 1

        seen = set()
        for hit in hits:
            diag.hits += 1
            uuid = hit.uuid
            role = None if uuid is None else _role_of(resolver.resolve(uuid))
            if role is None:
                diag.unmapped += 1
                continue
            targets = ROLE_FIELDS.get(role) if isinstance(role, ChannelType) else None
            if targets is None:
                diag.ignored_role += 1
                diag.inc(f"ignored_{getattr(role, 'value', role)}")
                continue
            if role in seen:
                diag.overwritten += 1
            seen.add(role)

            f_energy, f_short, f_time = targets
            self._set_value(f_energy, hit.energy)
            self._set_value(f_short, hit.energy_short)
            self._set_value(f_time, hit.timestamp)

    def finalize(self) -> List[Tuple[str, np.ndarray]]:
        """
        Hand out the columns as (name, float64 array) in canonical order.

        One-shot: the aggregator releases its storage and rejects further use.
        """
        self._require_open("finalize twice")
        columns = self._columns
        self._columns = None
        self._index = {}

        out: List[Tuple[str, np.ndarray]] = []
        for f, col in columns:
            arr = np.asarray(col, dtype=np.float64)
            col.clear()
            out.append((f.name, arr))
        return out


def concat_columns(parts: Sequence[Sequence[Tuple[str, np.ndarray]]]) -> List[Tuple[str, np.ndarray]]:
    """
    Join finalized column sets (shards or flushed batches) row-wise.

    All parts must carry the same column names in the same order.
    """
    if not parts:
        return [(f.name, np.zeros(0, dtype=np.float64)) for f in fields()]
    names = [name for name, _ in parts[0]]
    for j, part in enumerate(parts[1:], start=1):
        other = [name for name, _ in part]
        if other != names:
            raise ValueError(f"Column layout of part {j} differs from part 0")
    return [
        (name, np.concatenate([part[i][1] for part in parts]))
        for i, name in enumerate(names)
    ]
