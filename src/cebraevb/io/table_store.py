from __future__ import annotations
from typing import List, Literal, Optional, Sequence, Tuple
import h5py
import numpy as np
import pandas as pd
from datetime import datetime, timezone
from pathlib import Path

FORMAT_VERSION = "1.0"
SOFTWARE = "cebra-evb 0.1.0"

Columns = Sequence[Tuple[str, np.ndarray]]
OutputFormat = Literal["parquet", "hdf5", "csv"]

_SUFFIX_FORMAT = {
    ".parquet": "parquet", ".pq": "parquet",
    ".h5": "hdf5", ".hdf5": "hdf5",
    ".csv": "csv",
}


def _check_aligned(columns: Columns) -> int:
    lengths = {name: len(col) for name, col in columns}
    if len(set(lengths.values())) > 1:
        raise ValueError(f"Columns have unequal lengths: {lengths}")
    return next(iter(lengths.values()), 0)


def format_for_path(path: str | Path) -> OutputFormat:
    suffix = Path(path).suffix.lower()
    if suffix not in _SUFFIX_FORMAT:
        raise ValueError(f"Cannot infer output format from {Path(path).name}")
    return _SUFFIX_FORMAT[suffix]  # type: ignore[return-value]


def columns_to_frame(columns: Columns) -> pd.DataFrame:
    """Build a DataFrame keeping the given column order."""
    _check_aligned(columns)
    return pd.DataFrame({name: np.asarray(col, dtype=np.float64) for name, col in columns},
                        columns=[name for name, _ in columns])


def write_columns_hdf5(path: str | Path, columns: Columns, *, config_text: Optional[str] = None) -> None:
    """
    Store named columns under /columns, one gzip dataset each.

    Column order is kept in the root attribute 'column_order' since HDF5
    groups iterate alphabetically.
    """
    n_rows = _check_aligned(columns)
    with h5py.File(str(path), "w") as f:
        # Root attrs
        f.attrs["format_version"] = FORMAT_VERSION
        f.attrs["created_utc"] = datetime.now(timezone.utc).isoformat()
        f.attrs["software"] = SOFTWARE
        f.attrs["n_rows"] = n_rows
        f.attrs["column_order"] = np.array([name for name, _ in columns], dtype=h5py.string_dtype())
        if config_text is not None:
            f.attrs["config_text"] = config_text

        grp = f.require_group("columns")
        for name, col in columns:
            grp.create_dataset(name, data=np.asarray(col, dtype=np.float64), compression="gzip")


def read_columns_hdf5(path: str | Path) -> List[Tuple[str, np.ndarray]]:
    path = str(path)
    with h5py.File(path, "r") as f:
        if "columns" not in f:
            raise KeyError(f"/columns not found in {path}")
        grp = f["columns"]
        order = [n.decode() if isinstance(n, bytes) else str(n) for n in f.attrs["column_order"]]
        return [(name, np.array(grp[name], dtype=np.float64)) for name in order]


def write_columns(
    path: str | Path,
    columns: Columns,
    fmt: Optional[OutputFormat] = None,
    *,
    config_text: Optional[str] = None,
) -> Path:
    """
    Write finalized columns to disk. fmt defaults to the one implied by the
    file suffix.
    """
    p = Path(path)
    fmt = fmt or format_for_path(p)
    p.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "hdf5":
        write_columns_hdf5(p, columns, config_text=config_text)
    elif fmt == "parquet":
        columns_to_frame(columns).to_parquet(p, index=False)
    elif fmt == "csv":
        columns_to_frame(columns).to_csv(p, index=False)
    else:
        raise ValueError(f"Unknown output format: {fmt}")
    return p
