from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Dict, Any

class RunCfg(BaseModel):
    """
    Global run controls.
    """

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    # Flush the column buffer to a numbered fragment once it grows past this
    max_buffer_mb: float = 512.0

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

    @field_validator("max_buffer_mb")
    def _buffer_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("max_buffer_mb must be > 0")
        return v

class IOCfg(BaseModel):
    """
    I/O paths and high-level source description.

    TOML:

    [io]
    input_path    = "run_42_hits.csv"
    output_path   = "run_42.parquet"
    output_format = "parquet"      # "parquet" | "hdf5" | "csv"

    [io.adapter]
    type = "table"
    time_units = "ps"
    coincidence_window_ns = 3000.0
    """

    input_path: str
    output_path: str
    output_format: Literal["parquet", "hdf5", "csv"] = "parquet"

    # Adapter-specific sub-config, e.g. [io.adapter]
    adapter: Dict[str, Any] = Field(default_factory=dict)

class ChannelMapCfg(BaseModel):
    """
    TOML:

    [channel_map]
    path = "channel_map.txt"
    """

    path: str


class Config(BaseModel):
    """
    Top-level TOML configuration.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    io: IOCfg
    channel_map: ChannelMapCfg
