from __future__ import annotations
from .schemas import Config
from pathlib import Path

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # py<=310

def load_config(path: str | Path) -> Config:
    """
    Load a TOML config. Relative input/output/channel-map paths are taken
    relative to the config file's directory.
    """
    p = Path(path)
    data = tomllib.loads(p.read_text())
    cfg = Config(**data)
    base = p.parent
    cfg.io.input_path = str(_resolve(base, cfg.io.input_path))
    cfg.io.output_path = str(_resolve(base, cfg.io.output_path))
    cfg.channel_map.path = str(_resolve(base, cfg.channel_map.path))
    return cfg

def _resolve(base: Path, value: str) -> Path:
    q = Path(value)
    return q if q.is_absolute() else base / q

def snapshot_config_toml(path: str | Path) -> str:
    """Return the raw TOML text for embedding in HDF5 metadata."""
    return Path(path).read_text()
