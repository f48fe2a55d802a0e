from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional
import typer

from cebraevb.config.channel_map import ChannelMap
from cebraevb.config.load import load_config, snapshot_config_toml
from cebraevb.config.schemas import Config, IOCfg
from cebraevb.io.adapters import make_adapter
from cebraevb.io.table_store import write_columns
from cebraevb.physics.channel_data import ChannelData
from cebraevb.physics.hits import RawHit


def _iter_source_events(cfg: Config) -> Iterable[List[RawHit]]:
    """
    Unified event source: cfg.io.adapter selects the reader, cfg.io.input_path
    is handed to it.
    """
    adapter = make_adapter(cfg.io.adapter)
    return adapter.iter_events(str(cfg.io.input_path))


def _fragment_path(out_path: Path, index: int) -> Path:
    return out_path.with_name(f"{out_path.stem}_{index}{out_path.suffix}")


def run_pipeline(
    cfg_path: str,
    *,
    output_format: Optional[str] = None,
) -> List[Path]:
    """
    Build columns for every event of the configured input and write them out.

    If the column buffer grows past [run].max_buffer_mb it is flushed to a
    numbered fragment (<stem>_0<suffix>, <stem>_1<suffix>, ...) and a fresh
    buffer is started; otherwise a single file is written at output_path.

    Returns
    -------
    List of written paths.
    """
    cfg = load_config(cfg_path)
    if output_format is not None:
        # re-validate so a bad override fails before any input is read
        cfg.io = IOCfg.model_validate({**cfg.io.model_dump(), "output_format": output_format})

    diag_level = cfg.run.diagnostics_level
    max_bytes = int(cfg.run.max_buffer_mb * 1024 * 1024)

    if diag_level >= 1:
        print(f"[run] config = {cfg_path}")
        print(f"[run] input={cfg.io.input_path} -> output={cfg.io.output_path} ({cfg.io.output_format})")

    channel_map = ChannelMap.from_file(cfg.channel_map.path)
    if diag_level >= 1:
        print(f"[run] channel map {cfg.channel_map.path}: {len(channel_map)} channels")

    out_path = Path(cfg.io.output_path)
    config_text = snapshot_config_toml(cfg_path)
    written: List[Path] = []
    total_rows = 0

    def _flush(data: ChannelData, path: Path) -> None:
        d = data.diagnostics
        if diag_level >= 2:
            print(f"[pipeline] hits={d.hits} unmapped={d.unmapped} "
                  f"ignored_role={d.ignored_role} overwritten={d.overwritten}")
            for reason, count in sorted(d.reasons.items()):
                print(f"[pipeline]   {reason}: {count}")
        rows = data.rows
        write_columns(path, data.finalize(), cfg.io.output_format, config_text=config_text)
        written.append(path)
        if diag_level >= 1:
            print(f"[store] Wrote {rows} rows to {path}")

    data = ChannelData()
    for hits in _iter_source_events(cfg):
        data.append_event(hits, channel_map)
        if data.used_size() >= max_bytes:
            total_rows += data.rows
            _flush(data, _fragment_path(out_path, len(written)))
            data = ChannelData()

    if not written:
        total_rows += data.rows
        _flush(data, out_path)
    elif data.rows:
        total_rows += data.rows
        _flush(data, _fragment_path(out_path, len(written)))

    if diag_level >= 1:
        print(f"[pipeline] Built {total_rows} rows in {len(written)} file(s)")
    return written


# ---------------------------------------------------------------------------
# Unified CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="CeBrA event builder: hit lists -> aligned columns")


@app.command()
def main(
    cfg_path: str = typer.Argument(
        ...,
        help="Path to TOML config file",
    ),
    output_format: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Override [io].output_format (parquet | hdf5 | csv)",
    ),
):
    """
    Run the event builder for a single config.
    """
    for path in run_pipeline(cfg_path, output_format=output_format):
        typer.echo(str(path))


if __name__ == "__main__":
    app()
