# src/cebraevb/config/channel_map.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple, Union

from cebraevb.physics.hits import generate_board_channel_uuid


class ChannelType(Enum):
    """Logical role of a digitizer channel."""
    Cebra0 = "Cebra0"
    Cebra1 = "Cebra1"
    Cebra2 = "Cebra2"
    Cebra3 = "Cebra3"
    Cebra4 = "Cebra4"
    Cebra5 = "Cebra5"
    Cebra6 = "Cebra6"

    # Other devices sharing the digitizers (SE-SPS focal plane etc.)
    AnodeFront = "AnodeFront"
    AnodeBack = "AnodeBack"
    ScintLeft = "ScintLeft"
    ScintRight = "ScintRight"
    Cathode = "Cathode"
    DelayFrontLeft = "DelayFrontLeft"
    DelayFrontRight = "DelayFrontRight"
    DelayBackLeft = "DelayBackLeft"
    DelayBackRight = "DelayBackRight"
    Monitor = "Monitor"
    Trigger = "Trigger"

    @classmethod
    def from_name(cls, name: str) -> "ChannelType":
        key = name.strip().lower()
        for member in cls:
            if member.value.lower() == key:
                return member
        raise ValueError(f"Unknown channel type: {name!r}")


@dataclass(frozen=True)
class ChannelMapEntry:
    channel_type: ChannelType
    board: int
    channel: int


@dataclass
class ChannelMap:
    """
    Read-only lookup from hardware id (board/channel uuid) to channel role.

    File format, one channel per line:

        # board channel type
        0 0 Cebra0
        0 1 Cebra1
        1 4 ScintLeft
    """
    uuid_to_entry: Dict[int, ChannelMapEntry]

    @classmethod
    def from_mapping(
        cls,
        mapping: Optional[Dict[Tuple[int, int], Union[ChannelType, str]]] = None,
    ) -> "ChannelMap":
        entries: Dict[int, ChannelMapEntry] = {}
        for (board, channel), kind in (mapping or {}).items():
            if isinstance(kind, str):
                kind = ChannelType.from_name(kind)
            entries[generate_board_channel_uuid(board, channel)] = ChannelMapEntry(kind, int(board), int(channel))
        return cls(uuid_to_entry=entries)

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: str = "<lines>") -> "ChannelMap":
        entries: Dict[int, ChannelMapEntry] = {}
        for lineno, raw in enumerate(lines, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) != 3:
                raise ValueError(f"{source}:{lineno}: expected 'board channel type', got {line!r}")
            try:
                board = int(parts[0])
                channel = int(parts[1])
            except ValueError:
                raise ValueError(f"{source}:{lineno}: board/channel must be integers, got {line!r}") from None
            try:
                kind = ChannelType.from_name(parts[2])
            except ValueError as exc:
                raise ValueError(f"{source}:{lineno}: {exc}") from None
            uuid = generate_board_channel_uuid(board, channel)
            if uuid in entries:
                raise ValueError(f"{source}:{lineno}: board {board} channel {channel} mapped twice")
            entries[uuid] = ChannelMapEntry(kind, board, channel)
        return cls(uuid_to_entry=entries)

    @classmethod
    def from_file(cls, path: str | Path) -> "ChannelMap":
        p = Path(path)
        return cls.from_lines(p.read_text().splitlines(), source=p.name)

    def resolve(self, uuid: int) -> Optional[ChannelMapEntry]:
        return self.uuid_to_entry.get(uuid)

    def __len__(self) -> int:
        return len(self.uuid_to_entry)
