from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import math


def generate_board_channel_uuid(board: int, channel: int) -> int:
    """
    Pack a (board, channel) pair into a single hardware id.

    Szudzik pairing, so the id needs no channels-per-board constant and
    can always be decomposed again.
    """
    board = int(board)
    channel = int(channel)
    if board < 0 or channel < 0:
        raise ValueError(f"board/channel must be non-negative, got ({board}, {channel})")
    if board >= channel:
        return board * board + board + channel
    return channel * channel + board


def decompose_uuid_to_board_channel(uuid: int) -> Tuple[int, int]:
    """Inverse of generate_board_channel_uuid -> (board, channel)."""
    uuid = int(uuid)
    if uuid < 0:
        raise ValueError(f"uuid must be non-negative, got {uuid}")
    root = math.isqrt(uuid)
    rem = uuid - root * root
    if rem < root:
        return rem, root
    return root, rem - root


@dataclass(slots=True)
class RawHit:
    """
    One digitizer hit as delivered by a hit source.

    board, channel: digitizer address (resolved to a role by the channel map)
    energy: long-gate charge integral
    energy_short: short-gate charge integral
    timestamp: hit time [ns]
    flags: digitizer status bits
    extras: arbitrary per-hit fields preserved from input
    """
    board: int
    channel: int
    energy: float
    energy_short: float = 0.0
    timestamp: float = 0.0
    flags: int = 0

    # Preserve raw/source-specific fields without polluting the core schema
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def uuid(self) -> Optional[int]:
        """Hardware id, or None for an address no channel map can hold."""
        if self.board < 0 or self.channel < 0:
            return None
        return generate_board_channel_uuid(self.board, self.channel)
