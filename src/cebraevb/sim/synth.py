from __future__ import annotations
import numpy as np
from typing import List, Tuple
from ..physics.hits import RawHit
from ..config.channel_map import ChannelMap, ChannelType
from ..physics.channel_data import ROLE_FIELDS

def synth_events(
    n_events: int,
    channel_map: ChannelMap,
    p_fire: float = 0.3,
    n_unmapped: int = 0,
    unmapped_board: int = 15,
    dt_event_ns: float = 10_000.0,
    jitter_ns: float = 20.0,
    rng: np.random.Generator | None = None,
) -> List[List[RawHit]]:
    """
    Generate random built events over the CeBrA channels of channel_map:
      - each CeBrA channel fires independently with probability p_fire
      - n_unmapped extra hits per event sit on unmapped_board (never in the map)
      - events are spaced by dt_event_ns, hits jittered within jitter_ns
    Hit order inside an event is shuffled.
    """
    rng = rng or np.random.default_rng()
    cebra: List[Tuple[int, int]] = [
        (e.board, e.channel)
        for e in channel_map.uuid_to_entry.values()
        if isinstance(e.channel_type, ChannelType) and e.channel_type in ROLE_FIELDS
    ]
    events: List[List[RawHit]] = []

    for i in range(n_events):
        t_event = i * dt_event_ns
        hits: List[RawHit] = []
        for board, channel in cebra:
            if rng.random() >= p_fire:
                continue
            energy = float(rng.uniform(100.0, 4000.0))
            hits.append(RawHit(
                board=board,
                channel=channel,
                energy=energy,
                energy_short=float(energy * rng.uniform(0.1, 0.9)),
                timestamp=float(t_event + rng.uniform(0.0, jitter_ns)),
            ))
        for _ in range(n_unmapped):
            hits.append(RawHit(
                board=unmapped_board,
                channel=int(rng.integers(0, 16)),
                energy=float(rng.uniform(0.0, 100.0)),
                timestamp=float(t_event + rng.uniform(0.0, jitter_ns)),
            ))
        rng.shuffle(hits)
        events.append(hits)

    return events
