import numpy as np
import pytest

from cebraevb.config.channel_map import ChannelMap, ChannelMapEntry, ChannelType
from cebraevb.physics.channel_data import (
    ChannelData,
    ChannelDataField,
    INVALID_VALUE,
    ROLE_FIELDS,
    concat_columns,
    fields,
)
from cebraevb.physics.hits import RawHit
from cebraevb.sim.synth import synth_events


# --- Helpers -----------------------------------------------------------------

CMAP = ChannelMap.from_mapping({
    (0, 0): ChannelType.Cebra0,
    (0, 1): ChannelType.Cebra1,
    (0, 2): ChannelType.Cebra2,
    (1, 0): "ScintLeft",
    (1, 1): "AnodeFront",
})


def _hit(board, channel, e, es, t):
    return RawHit(board=board, channel=channel, energy=e, energy_short=es, timestamp=t)


def _as_dict(columns):
    return {name: col for name, col in columns}


# --- Registry ----------------------------------------------------------------

def test_field_order_is_energy_short_time_blocks():
    names = [f.name for f in fields()]
    assert len(names) == 21
    assert names[:7] == [f"Cebra{i}Energy" for i in range(7)]
    assert names[7:14] == [f"Cebra{i}Short" for i in range(7)]
    assert names[14:] == [f"Cebra{i}Time" for i in range(7)]
    assert ChannelDataField.fields() == fields()


def test_every_cebra_role_has_three_distinct_fields():
    used = []
    for role, targets in ROLE_FIELDS.items():
        assert [t.name for t in targets] == [f"{role.value}Energy", f"{role.value}Short", f"{role.value}Time"]
        used.extend(targets)
    # the table covers each field exactly once
    assert sorted(used, key=lambda f: f.value) == list(fields())


# --- Aggregation -------------------------------------------------------------

def test_round_trip_two_events():
    data = ChannelData()
    data.append_event([_hit(0, 0, 10.0, 1.0, 100.0)], CMAP)
    data.append_event([_hit(0, 1, 20.0, 2.0, 200.0), _hit(9, 9, 5.0, 5.0, 5.0)], CMAP)
    cols = _as_dict(data.finalize())

    S = INVALID_VALUE
    np.testing.assert_array_equal(cols["Cebra0Energy"], [10.0, S])
    np.testing.assert_array_equal(cols["Cebra0Short"], [1.0, S])
    np.testing.assert_array_equal(cols["Cebra0Time"], [100.0, S])
    np.testing.assert_array_equal(cols["Cebra1Energy"], [S, 20.0])
    np.testing.assert_array_equal(cols["Cebra1Short"], [S, 2.0])
    np.testing.assert_array_equal(cols["Cebra1Time"], [S, 200.0])
    for name, col in cols.items():
        assert col.shape == (2,)
        if not name.startswith(("Cebra0", "Cebra1")):
            assert np.all(col == S)


def test_column_lengths_match_rows_after_every_event():
    rng = np.random.default_rng(7)
    events = synth_events(50, CMAP, p_fire=0.5, n_unmapped=2, rng=rng)
    data = ChannelData()
    for n, ev in enumerate(events, start=1):
        data.append_event(ev, CMAP)
        assert data.rows == n
        assert all(len(data.column(f)) == n for f in fields())
    out = data.finalize()
    assert all(len(col) == 50 for _, col in out)


def test_untouched_role_gets_sentinel():
    data = ChannelData()
    data.append_event([_hit(0, 0, 1.0, 1.0, 1.0)], CMAP)
    data.append_event([_hit(0, 2, 3.0, 3.0, 3.0)], CMAP)
    cols = _as_dict(data.finalize())
    for name in ("Cebra0Energy", "Cebra0Short", "Cebra0Time"):
        assert cols[name][1] == INVALID_VALUE
    for name in ("Cebra2Energy", "Cebra2Short", "Cebra2Time"):
        assert cols[name][0] == INVALID_VALUE


def test_last_hit_wins_for_same_role():
    data = ChannelData()
    data.append_event([_hit(0, 0, 1.0, 0.1, 10.0), _hit(0, 0, 2.0, 0.2, 20.0)], CMAP)
    cols = _as_dict(data.finalize())
    assert cols["Cebra0Energy"][0] == 2.0
    assert cols["Cebra0Short"][0] == 0.2
    assert cols["Cebra0Time"][0] == 20.0
    assert data.diagnostics.overwritten == 1


def test_only_unknown_hits_still_add_a_sentinel_row():
    data = ChannelData()
    data.append_event([_hit(7, 3, 1.0, 1.0, 1.0), _hit(1, 0, 2.0, 2.0, 2.0), _hit(1, 1, 3.0, 3.0, 3.0)], CMAP)
    assert data.rows == 1
    assert data.diagnostics.unmapped == 1
    assert data.diagnostics.ignored_role == 2
    assert data.diagnostics.reasons == {"ignored_ScintLeft": 1, "ignored_AnodeFront": 1}
    out = data.finalize()
    assert all(col.tolist() == [INVALID_VALUE] for _, col in out)


def test_empty_event_adds_a_row():
    data = ChannelData()
    data.append_event([], CMAP)
    data.append_event([], CMAP)
    assert all(col.tolist() == [INVALID_VALUE] * 2 for _, col in data.finalize())


def test_order_independent_of_hit_arrival():
    hits = [_hit(0, 2, 3.0, 0.3, 30.0), _hit(0, 0, 1.0, 0.1, 10.0), _hit(0, 1, 2.0, 0.2, 20.0)]
    a, b = ChannelData(), ChannelData()
    a.append_event(hits, CMAP)
    b.append_event(list(reversed(hits)), CMAP)
    out_a, out_b = a.finalize(), b.finalize()
    assert [n for n, _ in out_a] == [f.name for f in fields()]
    assert [n for n, _ in out_a] == [n for n, _ in out_b]
    for (_, ca), (_, cb) in zip(out_a, out_b):
        np.testing.assert_array_equal(ca, cb)


def test_resolver_may_return_bare_roles_or_garbage():
    class Resolver:
        def resolve(self, uuid):
            return {
                RawHit(0, 0, 0.0).uuid: ChannelType.Cebra3,
                RawHit(0, 1, 0.0).uuid: "Cebra4",  # not a ChannelType: ignored
                RawHit(0, 2, 0.0).uuid: ChannelMapEntry(ChannelType.Cebra5, 0, 2),
            }.get(uuid)

    data = ChannelData()
    data.append_event([_hit(0, 0, 1.0, 1.0, 1.0), _hit(0, 1, 2.0, 2.0, 2.0), _hit(0, 2, 3.0, 3.0, 3.0)], Resolver())
    cols = _as_dict(data.finalize())
    assert cols["Cebra3Energy"][0] == 1.0
    assert cols["Cebra4Energy"][0] == INVALID_VALUE
    assert cols["Cebra5Energy"][0] == 3.0


# --- Lifecycle ---------------------------------------------------------------

def test_finalize_is_one_shot():
    data = ChannelData()
    data.append_event([_hit(0, 0, 1.0, 1.0, 1.0)], CMAP)
    data.finalize()
    assert data.finalized
    assert data.used_size() == 0
    with pytest.raises(RuntimeError):
        data.append_event([], CMAP)
    with pytest.raises(RuntimeError):
        data.finalize()


def test_non_field_write_is_rejected():
    data = ChannelData()
    data.append_event([], CMAP)
    with pytest.raises(TypeError):
        data._set_value("Cebra0Energy", 1.0)
    with pytest.raises(TypeError):
        data.column(ChannelType.Cebra0)


def test_used_size_counts_cells():
    data = ChannelData()
    assert data.used_size() == 0
    data.append_event([], CMAP)
    data.append_event([], CMAP)
    assert data.used_size() == 2 * len(fields()) * 8


# --- Sharding ----------------------------------------------------------------

def test_sharded_aggregation_concatenates_to_single_pass():
    rng = np.random.default_rng(3)
    events = synth_events(40, CMAP, p_fire=0.4, n_unmapped=1, rng=rng)

    whole = ChannelData()
    for ev in events:
        whole.append_event(ev, CMAP)

    shards = []
    for chunk in (events[:13], events[13:29], events[29:]):
        part = ChannelData()
        for ev in chunk:
            part.append_event(ev, CMAP)
        shards.append(part.finalize())

    joined = concat_columns(shards)
    for (na, ca), (nb, cb) in zip(whole.finalize(), joined):
        assert na == nb
        np.testing.assert_array_equal(ca, cb)


def test_concat_rejects_mismatched_layouts():
    a = [("x", np.zeros(1)), ("y", np.zeros(1))]
    b = [("y", np.zeros(1)), ("x", np.zeros(1))]
    with pytest.raises(ValueError):
        concat_columns([a, b])
    empty = concat_columns([])
    assert [n for n, _ in empty] == [f.name for f in fields()]


def test_negative_address_is_skipped_as_unmapped():
    assert RawHit(-1, 0, 1.0).uuid is None
    data = ChannelData()
    data.append_event([_hit(-1, 0, 1.0, 1.0, 1.0), _hit(0, -2, 2.0, 2.0, 2.0), _hit(0, 0, 5.0, 5.0, 5.0)], CMAP)
    assert data.diagnostics.unmapped == 2
    cols = _as_dict(data.finalize())
    assert cols["Cebra0Energy"].tolist() == [5.0]
    assert cols["Cebra1Energy"].tolist() == [INVALID_VALUE]


def test_column_is_a_snapshot():
    data = ChannelData()
    data.append_event([_hit(0, 0, 1.0, 1.0, 1.0)], CMAP)
    col = data.column(ChannelDataField.Cebra0Energy)
    assert col == (1.0,)
    with pytest.raises(AttributeError):
        col.append(2.0)
    data.append_event([], CMAP)
    assert col == (1.0,)
    assert all(len(data.column(f)) == 2 for f in fields())
