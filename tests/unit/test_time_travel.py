"""Unit tests for the time-travel middleware."""

import pytest

from hscstore import computed_middleware, create_store, time_travel_middleware
from hscstore.middleware import HistoryEntry, TimeTravelOptions


def make_store(**options):
    return create_store(
        lambda api: {
            "count": 0,
            "increase": lambda: api.set_state(lambda s: {"count": s["count"] + 1}),
        },
        [time_travel_middleware(**options)],
    )


def history_of(store):
    return store.get_state()["_time_travel"]


def counts(store):
    return [entry.state["count"] for entry in history_of(store).get_history()]


@pytest.mark.unit
@pytest.mark.time_travel
def test_history_is_seeded_with_initial_state():
    store = make_store()
    history = history_of(store)

    assert history.get_history_length() == 1
    assert history.get_current_index() == 0
    assert counts(store) == [0]


@pytest.mark.unit
@pytest.mark.time_travel
def test_every_committed_write_is_recorded():
    store = make_store()

    store.set_state({"count": 1})
    store.get_state()["increase"]()
    store.set_state({"count": 2})  # no-op, not recorded

    assert counts(store) == [0, 1, 2]
    assert history_of(store).get_current_index() == 2


@pytest.mark.unit
@pytest.mark.time_travel
def test_go_back_and_forward():
    store = make_store()
    history = history_of(store)
    store.set_state({"count": 1})
    store.set_state({"count": 2})

    assert history.go_back() is True
    assert store.get_state()["count"] == 1
    assert history.go_back() is True
    assert store.get_state()["count"] == 0
    assert history.go_back() is False
    assert store.get_state()["count"] == 0

    assert history.go_forward() is True
    assert history.go_forward() is True
    assert store.get_state()["count"] == 2
    assert history.go_forward() is False


@pytest.mark.unit
@pytest.mark.time_travel
def test_travel_is_not_recorded():
    store = make_store()
    history = history_of(store)
    store.set_state({"count": 1})
    store.set_state({"count": 2})

    history.go_back()
    history.go_forward()
    history.jump_to_state(0)

    assert history.get_history_length() == 3
    assert store.context.is_time_traveling is False


@pytest.mark.unit
@pytest.mark.time_travel
def test_branch_on_write_discards_forward_history():
    """S0 -> S1 -> S2 -> S3, go back to S2, write S4: history is [S0, S1, S2, S4]"""
    store = make_store()
    history = history_of(store)
    for value in (1, 2, 3):
        store.set_state({"count": value})

    history.go_back()
    store.set_state({"count": 4})

    assert counts(store) == [0, 1, 2, 4]
    assert not any(entry.state["count"] == 3 for entry in history.get_history())
    assert history.get_current_index() == 3
    assert history.go_forward() is False


@pytest.mark.unit
@pytest.mark.time_travel
def test_oldest_entries_are_evicted():
    """With max_history=3 and four writes, the oldest survivor is the second write"""
    store = make_store(max_history=3)
    for value in (1, 2, 3, 4):
        store.set_state({"count": value})

    assert history_of(store).get_history_length() == 3
    assert counts(store) == [2, 3, 4]
    assert history_of(store).get_current_index() == 2


@pytest.mark.unit
@pytest.mark.time_travel
def test_jump_to_state():
    store = make_store()
    history = history_of(store)
    for value in (1, 2, 3):
        store.set_state({"count": value})

    assert history.jump_to_state(1) is True
    assert store.get_state()["count"] == 1
    assert history.get_current_index() == 1


@pytest.mark.unit
@pytest.mark.time_travel
@pytest.mark.edge_case
@pytest.mark.parametrize("index", [-1, 4, 100, 1.0, "1", True])
def test_jump_to_invalid_index_fails(index):
    store = make_store()
    for value in (1, 2, 3):
        store.set_state({"count": value})
    before = store.get_state()

    assert history_of(store).jump_to_state(index) is False
    assert store.get_state() is before
    assert history_of(store).get_current_index() == 3


@pytest.mark.unit
@pytest.mark.time_travel
def test_get_history_marks_active_entry():
    store = make_store()
    store.set_state({"count": 1})
    store.set_state({"count": 2})
    history_of(store).go_back()

    entries = history_of(store).get_history()

    assert [entry.active for entry in entries] == [False, True, False]
    assert all(isinstance(entry, HistoryEntry) for entry in entries)
    assert entries[0].timestamp <= entries[2].timestamp


@pytest.mark.unit
@pytest.mark.time_travel
def test_clear_history_keeps_current_live_state():
    store = make_store()
    history = history_of(store)
    store.set_state({"count": 1})
    store.set_state({"count": 2})
    history.go_back()
    store.cell.set_state({"count": 9})  # live state differs from the cursor entry

    history.clear_history()

    assert history.get_history_length() == 1
    assert history.get_current_index() == 0
    assert counts(store) == [9]
    assert history.go_back() is False


@pytest.mark.unit
@pytest.mark.time_travel
def test_disabled_history_records_nothing():
    store = make_store(enabled=False)
    history = history_of(store)

    store.set_state({"count": 1})
    store.get_state()["increase"]()

    assert store.get_state()["count"] == 2
    assert history.get_history_length() == 1
    assert history.go_back() is False


@pytest.mark.unit
@pytest.mark.time_travel
def test_listener_writing_during_travel_is_not_recorded():
    store = make_store()
    history = history_of(store)
    store.set_state({"count": 1})
    store.set_state({"count": 2})

    def mirror(state):
        if state.get("mirrored") != state["count"]:
            store.set_state({"mirrored": state["count"]})

    store.subscribe(mirror)
    length_before = history.get_history_length()

    history.go_back()

    assert store.get_state()["mirrored"] == 1
    assert history.get_history_length() == length_before


@pytest.mark.unit
@pytest.mark.time_travel
@pytest.mark.edge_case
@pytest.mark.parametrize("max_history", [0, -5, 2.5])
def test_invalid_max_history_is_rejected(max_history):
    with pytest.raises(ValueError):
        time_travel_middleware(max_history=max_history)


@pytest.mark.unit
@pytest.mark.time_travel
def test_options_defaults():
    options = TimeTravelOptions()

    assert options.max_history == 100
    assert options.enabled is True


@pytest.mark.unit
@pytest.mark.time_travel
def test_initial_entry_holds_fields_of_outer_middleware():
    """Entry 0 is the complete initial snapshot, like every later entry"""
    store = create_store(
        lambda api: {"count": 0},
        [
            computed_middleware({"doubled": lambda s: s["count"] * 2}, {"doubled": ["count"]}),
            time_travel_middleware(),
        ],
    )
    initial = store.get_state()
    store.set_state({"count": 1})

    entries = history_of(store).get_history()

    assert entries[0].state is initial
    assert "_computed" in entries[0].state
    assert "_computed" in entries[1].state


@pytest.mark.unit
@pytest.mark.time_travel
def test_initial_entry_is_kept_when_state_changed_behind_history():
    store = make_store()
    store.cell.set_state({"count": 5})

    assert counts(store) == [0]
