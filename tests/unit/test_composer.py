"""Unit tests for middleware composition and initialization fallback."""

import pytest

from hscstore import compose_middleware, create_store


def tagging_middleware(tag, log):
    """Middleware recording when it wraps and when its creator runs."""

    def middleware(creator):
        log.append(f"wrap:{tag}")

        def create(api):
            log.append(f"enter:{tag}")
            state = creator(api)
            log.append(f"exit:{tag}")
            return {**state, f"_{tag}": True}

        return create

    return middleware


def intercepting_middleware(tag, log):
    """Middleware recording every write that passes through it."""

    def middleware(creator):
        def create(api):
            def set_state(partial):
                log.append(tag)
                api.set_state(partial)

            return creator(api.with_set_state(set_state))

        return create

    return middleware


def base_creator(api):
    return {"count": 0, "bump": lambda: api.set_state(lambda s: {"count": s["count"] + 1})}


@pytest.mark.unit
@pytest.mark.composer
def test_first_middleware_is_outermost():
    """Transforms apply in reverse list order, so the first one runs first at creation"""
    log = []
    middleware = [tagging_middleware(name, log) for name in ("m0", "m1", "m2")]

    store = create_store(base_creator, middleware)

    assert log == [
        "wrap:m2",
        "wrap:m1",
        "wrap:m0",
        "enter:m0",
        "enter:m1",
        "enter:m2",
        "exit:m2",
        "exit:m1",
        "exit:m0",
    ]
    state = store.get_state()
    assert state["_m0"] and state["_m1"] and state["_m2"]


@pytest.mark.unit
@pytest.mark.composer
def test_compose_middleware_matches_manual_nesting():
    log = []
    m0 = tagging_middleware("m0", log)
    m1 = tagging_middleware("m1", log)

    composed = compose_middleware(base_creator, [m0, m1])

    assert log == ["wrap:m1", "wrap:m0"]
    assert callable(composed)


@pytest.mark.unit
@pytest.mark.composer
def test_actions_and_external_writes_pass_through_every_middleware():
    log = []
    store = create_store(
        base_creator,
        [intercepting_middleware("outer", log), intercepting_middleware("inner", log)],
    )

    store.get_state()["bump"]()
    assert log == ["inner", "outer"]
    assert store.get_state()["count"] == 1

    log.clear()
    store.set_state({"count": 10})
    assert log == ["outer", "inner"]
    assert store.get_state()["count"] == 10


@pytest.mark.unit
@pytest.mark.composer
def test_first_middleware_intercepts_external_writes_first():
    """External writes visit the middleware in list order before reaching the cell"""
    log = []
    store = create_store(
        lambda api: {"count": 0},
        [intercepting_middleware(name, log) for name in ("m0", "m1", "m2")],
    )

    store.set_state({"count": 1})

    assert log == ["m0", "m1", "m2"]
    assert store.get_state()["count"] == 1


@pytest.mark.unit
@pytest.mark.composer
def test_outer_middleware_can_block_external_writes():
    log = []

    def blocking(creator):
        def create(api):
            def set_state(partial):
                log.append("blocked")

            return creator(api.with_set_state(set_state))

        return create

    store = create_store(
        lambda api: {"count": 0},
        [blocking, intercepting_middleware("inner", log)],
    )

    store.set_state({"count": 1})

    assert log == ["blocked"]
    assert store.get_state()["count"] == 0


@pytest.mark.unit
@pytest.mark.composer
def test_listener_writes_during_external_write_take_their_own_route():
    log = []
    store = create_store(
        base_creator,
        [intercepting_middleware("outer", log), intercepting_middleware("inner", log)],
    )

    def on_change(state):
        if state["count"] == 1:
            state["bump"]()

    store.subscribe(on_change)
    store.set_state({"count": 1})

    assert log == ["outer", "inner", "inner", "outer"]
    assert store.get_state()["count"] == 2


@pytest.mark.unit
@pytest.mark.composer
def test_skipped_middleware_leaves_external_route_intact(caplog):
    log = []

    def broken(creator):
        raise RuntimeError("cannot wrap")

    store = create_store(
        base_creator,
        [intercepting_middleware("m0", log), broken, intercepting_middleware("m2", log)],
    )

    store.set_state({"count": 3})

    assert log == ["m0", "m2"]
    assert store.get_state()["count"] == 3


@pytest.mark.unit
@pytest.mark.composer
def test_failing_middleware_is_skipped(caplog):
    """A transform raising during composition is left out; the rest still apply"""
    log = []

    def broken(creator):
        raise RuntimeError("cannot wrap")

    store = create_store(
        base_creator,
        [tagging_middleware("m0", log), broken, tagging_middleware("m2", log)],
    )

    state = store.get_state()
    assert state["_m0"] is True
    assert state["_m2"] is True
    assert "failed to apply" in caplog.text


@pytest.mark.unit
@pytest.mark.composer
def test_non_callable_middleware_is_skipped(caplog):
    log = []

    store = create_store(base_creator, [None, tagging_middleware("m1", log)])

    assert store.get_state()["_m1"] is True
    assert "not callable" in caplog.text


@pytest.mark.unit
@pytest.mark.composer
def test_initialization_failure_falls_back_to_base_creator(caplog):
    """If the composed creator raises, the base creator still provides the state"""

    def exploding(creator):
        def create(api):
            raise ValueError("init failed")

        return create

    store = create_store(base_creator, [exploding])

    assert store.get_state()["count"] == 0
    store.get_state()["bump"]()
    assert store.get_state()["count"] == 1
    assert "retrying without middleware" in caplog.text


@pytest.mark.unit
@pytest.mark.composer
def test_fallback_restores_unwrapped_write_path():
    """After a fallback, external writes no longer go through the failed middleware"""
    log = []

    def intercept_then_fail(creator):
        def create(api):
            def set_state(partial):
                log.append("intercepted")
                api.set_state(partial)

            creator(api.with_set_state(set_state))
            raise ValueError("late failure")

        return create

    store = create_store(base_creator, [intercept_then_fail])
    store.set_state({"count": 5})

    assert log == []
    assert store.get_state()["count"] == 5


@pytest.mark.unit
@pytest.mark.composer
@pytest.mark.edge_case
def test_creator_returning_non_mapping_falls_back():
    def wrong_shape(creator):
        return lambda api: ["not", "a", "mapping"]

    store = create_store(base_creator, [wrong_shape])

    assert store.get_state()["count"] == 0


@pytest.mark.unit
@pytest.mark.composer
@pytest.mark.edge_case
def test_base_creator_failure_propagates():
    def broken_creator(api):
        raise RuntimeError("no state at all")

    with pytest.raises(RuntimeError, match="no state at all"):
        create_store(broken_creator)
