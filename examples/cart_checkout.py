from hscstore import (
    computed_middleware,
    create_store,
    get_state_with_computed,
    time_travel_middleware,
)


# A shopping cart with cached derived values and undo.
def cart(api):
    return {
        "item_count": 1,
        "price_per_item": 10.0,
        "set_count": lambda n: api.set_state({"item_count": n}),
        "set_price": lambda p: api.set_state({"price_per_item": p}),
    }


store = create_store(
    cart,
    [
        computed_middleware(
            {"total_price": lambda s: s["item_count"] * s["price_per_item"]},
            depends_on={"total_price": ["item_count", "price_per_item"]},
        ),
        time_travel_middleware(max_history=20),
    ],
)


def update_ui(state):
    print(f">>> Cart Total: ${state['_computed'].get('total_price'):.2f}")


store.subscribe(update_ui)

print("=" * 50)

# Whenever the cart changes, total_price is recalculated on the next read.
store.get_state()["set_count"](2)
store.get_state()["set_price"](15)

# ==================================================
# >>> Cart Total: $20.00
# >>> Cart Total: $30.00

print("=" * 50)

# Undo restores the previous snapshot, and the listener sees it like any other change.
history = store.get_state()["_time_travel"]
history.go_back()
history.go_back()

# >>> Cart Total: $20.00
# >>> Cart Total: $10.00

print("=" * 50)
print(f"History has {history.get_history_length()} entries, cursor at {history.get_current_index()}")
print(get_state_with_computed(store)["total_price"])
