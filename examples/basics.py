from hscstore import create_store, same_value

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Defining a store")
print("-" * 100)
print()


# A creator receives the store api and returns the initial state.
# Data fields and actions live side by side in the same snapshot.
def counter(api):
    return {
        "count": 0,
        "name": "Alice",
        "increase": lambda: api.set_state(lambda s: {"count": s["count"] + 1}),
        "rename": lambda name: api.set_state({"name": name}),
    }


store = create_store(counter)
print(store)

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Subscribing to changes")
print("-" * 100)
print()


def log_snapshot(state):
    print(f"Store changed, count: {state['count']}, name: {state['name']}")


unsubscribe = store.subscribe(log_snapshot)

# Two print statements.
store.get_state()["increase"]()
store.get_state()["rename"]("Bob")

# Writing a value equal to the current one does not notify anybody.
store.set_state({"name": "Bob"})

# After unsubscribing the listener is never called again.
unsubscribe()
store.get_state()["increase"]()
print(f"Count after unsubscribing: {store.get_state()['count']}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("What counts as a change")
print("-" * 100)
print()

# Equality follows identity for containers and value equality for scalars.
# NaN equals itself, while 0.0 and -0.0 are different.
print(f"same_value(nan, nan)  -> {same_value(float('nan'), float('nan'))}")
print(f"same_value(0.0, -0.0) -> {same_value(0.0, -0.0)}")
print(f"same_value([], [])    -> {same_value([], [])}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Selecting a slice of the state")
print("-" * 100)
print()

print(f"Selected name: {store.select(lambda s: s['name'])}")
