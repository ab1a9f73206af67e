import json
import tempfile

from hscstore import FileStorage, PersistOptions, create_persist_store

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Saving settings to disk")
print("-" * 100)
print()

directory = tempfile.mkdtemp(prefix="hscstore-example-")
storage = FileStorage(directory)


def settings(api):
    return {
        "theme": "light",
        "font_size": 12,
        "toggle_theme": lambda: api.set_state(
            lambda s: {"theme": "dark" if s["theme"] == "light" else "light"}
        ),
    }


store = create_persist_store(settings, PersistOptions(name="settings", storage=storage, version=1))

# Nothing is written until the store is mounted.
store.get_state()["toggle_theme"]()
print(f"Before mount: {storage.get_item('settings')}")

store.mount()
store.set_state({"font_size": 14})
print(f"After mount:  {storage.get_item('settings')}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Restoring them in a new session")
print("-" * 100)
print()

restarted = create_persist_store(
    settings,
    PersistOptions(
        name="settings",
        storage=FileStorage(directory),
        version=1,
        on_rehydrate_storage=lambda state: print(f"Rehydrated: theme={state['theme']}"),
    ),
)
restarted.mount()
print(f"Font size: {restarted.get_state()['font_size']}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Migrating an old record")
print("-" * 100)
print()

# Version 0 stored the font size as a string.
storage.set_item("legacy", json.dumps({"state": {"font_size": "16px"}, "version": 0}))


def migrate(state, version):
    if version == 0:
        return {**state, "font_size": int(state["font_size"].rstrip("px"))}
    return state


legacy = create_persist_store(
    settings,
    PersistOptions(name="legacy", storage=storage, version=1, migrate=migrate),
)
legacy.mount()
print(f"Migrated font size: {legacy.get_state()['font_size']!r}")
print(f"Stored record:      {storage.get_item('legacy')}")
