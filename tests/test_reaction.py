"""Tests for select() — slice-tracking listeners."""

from fluxstore import Store, StoreManager, select


def set_field(store, key, value):
    draft = store.get_draft()
    draft[key] = value
    store.apply_change(f"set-{key}", draft)


class TestSelect:
    def test_fires_only_when_slice_changes(self):
        s = Store(StoreManager(), {"first": "Alice", "last": "Smith", "age": 30})
        effects = []
        select(s, lambda state: f"{state['first']} {state['last']}", effects.append)
        assert effects == []

        set_field(s, "first", "Bob")
        assert effects == ["Bob Smith"]

        set_field(s, "age", 31)
        assert effects == ["Bob Smith"]

        set_field(s, "last", "Jones")
        assert effects == ["Bob Smith", "Bob Jones"]

    def test_fire_immediately(self):
        s = Store(StoreManager(), {"count": 5})
        effects = []
        select(s, lambda state: state["count"], effects.append, fire_immediately=True)
        assert effects == [5]

    def test_value_tracks_latest(self):
        s = Store(StoreManager(), {"count": 0})
        selection = select(s, lambda state: state["count"] * 2, lambda v: None)
        set_field(s, "count", 4)
        assert selection.value == 8

    def test_dispose(self):
        s = Store(StoreManager(), {"count": 0})
        effects = []
        selection = select(s, lambda state: state["count"], effects.append)
        set_field(s, "count", 1)
        selection.dispose()
        selection.dispose()
        set_field(s, "count", 2)
        assert effects == [1]
        assert selection.disposed is True
        assert "disposed" in repr(selection)
