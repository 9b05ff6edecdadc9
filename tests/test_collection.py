"""Tests for keyed collection helpers."""

import logging
from collections import namedtuple
from dataclasses import dataclass

from fluxstore import IDENTITY_KEY, get_item, remove_item, remove_items, upsert_item
from fluxstore.collection import deep_merge, money, read_key, sort_by


class Todo:
    def __init__(self, title, done=False):
        self.title = title
        self.done = done


@dataclass(slots=True)
class Point:
    id: int
    x: int


class TestUpsertItem:
    def test_inserts_and_stamps_key(self):
        todos = []
        assert upsert_item(todos, 1, {"title": "a"}) is True
        assert todos == [{"title": "a", IDENTITY_KEY: 1}]

    def test_merge_preserves_existing_fields(self):
        todos = []
        upsert_item(todos, 1, {"title": "a", "done": False})
        upsert_item(todos, 1, {"done": True})
        assert len(todos) == 1
        assert todos[0]["title"] == "a"
        assert todos[0]["done"] is True
        assert read_key(todos[0]) == 1

    def test_overwrite_replaces(self):
        todos = []
        upsert_item(todos, 1, {"title": "a", "done": False})
        upsert_item(todos, 1, {"done": True}, overwrite=True)
        assert todos == [{"done": True, IDENTITY_KEY: 1}]

    def test_overwrite_is_idempotent(self):
        todos = []
        upsert_item(todos, 7, {"title": "first"}, overwrite=True)
        upsert_item(todos, 7, {"title": "second"}, overwrite=True)
        upsert_item(todos, 7, {"title": "second"}, overwrite=True)
        assert len(todos) == 1
        assert todos[0]["title"] == "second"

    def test_objects_get_attribute_key(self):
        todos = []
        upsert_item(todos, "t1", Todo("write"))
        upsert_item(todos, "t1", {"done": True})
        assert todos[0].title == "write"
        assert todos[0].done is True
        assert getattr(todos[0], IDENTITY_KEY) == "t1"

    def test_rejects_unstructured_item(self, caplog):
        todos = []
        with caplog.at_level(logging.WARNING, logger="fluxstore.collection"):
            assert upsert_item(todos, 1, "title") is False
        assert todos == []
        assert "must be a mapping or object" in caplog.text

    def test_rejects_conflicting_key(self, caplog):
        todos = []
        with caplog.at_level(logging.WARNING, logger="fluxstore.collection"):
            assert upsert_item(todos, 1, {IDENTITY_KEY: 2, "title": "a"}) is False
        assert todos == []
        assert "does not match" in caplog.text

    def test_non_list_collection_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="fluxstore.collection"):
            assert upsert_item(None, 1, {"title": "a"}) is True
        assert "Non list" in caplog.text

    def test_key_fn_does_not_stamp(self):
        users = [{"id": 1, "name": "ada"}]
        upsert_item(users, 1, {"id": 1, "name": "Ada"}, key_fn=lambda u: u["id"])
        upsert_item(users, 2, {"id": 2, "name": "Bob"}, key_fn=lambda u: u["id"])
        assert users == [{"id": 1, "name": "Ada"}, {"id": 2, "name": "Bob"}]

    def test_slotted_dataclass_with_key_fn(self):
        points = []
        assert upsert_item(points, 1, Point(1, 0), key_fn=lambda p: p.id) is True
        assert upsert_item(points, 1, Point(1, 5), key_fn=lambda p: p.id) is True
        assert len(points) == 1
        assert points[0].x == 5

    def test_slotted_object_needs_key_fn(self, caplog):
        points = []
        with caplog.at_level(logging.WARNING, logger="fluxstore.collection"):
            assert upsert_item(points, 1, Point(1, 0)) is False
        assert points == []
        assert "pass key_fn" in caplog.text

    def test_rejects_namedtuple(self):
        Pair = namedtuple("Pair", "id value")
        assert upsert_item([], 1, Pair(1, 2), key_fn=lambda p: p.id) is False

    def test_keys_stay_unique(self):
        todos = []
        for key in [1, 2, 1, 3, 2]:
            upsert_item(todos, key, {"n": key})
        assert [read_key(t) for t in todos] == [1, 2, 3]


class TestGetItem:
    def test_found(self):
        todos = []
        upsert_item(todos, "x", {"title": "a"})
        assert get_item(todos, "x")["title"] == "a"

    def test_missing(self):
        assert get_item([], "x") is None
        assert get_item(None, "x") is None


class TestRemoveItem:
    def test_removes_exactly_one(self):
        todos = []
        upsert_item(todos, 1, {"title": "a"})
        upsert_item(todos, 2, {"title": "b"})
        removed = remove_item(todos, 1)
        assert removed == [{"title": "a", IDENTITY_KEY: 1}]
        assert [t["title"] for t in todos] == ["b"]

    def test_miss_returns_false_without_mutation(self):
        todos = []
        upsert_item(todos, 1, {"title": "a"})
        assert remove_item(todos, 99) is False
        assert len(todos) == 1

    def test_remove_items_ignores_misses(self):
        todos = []
        for key in [1, 2, 3]:
            upsert_item(todos, key, {"n": key})
        remove_items(todos, [1, 42, 3])
        assert [t["n"] for t in todos] == [2]


class TestDeepMerge:
    def test_nested_mappings(self):
        target = {"a": {"b": 1, "c": 2}, "d": 1}
        deep_merge(target, {"a": {"c": 3}, "e": 4})
        assert target == {"a": {"b": 1, "c": 3}, "d": 1, "e": 4}

    def test_lists_merge_by_index(self):
        target = {"items": [{"x": 1}, {"x": 2}]}
        deep_merge(target, {"items": [{"y": 1}]})
        assert target == {"items": [{"x": 1, "y": 1}, {"x": 2}]}

    def test_scalars_replace(self):
        assert deep_merge(1, 2) == 2


class TestSortBy:
    def test_descending(self):
        rows = [{"n": 2}, {"n": 3}, {"n": 1}]
        assert [r["n"] for r in sorted(rows, key=sort_by("n"))] == [3, 2, 1]

    def test_ascending(self):
        rows = [{"n": 2}, {"n": 3}, {"n": 1}]
        assert [r["n"] for r in sorted(rows, key=sort_by("n", "asc"))] == [1, 2, 3]

    def test_empty_values_last_when_descending(self):
        rows = [{"n": None}, {"n": 5}, {}]
        assert sorted(rows, key=sort_by("n"))[0] == {"n": 5}


def test_money():
    assert money(3) == "3.00"
    assert money(10.5) == "10.50"
