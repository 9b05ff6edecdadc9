"""Tests for the @action decorator and transaction context manager."""

from fluxstore import Store, StoreConfig, StoreManager, action, transaction


class CounterStore(Store):
    @action
    def increment(self):
        self.get_draft()["count"] += 1

    @action(name="counter/reset")
    def reset(self):
        self.get_draft()["count"] = 0

    @action
    def increment_twice(self):
        self.increment()
        self.increment()
        return "done"

    @action
    def read_only(self):
        return self.get_state()["count"]


def make_counter(manager=None, **kwargs):
    return CounterStore(manager or StoreManager(), {"count": 0}, debug=True, **kwargs)


class TestAction:
    def test_applies_draft_under_method_name(self):
        s = make_counter()
        s.increment()
        assert s.get_state() == {"count": 1}
        assert s.history[-1].action_name == "increment"

    def test_custom_name(self):
        s = make_counter()
        s.increment()
        s.reset()
        assert s.get_state() == {"count": 0}
        assert s.history[-1].action_name == "counter/reset"

    def test_nested_actions_flush_once(self):
        s = make_counter()
        log = []
        s.listen(lambda new, old: log.append(new["count"]))
        assert s.increment_twice() == "done"
        assert log == [2]
        assert s.history[-1].action_name == "increment,increment,increment_twice"

    def test_no_draft_no_change(self):
        s = make_counter()
        log = []
        s.listen(lambda new, old: log.append(new))
        assert s.read_only() == 0
        assert log == []
        assert s.is_dirty() is False

    def test_preserves_metadata(self):
        assert CounterStore.increment.__name__ == "increment"

    def test_deferred_store(self):
        manager = StoreManager()
        s = make_counter(manager, config=StoreConfig(async_flush=True))
        s.increment()
        s.increment()
        assert s.get_state() == {"count": 0}
        manager.flush_pending()
        assert s.get_state() == {"count": 2}


class TestTransaction:
    def test_batches_across_stores(self):
        manager = StoreManager()
        a, b = make_counter(manager), make_counter(manager)
        log = []
        a.listen(lambda new, old: log.append(("a", new["count"], b.get_state()["count"])))
        b.listen(lambda new, old: log.append(("b", new["count"], a.get_state()["count"])))

        with transaction(manager):
            a.increment()
            b.increment()
            b.increment()
            assert log == []

        assert log == [("a", 1, 0), ("b", 2, 1)]

    def test_nested_transactions(self):
        manager = StoreManager()
        s = make_counter(manager)
        log = []
        s.listen(lambda new, old: log.append(new["count"]))

        with transaction(manager):
            s.increment()
            with transaction(manager):
                s.increment()
            s.increment()

        assert log == [3]
