import json

from taskmaster.counters import InMemoryLifetimeCounter, JsonFileLifetimeCounter


class TestInMemoryCounter:
    def test_starts_at_zero_and_increments(self):
        counter = InMemoryLifetimeCounter()
        assert counter.snapshot() == {"tasks_created": 0, "tasks_completed": 0}
        assert counter.increment_created() == 1
        assert counter.increment_created() == 2
        assert counter.increment_completed() == 1
        assert counter.snapshot() == {"tasks_created": 2, "tasks_completed": 1}

    def test_snapshot_is_a_copy(self):
        counter = InMemoryLifetimeCounter()
        snap = counter.snapshot()
        snap["tasks_created"] = 99
        assert counter.snapshot()["tasks_created"] == 0


class TestJsonFileCounter:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "nested" / "counters.json"
        first = JsonFileLifetimeCounter(str(path))
        first.increment_created()
        first.increment_created()
        first.increment_completed()

        second = JsonFileLifetimeCounter(str(path))
        assert second.snapshot() == {"tasks_created": 2, "tasks_completed": 1}
        assert json.loads(path.read_text(encoding="utf-8")) == {"tasks_created": 2, "tasks_completed": 1}

    def test_no_temp_files_left_behind(self, tmp_path):
        path = tmp_path / "counters.json"
        counter = JsonFileLifetimeCounter(str(path))
        for _ in range(5):
            counter.increment_completed()
        assert [p.name for p in tmp_path.iterdir()] == ["counters.json"]

    def test_missing_keys_default_to_zero(self, tmp_path):
        path = tmp_path / "counters.json"
        path.write_text(json.dumps({"tasks_created": 7}), encoding="utf-8")
        assert JsonFileLifetimeCounter(str(path)).snapshot() == {"tasks_created": 7, "tasks_completed": 0}
