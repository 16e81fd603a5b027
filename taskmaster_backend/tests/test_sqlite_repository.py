from datetime import datetime, timedelta

import pytest

from taskmaster.db import SQLiteRepository
from taskmaster.errors import ConflictError, ValidationError
from taskmaster.models import Priority, Status
from taskmaster.repositories import InMemoryRepository, TaskFilter

NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "db" / "taskmaster.db"))
    return InMemoryRepository()


def seed(store):
    cat = store.create_category({"name": "Home"})
    urgent = store.create_tag({"name": "urgent", "color": "#FF0000"})
    later = store.create_tag({"name": "later"})
    a = store.create_task(
        {
            "title": "Clean Garage",
            "description": "Sort the TOOLS",
            "priority": Priority.HIGH,
            "due_date": NOW - timedelta(days=1),
            "category_id": cat["id"],
            "tag_ids": [urgent["id"], later["id"]],
            "created_at": NOW - timedelta(days=3),
        }
    )
    b = store.create_task(
        {
            "title": "Read book",
            "status": Status.COMPLETED,
            "completed": True,
            "completed_at": NOW - timedelta(hours=5),
            "created_at": NOW - timedelta(days=1),
        }
    )
    return cat, urgent, later, a, b


class TestTaskStorage:
    def test_round_trip_fields(self, store):
        cat, urgent, later, a, _ = seed(store)
        fetched = store.get_task(a["id"])
        assert fetched["title"] == "Clean Garage"
        assert fetched["priority"] == Priority.HIGH
        assert fetched["status"] == Status.PENDING
        assert fetched["completed"] is False
        assert fetched["due_date"] == NOW - timedelta(days=1)
        assert fetched["category_id"] == cat["id"]
        assert sorted(fetched["tag_ids"]) == sorted([urgent["id"], later["id"]])
        assert fetched["created_at"] == NOW - timedelta(days=3)

    def test_update_bumps_updated_at_and_replaces_tags(self, store):
        _, urgent, _, a, _ = seed(store)
        updated = store.update_task(a["id"], {"title": "Clean shed", "tag_ids": [urgent["id"]]})
        assert updated["title"] == "Clean shed"
        assert updated["tag_ids"] == [urgent["id"]]
        assert updated["updated_at"] >= a["updated_at"]

    def test_update_missing(self, store):
        assert store.update_task(999, {"title": "x"}) is None

    def test_delete_and_bulk_delete(self, store):
        _, _, _, a, b = seed(store)
        assert store.delete_task(a["id"]) is True
        assert store.delete_task(a["id"]) is False
        assert store.delete_tasks([b["id"], 12345]) == 1
        assert store.count_tasks() == 0


class TestQueries:
    def test_filters(self, store):
        cat, _, _, a, b = seed(store)
        assert [t["id"] for t in store.list_tasks(TaskFilter(search="tools"))] == [a["id"]]
        assert [t["id"] for t in store.list_tasks(TaskFilter(search="GARAGE"))] == [a["id"]]
        assert store.count_tasks(TaskFilter(completed=True)) == 1
        assert store.count_tasks(TaskFilter(category_id=cat["id"])) == 1
        assert store.count_tasks(TaskFilter(created_since=NOW - timedelta(days=2))) == 1
        assert store.count_tasks(TaskFilter(due_before=NOW)) == 1
        assert store.count_tasks(TaskFilter(has_due_date=False)) == 1
        assert store.count_tasks(TaskFilter(completed_at_set=True)) == 1
        assert store.count_tasks(TaskFilter(status=Status.COMPLETED, priority=Priority.MEDIUM)) == 1

    def test_search_is_literal_and_unicode_aware(self, store):
        seed(store)
        percent = store.create_task({"title": "Raise to 50% done"})
        eclair = store.create_task({"title": "Éclair recipe", "description": "Crème pâtissière"})
        assert store.list_tasks(TaskFilter(search="_")) == []
        assert [t["id"] for t in store.list_tasks(TaskFilter(search="%"))] == [percent["id"]]
        assert [t["id"] for t in store.list_tasks(TaskFilter(search="éclair"))] == [eclair["id"]]
        assert [t["id"] for t in store.list_tasks(TaskFilter(search="ÉCLAIR"))] == [eclair["id"]]
        assert [t["id"] for t in store.list_tasks(TaskFilter(search="CRÈME"))] == [eclair["id"]]

    def test_group_count(self, store):
        seed(store)
        by_priority = {r["key"]: r["count"] for r in store.group_count(None, "priority")}
        assert by_priority == {Priority.HIGH: 1, Priority.MEDIUM: 1}
        by_completed = {r["key"]: r["count"] for r in store.group_count(None, "completed")}
        assert by_completed == {True: 1, False: 1}

    def test_group_count_rejects_unknown_field(self, store):
        with pytest.raises(ValidationError):
            store.group_count(None, "title")

    def test_recent_completions(self, store):
        seed(store)
        assert store.recent_completions(10) == [NOW - timedelta(hours=5)]
        assert store.recent_completions(0) == []


class TestCategoriesAndTags:
    def test_duplicate_names_conflict(self, store):
        seed(store)
        with pytest.raises(ConflictError):
            store.create_category({"name": "Home"})
        with pytest.raises(ConflictError):
            store.create_tag({"name": "urgent"})

    def test_rename_clash(self, store):
        seed(store)
        other = store.create_category({"name": "Office"})
        with pytest.raises(ConflictError):
            store.update_category(other["id"], {"name": "Home"})

    def test_defaults(self, store):
        cat, _, later, _, _ = seed(store)
        assert (cat["color"], cat["icon"]) == ("#3B82F6", "📁")
        assert later["color"] == "#6B7280"

    def test_category_with_tasks_cannot_be_deleted(self, store):
        cat, _, _, a, _ = seed(store)
        with pytest.raises(ConflictError):
            store.delete_category(cat["id"])
        store.delete_task(a["id"])
        assert store.delete_category(cat["id"]) is True
        assert store.delete_category(cat["id"]) is False

    def test_delete_tag_detaches(self, store):
        _, urgent, later, a, _ = seed(store)
        assert store.delete_tag(urgent["id"]) == 1
        assert store.get_task(a["id"])["tag_ids"] == [later["id"]]
        assert store.delete_tag(urgent["id"]) is None

    def test_tags_listed_by_name(self, store):
        seed(store)
        assert [t["name"] for t in store.list_tags()] == ["later", "urgent"]
