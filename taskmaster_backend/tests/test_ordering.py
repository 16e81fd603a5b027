from datetime import datetime, timedelta
from itertools import product

from taskmaster.models import Priority
from taskmaster.ordering import SortField, SortOrder, paginate, sort_tasks

NOW = datetime(2024, 6, 15, 12, 0, 0)


def make(task_id, priority=Priority.MEDIUM, due=None, completed=False, position=0, created=0, updated=0):
    return {
        "id": task_id,
        "priority": priority,
        "due_date": due,
        "completed": completed,
        "position": position,
        "created_at": NOW - timedelta(hours=created),
        "updated_at": NOW - timedelta(hours=updated),
    }


def ids(tasks):
    return [t["id"] for t in tasks]


def sample():
    return [
        make(1, Priority.LOW, due=NOW + timedelta(days=2), created=5, position=3),
        make(2, Priority.HIGH, due=None, completed=True, created=4, updated=1, position=1),
        make(3, Priority.URGENT, due=NOW - timedelta(days=1), created=3, position=2),
        make(4, Priority.MEDIUM, due=None, created=2, position=0),
        make(5, Priority.LOW, due=NOW + timedelta(days=9), completed=True, created=1, updated=6, position=5),
        make(6, Priority.HIGH, due=NOW + timedelta(days=1), created=0, position=4),
    ]


class TestPartition:
    def test_incomplete_before_completed_for_every_field_and_order(self):
        for field, order in product(SortField, SortOrder):
            result = sort_tasks(sample(), field, order, now=NOW)
            flags = [t["completed"] for t in result]
            assert flags == sorted(flags), (field, order)

    def test_empty_input(self):
        assert sort_tasks([], SortField.PRIORITY, SortOrder.ASC, now=NOW) == []


class TestPriority:
    def test_overdue_medium_beats_low_without_due_date(self):
        a = make("A", Priority.MEDIUM, due=NOW - timedelta(days=1))
        b = make("B", Priority.LOW, due=None)
        assert ids(sort_tasks([b, a], SortField.PRIORITY, SortOrder.DESC, now=NOW)) == ["A", "B"]

    def test_priority_desc_uses_effective_rank(self):
        result = sort_tasks(sample(), SortField.PRIORITY, SortOrder.DESC, now=NOW)
        # 3 is URGENT and overdue, then HIGH, MEDIUM, LOW; completed last
        assert ids(result)[:4] == [3, 6, 4, 1]

    def test_priority_asc(self):
        result = sort_tasks(sample(), SortField.PRIORITY, SortOrder.ASC, now=NOW)
        assert ids(result)[:4] == [1, 4, 6, 3]


class TestDueDate:
    def test_nulls_last_for_asc(self):
        result = sort_tasks(sample(), SortField.DUE_DATE, SortOrder.ASC, now=NOW)
        assert ids(result)[:4] == [3, 6, 1, 4]

    def test_nulls_first_for_desc(self):
        result = sort_tasks(sample(), SortField.DUE_DATE, SortOrder.DESC, now=NOW)
        assert ids(result)[:4] == [4, 1, 6, 3]

    def test_completed_tasks_follow_updated_at(self):
        # 5 was updated 6h ago, 2 was updated 1h ago; due dates are ignored
        asc = sort_tasks(sample(), SortField.DUE_DATE, SortOrder.ASC, now=NOW)
        desc = sort_tasks(sample(), SortField.DUE_DATE, SortOrder.DESC, now=NOW)
        assert ids(asc)[4:] == [5, 2]
        assert ids(desc)[4:] == [2, 5]


class TestOtherFields:
    def test_position(self):
        result = sort_tasks(sample(), SortField.POSITION, SortOrder.ASC, now=NOW)
        assert ids(result) == [4, 3, 1, 6, 2, 5]

    def test_created_at_default_is_newest_first(self):
        assert ids(sort_tasks(sample(), now=NOW)) == [6, 4, 3, 1, 5, 2]

    def test_unknown_field_falls_back_to_created_at(self):
        assert ids(sort_tasks(sample(), "bogus", SortOrder.ASC, now=NOW)) == [1, 3, 4, 6, 2, 5]

    def test_ties_keep_input_order(self):
        tasks = [make(i, Priority.HIGH) for i in range(5)]
        assert ids(sort_tasks(tasks, SortField.PRIORITY, SortOrder.DESC, now=NOW)) == [0, 1, 2, 3, 4]


class TestPagination:
    def test_pages_concatenate_to_full_order(self):
        for field, order in product(SortField, SortOrder):
            full = sort_tasks(sample(), field, order, now=NOW)
            pages = []
            for offset in range(0, len(full), 4):
                pages.extend(paginate(full, 4, offset))
            assert ids(pages) == ids(full)

    def test_offset_past_end(self):
        assert paginate([1, 2, 3], 10, 5) == []
