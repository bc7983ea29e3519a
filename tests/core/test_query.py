"""Tests for listing, filtering, ordering, ready/blocked and epic progress."""

from __future__ import annotations

import pytest

from tacks.core import TacksDB
from tacks.errors import InvalidValue
from tacks.query import TaskFilter, compile_where, has_tag, order_by, status_is
from tests.conftest import PopulatedDB


class TestListTasks:
    def test_done_hidden_by_default(self, populated_db: PopulatedDB) -> None:
        ids = {t.id for t in populated_db.db.list_tasks()}
        assert populated_db.ids["c"] not in ids
        assert len(ids) == 3

    def test_include_closed(self, populated_db: PopulatedDB) -> None:
        assert len(populated_db.db.list_tasks(include_closed=True)) == 4

    def test_status_done_shows_done(self, populated_db: PopulatedDB) -> None:
        tasks = populated_db.db.list_tasks(status="done")
        assert [t.id for t in tasks] == [populated_db.ids["c"]]

    def test_filter_priority(self, populated_db: PopulatedDB) -> None:
        tasks = populated_db.db.list_tasks(priority=1)
        assert {t.id for t in tasks} == {populated_db.ids["epic"], populated_db.ids["a"]}

    def test_filter_tag(self, populated_db: PopulatedDB) -> None:
        tasks = populated_db.db.list_tasks(tag="bug")
        assert [t.id for t in tasks] == [populated_db.ids["a"]]

    def test_tag_match_is_exact(self, db: TacksDB) -> None:
        db.create_task("Epic-ish", tags=["epical"])
        assert db.list_tasks(tag="epic") == []
        assert db.list_tasks(tag="ep") == []

    def test_filter_parent(self, populated_db: PopulatedDB) -> None:
        tasks = populated_db.db.list_tasks(parent_id=populated_db.ids["epic"])
        assert [t.id for t in tasks] == [populated_db.ids["a"]]

    def test_filters_combine(self, populated_db: PopulatedDB) -> None:
        assert populated_db.db.list_tasks(priority=1, tag="urgent", status="open")[0].id == populated_db.ids["a"]
        assert populated_db.db.list_tasks(priority=2, tag="urgent") == []

    def test_limit(self, populated_db: PopulatedDB) -> None:
        assert len(populated_db.db.list_tasks(limit=2)) == 2
        assert populated_db.db.list_tasks(limit=0) == []

    def test_negative_limit_rejected(self, db: TacksDB) -> None:
        with pytest.raises(InvalidValue):
            db.list_tasks(limit=-1)

    def test_invalid_filter_values(self, db: TacksDB) -> None:
        with pytest.raises(InvalidValue):
            db.list_tasks(status="bogus")
        with pytest.raises(InvalidValue):
            db.list_tasks(priority=9)

    def test_ordering_is_total(self, db: TacksDB) -> None:
        for i, priority in enumerate([3, 1, 2, 1, 0, 3]):
            db.create_task(f"Task {i}", priority=priority)
        tasks = db.list_tasks()
        assert [t.priority for t in tasks] == [0, 1, 1, 2, 3, 3]
        keys = [(t.priority, t.created_at, t.id) for t in tasks]
        assert keys == sorted(keys)
        assert [t.id for t in db.list_tasks()] == [t.id for t in tasks]


class TestReadyBlocked:
    def test_ready_excludes_blocked(self, populated_db: PopulatedDB) -> None:
        ready = {t.id for t in populated_db.db.ready()}
        assert ready == {populated_db.ids["epic"], populated_db.ids["b"]}

    def test_blocked(self, populated_db: PopulatedDB) -> None:
        assert [t.id for t in populated_db.db.blocked()] == [populated_db.ids["a"]]

    def test_closing_blocker_unblocks(self, populated_db: PopulatedDB) -> None:
        db, ids = populated_db.db, populated_db.ids
        db.close_task(ids["b"])
        assert ids["a"] in {t.id for t in db.ready()}
        assert db.blocked() == []

    def test_in_progress_not_ready(self, db: TacksDB) -> None:
        task = db.create_task("Busy")
        db.claim_task(task.id, "alice")
        assert db.ready() == []

    def test_in_progress_can_be_blocked(self, db: TacksDB) -> None:
        a = db.create_task("A")
        b = db.create_task("B")
        db.add_dependency(a.id, b.id)
        db.claim_task(a.id, "alice")
        assert [t.id for t in db.blocked()] == [a.id]

    def test_ready_limit(self, populated_db: PopulatedDB) -> None:
        ready = populated_db.db.ready(limit=1)
        assert [t.id for t in ready] == [populated_db.ids["epic"]]


class TestEpicProgress:
    def test_progress_counts(self, db: TacksDB) -> None:
        epic = db.create_task("Epic")
        one = db.create_task("One", parent_id=epic.id)
        db.create_task("Two", parent_id=epic.id)
        db.close_task(one.id)
        [progress] = db.epic_progress()
        assert progress.task.id == epic.id
        assert (progress.done, progress.total, progress.pct) == (1, 2, 50)
        data = progress.to_dict()
        assert data["children_by_status"]["open"] == 1
        assert data["progress_pct"] == 50

    def test_epic_without_children(self, db: TacksDB) -> None:
        db.create_task("Planned", tags=["epic"])
        [progress] = db.epic_progress()
        assert (progress.done, progress.total, progress.pct) == (0, 0, 0)

    def test_no_epics(self, db: TacksDB) -> None:
        db.create_task("Plain")
        assert db.epic_progress() == []


class TestQueryBuilder:
    def test_compile_empty(self) -> None:
        assert compile_where([]) == ("", [])

    def test_compile_binds_params(self) -> None:
        where, params = compile_where([status_is("open"), has_tag("bug")])
        assert where.startswith(" WHERE (t.status = ?) AND ")
        assert params == ["open", ",bug,"]

    def test_order_by_alias(self) -> None:
        assert order_by("t") == "t.priority ASC, t.created_at ASC, t.id ASC"
        assert order_by("") == "priority ASC, created_at ASC, id ASC"

    def test_filter_hides_done_unless_asked(self) -> None:
        assert TaskFilter().clauses()[0].sql == "{t}status != ?"
        assert TaskFilter(include_closed=True).clauses() == []
