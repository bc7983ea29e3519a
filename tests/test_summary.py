"""Tests for the prime context summary and stats payload."""

from __future__ import annotations

from tacks.core import TacksDB
from tacks.summary import READY_LIMIT, _sanitize_title, generate_prime, prime_data, stats_payload, status_oneline
from tests.conftest import PopulatedDB


class TestGeneratePrime:
    def test_sections_in_order(self, populated_db: PopulatedDB) -> None:
        text = generate_prime(populated_db.db)
        headings = [line for line in text.splitlines() if line.startswith("#")]
        assert headings == [
            "# Tacks: Project Status",
            "## Stats",
            "## In Progress",
            f"## Ready (next {READY_LIMIT})",
            "## Command Reference",
        ]

    def test_stats_line(self, populated_db: PopulatedDB) -> None:
        assert "3 open, 1 done" in generate_prime(populated_db.db)

    def test_in_progress_shows_assignee(self, populated_db: PopulatedDB) -> None:
        db, ids = populated_db.db, populated_db.ids
        db.claim_task(ids["b"], "alice")
        assert f"- {ids['b']}: Task B [P2] (assigned: alice)" in generate_prime(db)

    def test_ready_capped(self, db: TacksDB) -> None:
        for i in range(READY_LIMIT + 3):
            db.create_task(f"Task {i}")
        text = generate_prime(db)
        ready_section = text.split("## Ready")[1].split("## Command Reference")[0]
        assert ready_section.count("\n- ") == READY_LIMIT

    def test_empty_store(self, db: TacksDB) -> None:
        text = generate_prime(db)
        assert "no tasks" in text
        assert text.count("none") == 2

    def test_title_sanitized(self, db: TacksDB) -> None:
        db.create_task("line one\nline two\x07")
        assert "line one line two" in generate_prime(db)


class TestHelpers:
    def test_status_oneline_skips_zero(self) -> None:
        assert status_oneline({"open": 2, "in_progress": 0, "done": 1}) == "2 open, 1 done"
        assert status_oneline({"open": 0}) == "no tasks"

    def test_sanitize_truncates(self) -> None:
        assert len(_sanitize_title("x" * 500)) == 200

    def test_prime_data_keys(self, populated_db: PopulatedDB) -> None:
        data = prime_data(populated_db.db)
        assert data["stats"]["open"] == 3
        assert [t["title"] for t in data["ready"]] == ["Epic E", "Task B"]
        assert data["in_progress"] == []

    def test_stats_payload(self, populated_db: PopulatedDB) -> None:
        data = stats_payload(populated_db.db)
        assert data["by_priority"]["P1"] == 2
        assert data["by_tag"] == {"bug": 1, "epic": 1, "urgent": 1}
        assert data["total_dependencies"] == 1
