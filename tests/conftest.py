"""Shared pytest fixtures for tacks tests."""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from click.testing import CliRunner

from tacks.core import DB_ENV_VAR, DB_FILENAME, TACKS_DIR_NAME, TacksDB, init_store


@dataclass
class PopulatedDB:
    """A TacksDB plus the ids of the tasks the fixture created."""

    db: TacksDB
    ids: dict[str, str] = field(default_factory=dict)


@pytest.fixture(autouse=True)
def _no_db_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's $TACKS_DB from leaking into tests."""
    monkeypatch.delenv(DB_ENV_VAR, raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / TACKS_DIR_NAME / DB_FILENAME


@pytest.fixture
def db(db_path: Path) -> Generator[TacksDB, None, None]:
    """Fresh store with prefix ``test`` for each test."""
    d, _ = init_store(db_path, prefix="test")
    yield d
    d.close()


@pytest.fixture
def populated_db(db: TacksDB) -> PopulatedDB:
    """Store pre-populated with a representative task set.

    Creates:
    - Epic E (open P1) with child A (open P1, tags bug+urgent)
    - B (open P2) blocking A
    - C (done P3)
    - Comment on B
    """
    epic = db.create_task("Epic E", priority=1)
    a = db.create_task("Task A", priority=1, tags=["bug", "urgent"], parent_id=epic.id)
    b = db.create_task("Task B", priority=2)
    c = db.create_task("Task C", priority=3)
    db.close_task(c.id)
    db.add_dependency(a.id, b.id)
    db.add_comment(b.id, "Test comment")
    return PopulatedDB(db=db, ids={"epic": epic.id, "a": a.id, "b": b.id, "c": c.id})


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
