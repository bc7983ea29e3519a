"""Database schema definitions for the tacks task store.

The baseline (schema version 0) is created with ``CREATE ... IF NOT EXISTS``
on every open; later columns arrive only through the version-gated steps in
:mod:`tacks.migrations`. Column positions in ``tasks`` are append-only.
"""

from __future__ import annotations

# Baseline layout. Never edit: new columns go through a migration so that
# databases created by any earlier release keep the same ordinal positions.
SCHEMA_V0_SQL = """\
CREATE TABLE IF NOT EXISTS config (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS tasks (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    description TEXT,
    status      TEXT NOT NULL DEFAULT 'open',
    priority    INTEGER NOT NULL DEFAULT 2,
    assignee    TEXT,
    parent_id   TEXT REFERENCES tasks(id),
    tags        TEXT NOT NULL DEFAULT '',
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS dependencies (
    child_id  TEXT NOT NULL REFERENCES tasks(id),
    parent_id TEXT NOT NULL REFERENCES tasks(id),
    PRIMARY KEY (child_id, parent_id),
    CHECK (child_id != parent_id)
);

CREATE TABLE IF NOT EXISTS comments (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id    TEXT NOT NULL REFERENCES tasks(id),
    body       TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
CREATE INDEX IF NOT EXISTS idx_tasks_priority ON tasks(priority);
CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id);
CREATE INDEX IF NOT EXISTS idx_deps_child ON dependencies(child_id);
CREATE INDEX IF NOT EXISTS idx_deps_parent ON dependencies(parent_id);
CREATE INDEX IF NOT EXISTS idx_comments_task ON comments(task_id);
"""

# Physical column order of ``tasks`` at CURRENT_SCHEMA_VERSION.
TASK_COLUMNS: tuple[str, ...] = (
    "id",
    "title",
    "description",
    "status",
    "priority",
    "assignee",
    "parent_id",
    "tags",
    "created_at",
    "updated_at",
    "close_reason",
    "notes",
)

CURRENT_SCHEMA_VERSION = 2

SCHEMA_VERSION_KEY = "schema_version"
PREFIX_KEY = "prefix"
VERSION_KEY = "version"
DEFAULT_PRIORITY_KEY = "default_priority"

DEFAULT_PREFIX = "tk"
