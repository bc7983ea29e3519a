"""Error kinds raised by the task store.

Every error carries a stable ``code`` used by the CLI ``--json`` envelope
and the HTTP error body. ``NotFound`` is also a ``KeyError`` and the
validation errors are also ``ValueError`` so callers that only know the
builtin types still catch them.
"""

from __future__ import annotations


class TacksError(Exception):
    """Base class for all store errors."""

    code = "TACKS_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class NotFound(TacksError, KeyError):
    """A task id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"task not found: {task_id}")


class InvalidValue(TacksError, ValueError):
    """Enum/range violation or malformed input."""

    code = "INVALID_VALUE"


class SelfDependency(InvalidValue):
    code = "SELF_DEPENDENCY"

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"task cannot depend on itself: {task_id}")


class DuplicateEdge(TacksError, ValueError):
    code = "DUPLICATE_EDGE"

    def __init__(self, child_id: str, parent_id: str) -> None:
        self.child_id = child_id
        self.parent_id = parent_id
        super().__init__(f"dependency already exists: {child_id} is already blocked by {parent_id}")


class CycleDetected(TacksError, ValueError):
    code = "CYCLE_DETECTED"

    def __init__(self, child_id: str, parent_id: str) -> None:
        self.child_id = child_id
        self.parent_id = parent_id
        super().__init__(f"circular dependency detected: {child_id} -> {parent_id} would create a cycle")


class OpenDependents(TacksError, ValueError):
    """Close refused because hierarchy children are not done."""

    code = "OPEN_DEPENDENTS"

    def __init__(self, task_id: str, open_children: list[str]) -> None:
        self.task_id = task_id
        self.open_children = open_children
        super().__init__(
            f"cannot close {task_id}: {len(open_children)} open child task(s): "
            f"{', '.join(open_children)} (use --force to override)"
        )


class MigrationFailed(TacksError):
    """Fatal: a schema migration step failed and was rolled back."""

    code = "MIGRATION_FAILED"

    def __init__(self, from_version: int, to_version: int, cause: Exception) -> None:
        self.from_version = from_version
        self.to_version = to_version
        self.cause = cause
        super().__init__(f"Migration v{from_version} → v{to_version} failed: {cause}")
