"""tacks — local task tracker with hierarchical ids, dependencies and a migration-gated SQLite store."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tacks")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from tacks.core import Comment, TacksDB, Task, open_store

__all__ = ["Comment", "TacksDB", "Task", "__version__", "open_store"]
