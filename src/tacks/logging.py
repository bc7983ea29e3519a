"""JSON-lines command log kept next to the store.

Every ``tk`` invocation appends to ``.tacks/tacks.log`` (rotated at 5MB,
3 backups). Several ``tk`` processes may share one file, so each line
carries the writer's pid.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

LOG_FILENAME = "tacks.log"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3

# ``extra=`` attribute -> JSON key
_EXTRA_FIELDS = {
    "command": "command",
    "args_data": "args",
    "duration_ms": "duration_ms",
    "error": "error",
}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "pid": record.process,
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update({key: getattr(record, attr) for attr, key in _EXTRA_FIELDS.items() if hasattr(record, attr)})
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def _file_handler(logger: logging.Logger) -> RotatingFileHandler | None:
    for h in logger.handlers:
        if isinstance(h, RotatingFileHandler):
            return h
    return None


def setup_logging(tacks_dir: Path) -> logging.Logger:
    """Point the ``tacks`` logger at ``<tacks_dir>/tacks.log``.

    A second call for the same directory is a no-op. A call for another
    directory closes the old file handler first, so one process never
    writes to two stores' logs.
    """
    logger = logging.getLogger("tacks")
    log_path = os.path.abspath(tacks_dir / LOG_FILENAME)

    current = _file_handler(logger)
    if current is not None:
        if current.baseFilename == log_path:
            return logger
        logger.removeHandler(current)
        current.close()

    handler = RotatingFileHandler(log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT)
    handler.setFormatter(_JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger
