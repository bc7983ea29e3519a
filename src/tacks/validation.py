"""Shared validation functions for all entry points.

Pure functions — no FastAPI or Click dependencies. Each returns the
normalized value or raises :class:`~tacks.errors.InvalidValue`.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from typing import Any

from tacks.db_base import VALID_CLOSE_REASONS, VALID_STATUSES
from tacks.errors import InvalidValue

_MAX_TAG_LENGTH = 64
_MAX_ASSIGNEE_LENGTH = 128

_STATUS_ALIASES = {
    "in-progress": "in_progress",
    "inprogress": "in_progress",
    "closed": "done",
}


def normalize_status(value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidValue("status must be a string")
    key = value.strip().lower()
    key = _STATUS_ALIASES.get(key, key)
    if key not in VALID_STATUSES:
        raise InvalidValue(f"unknown status: {value}. valid statuses: {', '.join(VALID_STATUSES)}")
    return key


def validate_priority(value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidValue(f"priority must be an integer between 0 and 4, got {value!r}")
    if not (0 <= value <= 4):
        raise InvalidValue(f"priority must be between 0 and 4, got {value}")
    return value


def validate_close_reason(value: Any) -> str:
    if not isinstance(value, str) or value.strip().lower() not in VALID_CLOSE_REASONS:
        raise InvalidValue(f"invalid close reason: {value}. valid reasons: {', '.join(VALID_CLOSE_REASONS)}")
    return value.strip().lower()


def normalize_tag(value: Any) -> str:
    """Strip a tag and reject empty, comma-bearing, whitespace-bearing or overlong tokens."""
    if not isinstance(value, str):
        raise InvalidValue("tag must be a string")
    tag = value.strip()
    if not tag:
        raise InvalidValue("tag cannot be empty")
    if "," in tag or any(ch.isspace() for ch in tag):
        raise InvalidValue(f"invalid tag {value!r}: tags cannot contain commas or whitespace")
    if len(tag) > _MAX_TAG_LENGTH:
        raise InvalidValue(f"tag must be at most {_MAX_TAG_LENGTH} characters")
    return tag


def normalize_tags(values: Iterable[Any]) -> list[str]:
    """Validate *values* and return them de-duplicated in canonical (sorted) order."""
    return sorted({normalize_tag(v) for v in values})


def split_tag_list(raw: str | None) -> list[str]:
    """Split a comma-separated CLI/form value into tag tokens, dropping empties."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def encode_tags(tags: Iterable[str]) -> str:
    """Canonical on-disk form: sorted, unique, comma-joined."""
    return ",".join(sorted(set(tags)))


def decode_tags(raw: str | None) -> list[str]:
    """Tolerates legacy rows written in insertion order or with stray spaces."""
    if not raw:
        return []
    return sorted({part.strip() for part in raw.split(",") if part.strip()})


def sanitize_assignee(value: Any) -> str:
    """Validate an assignee name: non-empty, bounded, no control characters."""
    if not isinstance(value, str):
        raise InvalidValue("assignee must be a string")
    for ch in value:
        if unicodedata.category(ch).startswith("C"):
            raise InvalidValue(f"assignee must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        raise InvalidValue("assignee cannot be empty")
    if len(cleaned) > _MAX_ASSIGNEE_LENGTH:
        raise InvalidValue(f"assignee must be at most {_MAX_ASSIGNEE_LENGTH} characters")
    return cleaned


def validate_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidValue("title cannot be empty")
    return value.strip()
