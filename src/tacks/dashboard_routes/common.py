"""Shared helpers and constants for dashboard route modules."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from fastapi.responses import JSONResponse
    from starlette.requests import Request

from tacks.errors import (
    CycleDetected,
    DuplicateEdge,
    InvalidValue,
    MigrationFailed,
    NotFound,
    OpenDependents,
    TacksError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_BOOL_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_BOOL_FALSE_VALUES = frozenset({"0", "false", "no", "off"})

# Most specific first: SelfDependency is an InvalidValue.
_STATUS_BY_ERROR: tuple[tuple[type[TacksError], int], ...] = (
    (NotFound, 404),
    (DuplicateEdge, 409),
    (CycleDetected, 409),
    (OpenDependents, 409),
    (InvalidValue, 422),
    (MigrationFailed, 500),
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


def _status_for(error: TacksError) -> int:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(error, cls):
            return status
    return 400


def _tacks_error_response(error: TacksError) -> JSONResponse:
    """Map a store error onto its HTTP status and the standard error body."""
    details: dict[str, Any] = {}
    if isinstance(error, NotFound):
        details["task_id"] = error.task_id
    elif isinstance(error, (DuplicateEdge, CycleDetected)):
        details = {"child_id": error.child_id, "parent_id": error.parent_id}
    elif isinstance(error, OpenDependents):
        details = {"task_id": error.task_id, "open_children": list(error.open_children)}
    return _error_response(error.message, error.code, _status_for(error), details)


async def _parse_json_body(request: Request) -> dict[str, Any] | JSONResponse:
    """Parse and validate a JSON object body, returning 400 on failure."""
    import json

    try:
        body = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response("Invalid JSON body", "VALIDATION_ERROR", 400)
    if not isinstance(body, dict):
        return _error_response("Request body must be a JSON object", "VALIDATION_ERROR", 400)
    return body


def _safe_int(value: str, name: str, *, min_value: int | None = None) -> int | JSONResponse:
    """Parse a query-param string to int, returning a 400 error response on failure.

    When *min_value* is set, values below that floor are rejected with 400.
    """
    try:
        result = int(value)
    except (ValueError, TypeError):
        return _error_response(
            f'Invalid value for {name}: "{value}". Must be an integer.',
            "VALIDATION_ERROR",
            400,
        )
    if min_value is not None and result < min_value:
        return _error_response(
            f"Invalid value for {name}: {result}. Must be >= {min_value}.",
            "VALIDATION_ERROR",
            400,
        )
    return result


def _get_bool_param(params: Mapping[str, str], name: str, default: bool) -> bool | JSONResponse:
    """Extract a boolean query param, returning *default* when absent."""
    raw = params.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _BOOL_TRUE_VALUES:
        return True
    if value in _BOOL_FALSE_VALUES:
        return False
    return _error_response(
        f'Invalid value for {name}: "{raw}". Must be one of true/false, 1/0, yes/no, on/off.',
        "VALIDATION_ERROR",
        400,
        {"param": name, "value": raw},
    )


def _tag_list(value: Any, name: str) -> list[str] | JSONResponse:
    """Accept a list of strings or a comma-separated string."""
    from tacks.validation import split_tag_list

    if value is None:
        return []
    if isinstance(value, str):
        return split_tag_list(value)
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    return _error_response(f"{name} must be a list of strings", "INVALID_VALUE", 422)
