"""Task, comment, dependency and planning route handlers."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response
from starlette.requests import Request

from tacks.core import TacksDB
from tacks.dashboard_routes.common import (
    _error_response,
    _get_bool_param,
    _parse_json_body,
    _safe_int,
    _tacks_error_response,
    _tag_list,
)
from tacks.errors import TacksError
from tacks.summary import prime_data, stats_payload
from tacks.validation import normalize_tags

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("title", "description", "status", "assignee", "notes", "close_reason")


def _check_text_fields(body: dict[str, Any], names: tuple[str, ...]) -> JSONResponse | None:
    """Return a 422 response for the first present field that is not a string, else None."""
    for name in names:
        value = body.get(name)
        if value is not None and not isinstance(value, str):
            return _error_response(f"{name} must be a string", "INVALID_VALUE", 422, {"field": name})
    return None


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------


def create_router() -> APIRouter:
    """Build the APIRouter for task, comment, dependency and planning endpoints.

    NOTE: All handlers are intentionally async despite doing synchronous
    SQLite I/O. This serializes DB access on the event loop thread,
    avoiding concurrent multi-thread access to the shared DB connection.
    """
    from tacks.dashboard import _get_db

    router = APIRouter()

    # -- Tasks ---------------------------------------------------------------

    @router.get("/tasks")
    async def api_list_tasks(request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Filtered task list. Query: status, priority, tag, parent_id, all, limit."""
        params = request.query_params
        priority: int | None = None
        if "priority" in params:
            parsed = _safe_int(params["priority"], "priority")
            if not isinstance(parsed, int):
                return parsed
            priority = parsed
        limit: int | None = None
        if "limit" in params:
            parsed = _safe_int(params["limit"], "limit", min_value=0)
            if not isinstance(parsed, int):
                return parsed
            limit = parsed
        include_closed = _get_bool_param(params, "all", False)
        if not isinstance(include_closed, bool):
            return include_closed
        try:
            tasks = db.list_tasks(
                status=params.get("status") or None,
                priority=priority,
                tag=params.get("tag") or None,
                parent_id=params.get("parent_id") or params.get("parent") or None,
                include_closed=include_closed,
                limit=limit,
            )
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse([t.to_dict() for t in tasks])

    @router.post("/tasks", status_code=201)
    async def api_create_task(request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Create a task (or a subtask when ``parent_id`` is given)."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        bad = _check_text_fields(body, ("title", "description", "parent_id"))
        if bad is not None:
            return bad
        tags = _tag_list(body.get("tags"), "tags")
        if isinstance(tags, JSONResponse):
            return tags
        try:
            task = db.create_task(
                body.get("title", ""),
                description=body.get("description"),
                priority=body.get("priority"),
                tags=tags,
                parent_id=body.get("parent_id") or None,
            )
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse(task.to_dict(), status_code=201)

    @router.get("/tasks/{task_id}")
    async def api_task_detail(task_id: str, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Task with its blockers, dependents, children and comments."""
        try:
            task = db.get_task(task_id)
            data = task.to_dict()
            data["blockers"] = [t.to_dict() for t in db.get_blockers(task_id)]
            data["dependents"] = [t.to_dict() for t in db.get_dependents(task_id)]
            data["children"] = [t.to_dict() for t in db.list_children(task_id)]
            data["comments"] = [c.to_dict() for c in db.get_comments(task_id)]
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse(data)

    @router.patch("/tasks/{task_id}")
    async def api_update_task(task_id: str, request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Update fields. ``tags`` replaces the set; ``add_tags``/``remove_tags`` edit it.

        Sending ``tags`` together with either edit list is rejected.
        """
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        bad = _check_text_fields(body, _TEXT_FIELDS)
        if bad is not None:
            return bad
        if "tags" in body and ("add_tags" in body or "remove_tags" in body):
            return _error_response(
                "tags cannot be combined with add_tags or remove_tags",
                "INVALID_VALUE",
                422,
                {"field": "tags"},
            )
        add_tags = _tag_list(body.get("add_tags"), "add_tags")
        if isinstance(add_tags, JSONResponse):
            return add_tags
        remove_tags = _tag_list(body.get("remove_tags"), "remove_tags")
        if isinstance(remove_tags, JSONResponse):
            return remove_tags
        try:
            if "tags" in body:
                replacement = _tag_list(body.get("tags"), "tags")
                if isinstance(replacement, JSONResponse):
                    return replacement
                wanted = normalize_tags(replacement)
                current = db.get_task(task_id)
                add_tags = [*add_tags, *wanted]
                remove_tags = [*remove_tags, *(t for t in current.tags if t not in wanted)]
            task = db.update_task(
                task_id,
                title=body.get("title"),
                description=body.get("description"),
                status=body.get("status"),
                priority=body.get("priority"),
                assignee=body.get("assignee"),
                notes=body.get("notes"),
                close_reason=body.get("close_reason"),
                add_tags=add_tags,
                remove_tags=remove_tags,
            )
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse(task.to_dict())

    @router.post("/tasks/{task_id}/claim")
    async def api_claim_task(task_id: str, request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Claim a task for ``assignee``."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        try:
            task = db.claim_task(task_id, body.get("assignee", ""))
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse(task.to_dict())

    @router.post("/tasks/{task_id}/close")
    async def api_close_task(task_id: str, request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Close a task. Body: reason, comment, force."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        bad = _check_text_fields(body, ("reason", "comment"))
        if bad is not None:
            return bad
        force = body.get("force", False)
        if not isinstance(force, bool):
            return _error_response("force must be a boolean", "INVALID_VALUE", 422, {"field": "force"})
        try:
            task = db.close_task(
                task_id,
                reason=body.get("reason") or "done",
                comment=body.get("comment"),
                force=force,
            )
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse(task.to_dict())

    # -- Hierarchy and dependency views --------------------------------------

    @router.get("/tasks/{task_id}/children")
    async def api_children(task_id: str, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        try:
            tasks = db.list_children(task_id)
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse([t.to_dict() for t in tasks])

    @router.get("/tasks/{task_id}/blockers")
    async def api_blockers(task_id: str, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        try:
            tasks = db.get_blockers(task_id)
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse([t.to_dict() for t in tasks])

    @router.get("/tasks/{task_id}/dependents")
    async def api_dependents(task_id: str, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        try:
            tasks = db.get_dependents(task_id)
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse([t.to_dict() for t in tasks])

    # -- Comments ------------------------------------------------------------

    @router.get("/tasks/{task_id}/comments")
    async def api_get_comments(task_id: str, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        try:
            comments = db.get_comments(task_id)
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse([c.to_dict() for c in comments])

    @router.post("/tasks/{task_id}/comments", status_code=201)
    async def api_add_comment(task_id: str, request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Add a comment. Body: ``{"body": "..."}``."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        try:
            comment = db.add_comment(task_id, body.get("body", ""))
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse(comment.to_dict(), status_code=201)

    # -- Dependencies --------------------------------------------------------

    @router.post("/tasks/{task_id}/deps", status_code=201)
    async def api_add_dependency(task_id: str, request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Make ``task_id`` depend on ``parent_id`` from the body."""
        body = await _parse_json_body(request)
        if isinstance(body, JSONResponse):
            return body
        parent_id = body.get("parent_id")
        if not isinstance(parent_id, str) or not parent_id:
            return _error_response("parent_id is required", "INVALID_VALUE", 422, {"field": "parent_id"})
        try:
            db.add_dependency(task_id, parent_id)
        except TacksError as e:
            return _tacks_error_response(e)
        return JSONResponse({"child_id": task_id, "parent_id": parent_id}, status_code=201)

    @router.delete("/tasks/{task_id}/deps/{parent_id}", status_code=204)
    async def api_remove_dependency(task_id: str, parent_id: str, db: TacksDB = Depends(_get_db)) -> Response:
        """Remove an edge. Absent edges are not an error."""
        removed = db.remove_dependency(task_id, parent_id)
        if not removed:
            logger.debug("No dependency %s -> %s to remove", task_id, parent_id)
        return Response(status_code=204)

    @router.get("/dependencies")
    async def api_dependencies(db: TacksDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse(db.get_all_dependencies())

    # -- Planning views ------------------------------------------------------

    @router.get("/ready")
    async def api_ready(request: Request, db: TacksDB = Depends(_get_db)) -> JSONResponse:
        limit: int | None = None
        if "limit" in request.query_params:
            parsed = _safe_int(request.query_params["limit"], "limit", min_value=0)
            if not isinstance(parsed, int):
                return parsed
            limit = parsed
        return JSONResponse([t.to_dict() for t in db.ready(limit=limit)])

    @router.get("/blocked")
    async def api_blocked(db: TacksDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([t.to_dict() for t in db.blocked()])

    @router.get("/epics")
    async def api_epics(db: TacksDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse([p.to_dict() for p in db.epic_progress()])

    @router.get("/tags")
    async def api_tags(db: TacksDB = Depends(_get_db)) -> JSONResponse:
        """Distinct tag names, most used first."""
        return JSONResponse([tag for tag, _count in db.stats()["by_tag"]])

    @router.get("/stats")
    async def api_stats(db: TacksDB = Depends(_get_db)) -> JSONResponse:
        data = stats_payload(db)
        data["prefix"] = db.prefix
        return JSONResponse(data)

    @router.get("/prime")
    async def api_prime(db: TacksDB = Depends(_get_db)) -> JSONResponse:
        return JSONResponse(prime_data(db))

    return router
