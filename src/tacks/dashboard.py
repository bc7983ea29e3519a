"""Web dashboard for tacks — JSON API plus a server-rendered task list.

A module-level ``_db`` is set at startup (or by test fixtures) and injected
into handlers via ``Depends(_get_db)``. Routes live in
``tacks.dashboard_routes``; this module wires them into the app.

Usage:
    tk serve                    # http://localhost:8080
    tk serve --port 9000        # Custom port
    tk serve --host 0.0.0.0     # Listen on every interface
"""

from __future__ import annotations

import html
import logging
from pathlib import Path

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse

from tacks.core import TacksDB, Task, open_store

DEFAULT_PORT = 8080
DEFAULT_HOST = "127.0.0.1"

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level state, set by main() or test fixtures
# ---------------------------------------------------------------------------

_db: TacksDB | None = None


def _get_db() -> TacksDB:
    """Return the active database connection."""
    if _db is None:
        raise HTTPException(status_code=500, detail="Database not initialized")
    return _db


# ---------------------------------------------------------------------------
# HTML index
# ---------------------------------------------------------------------------

_PAGE = """<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>{title}</title>
<style>
body {{ font-family: system-ui, sans-serif; margin: 2rem; }}
table {{ border-collapse: collapse; width: 100%; }}
th, td {{ text-align: left; padding: 0.3rem 0.6rem; border-bottom: 1px solid #ddd; }}
.status-done {{ color: #888; }}
.tag {{ background: #eef; border-radius: 3px; padding: 0 0.3rem; margin-right: 0.2rem; }}
</style>
</head>
<body>
<h1>{title}</h1>
<p>{summary}</p>
<table>
<thead><tr><th>ID</th><th>Pri</th><th>Status</th><th>Title</th><th>Assignee</th><th>Tags</th></tr></thead>
<tbody>
{rows}
</tbody>
</table>
</body>
</html>
"""


def _render_row(task: Task) -> str:
    esc = html.escape
    tags = "".join(f'<span class="tag">{esc(t)}</span>' for t in task.tags)
    return (
        f'<tr class="status-{esc(task.status)}">'
        f"<td>{esc(task.id)}</td><td>P{task.priority}</td><td>{esc(task.status)}</td>"
        f"<td>{esc(task.title)}</td><td>{esc(task.assignee or '')}</td><td>{tags}</td></tr>"
    )


def render_index(db: TacksDB) -> str:
    """Every task (done included), all user text HTML-escaped."""
    tasks = db.list_tasks(include_closed=True)
    counts = db.stats()["by_status"]
    summary = ", ".join(f"{n} {s}" for s, n in counts.items() if n) or "no tasks"
    rows = "\n".join(_render_row(t) for t in tasks) or '<tr><td colspan="6">No tasks found.</td></tr>'
    return _PAGE.format(title=html.escape(f"tacks: {db.prefix}"), summary=html.escape(summary), rows=rows)


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Create the FastAPI application with all dashboard endpoints."""
    from tacks.dashboard_routes import tasks as task_routes

    app = FastAPI(title="tacks", docs_url=None, redoc_url=None)
    app.include_router(task_routes.create_router(), prefix="/api")

    @app.get("/", response_class=HTMLResponse)
    async def index(db: TacksDB = Depends(_get_db)) -> HTMLResponse:
        return HTMLResponse(render_index(db))

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        if _db is None:
            return JSONResponse({"status": "error", "detail": "Database not initialized"}, status_code=503)
        return JSONResponse({"status": "ok", "schema_version": _db.get_schema_version()})

    return app


def main(db_path: Path, *, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """Open the store at *db_path* and serve the dashboard until interrupted."""
    import uvicorn

    global _db

    # Handlers run on the event loop thread, but uvicorn may create the
    # connection from another thread during startup.
    _db = open_store(db_path, check_same_thread=False)
    app = create_app()

    print(f"tacks dashboard: http://{host}:{port}")
    logger.info("Serving %s on %s:%d", db_path, host, port)
    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    finally:
        _db.close()
        _db = None
