"""Dashboard API tests — task CRUD, dependencies, comments, planning views and error mapping."""

from __future__ import annotations

import pytest
from httpx import AsyncClient

import tacks.dashboard as dash_module
from tacks.dashboard import create_app
from tests.conftest import PopulatedDB


class TestHealthAndIndex:
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_index_lists_tasks(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/")
        assert resp.status_code == 200
        assert "text/html" in resp.headers["content-type"]
        assert dashboard_db.ids["c"] in resp.text

    async def test_index_escapes_titles(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        dashboard_db.db.create_task("<script>alert(1)</script>")
        resp = await client.get("/")
        assert "<script>alert(1)</script>" not in resp.text
        assert "&lt;script&gt;" in resp.text

    async def test_uninitialized_db(self) -> None:
        from httpx import ASGITransport

        dash_module._db = None
        app = create_app()
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            assert (await c.get("/api/health")).status_code == 503
            assert (await c.get("/api/tasks")).status_code == 500


class TestTaskEndpoints:
    async def test_list_default_hides_done(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/api/tasks")
        assert resp.status_code == 200
        ids = {t["id"] for t in resp.json()}
        assert dashboard_db.ids["c"] not in ids
        assert len(ids) == 3

    async def test_list_filters(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/api/tasks", params={"tag": "bug", "priority": "1"})
        assert [t["id"] for t in resp.json()] == [dashboard_db.ids["a"]]
        resp = await client.get("/api/tasks", params={"all": "true"})
        assert len(resp.json()) == 4

    async def test_list_bad_query_params(self, client: AsyncClient) -> None:
        assert (await client.get("/api/tasks", params={"priority": "high"})).status_code == 400
        assert (await client.get("/api/tasks", params={"limit": "-1"})).status_code == 400
        assert (await client.get("/api/tasks", params={"all": "maybe"})).status_code == 400

    async def test_list_bad_status_is_422(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks", params={"status": "weird"})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "INVALID_VALUE"

    async def test_create(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"title": "From API", "priority": 0, "tags": ["web"]})
        assert resp.status_code == 201
        data = resp.json()
        assert data["id"].startswith("test-")
        assert data["priority"] == 0
        assert data["tags"] == ["web"]

    async def test_create_subtask(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        epic = dashboard_db.ids["epic"]
        resp = await client.post("/api/tasks", json={"title": "Second", "parent_id": epic})
        assert resp.status_code == 201
        assert resp.json()["id"] == f"{epic}.2"

    async def test_create_validation(self, client: AsyncClient) -> None:
        assert (await client.post("/api/tasks", json={"title": ""})).status_code == 422
        assert (await client.post("/api/tasks", json={"title": 5})).status_code == 422
        assert (await client.post("/api/tasks", json={"title": "x", "priority": 9})).status_code == 422
        assert (await client.post("/api/tasks", json={"title": "x", "tags": [1]})).status_code == 422

    async def test_invalid_json_body(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", content=b"{not json", headers={"content-type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
        resp = await client.post("/api/tasks", json=["a", "list"])
        assert resp.status_code == 400

    async def test_detail(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        ids = dashboard_db.ids
        resp = await client.get(f"/api/tasks/{ids['a']}")
        assert resp.status_code == 200
        data = resp.json()
        assert [t["id"] for t in data["blockers"]] == [ids["b"]]
        assert data["parent_id"] == ids["epic"]

        data = (await client.get(f"/api/tasks/{ids['b']}")).json()
        assert [t["id"] for t in data["dependents"]] == [ids["a"]]
        assert data["comments"][0]["body"] == "Test comment"

    async def test_detail_not_found(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/test-none")
        assert resp.status_code == 404
        err = resp.json()["error"]
        assert err["code"] == "NOT_FOUND"
        assert err["details"]["task_id"] == "test-none"

    async def test_patch(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        b = dashboard_db.ids["b"]
        resp = await client.patch(f"/api/tasks/{b}", json={"status": "in_progress", "notes": "halfway", "add_tags": "ops"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "in_progress"
        assert data["notes"] == "halfway"
        assert data["tags"] == ["ops"]

    async def test_patch_replaces_tags(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        a = dashboard_db.ids["a"]
        resp = await client.patch(f"/api/tasks/{a}", json={"tags": ["new", "bug"]})
        assert resp.json()["tags"] == ["bug", "new"]

    async def test_patch_tags_with_tag_edits_rejected(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        a = dashboard_db.ids["a"]
        resp = await client.patch(f"/api/tasks/{a}", json={"tags": ["keep"], "remove_tags": ["keep"]})
        assert resp.status_code == 422
        assert resp.json()["error"]["details"]["field"] == "tags"
        assert (await client.get(f"/api/tasks/{a}")).json()["tags"] == ["bug", "urgent"]

    async def test_patch_done_with_open_children_conflicts(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.patch(f"/api/tasks/{dashboard_db.ids['epic']}", json={"status": "done"})
        assert resp.status_code == 409
        assert resp.json()["error"]["details"]["open_children"] == [dashboard_db.ids["a"]]

    async def test_patch_not_found(self, client: AsyncClient) -> None:
        assert (await client.patch("/api/tasks/test-none", json={"title": "x"})).status_code == 404

    async def test_claim(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.post(f"/api/tasks/{dashboard_db.ids['b']}/claim", json={"assignee": "robot"})
        assert resp.status_code == 200
        assert resp.json()["assignee"] == "robot"
        resp = await client.post(f"/api/tasks/{dashboard_db.ids['c']}/claim", json={"assignee": "robot"})
        assert resp.status_code == 422

    async def test_close(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        b = dashboard_db.ids["b"]
        resp = await client.post(f"/api/tasks/{b}/close", json={"reason": "stale", "comment": "no longer needed"})
        assert resp.status_code == 200
        assert resp.json()["close_reason"] == "stale"
        comments = (await client.get(f"/api/tasks/{b}/comments")).json()
        assert comments[-1]["body"] == "no longer needed"

    async def test_close_with_open_children(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        epic = dashboard_db.ids["epic"]
        assert (await client.post(f"/api/tasks/{epic}/close", json={})).status_code == 409
        assert (await client.post(f"/api/tasks/{epic}/close", json={"force": "yes"})).status_code == 422
        resp = await client.post(f"/api/tasks/{epic}/close", json={"force": True})
        assert resp.status_code == 200

    async def test_children(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get(f"/api/tasks/{dashboard_db.ids['epic']}/children")
        assert [t["id"] for t in resp.json()] == [dashboard_db.ids["a"]]


class TestCommentEndpoints:
    async def test_add_comment(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        a = dashboard_db.ids["a"]
        resp = await client.post(f"/api/tasks/{a}/comments", json={"body": "looks good"})
        assert resp.status_code == 201
        assert resp.json()["task_id"] == a

    async def test_empty_comment(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.post(f"/api/tasks/{dashboard_db.ids['a']}/comments", json={"body": ""})
        assert resp.status_code == 422

    async def test_comments_missing_task(self, client: AsyncClient) -> None:
        assert (await client.get("/api/tasks/test-none/comments")).status_code == 404


class TestDependencyEndpoints:
    async def test_add_and_remove(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        ids = dashboard_db.ids
        resp = await client.post(f"/api/tasks/{ids['b']}/deps", json={"parent_id": ids["epic"]})
        assert resp.status_code == 201
        assert resp.json() == {"child_id": ids["b"], "parent_id": ids["epic"]}
        blockers = (await client.get(f"/api/tasks/{ids['b']}/blockers")).json()
        assert [t["id"] for t in blockers] == [ids["epic"]]

        resp = await client.delete(f"/api/tasks/{ids['b']}/deps/{ids['epic']}")
        assert resp.status_code == 204
        resp = await client.delete(f"/api/tasks/{ids['b']}/deps/{ids['epic']}")
        assert resp.status_code == 204

    @pytest.mark.parametrize(
        ("child", "parent", "status", "code"),
        [
            ("a", "b", 409, "DUPLICATE_EDGE"),
            ("b", "a", 409, "CYCLE_DETECTED"),
            ("a", "a", 422, "SELF_DEPENDENCY"),
        ],
    )
    async def test_add_errors(
        self,
        client: AsyncClient,
        dashboard_db: PopulatedDB,
        child: str,
        parent: str,
        status: int,
        code: str,
    ) -> None:
        ids = dashboard_db.ids
        resp = await client.post(f"/api/tasks/{ids[child]}/deps", json={"parent_id": ids[parent]})
        assert resp.status_code == status
        assert resp.json()["error"]["code"] == code

    async def test_add_missing_parent(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        a = dashboard_db.ids["a"]
        assert (await client.post(f"/api/tasks/{a}/deps", json={})).status_code == 422
        assert (await client.post(f"/api/tasks/{a}/deps", json={"parent_id": "test-none"})).status_code == 404

    async def test_all_dependencies(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        ids = dashboard_db.ids
        resp = await client.get("/api/dependencies")
        assert resp.json() == [{"child_id": ids["a"], "parent_id": ids["b"]}]


class TestPlanningEndpoints:
    async def test_ready(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        ids = dashboard_db.ids
        resp = await client.get("/api/ready")
        assert [t["id"] for t in resp.json()] == [ids["epic"], ids["b"]]
        resp = await client.get("/api/ready", params={"limit": "1"})
        assert len(resp.json()) == 1

    async def test_blocked(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        resp = await client.get("/api/blocked")
        assert [t["id"] for t in resp.json()] == [dashboard_db.ids["a"]]

    async def test_epics(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        [epic] = (await client.get("/api/epics")).json()
        assert epic["id"] == dashboard_db.ids["epic"]
        assert (epic["children_done"], epic["children_total"]) == (0, 1)

    async def test_tags(self, client: AsyncClient, dashboard_db: PopulatedDB) -> None:
        dashboard_db.db.create_task("Another bug", tags=["bug"])
        resp = await client.get("/api/tags")
        assert resp.status_code == 200
        assert resp.json() == ["bug", "epic", "urgent"]

    async def test_stats(self, client: AsyncClient) -> None:
        data = (await client.get("/api/stats")).json()
        assert data["total"] == 4
        assert data["prefix"] == "test"
        assert data["ready_count"] == 2
        assert data["blocked_count"] == 1

    async def test_prime(self, client: AsyncClient) -> None:
        data = (await client.get("/api/prime")).json()
        assert len(data["ready"]) == 2
        assert data["stats"]["done"] == 1
