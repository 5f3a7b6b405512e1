"""
API tests for task, project and next-action CRUD.
"""


class TestTaskRoutes:
    """/api/v1/tasks"""

    def test_create_and_get(self, api_client, auth_headers):
        client, _ = api_client

        created = client.post(
            "/api/v1/tasks",
            json={"title": "Buy milk", "dueDate": "2026-10-23T09:00:00Z", "priority": 2},
            headers=auth_headers,
        )

        assert created.status_code == 201
        body = created.json()
        assert body["category"] == "inbox"
        assert body["priority"] == 2
        assert body["nextActionId"] is None
        assert body["dueDate"].startswith("2026-10-23T09:00:00")

        fetched = client.get(f"/api/v1/tasks/{body['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["title"] == "Buy milk"

    def test_invalid_due_date_is_422(self, api_client, auth_headers):
        client, _ = api_client

        response = client.post(
            "/api/v1/tasks", json={"title": "Buy milk", "dueDate": "someday"}, headers=auth_headers
        )

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "VAL_002"
        assert error["field"] == "dueDate"

    def test_link_to_project_updates_count(self, api_client, auth_headers):
        client, _ = api_client
        project = client.post("/api/v1/projects", json={"name": "Launch"}, headers=auth_headers).json()

        task = client.post(
            "/api/v1/tasks", json={"title": "Write copy", "projectId": project["id"]}, headers=auth_headers
        ).json()

        assert task["category"] == "projects"
        refreshed = client.get(f"/api/v1/projects/{project['id']}", headers=auth_headers).json()
        assert refreshed["taskCount"] == 1

    def test_partial_update(self, api_client, auth_headers):
        client, _ = api_client
        task = client.post(
            "/api/v1/tasks", json={"title": "Buy milk", "description": "2 litres"}, headers=auth_headers
        ).json()

        response = client.put(f"/api/v1/tasks/{task['id']}", json={"priority": 1}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["priority"] == 1
        assert response.json()["description"] == "2 litres"

    def test_complete_and_list_filters(self, api_client, auth_headers):
        client, _ = api_client
        done = client.post("/api/v1/tasks", json={"title": "Done"}, headers=auth_headers).json()
        client.post("/api/v1/tasks", json={"title": "Open"}, headers=auth_headers)

        completed = client.post(f"/api/v1/tasks/{done['id']}/complete", headers=auth_headers)
        open_only = client.get("/api/v1/tasks?includeCompleted=false", headers=auth_headers)

        assert completed.json()["completed"] is True
        assert [t["title"] for t in open_only.json()] == ["Open"]

    def test_delete_hides_task(self, api_client, auth_headers):
        client, _ = api_client
        task = client.post("/api/v1/tasks", json={"title": "Temp"}, headers=auth_headers).json()

        deleted = client.delete(f"/api/v1/tasks/{task['id']}", headers=auth_headers)

        assert deleted.status_code == 204
        assert client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers).status_code == 404

    def test_unknown_task_is_404(self, api_client, auth_headers):
        client, _ = api_client

        response = client.get("/api/v1/tasks/does-not-exist", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RES_002"

    def test_empty_title_rejected(self, api_client, auth_headers):
        client, _ = api_client

        response = client.post("/api/v1/tasks", json={"title": ""}, headers=auth_headers)

        assert response.status_code == 422


class TestProjectRoutes:
    """/api/v1/projects"""

    def test_crud(self, api_client, auth_headers):
        client, _ = api_client

        created = client.post(
            "/api/v1/projects", json={"name": "Launch", "description": "Q4"}, headers=auth_headers
        )
        project_id = created.json()["id"]
        renamed = client.put(f"/api/v1/projects/{project_id}", json={"name": "Launch 2.0"}, headers=auth_headers)
        listed = client.get("/api/v1/projects", headers=auth_headers)
        deleted = client.delete(f"/api/v1/projects/{project_id}", headers=auth_headers)

        assert created.status_code == 201
        assert created.json()["taskCount"] == 0
        assert renamed.json()["name"] == "Launch 2.0"
        assert renamed.json()["description"] == "Q4"
        assert [p["id"] for p in listed.json()] == [project_id]
        assert deleted.status_code == 204
        assert client.get(f"/api/v1/projects/{project_id}", headers=auth_headers).status_code == 404

    def test_delete_unlinks_tasks(self, api_client, auth_headers):
        client, _ = api_client
        project = client.post("/api/v1/projects", json={"name": "Launch"}, headers=auth_headers).json()
        task = client.post(
            "/api/v1/tasks", json={"title": "Write copy", "projectId": project["id"]}, headers=auth_headers
        ).json()

        client.delete(f"/api/v1/projects/{project['id']}", headers=auth_headers)

        fetched = client.get(f"/api/v1/tasks/{task['id']}", headers=auth_headers).json()
        assert fetched["projectId"] is None
        assert fetched["category"] == "inbox"


class TestNextActionRoutes:
    """/api/v1/next-actions"""

    def test_crud(self, api_client, auth_headers):
        client, _ = api_client

        created = client.post("/api/v1/next-actions", json={"name": "Errands"}, headers=auth_headers)
        context_id = created.json()["id"]
        task = client.post(
            "/api/v1/tasks", json={"title": "Buy milk", "nextActionId": context_id}, headers=auth_headers
        ).json()
        fetched = client.get(f"/api/v1/next-actions/{context_id}", headers=auth_headers)

        assert created.status_code == 201
        assert task["category"] == "nextActions"
        assert fetched.json()["taskCount"] == 1

    def test_unknown_next_action_is_404(self, api_client, auth_headers):
        client, _ = api_client

        response = client.get("/api/v1/next-actions/missing", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RES_004"
