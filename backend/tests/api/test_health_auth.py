"""
API tests for health and authentication.
"""
from datetime import timedelta

from app.core.security import create_access_token


class TestHealth:
    """Health endpoint."""

    def test_health(self, api_client):
        client, _ = api_client

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuth:
    """Bearer token handling and get-or-create of the user row."""

    def test_current_user_created_on_first_request(self, api_client, auth_headers):
        client, _ = api_client

        first = client.get("/api/v1/auth/user", headers=auth_headers)
        second = client.get("/api/v1/auth/user", headers=auth_headers)

        assert first.status_code == 200
        body = first.json()
        assert body["email"] == "api@example.com"
        assert body["name"] == "API User"
        assert second.json()["id"] == body["id"]

    def test_missing_token_is_401(self, api_client):
        client, _ = api_client

        response = client.get("/api/v1/tasks")

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Unauthorized"

    def test_invalid_and_expired_tokens_look_the_same(self, api_client):
        client, _ = api_client
        expired = create_access_token("ext-api-user", email="api@example.com", expires_delta=timedelta(minutes=-5))

        bad = client.get("/api/v1/tasks", headers={"Authorization": "Bearer not-a-jwt"})
        old = client.get("/api/v1/tasks", headers={"Authorization": f"Bearer {expired}"})

        assert bad.status_code == old.status_code == 401
        assert bad.json()["error"] == old.json()["error"]
