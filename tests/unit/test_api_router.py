"""Tests for the JSON API router."""

import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client(test_client: TestClient, patched_db, session_secret, avatar_dir) -> TestClient:
    return test_client


def _auth(client: TestClient, email: str = "ada@example.com") -> dict[str, str]:
    client.post("/api/auth/signup", json={"email": email, "password": "secret1"})
    response = client.post("/api/auth/signin", json={"email": email, "password": "secret1"})
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.mark.unit
class TestAuth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_signup_then_me(self, client):
        headers = _auth(client)

        response = client.get("/api/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["email"] == "ada@example.com"

    def test_duplicate_signup(self, client):
        _auth(client)

        response = client.post("/api/auth/signup", json={"email": "ada@example.com", "password": "secret1"})

        assert response.status_code == 422
        assert response.json()["code"] == "ERR_VALIDATION_FAILED"

    def test_bad_credentials(self, client):
        _auth(client)

        response = client.post("/api/auth/signin", json={"email": "ada@example.com", "password": "nope-nope"})

        assert response.status_code == 401
        assert response.json()["code"] == "ERR_NOT_AUTHENTICATED"

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer junk"}])
    def test_protected_routes_need_session(self, client, headers):
        response = client.get("/api/tasks", headers=headers)

        assert response.status_code == 401


@pytest.mark.unit
class TestTaskRoutes:
    def test_create_and_list(self, client):
        headers = _auth(client)

        created = client.post("/api/tasks", json={"title": "Two Sum", "category": "DSA", "xp_reward": 20}, headers=headers)
        listed = client.get("/api/tasks", headers=headers)

        assert created.status_code == 201
        assert created.json()["status"] == "pending"
        assert [t["title"] for t in listed.json()] == ["Two Sum"]

    def test_create_validation_error(self, client):
        headers = _auth(client)

        response = client.post("/api/tasks", json={"title": "   "}, headers=headers)

        assert response.status_code == 422
        assert "Title cannot be empty" in response.json()["message"]

    def test_complete_updates_stats(self, client):
        headers = _auth(client)
        task_id = client.post("/api/tasks", json={"title": "Big", "xp_reward": 100}, headers=headers).json()["id"]

        result = client.post(f"/api/tasks/{task_id}/complete", headers=headers)
        stats = client.get("/api/stats", headers=headers).json()

        assert result.status_code == 200
        assert result.json()["leveled_up"] is True
        assert result.json()["progression"]["level"] == 2
        assert stats["level"] == 2
        assert stats["xp"] == 0
        assert stats["streak"] == 1
        assert stats["completed_count"] == 1

    def test_complete_twice_conflicts(self, client):
        headers = _auth(client)
        task_id = client.post("/api/tasks", json={"title": "Once"}, headers=headers).json()["id"]
        client.post(f"/api/tasks/{task_id}/complete", headers=headers)

        response = client.post(f"/api/tasks/{task_id}/complete", headers=headers)

        assert response.status_code == 409

    def test_views_and_search(self, client):
        headers = _auth(client)
        done = client.post("/api/tasks", json={"title": "Graph BFS"}, headers=headers).json()["id"]
        client.post("/api/tasks", json={"title": "Laundry"}, headers=headers)
        client.post(f"/api/tasks/{done}/complete", headers=headers)

        pending = client.get("/api/tasks", params={"view": "pending"}, headers=headers).json()
        completed = client.get("/api/tasks", params={"view": "completed"}, headers=headers).json()
        searched = client.get("/api/tasks", params={"q": "graph"}, headers=headers).json()

        assert [t["title"] for t in pending] == ["Laundry"]
        assert [t["title"] for t in completed] == ["Graph BFS"]
        assert [t["title"] for t in searched] == ["Graph BFS"]

    def test_other_users_task_is_hidden(self, client):
        owner = _auth(client)
        intruder = _auth(client, email="eve@example.com")
        task_id = client.post("/api/tasks", json={"title": "Mine"}, headers=owner).json()["id"]

        assert client.post(f"/api/tasks/{task_id}/complete", headers=intruder).status_code == 404
        assert client.delete(f"/api/tasks/{task_id}", headers=intruder).status_code == 404
        assert client.get("/api/tasks", headers=intruder).json() == []

    def test_delete(self, client):
        headers = _auth(client)
        task_id = client.post("/api/tasks", json={"title": "Drop me"}, headers=headers).json()["id"]

        assert client.delete(f"/api/tasks/{task_id}", headers=headers).status_code == 204
        assert client.get("/api/tasks", headers=headers).json() == []


@pytest.mark.unit
class TestProfileRoutes:
    def test_default_profile(self, client):
        headers = _auth(client)

        response = client.get("/api/profile", headers=headers)

        assert response.json()["display_name"] is None
        assert response.json()["dark_mode"] is False

    def test_patch_profile(self, client):
        headers = _auth(client)

        client.patch("/api/profile", json={"display_name": "Ada"}, headers=headers)
        response = client.patch("/api/profile", json={"dark_mode": True}, headers=headers)

        assert response.json()["display_name"] == "Ada"
        assert response.json()["dark_mode"] is True

    def test_avatar_upload_and_remove(self, client):
        headers = _auth(client)

        uploaded = client.put(
            "/api/profile/avatar", params={"filename": "me.png"}, content=b"\x89PNG-bytes", headers=headers
        )
        removed = client.delete("/api/profile/avatar", headers=headers)

        assert uploaded.status_code == 200
        assert uploaded.json()["avatar_url"].startswith("http://testserver/avatars/")
        assert removed.json()["avatar_url"] is None

    def test_avatar_bad_type(self, client):
        headers = _auth(client)

        response = client.put("/api/profile/avatar", params={"filename": "me.exe"}, content=b"MZ", headers=headers)

        assert response.status_code == 422


@pytest.mark.unit
def test_meta_lists_categories_and_reward_tiers(client):
    response = client.get("/api/meta")

    assert response.json() == {"categories": ["Work", "DSA", "Personal"], "xp_reward_tiers": [5, 10, 20, 50, 100]}
