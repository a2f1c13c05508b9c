"""API tests for the progress blueprint, health checks and request middleware.

Coverage:
  1. Evaluation read returns the evaluated tree without writing
  2. check-completion runs the controller and is idempotent
  3. Item scan endpoint
  4. Submission, review and manual status endpoints
  5. Goal progress endpoint and notifications listing
  6. Health probes and X-Request-ID / duration headers
  7. Production settings refuse to start without DATABASE_URL / SECRET_KEY
"""

import pytest

BASE = "/api/v1"


def _goal(client, tile_id, **body):
    body.setdefault("description", "goal")
    body.setdefault("target_value", 1)
    res = client.post(f"{BASE}/tiles/{tile_id}/goals", json=body)
    assert res.status_code == 201
    return res.get_json()


class TestEvaluationEndpoints:
    def test_empty_tile(self, client, tile, team):
        res = client.get(f"{BASE}/tiles/{tile.id}/teams/{team.id}/evaluation")
        assert res.status_code == 200
        assert res.get_json()["tile_complete"] is False
        assert res.get_json()["root_nodes"] == []

    def test_progress_then_check_completion(self, client, tile, team):
        goal = _goal(client, tile.id, target_value=5)
        res = client.put(f"{BASE}/goals/{goal['id']}/teams/{team.id}/progress", json={"value": 5})
        assert res.status_code == 200
        assert res.get_json()["completion"]["was_created"] is True

        evaluation = client.get(f"{BASE}/tiles/{tile.id}/teams/{team.id}/evaluation").get_json()
        assert evaluation["tile_complete"] is True
        assert evaluation["root_nodes"][0]["progress"]["percentage"] == 100.0

        res = client.post(f"{BASE}/tiles/{tile.id}/teams/{team.id}/check-completion")
        assert res.status_code == 200
        assert res.get_json()["already_approved"] is True

    def test_progress_requires_value(self, client, tile, team):
        goal = _goal(client, tile.id)
        res = client.put(f"{BASE}/goals/{goal['id']}/teams/{team.id}/progress", json={})
        assert res.status_code == 400


class TestItemScanEndpoint:
    def test_scan(self, client, tile, team):
        _goal(client, tile.id, goal_type="item", item={"item_id": 1, "base_name": "Amulet of glory"})
        res = client.post(f"{BASE}/teams/{team.id}/items/check", json={
            "items": [{"item_id": 1712, "item_name": "Amulet of glory (4)", "quantity": 3}],
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["matched_goals"] == 1
        assert body["tiles_auto_completed"] == [tile.id]

    def test_unknown_team(self, client):
        res = client.post(f"{BASE}/teams/ghost/items/check", json={"items": [{"item_name": "x"}]})
        assert res.status_code == 404

    def test_empty_items_is_422(self, client, team):
        res = client.post(f"{BASE}/teams/{team.id}/items/check", json={"items": []})
        assert res.status_code == 422


class TestSubmissionEndpoints:
    def test_submit_review_and_notify(self, client, tile, team):
        goal = _goal(client, tile.id, target_value=2)
        res = client.post(f"{BASE}/tiles/{tile.id}/teams/{team.id}/submissions", json={
            "submitted_by": "user-1", "goal_id": goal["id"], "submission_value": 2,
            "evidence_url": "https://img/drop.png",
        })
        assert res.status_code == 201
        submission = res.get_json()["submission"]
        assert submission["status"] == "pending"

        res = client.post(f"{BASE}/submissions/{submission['id']}/review", json={"status": "approved"})
        assert res.status_code == 200
        assert res.get_json()["completion"]["auto_completed"] is True

        notifications = client.get(f"{BASE}/teams/{team.id}/notifications").get_json()
        assert notifications["total"] == 1
        assert notifications["items"][0]["tile_id"] == tile.id

        res = client.post(f"{BASE}/tiles/{tile.id}/teams/{team.id}/submissions", json={})
        assert res.status_code == 409

    def test_manual_status(self, client, tile, team):
        client.post(f"{BASE}/tiles/{tile.id}/teams/{team.id}/submissions", json={})
        url = f"{BASE}/tiles/{tile.id}/teams/{team.id}/status"
        res = client.put(url, json={"status": "declined"})
        assert res.status_code == 200
        assert res.get_json()["status"] == "declined"
        assert client.put(url, json={"status": "approved"}).status_code == 422
        assert client.put(url, json={}).status_code == 400


class TestHealthAndMiddleware:
    def test_ready(self, client):
        res = client.get(f"{BASE}/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live_checks_database(self, client):
        res = client.get(f"{BASE}/health/live")
        assert res.status_code == 200
        checks = res.get_json()["checks"]
        assert checks["database"]["status"] == "ok"
        assert checks["redis"]["status"] == "skipped"

    def test_request_id_echoed(self, client, tile):
        res = client.get(f"{BASE}/tiles/{tile.id}/goal-tree", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers

    def test_unknown_route_is_json_404(self, client):
        res = client.get(f"{BASE}/nothing-here")
        assert res.status_code == 404
        assert res.get_json()["path"] == f"{BASE}/nothing-here"


class TestProductionConfig:
    def test_missing_database_url_refuses_to_start(self, monkeypatch):
        from bingo import create_app
        from bingo.config import ProductionConfig

        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", None)
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            create_app("production")

    def test_missing_secret_key_refuses_to_start(self, monkeypatch):
        from bingo import create_app
        from bingo.config import ProductionConfig

        monkeypatch.setattr(ProductionConfig, "SQLALCHEMY_DATABASE_URI", "postgresql://db/bingo")
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError, match="SECRET_KEY"):
            create_app("production")
