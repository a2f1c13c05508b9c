"""API tests for the goal tree blueprint.

Coverage:
  1. Group/goal CRUD status codes and payloads
  2. Error mapping: 400 malformed, 404 not found, 409 cycle / invalid state, 422 validation
  3. Promotion delete, reorder and batch move responses
  4. Goal values endpoints
"""

import pytest

BASE = "/api/v1"


def _create_group(client, tile_id, **body):
    body.setdefault("logical_operator", "AND")
    res = client.post(f"{BASE}/tiles/{tile_id}/goal-groups", json=body)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


def _create_goal(client, tile_id, **body):
    body.setdefault("description", "goal")
    body.setdefault("target_value", 1)
    res = client.post(f"{BASE}/tiles/{tile_id}/goals", json=body)
    assert res.status_code == 201, res.get_json()
    return res.get_json()


class TestGroupEndpoints:
    def test_create_and_read_tree(self, client, tile):
        group = _create_group(client, tile.id, logical_operator="OR", min_required_goals=2, name="Raids")
        goal = _create_goal(client, tile.id, parent_group_id=group["id"])

        res = client.get(f"{BASE}/tiles/{tile.id}/goal-tree")
        assert res.status_code == 200
        tree = res.get_json()["tree"]
        assert tree[0]["type"] == "group"
        assert tree[0]["data"]["min_required_goals"] == 2
        assert tree[0]["children"][0]["id"] == goal["id"]

    def test_missing_operator_is_400(self, client, tile):
        res = client.post(f"{BASE}/tiles/{tile.id}/goal-groups", json={})
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_non_json_body_is_400(self, client, tile):
        res = client.post(f"{BASE}/tiles/{tile.id}/goal-groups", data="nope", content_type="text/plain")
        assert res.status_code == 400

    def test_bad_operator_is_422(self, client, tile):
        res = client.post(f"{BASE}/tiles/{tile.id}/goal-groups", json={"logical_operator": "NAND"})
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_unknown_tile_is_404(self, client):
        res = client.post(f"{BASE}/tiles/ghost/goal-groups", json={"logical_operator": "AND"})
        assert res.status_code == 404

    def test_update_clears_name(self, client, tile):
        group = _create_group(client, tile.id, name="Old")
        res = client.put(f"{BASE}/goal-groups/{group['id']}", json={"name": ""})
        assert res.status_code == 200
        assert res.get_json()["name"] is None

    def test_move_into_descendant_is_409(self, client, tile):
        parent = _create_group(client, tile.id)
        child = _create_group(client, tile.id, parent_group_id=parent["id"])
        res = client.post(f"{BASE}/goal-groups/{parent['id']}/move", json={"target_parent_id": child["id"]})
        assert res.status_code == 409
        body = res.get_json()
        assert body["error"] == "Cannot create circular group reference"
        assert body["details"]["target_parent_id"] == child["id"]

    def test_move_requires_target_key(self, client, tile):
        group = _create_group(client, tile.id)
        res = client.post(f"{BASE}/goal-groups/{group['id']}/move", json={})
        assert res.status_code == 400

    def test_move_to_root(self, client, tile):
        parent = _create_group(client, tile.id)
        child = _create_group(client, tile.id, parent_group_id=parent["id"])
        res = client.post(f"{BASE}/goal-groups/{child['id']}/move", json={"target_parent_id": None})
        assert res.status_code == 200
        assert res.get_json()["parent_group_id"] is None

    def test_delete_promotes(self, client, tile):
        parent = _create_group(client, tile.id)
        goal = _create_goal(client, tile.id, parent_group_id=parent["id"])
        res = client.delete(f"{BASE}/goal-groups/{parent['id']}")
        assert res.status_code == 200
        assert res.get_json()["promoted_goals"] == 1
        tree = client.get(f"{BASE}/tiles/{tile.id}/goal-tree").get_json()["tree"]
        assert [n["id"] for n in tree] == [goal["id"]]


class TestGoalEndpoints:
    def test_item_goal_roundtrip(self, client, tile):
        goal = _create_goal(
            client, tile.id, goal_type="item", target_value=2,
            item={"item_id": 11832, "base_name": "Bandos chestplate"},
        )
        assert goal["item_goal"]["base_name"] == "Bandos chestplate"

    def test_update_and_delete(self, client, tile):
        goal = _create_goal(client, tile.id)
        res = client.put(f"{BASE}/goals/{goal['id']}", json={"target_value": 9})
        assert res.get_json()["target_value"] == 9
        assert client.delete(f"{BASE}/goals/{goal['id']}").status_code == 204
        assert client.delete(f"{BASE}/goals/{goal['id']}").status_code == 404

    def test_move_goal(self, client, tile):
        group = _create_group(client, tile.id)
        goal = _create_goal(client, tile.id)
        res = client.post(f"{BASE}/goals/{goal['id']}/move", json={"target_parent_id": group["id"]})
        assert res.status_code == 200
        assert res.get_json()["parent_group_id"] == group["id"]

    @pytest.mark.parametrize("kind", ["goal-groups", "goals"])
    def test_move_with_bad_order_index_is_422(self, client, tile, kind):
        group = _create_group(client, tile.id)
        node = group if kind == "goal-groups" else _create_goal(client, tile.id)
        res = client.post(
            f"{BASE}/{kind}/{node['id']}/move",
            json={"target_parent_id": None, "order_index": "abc"},
        )
        assert res.status_code == 422
        assert client.get(f"{BASE}/tiles/{tile.id}/goal-tree").status_code == 200

    def test_goal_values(self, client, tile):
        goal = _create_goal(client, tile.id)
        res = client.post(f"{BASE}/goals/{goal['id']}/values", json={"value": 2.5, "description": "half"})
        assert res.status_code == 201
        value_id = res.get_json()["id"]
        listing = client.get(f"{BASE}/goals/{goal['id']}/values").get_json()
        assert listing["total"] == 1
        assert client.delete(f"{BASE}/goal-values/{value_id}").status_code == 204


class TestBatchEndpoints:
    def test_reorder(self, client, tile):
        a = _create_goal(client, tile.id)
        b = _create_goal(client, tile.id)
        res = client.post(f"{BASE}/goal-tree/reorder", json={"items": [
            {"id": a["id"], "type": "goal", "order_index": 1},
            {"id": b["id"], "type": "goal", "order_index": 0},
        ]})
        assert res.status_code == 200
        assert res.get_json() == {"reordered": 2}

    def test_reorder_mixed_parents_is_409(self, client, tile):
        group = _create_group(client, tile.id)
        a = _create_goal(client, tile.id)
        b = _create_goal(client, tile.id, parent_group_id=group["id"])
        res = client.post(f"{BASE}/goal-tree/reorder", json={"items": [
            {"id": a["id"], "type": "goal", "order_index": 0},
            {"id": b["id"], "type": "goal", "order_index": 1},
        ]})
        assert res.status_code == 409

    @pytest.mark.parametrize("body", [{}, {"items": "nope"}, {"items": [1, 2]}])
    def test_reorder_malformed(self, client, body):
        assert client.post(f"{BASE}/goal-tree/reorder", json=body).status_code == 400

    def test_move_batch_partial(self, client, tile):
        target = _create_group(client, tile.id)
        goal = _create_goal(client, tile.id)
        res = client.post(f"{BASE}/goal-tree/move-batch", json={
            "items": [{"id": goal["id"], "type": "goal"}, {"id": "ghost", "type": "group"}],
            "target_parent_id": target["id"],
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["success_count"] == 1
        assert body["failure_count"] == 1
        assert body["errors"][0]["id"] == "ghost"
