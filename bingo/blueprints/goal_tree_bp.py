"""
Goal tree blueprint — organizer editing of a tile's goals and goal groups.

Endpoints (all under /api/v1):
    GET    /tiles/<tile_id>/goal-tree           nested tree for the editor
    POST   /tiles/<tile_id>/goal-groups         create group
    PUT    /goal-groups/<group_id>              update operator / name / min_required_goals
    DELETE /goal-groups/<group_id>              delete, promoting children
    POST   /goal-groups/<group_id>/move         re-parent group (cycle-checked)
    POST   /tiles/<tile_id>/goals               create goal
    PUT    /goals/<goal_id>                     update goal
    DELETE /goals/<goal_id>                     delete goal
    POST   /goals/<goal_id>/move                re-parent goal
    POST   /goal-tree/reorder                   atomic sibling reorder
    POST   /goal-tree/move-batch                best-effort multi-item move
    GET    /goals/<goal_id>/values              list predefined values
    POST   /goals/<goal_id>/values              add predefined value
    DELETE /goal-values/<value_id>              delete predefined value
"""

import logging

from flask import Blueprint, jsonify

from bingo.blueprints import MalformedRequest, json_body, register_error_handlers, require
from bingo.models.goals import DEFAULT_MIN_REQUIRED_GOALS
from bingo.services import goal_tree_service as svc

logger = logging.getLogger(__name__)

goal_tree_bp = Blueprint("goal_tree", __name__, url_prefix="/api/v1")

register_error_handlers(goal_tree_bp)


def _item_list(data: dict) -> list:
    require(data, "items")
    items = data["items"]
    if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
        raise MalformedRequest("items must be a list of objects")
    return items


# ── Tree ─────────────────────────────────────────────────────────────────────


@goal_tree_bp.route("/tiles/<tile_id>/goal-tree", methods=["GET"])
def get_goal_tree(tile_id):
    return jsonify({"tile_id": tile_id, "tree": svc.get_goal_tree(tile_id)}), 200


# ── Groups ───────────────────────────────────────────────────────────────────


@goal_tree_bp.route("/tiles/<tile_id>/goal-groups", methods=["POST"])
def create_group(tile_id):
    """Body: {logical_operator, parent_group_id?, min_required_goals?, name?}"""
    data = json_body()
    require(data, "logical_operator")
    group = svc.create_group(
        tile_id,
        data["logical_operator"],
        parent_group_id=data.get("parent_group_id"),
        min_required_goals=data.get("min_required_goals", DEFAULT_MIN_REQUIRED_GOALS),
        name=data.get("name"),
    )
    return jsonify(group.to_dict()), 201


@goal_tree_bp.route("/goal-groups/<group_id>", methods=["PUT"])
def update_group(group_id):
    """Only supplied fields change. "name": null or "" clears the label."""
    data = json_body()
    kwargs = {
        "logical_operator": data.get("logical_operator"),
        "min_required_goals": data.get("min_required_goals"),
    }
    if "name" in data:
        kwargs["name"] = data["name"]
    group = svc.update_group(group_id, **kwargs)
    return jsonify(group.to_dict()), 200


@goal_tree_bp.route("/goal-groups/<group_id>", methods=["DELETE"])
def delete_group(group_id):
    return jsonify(svc.delete_group(group_id)), 200


@goal_tree_bp.route("/goal-groups/<group_id>/move", methods=["POST"])
def move_group(group_id):
    """Body: {target_parent_id (null = root level), order_index?}"""
    data = json_body()
    require(data, "target_parent_id")
    group = svc.move_group_to_group(
        group_id, data["target_parent_id"], order_index=data.get("order_index"),
    )
    return jsonify(group.to_dict()), 200


# ── Goals ────────────────────────────────────────────────────────────────────


@goal_tree_bp.route("/tiles/<tile_id>/goals", methods=["POST"])
def create_goal(tile_id):
    """Body: {description, target_value, parent_group_id?, goal_type?, item?}"""
    data = json_body()
    require(data, "target_value")
    goal = svc.create_goal(
        tile_id,
        data.get("description", ""),
        data["target_value"],
        parent_group_id=data.get("parent_group_id"),
        goal_type=data.get("goal_type", "generic"),
        item=data.get("item"),
    )
    return jsonify(goal.to_dict()), 201


@goal_tree_bp.route("/goals/<goal_id>", methods=["PUT"])
def update_goal(goal_id):
    data = json_body()
    goal = svc.update_goal(
        goal_id,
        description=data.get("description"),
        target_value=data.get("target_value"),
    )
    return jsonify(goal.to_dict()), 200


@goal_tree_bp.route("/goals/<goal_id>", methods=["DELETE"])
def delete_goal(goal_id):
    svc.delete_goal(goal_id)
    return "", 204


@goal_tree_bp.route("/goals/<goal_id>/move", methods=["POST"])
def move_goal(goal_id):
    data = json_body()
    require(data, "target_parent_id")
    goal = svc.move_goal_to_group(
        goal_id, data["target_parent_id"], order_index=data.get("order_index"),
    )
    return jsonify(goal.to_dict()), 200


# ── Ordering & batch moves ───────────────────────────────────────────────────


@goal_tree_bp.route("/goal-tree/reorder", methods=["POST"])
def reorder():
    """Body: {items: [{id, type: "goal"|"group", order_index}]} — all or nothing."""
    items = _item_list(json_body())
    return jsonify({"reordered": svc.reorder_items(items)}), 200


@goal_tree_bp.route("/goal-tree/move-batch", methods=["POST"])
def move_batch():
    """Body: {items: [{id, type}], target_parent_id} — per-item results."""
    data = json_body()
    items = _item_list(data)
    require(data, "target_parent_id")
    return jsonify(svc.move_multiple_items(items, data["target_parent_id"])), 200


# ── Goal values ──────────────────────────────────────────────────────────────


@goal_tree_bp.route("/goals/<goal_id>/values", methods=["GET"])
def list_goal_values(goal_id):
    values = svc.list_goal_values(goal_id)
    return jsonify({"items": [v.to_dict() for v in values], "total": len(values)}), 200


@goal_tree_bp.route("/goals/<goal_id>/values", methods=["POST"])
def add_goal_value(goal_id):
    data = json_body()
    require(data, "value")
    goal_value = svc.add_goal_value(goal_id, data["value"], data.get("description", ""))
    return jsonify(goal_value.to_dict()), 201


@goal_tree_bp.route("/goal-values/<value_id>", methods=["DELETE"])
def delete_goal_value(value_id):
    svc.delete_goal_value(value_id)
    return "", 204
