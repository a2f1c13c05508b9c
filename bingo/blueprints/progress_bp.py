"""
Progress blueprint — evaluation reads, completion checks, item scans,
submissions and notifications.

Endpoints (all under /api/v1):
    GET  /tiles/<tile_id>/teams/<team_id>/evaluation          evaluated goal tree
    POST /tiles/<tile_id>/teams/<team_id>/check-completion    run auto-completion
    POST /teams/<team_id>/items/check                         item scan from the game client
    POST /tiles/<tile_id>/teams/<team_id>/submissions         submit evidence
    POST /submissions/<submission_id>/review                  organizer review
    PUT  /tiles/<tile_id>/teams/<team_id>/status              manual tile status
    PUT  /goals/<goal_id>/teams/<team_id>/progress            raise goal progress
    GET  /teams/<team_id>/notifications                       completion notifications
"""

import logging

from flask import Blueprint, jsonify

from bingo.blueprints import (
    MalformedRequest,
    json_body,
    query_int,
    register_error_handlers,
    require,
)
from bingo.services import (
    notification_service,
    progress_service,
    submission_service,
    tile_completion_service,
)

logger = logging.getLogger(__name__)

progress_bp = Blueprint("progress", __name__, url_prefix="/api/v1")

register_error_handlers(progress_bp)


# ── Evaluation & completion ──────────────────────────────────────────────────


@progress_bp.route("/tiles/<tile_id>/teams/<team_id>/evaluation", methods=["GET"])
def get_evaluation(tile_id, team_id):
    """Side-effect free. An empty or unreadable tree yields no nodes."""
    nodes = tile_completion_service.get_detailed_evaluation(tile_id, team_id)
    return jsonify({
        "tile_id": tile_id,
        "team_id": team_id,
        "tile_complete": bool(nodes) and all(n["is_complete"] for n in nodes),
        "root_nodes": nodes,
    }), 200


@progress_bp.route("/tiles/<tile_id>/teams/<team_id>/check-completion", methods=["POST"])
def check_completion(tile_id, team_id):
    return jsonify(tile_completion_service.check_and_auto_complete(tile_id, team_id)), 200


@progress_bp.route("/teams/<team_id>/items/check", methods=["POST"])
def check_items(team_id):
    """Body: {items: [{item_id?, item_name, quantity}]}"""
    data = json_body()
    require(data, "items")
    if not isinstance(data["items"], list):
        raise MalformedRequest("items must be a list")
    return jsonify(progress_service.process_item_scan(team_id, data["items"])), 200


@progress_bp.route("/goals/<goal_id>/teams/<team_id>/progress", methods=["PUT"])
def set_progress(goal_id, team_id):
    """Body: {value}. Lower values than the stored one are ignored."""
    data = json_body()
    require(data, "value")
    return jsonify(progress_service.set_goal_progress(goal_id, team_id, data["value"])), 200


# ── Submissions ──────────────────────────────────────────────────────────────


@progress_bp.route("/tiles/<tile_id>/teams/<team_id>/submissions", methods=["POST"])
def submit_evidence(tile_id, team_id):
    """
    Body: {submitted_by?, evidence_url?, goal_id?, submission_value?,
           item_id?, source_name?, is_auto_submission?}
    """
    data = json_body()
    submission, completion = submission_service.submit_evidence(
        tile_id,
        team_id,
        data.get("submitted_by"),
        evidence_url=data.get("evidence_url"),
        goal_id=data.get("goal_id"),
        submission_value=data.get("submission_value", 1.0),
        item_id=data.get("item_id"),
        source_name=data.get("source_name"),
        is_auto_submission=bool(data.get("is_auto_submission", False)),
    )
    return jsonify({"submission": submission.to_dict(), "completion": completion}), 201


@progress_bp.route("/submissions/<submission_id>/review", methods=["POST"])
def review_submission(submission_id):
    """Body: {status, reviewed_by?}"""
    data = json_body()
    require(data, "status")
    submission, completion = submission_service.review_submission(
        submission_id, data["status"], reviewed_by=data.get("reviewed_by"),
    )
    return jsonify({"submission": submission.to_dict(), "completion": completion}), 200


@progress_bp.route("/tiles/<tile_id>/teams/<team_id>/status", methods=["PUT"])
def set_tile_status(tile_id, team_id):
    """Body: {status: pending|requires_interaction|declined, reviewed_by?}"""
    data = json_body()
    require(data, "status")
    tile_submission = submission_service.set_tile_submission_status(
        tile_id, team_id, data["status"], reviewed_by=data.get("reviewed_by"),
    )
    return jsonify(tile_submission.to_dict()), 200


# ── Notifications ────────────────────────────────────────────────────────────


@progress_bp.route("/teams/<team_id>/notifications", methods=["GET"])
def list_notifications(team_id):
    notifications = notification_service.list_notifications(
        team_id, limit=query_int("limit", 50),
    )
    return jsonify({
        "items": [n.to_dict() for n in notifications],
        "total": len(notifications),
    }), 200
