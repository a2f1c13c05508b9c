"""
Tile auto-completion controller.

Bridges evaluator output into TeamTileSubmission state:

    current status                        tree       action
    ───────────────────────────────────── ────────── ──────────────────────────
    (no row)                              complete   create row as approved
    (no row)                              incomplete nothing
    pending / requires_interaction /      complete   update row to approved
      declined
    approved                              complete   nothing, already_approved
    any                                   incomplete nothing (never downgrades)

The controller is a best-effort side step of submission intake and item
scans, so it never raises: failures are logged and come back as
{"success": False, ...}.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from bingo.models import db
from bingo.models.goals import Goal, TeamGoalProgress
from bingo.models.submission import TeamTileSubmission
from bingo.services import notification_service
from bingo.services.goal_evaluator import EvaluationResult, evaluate
from bingo.services.goal_tree_service import load_tile_tree

logger = logging.getLogger(__name__)

__all__ = [
    "load_tile_tree",
    "load_team_progress",
    "evaluate_tile_completion",
    "get_detailed_evaluation",
    "check_and_auto_complete",
]


def load_team_progress(tile_id: str, team_id: str) -> dict[str, int]:
    """{goal_id: current_value} for one team on one tile."""
    rows = db.session.execute(
        select(TeamGoalProgress.goal_id, TeamGoalProgress.current_value)
        .join(Goal, Goal.id == TeamGoalProgress.goal_id)
        .where(Goal.tile_id == tile_id, TeamGoalProgress.team_id == team_id)
    ).all()
    return {goal_id: current_value for goal_id, current_value in rows}


def _evaluate(tile_id: str, team_id: str) -> EvaluationResult:
    return evaluate(load_tile_tree(tile_id), load_team_progress(tile_id, team_id))


def evaluate_tile_completion(tile_id: str, team_id: str) -> bool:
    try:
        return _evaluate(tile_id, team_id).tile_complete
    except Exception:
        logger.exception("Tile evaluation failed tile_id=%s team_id=%s", tile_id, team_id)
        return False


def get_detailed_evaluation(tile_id: str, team_id: str) -> list[dict]:
    """Evaluated root nodes with per-node progress. Read-only."""
    try:
        result = _evaluate(tile_id, team_id)
    except Exception:
        logger.exception("Detailed evaluation failed tile_id=%s team_id=%s", tile_id, team_id)
        return []
    return [node.to_dict() for node in result.root_nodes]


def _get_tile_submission(tile_id: str, team_id: str) -> TeamTileSubmission | None:
    return db.session.execute(
        select(TeamTileSubmission).where(
            TeamTileSubmission.tile_id == tile_id,
            TeamTileSubmission.team_id == team_id,
        )
    ).scalar_one_or_none()


def _result(
    should_complete: bool,
    submission: TeamTileSubmission | None = None,
    *,
    was_created: bool = False,
    was_updated: bool = False,
    already_approved: bool = False,
) -> dict:
    return {
        "success": True,
        "should_complete": should_complete,
        "auto_completed": was_created or was_updated,
        "was_created": was_created,
        "was_updated": was_updated,
        "already_approved": already_approved,
        "submission": submission.to_dict() if submission is not None else None,
    }


def _approve(row: TeamTileSubmission) -> dict:
    if row.status == "approved":
        return _result(True, row, already_approved=True)
    previous = row.status
    # A concurrent check may have approved the row since it was read
    updated = db.session.execute(
        update(TeamTileSubmission)
        .where(TeamTileSubmission.id == row.id, TeamTileSubmission.status != "approved")
        .values(status="approved")
        .execution_options(synchronize_session=False)
    ).rowcount
    db.session.commit()
    if not updated:
        logger.info(
            "Tile already approved concurrently tile_id=%s team_id=%s", row.tile_id, row.team_id,
        )
        return _result(True, row, already_approved=True)
    logger.info(
        "Tile auto-completed tile_id=%s team_id=%s (%s → approved)",
        row.tile_id, row.team_id, previous,
    )
    return _result(True, row, was_updated=True)


def _transition(tile_id: str, team_id: str) -> dict:
    if not _evaluate(tile_id, team_id).tile_complete:
        return _result(False)

    row = _get_tile_submission(tile_id, team_id)
    if row is not None:
        return _approve(row)

    row = TeamTileSubmission(tile_id=tile_id, team_id=team_id, status="approved")
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request inserted the (tile, team) row first.
        db.session.rollback()
        row = _get_tile_submission(tile_id, team_id)
        if row is None:
            raise
        logger.info(
            "Tile submission insert raced tile_id=%s team_id=%s, re-read status=%s",
            tile_id, team_id, row.status,
        )
        return _approve(row)

    logger.info("Tile auto-completed tile_id=%s team_id=%s (new submission)", tile_id, team_id)
    return _result(True, row, was_created=True)


def check_and_auto_complete(tile_id: str, team_id: str) -> dict:
    """
    Evaluate the tile for the team and approve its submission when complete.

    Safe to call repeatedly: a second call without progress changes reports
    already_approved and writes nothing.
    """
    try:
        result = _transition(tile_id, team_id)
    except Exception as exc:
        db.session.rollback()
        logger.exception("Auto-completion check failed tile_id=%s team_id=%s", tile_id, team_id)
        return {"success": False, "should_complete": False, "error": str(exc)}

    if result["auto_completed"]:
        try:
            notification_service.notify_tile_completed(tile_id, team_id)
        except Exception:
            db.session.rollback()
            logger.exception(
                "Completion notification failed tile_id=%s team_id=%s", tile_id, team_id,
            )
    return result
