"""
Tile submission intake & review — Service Layer.

Evidence intake never approves a TeamTileSubmission by itself: it creates the
row as "pending" or leaves an existing row's status alone. Only the
auto-completion controller moves a tile submission to "approved".

Individual Submissions can be approved directly when they carry an item id
matching one of the tile's item goals. Approved goal-linked submissions feed
TeamGoalProgress with the sum of their values.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone

from sqlalchemy import func, select

from bingo.core.exceptions import InvalidStateError, NotFoundError, ValidationError
from bingo.models import db
from bingo.models.bingo import Team, Tile
from bingo.models.goals import Goal, ItemGoal
from bingo.models.submission import (
    MANUAL_TILE_STATUSES,
    SUBMISSION_STATUSES,
    Submission,
    TeamTileSubmission,
)
from bingo.services import progress_service, tile_completion_service

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_tile_submission(tile_id: str, team_id: str) -> TeamTileSubmission | None:
    return db.session.execute(
        select(TeamTileSubmission).where(
            TeamTileSubmission.tile_id == tile_id,
            TeamTileSubmission.team_id == team_id,
        )
    ).scalar_one_or_none()


def _approved_total(goal_id: str, team_id: str) -> float:
    return db.session.execute(
        select(func.coalesce(func.sum(Submission.submission_value), 0.0))
        .join(TeamTileSubmission, TeamTileSubmission.id == Submission.team_tile_submission_id)
        .where(
            Submission.goal_id == goal_id,
            Submission.status == "approved",
            TeamTileSubmission.team_id == team_id,
        )
    ).scalar() or 0.0


def _sync_goal_progress(goal_id: str, team_id: str) -> tuple[int, int, bool]:
    """
    Raise goal progress to the team's approved submission total (never lowers it).

    Progress counts whole units: a fractional total is floored, so 1.5 approved
    counts as 1 until another submission completes the unit.
    """
    db.session.flush()
    total = math.floor(_approved_total(goal_id, team_id))
    return progress_service.record_goal_progress(goal_id, team_id, total)


def _match_item_goal(tile_id: str, item_id: int) -> Goal | None:
    return db.session.execute(
        select(Goal)
        .join(ItemGoal, ItemGoal.goal_id == Goal.id)
        .where(Goal.tile_id == tile_id, ItemGoal.item_id == item_id)
        .order_by(Goal.order_index)
    ).scalars().first()


def submit_evidence(
    tile_id: str,
    team_id: str,
    submitted_by: str | None = None,
    *,
    evidence_url: str | None = None,
    goal_id: str | None = None,
    submission_value: float = 1.0,
    item_id: int | None = None,
    source_name: str | None = None,
    is_auto_submission: bool = False,
) -> tuple[Submission, dict]:
    """
    Record one piece of evidence for a team's tile.

    Returns:
        (submission, completion) where completion is the controller result.

    Raises:
        NotFoundError: tile, team or goal missing.
        ValidationError: tile and team belong to different events.
        InvalidStateError: the team's tile submission is already approved.
    """
    tile = db.session.get(Tile, tile_id)
    if tile is None:
        raise NotFoundError("Tile", tile_id)
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team", team_id)
    if tile.event_id != team.event_id:
        raise ValidationError(
            "Team does not take part in this tile's event",
            details={"tile_id": tile_id, "team_id": team_id},
        )
    if goal_id is not None:
        goal = db.session.get(Goal, goal_id)
        if goal is None or goal.tile_id != tile_id:
            raise NotFoundError("Goal", goal_id, scope=f"tile={tile_id}")
    try:
        submission_value = float(submission_value)
    except (TypeError, ValueError):
        raise ValidationError(
            "submission_value must be a number", details={"submission_value": submission_value},
        ) from None
    if item_id is not None:
        try:
            item_id = int(item_id)
        except (TypeError, ValueError):
            raise ValidationError("item_id must be an integer", details={"item_id": item_id}) from None

    tile_submission = get_tile_submission(tile_id, team_id)
    if tile_submission is not None and tile_submission.status == "approved":
        raise InvalidStateError(
            "Tile submission already approved",
            details={"tile_id": tile_id, "team_id": team_id},
        )
    if tile_submission is None:
        tile_submission = TeamTileSubmission(tile_id=tile_id, team_id=team_id, status="pending")
        db.session.add(tile_submission)
        db.session.flush()

    auto_approve = False
    if item_id is not None:
        matched_goal = _match_item_goal(tile_id, item_id)
        if matched_goal is not None:
            goal_id = matched_goal.id
            auto_approve = True

    submission = Submission(
        team_tile_submission_id=tile_submission.id,
        goal_id=goal_id,
        submitted_by=submitted_by,
        evidence_url=evidence_url,
        submission_value=submission_value,
        status="approved" if auto_approve else "pending",
        is_auto_submission=is_auto_submission,
        source_name=source_name,
        source_item_id=item_id,
        reviewed_at=_utcnow() if auto_approve else None,
    )
    db.session.add(submission)
    if auto_approve:
        _sync_goal_progress(goal_id, team_id)
    db.session.commit()
    logger.info(
        "Submission recorded id=%s tile_id=%s team_id=%s goal_id=%s auto_approved=%s",
        submission.id, tile_id, team_id, goal_id, auto_approve,
    )

    completion = tile_completion_service.check_and_auto_complete(tile_id, team_id)
    return submission, completion


def review_submission(
    submission_id: str,
    status: str,
    reviewed_by: str | None = None,
) -> tuple[Submission, dict | None]:
    """
    Organizer decision on one Submission.

    Approving a goal-linked submission raises that goal's progress and
    re-runs the auto-completion check; other decisions never touch progress.
    """
    if status not in SUBMISSION_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(SUBMISSION_STATUSES))}",
            details={"status": status},
        )
    submission = db.session.get(Submission, submission_id)
    if submission is None:
        raise NotFoundError("Submission", submission_id)

    tile_submission = submission.team_tile_submission
    submission.status = status
    submission.reviewed_at = _utcnow()
    if reviewed_by is not None:
        tile_submission.reviewed_by = reviewed_by
    if status == "approved" and submission.goal_id is not None:
        _sync_goal_progress(submission.goal_id, tile_submission.team_id)
    db.session.commit()
    logger.info("Submission reviewed id=%s status=%s", submission_id, status)

    completion = None
    if status == "approved":
        completion = tile_completion_service.check_and_auto_complete(
            tile_submission.tile_id, tile_submission.team_id,
        )
    return submission, completion


def set_tile_submission_status(
    tile_id: str,
    team_id: str,
    status: str,
    reviewed_by: str | None = None,
) -> TeamTileSubmission:
    """
    Manually mark a team's tile submission pending / requires_interaction / declined.

    Raises:
        ValidationError: status is not a manual status ("approved" included).
        NotFoundError: the team has no submission for the tile.
        InvalidStateError: the submission is already approved.
    """
    if status not in MANUAL_TILE_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(MANUAL_TILE_STATUSES))}",
            details={"status": status},
        )
    tile_submission = get_tile_submission(tile_id, team_id)
    if tile_submission is None:
        raise NotFoundError("TeamTileSubmission", scope=f"tile={tile_id}, team={team_id}")
    if tile_submission.status == "approved":
        raise InvalidStateError(
            "Approved tile submissions cannot be changed",
            details={"tile_id": tile_id, "team_id": team_id},
        )

    tile_submission.status = status
    if reviewed_by is not None:
        tile_submission.reviewed_by = reviewed_by
    db.session.commit()
    logger.info("Tile submission status set tile_id=%s team_id=%s status=%s", tile_id, team_id, status)
    return tile_submission
