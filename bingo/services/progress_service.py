"""
Team goal progress — Service Layer.

Progress values only ever move up through this module. Every write that
changes a value is followed by a best-effort auto-completion check for the
affected (tile, team) pair; a failed check never fails the write.

Item scans:
    The game client reports owned items by name and quantity. An item matches
    an item goal when its base name (variant suffix stripped, case-insensitive)
    equals the goal's base name. The goal's new value is
    min(quantity, target_value), written only when it beats the stored value.
"""

from __future__ import annotations

import logging
import re

from sqlalchemy import select

from bingo.core.exceptions import NotFoundError, ValidationError
from bingo.models import db
from bingo.models.bingo import Team, Tile
from bingo.models.goals import Goal, ItemGoal, TeamGoalProgress
from bingo.services import tile_completion_service

logger = logging.getLogger(__name__)

# "Amulet of glory (4)" → "Amulet of glory"
_VARIANT_SUFFIX = re.compile(r"\s*\([^()]*\)\s*$")


def parse_item_base_name(item_name: str | None) -> str:
    return _VARIANT_SUFFIX.sub("", (item_name or "").strip()).strip()


def item_matches_base_name(item_name: str | None, base_name: str | None) -> bool:
    parsed = parse_item_base_name(item_name)
    return bool(parsed) and parsed.lower() == (base_name or "").strip().lower()


def get_progress_row(goal_id: str, team_id: str) -> TeamGoalProgress | None:
    return db.session.execute(
        select(TeamGoalProgress).where(
            TeamGoalProgress.goal_id == goal_id,
            TeamGoalProgress.team_id == team_id,
        )
    ).scalar_one_or_none()


def record_goal_progress(goal_id: str, team_id: str, value: int) -> tuple[int, int, bool]:
    """
    Stage a monotonic progress upsert; the caller commits.

    Returns:
        (previous_value, new_value, changed). Nothing is staged unless value
        is strictly greater than the stored value (0 when no row exists).
    """
    row = get_progress_row(goal_id, team_id)
    previous = row.current_value if row is not None else 0
    if value <= previous:
        return previous, previous, False

    if row is None:
        db.session.add(TeamGoalProgress(goal_id=goal_id, team_id=team_id, current_value=value))
    else:
        row.current_value = value
    return previous, value, True


def set_goal_progress(goal_id: str, team_id: str, value) -> dict:
    """Raise one team's progress on one goal (manual entry or external feed)."""
    goal = db.session.get(Goal, goal_id)
    if goal is None:
        raise NotFoundError("Goal", goal_id)
    if db.session.get(Team, team_id) is None:
        raise NotFoundError("Team", team_id)
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError("value must be an integer", details={"value": value})
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValidationError("value must be an integer", details={"value": value}) from None
    if value < 0:
        raise ValidationError("value must not be negative", details={"value": value})

    previous, new, changed = record_goal_progress(goal_id, team_id, value)
    completion = None
    if changed:
        db.session.commit()
        logger.info(
            "Goal progress raised goal_id=%s team_id=%s %d → %d",
            goal_id, team_id, previous, new,
        )
        completion = tile_completion_service.check_and_auto_complete(goal.tile_id, team_id)

    return {
        "goal_id": goal_id,
        "team_id": team_id,
        "previous_value": previous,
        "current_value": new,
        "changed": changed,
        "completion": completion,
    }


def _parse_scan_item(raw) -> tuple[int | None, str, int]:
    if not isinstance(raw, dict):
        raise ValidationError("Each item must be an object", details={"item": raw})
    item_name = raw.get("item_name")
    if not isinstance(item_name, str) or not item_name.strip():
        raise ValidationError("item_name is required", details={"item": raw})
    try:
        quantity = int(raw.get("quantity", 1))
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer", details={"item": raw}) from None
    return raw.get("item_id"), item_name, quantity


def process_item_scan(team_id: str, items: list[dict]) -> dict:
    """
    Match reported items against the item goals of the team's event.

    Args:
        team_id: Team the scanning player belongs to.
        items: [{"item_id", "item_name", "quantity"}]

    Returns:
        {"matched": [...], "tiles_auto_completed": [...],
         "scanned_items": int, "matched_goals": int}
    """
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team", team_id)
    if not items:
        raise ValidationError("No items provided")
    parsed = [_parse_scan_item(raw) for raw in items]

    item_goals = db.session.execute(
        select(Goal, ItemGoal)
        .join(ItemGoal, ItemGoal.goal_id == Goal.id)
        .join(Tile, Tile.id == Goal.tile_id)
        .where(Tile.event_id == team.event_id)
    ).all()

    matched = []
    pairs: dict[tuple[str, str], None] = {}
    for _item_id, item_name, quantity in parsed:
        for goal, item_goal in item_goals:
            if not item_matches_base_name(item_name, item_goal.base_name):
                continue
            new_value = min(quantity, goal.target_value)
            previous, current, changed = record_goal_progress(goal.id, team_id, new_value)
            if not changed:
                continue
            matched.append({
                "goal_id": goal.id,
                "tile_id": goal.tile_id,
                "item_name": item_name,
                "base_name": item_goal.base_name,
                "previous_value": previous,
                "new_value": current,
                "target_value": goal.target_value,
                "is_complete": current >= goal.target_value,
            })
            pairs.setdefault((goal.tile_id, team_id), None)

    db.session.commit()
    logger.info(
        "Item scan team_id=%s scanned=%d matched=%d tiles_to_check=%d",
        team_id, len(parsed), len(matched), len(pairs),
    )

    tiles_auto_completed = []
    for tile_id, pair_team_id in pairs:
        result = tile_completion_service.check_and_auto_complete(tile_id, pair_team_id)
        if result.get("success") and result.get("auto_completed"):
            tiles_auto_completed.append(tile_id)

    return {
        "matched": matched,
        "tiles_auto_completed": tiles_auto_completed,
        "scanned_items": len(parsed),
        "matched_goals": len(matched),
    }
