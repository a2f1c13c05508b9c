"""
Goal Tree — Service Layer.

Structural operations on a tile's goal / goal-group forest:
    - Group CRUD:        create, update, promotion delete
    - Goal CRUD:         create (generic or item), update, delete, goal values
    - Moves:             goal → group, group → group (cycle-checked), best-effort batch
    - Ordering:          atomic sibling reorder
    - Reads:             bulk tile load, nested editor tree

Rules:
  - Single-item operations commit exactly once; any SQLAlchemyError rolls the
    whole operation back and is re-raised.
  - move_multiple_items is best-effort: every item is its own transaction and
    failures are reported per item.
  - A parent group must belong to the same tile as the node placed under it.
  - Concurrent edits are not serialized; the last writer for a row wins.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from bingo.core.exceptions import (
    CircularReferenceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bingo.models import db
from bingo.models.bingo import Tile
from bingo.models.goals import (
    DEFAULT_MIN_REQUIRED_GOALS,
    GOAL_TYPES,
    LOGICAL_OPERATORS,
    Goal,
    GoalGroup,
    GoalValue,
    ItemGoal,
)
from bingo.services.goal_evaluator import TileTree

logger = logging.getLogger(__name__)

NODE_TYPES = {"goal", "group"}

_UNSET = object()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _commit(action: str) -> None:
    """Commit the pending unit of work or roll all of it back."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Goal tree %s failed, rolled back", action)
        raise


# ── Lookups & validation ─────────────────────────────────────────────────────


def get_tile(tile_id: str) -> Tile:
    tile = db.session.get(Tile, tile_id)
    if tile is None:
        raise NotFoundError("Tile", tile_id)
    return tile


def get_group(group_id: str) -> GoalGroup:
    group = db.session.get(GoalGroup, group_id)
    if group is None:
        raise NotFoundError("GoalGroup", group_id)
    return group


def get_goal(goal_id: str) -> Goal:
    goal = db.session.get(Goal, goal_id)
    if goal is None:
        raise NotFoundError("Goal", goal_id)
    return goal


def _get_parent_group(tile_id: str, parent_group_id: str) -> GoalGroup:
    """Resolve a parent group scoped to the tile; other tiles' groups are 'not found'."""
    parent = db.session.execute(
        select(GoalGroup).where(
            GoalGroup.id == parent_group_id,
            GoalGroup.tile_id == tile_id,
        )
    ).scalar_one_or_none()
    if parent is None:
        raise NotFoundError("GoalGroup", parent_group_id, scope=f"tile={tile_id}")
    return parent


def _normalize_operator(logical_operator: str | None) -> str:
    op = (logical_operator or "").strip().upper()
    if op not in LOGICAL_OPERATORS:
        raise ValidationError(
            f"logical_operator must be one of: {', '.join(sorted(LOGICAL_OPERATORS))}",
            details={"logical_operator": logical_operator},
        )
    return op


def _as_int(value, field: str) -> int:
    """Integer coercion that rejects fractional numbers instead of truncating them."""
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be an integer", details={field: value})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: value}) from None


def _validate_min_required(value) -> int:
    number = _as_int(value, "min_required_goals")
    if number < 1:
        raise ValidationError(
            "min_required_goals must be at least 1",
            details={"min_required_goals": value},
        )
    return number


def _validate_target(value) -> int:
    number = _as_int(value, "target_value")
    if number < 1:
        raise ValidationError("target_value must be at least 1", details={"target_value": value})
    return number


def _normalize_name(name: str | None) -> str | None:
    if name is None:
        return None
    name = name.strip()
    return name or None


def _count_sibling_groups(tile_id: str, parent_group_id: str | None) -> int:
    return db.session.execute(
        select(func.count(GoalGroup.id)).where(
            GoalGroup.tile_id == tile_id,
            GoalGroup.parent_group_id.is_(None)
            if parent_group_id is None
            else GoalGroup.parent_group_id == parent_group_id,
        )
    ).scalar() or 0


def _count_sibling_goals(tile_id: str, parent_group_id: str | None) -> int:
    return db.session.execute(
        select(func.count(Goal.id)).where(
            Goal.tile_id == tile_id,
            Goal.parent_group_id.is_(None)
            if parent_group_id is None
            else Goal.parent_group_id == parent_group_id,
        )
    ).scalar() or 0


# ── Bulk reads ───────────────────────────────────────────────────────────────


def load_tile_rows(tile_id: str) -> tuple[list[GoalGroup], list[Goal]]:
    """One query per table for every group and goal of a tile."""
    groups = db.session.execute(
        select(GoalGroup).where(GoalGroup.tile_id == tile_id)
    ).scalars().all()
    goals = db.session.execute(
        select(Goal).options(selectinload(Goal.item_goal)).where(Goal.tile_id == tile_id)
    ).scalars().all()
    return list(groups), list(goals)


def load_tile_tree(tile_id: str) -> TileTree:
    groups, goals = load_tile_rows(tile_id)
    return TileTree.build(groups, goals)


def get_goal_tree(tile_id: str) -> list[dict]:
    """
    Nested structural tree for the organizer editor.

    At every level groups come first, then goals, each ordered by order_index.
    """
    get_tile(tile_id)
    tree = load_tile_tree(tile_id)

    def _build(parent_id: str | None) -> list[dict]:
        nodes = [
            {
                "type": "group",
                "id": group_id,
                "data": tree.groups[group_id].to_dict(),
                "children": _build(group_id),
            }
            for group_id in tree.child_group_ids(parent_id)
        ]
        nodes.extend(
            {"type": "goal", "id": goal_id, "data": tree.goals[goal_id].to_dict()}
            for goal_id in tree.child_goal_ids(parent_id)
        )
        return nodes

    return _build(None)


# ── Goal groups ──────────────────────────────────────────────────────────────


def create_group(
    tile_id: str,
    logical_operator: str,
    parent_group_id: str | None = None,
    min_required_goals: int = DEFAULT_MIN_REQUIRED_GOALS,
    name: str | None = None,
) -> GoalGroup:
    """
    Create a group appended after its existing sibling groups.

    Raises:
        NotFoundError: tile missing, or parent_group_id not a group of this tile.
        ValidationError: unknown operator or min_required_goals < 1.
    """
    get_tile(tile_id)
    op = _normalize_operator(logical_operator)
    min_required = _validate_min_required(min_required_goals)
    if parent_group_id is not None:
        _get_parent_group(tile_id, parent_group_id)

    group = GoalGroup(
        tile_id=tile_id,
        parent_group_id=parent_group_id,
        logical_operator=op,
        min_required_goals=min_required,
        name=_normalize_name(name),
        order_index=_count_sibling_groups(tile_id, parent_group_id),
    )
    db.session.add(group)
    _commit("create_group")
    logger.info(
        "Goal group created id=%s tile_id=%s parent=%s operator=%s",
        group.id, tile_id, parent_group_id, op,
    )
    return group


def update_group(
    group_id: str,
    *,
    logical_operator: str | None = None,
    name=_UNSET,
    min_required_goals: int | None = None,
) -> GoalGroup:
    """Partial update. A blank or whitespace-only name is stored as NULL."""
    group = get_group(group_id)
    if logical_operator is not None:
        group.logical_operator = _normalize_operator(logical_operator)
    if name is not _UNSET:
        group.name = _normalize_name(name)
    if min_required_goals is not None:
        group.min_required_goals = _validate_min_required(min_required_goals)
    group.updated_at = _utcnow()
    _commit("update_group")
    return group


def delete_group(group_id: str) -> dict:
    """
    Promotion delete: direct child groups and goals move up to the deleted
    group's parent (root level if it was a root), then the group is removed.
    All of it happens in one transaction.
    """
    group = get_group(group_id)
    new_parent = group.parent_group_id
    now = _utcnow()
    try:
        promoted_groups = db.session.execute(
            update(GoalGroup)
            .where(GoalGroup.parent_group_id == group_id)
            .values(parent_group_id=new_parent, updated_at=now)
        ).rowcount
        promoted_goals = db.session.execute(
            update(Goal)
            .where(Goal.parent_group_id == group_id)
            .values(parent_group_id=new_parent, updated_at=now)
        ).rowcount
        db.session.delete(group)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Goal group delete failed id=%s, rolled back", group_id)
        raise

    logger.info(
        "Goal group deleted id=%s promoted_groups=%d promoted_goals=%d new_parent=%s",
        group_id, promoted_groups, promoted_goals, new_parent,
    )
    return {
        "deleted": group_id,
        "new_parent_id": new_parent,
        "promoted_groups": promoted_groups,
        "promoted_goals": promoted_goals,
    }


# ── Moves ────────────────────────────────────────────────────────────────────


def would_create_cycle(moving_group_id: str, target_parent_id: str | None) -> bool:
    """
    Walk upward from target_parent_id through parent links.

    Reaching moving_group_id means the move would make the group its own
    ancestor. Reaching NULL (the root level) means the move is safe. A chain
    that revisits a node is already corrupt and is reported as a cycle too.
    """
    cursor = target_parent_id
    visited: set[str] = set()
    while cursor is not None:
        if cursor == moving_group_id or cursor in visited:
            return True
        visited.add(cursor)
        cursor = db.session.execute(
            select(GoalGroup.parent_group_id).where(GoalGroup.id == cursor)
        ).scalar_one_or_none()
    return False


def move_goal_to_group(
    goal_id: str,
    target_parent_id: str | None,
    order_index: int | None = None,
) -> Goal:
    """Re-parent a goal. Goals are leaves, so no cycle check is needed."""
    goal = get_goal(goal_id)
    if order_index is not None:
        order_index = _as_int(order_index, "order_index")
    if target_parent_id is not None:
        _get_parent_group(goal.tile_id, target_parent_id)

    goal.parent_group_id = target_parent_id
    if order_index is not None:
        goal.order_index = order_index
    goal.updated_at = _utcnow()
    _commit("move_goal")
    logger.info("Goal moved id=%s new_parent=%s", goal_id, target_parent_id)
    return goal


def move_group_to_group(
    group_id: str,
    target_parent_id: str | None,
    order_index: int | None = None,
) -> GoalGroup:
    """
    Re-parent a group after the cycle check. Nothing is written on rejection.

    Raises:
        NotFoundError: group missing, or target not a group of the same tile.
        CircularReferenceError: target is the group itself or one of its descendants.
    """
    group = get_group(group_id)
    if order_index is not None:
        order_index = _as_int(order_index, "order_index")
    if target_parent_id is not None:
        _get_parent_group(group.tile_id, target_parent_id)
        if would_create_cycle(group_id, target_parent_id):
            logger.warning(
                "Rejected circular group move id=%s target=%s", group_id, target_parent_id,
            )
            raise CircularReferenceError(group_id, target_parent_id)

    group.parent_group_id = target_parent_id
    if order_index is not None:
        group.order_index = order_index
    group.updated_at = _utcnow()
    _commit("move_group")
    logger.info("Goal group moved id=%s new_parent=%s", group_id, target_parent_id)
    return group


def _parse_node_ref(item: dict) -> tuple[str, str]:
    node_id = item.get("id")
    node_type = item.get("type")
    if not node_id or node_type not in NODE_TYPES:
        raise ValidationError(
            "Each item needs an id and a type of 'goal' or 'group'",
            details={"item": item},
        )
    return node_id, node_type


def reorder_items(items: list[dict]) -> int:
    """
    Assign order_index to a set of siblings in one transaction.

    Every item must exist and all of them must share one tile and one parent;
    otherwise the whole batch is rejected before any write.
    """
    if not items:
        return 0

    resolved = []
    for item in items:
        node_id, node_type = _parse_node_ref(item)
        if "order_index" not in item:
            raise ValidationError("order_index is required", details={"item": item})
        order_index = _as_int(item["order_index"], "order_index")
        node = db.session.get(Goal if node_type == "goal" else GoalGroup, node_id)
        if node is None:
            raise InvalidStateError(
                f"Unknown {node_type} in reorder batch", details={"id": node_id},
            )
        resolved.append((node, order_index))

    parents = {(node.tile_id, node.parent_group_id) for node, _ in resolved}
    if len(parents) > 1:
        raise InvalidStateError(
            "Reordered items must share the same parent",
            details={"parents": sorted(str(p) for _, p in parents)},
        )

    for node, order_index in resolved:
        node.order_index = order_index
    _commit("reorder")
    logger.info("Reordered %d goal tree items", len(resolved))
    return len(resolved)


def move_multiple_items(items: list[dict], target_parent_id: str | None) -> dict:
    """
    Best-effort batch move: each item succeeds or fails on its own.

    Groups go through the same cycle check as a single move. Earlier moves
    in the batch are visible to the checks of later ones.

    Returns:
        {"success_count", "failure_count", "errors": [{"id", "type", "error"}]}
    """
    success_count = 0
    errors = []
    for item in items:
        node_id = item.get("id")
        node_type = item.get("type")
        try:
            node_id, node_type = _parse_node_ref(item)
            if node_type == "goal":
                move_goal_to_group(node_id, target_parent_id)
            else:
                move_group_to_group(node_id, target_parent_id)
            success_count += 1
        except (NotFoundError, ValidationError, SQLAlchemyError) as exc:
            logger.warning(
                "Batch move skipped %s id=%s target=%s: %s",
                node_type, node_id, target_parent_id, exc,
            )
            errors.append({"id": node_id, "type": node_type, "error": str(exc)})

    return {
        "success_count": success_count,
        "failure_count": len(errors),
        "errors": errors,
    }


# ── Goals ────────────────────────────────────────────────────────────────────


def create_goal(
    tile_id: str,
    description: str,
    target_value: int,
    parent_group_id: str | None = None,
    goal_type: str = "generic",
    item: dict | None = None,
) -> Goal:
    """
    Create a goal appended after its sibling goals.

    item (required for goal_type="item"): {item_id, base_name, exact_variant?, image_url?}
    """
    get_tile(tile_id)
    if goal_type not in GOAL_TYPES:
        raise ValidationError(
            f"goal_type must be one of: {', '.join(sorted(GOAL_TYPES))}",
            details={"goal_type": goal_type},
        )
    target = _validate_target(target_value)
    if parent_group_id is not None:
        _get_parent_group(tile_id, parent_group_id)

    goal = Goal(
        tile_id=tile_id,
        parent_group_id=parent_group_id,
        description=description or "",
        target_value=target,
        goal_type=goal_type,
        order_index=_count_sibling_goals(tile_id, parent_group_id),
    )
    if goal_type == "item":
        item = item if isinstance(item, dict) else {}
        base_name = item.get("base_name")
        try:
            item_id = int(item["item_id"])
        except (KeyError, TypeError, ValueError):
            item_id = None
        if item_id is None or not isinstance(base_name, str) or not base_name.strip():
            raise ValidationError(
                "Item goals require an integer item_id and a base_name",
                details={"item": item},
            )
        goal.item_goal = ItemGoal(
            item_id=item_id,
            base_name=item["base_name"].strip(),
            exact_variant=item.get("exact_variant"),
            image_url=item.get("image_url") or "",
        )

    db.session.add(goal)
    _commit("create_goal")
    logger.info(
        "Goal created id=%s tile_id=%s parent=%s type=%s target=%d",
        goal.id, tile_id, parent_group_id, goal_type, target,
    )
    return goal


def update_goal(goal_id: str, *, description: str | None = None, target_value: int | None = None) -> Goal:
    goal = get_goal(goal_id)
    if description is not None:
        goal.description = description
    if target_value is not None:
        goal.target_value = _validate_target(target_value)
    goal.updated_at = _utcnow()
    _commit("update_goal")
    return goal


def delete_goal(goal_id: str) -> None:
    """Delete a goal; its item metadata, values and progress rows go with it."""
    goal = get_goal(goal_id)
    db.session.delete(goal)
    _commit("delete_goal")
    logger.info("Goal deleted id=%s", goal_id)


# ── Goal values ──────────────────────────────────────────────────────────────


def list_goal_values(goal_id: str) -> list[GoalValue]:
    get_goal(goal_id)
    return list(
        db.session.execute(
            select(GoalValue).where(GoalValue.goal_id == goal_id).order_by(GoalValue.value)
        ).scalars()
    )


def add_goal_value(goal_id: str, value: float, description: str = "") -> GoalValue:
    get_goal(goal_id)
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValidationError("value must be a number", details={"value": value}) from None
    goal_value = GoalValue(goal_id=goal_id, value=value, description=description or "")
    db.session.add(goal_value)
    _commit("add_goal_value")
    return goal_value


def delete_goal_value(goal_value_id: str) -> None:
    goal_value = db.session.get(GoalValue, goal_value_id)
    if goal_value is None:
        raise NotFoundError("GoalValue", goal_value_id)
    db.session.delete(goal_value)
    _commit("delete_goal_value")
