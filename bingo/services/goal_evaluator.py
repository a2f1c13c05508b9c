"""
Goal tree evaluator — pure completion logic for one tile / team pair.

No database access: callers load the tile's groups and goals
once, build a TileTree (flat arena + children-by-parent index) and hand it
the team's progress values. Every call builds fresh evaluation nodes;
nothing is cached because progress changes between calls.

Rules:
    Goal    complete iff (current_value or 0) >= target_value
    AND     complete iff it has at least one child and every child is complete
    OR      complete iff completed children >= min_required_goals (default 1)
    Tile    complete iff it has at least one root node and every root is complete

An OR group whose min_required_goals exceeds its child count is simply never
complete. Nodes whose parent chain never reaches the root level (dangling
parent ids, corrupt cycles) are not reachable from the roots and are ignored.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Union

from bingo.models.goals import DEFAULT_MIN_REQUIRED_GOALS


# ── Evaluation nodes ─────────────────────────────────────────────────────────


def _percentage(done: float, total: float) -> float:
    if total <= 0:
        return 0.0
    return round(min(100.0, done / total * 100), 2)


@dataclass
class GoalEvaluation:
    """Evaluated leaf."""

    id: str
    is_complete: bool
    current_value: int
    target_value: int

    type = "goal"

    def progress(self) -> dict:
        if self.target_value > 0:
            pct = _percentage(self.current_value, self.target_value)
        else:
            pct = 100.0
        return {
            "current_value": self.current_value,
            "target_value": self.target_value,
            "percentage": pct,
            "is_complete": self.is_complete,
        }

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "id": self.id,
            "is_complete": self.is_complete,
            "current_value": self.current_value,
            "target_value": self.target_value,
            "progress": self.progress(),
        }


@dataclass
class GroupEvaluation:
    """Evaluated AND / OR group with its evaluated children."""

    id: str
    operator: str
    min_required_goals: int
    children: list[EvaluationNode] = field(default_factory=list)
    is_complete: bool = False

    type = "group"

    @property
    def completed_count(self) -> int:
        return sum(1 for child in self.children if child.is_complete)

    @property
    def display_total(self) -> int:
        """How many completions the group needs, as shown in progress UIs."""
        if self.operator == "OR":
            return self.min_required_goals
        return len(self.children)

    def progress(self) -> dict:
        return {
            "completed_count": self.completed_count,
            "total_count": self.display_total,
            "percentage": _percentage(self.completed_count, self.display_total),
            "is_complete": self.is_complete,
        }

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "id": self.id,
            "is_complete": self.is_complete,
            "operator": self.operator,
            "min_required_goals": self.min_required_goals,
            "children": [child.to_dict() for child in self.children],
            "progress": self.progress(),
        }


EvaluationNode = Union[GoalEvaluation, GroupEvaluation]


@dataclass
class EvaluationResult:
    root_nodes: list[EvaluationNode]
    tile_complete: bool

    def to_dict(self) -> dict:
        return {
            "tile_complete": self.tile_complete,
            "root_nodes": [node.to_dict() for node in self.root_nodes],
        }


# ── Tree arena ───────────────────────────────────────────────────────────────


class TileTree:
    """
    Flat arena of one tile's groups and goals plus a children-by-parent index.

    Rows may be ORM instances or any object exposing the model attributes
    (id, parent_group_id, order_index; logical_operator and
    min_required_goals for groups; target_value for goals).
    """

    def __init__(self, groups: Mapping[str, Any], goals: Mapping[str, Any]):
        self.groups = dict(groups)
        self.goals = dict(goals)
        self._child_groups: dict[str | None, list[str]] = defaultdict(list)
        self._child_goals: dict[str | None, list[str]] = defaultdict(list)

        for group in sorted(self.groups.values(), key=lambda g: g.order_index or 0):
            self._child_groups[group.parent_group_id].append(group.id)
        for goal in sorted(self.goals.values(), key=lambda g: g.order_index or 0):
            self._child_goals[goal.parent_group_id].append(goal.id)

    @classmethod
    def build(cls, groups: Iterable[Any], goals: Iterable[Any]) -> TileTree:
        return cls({g.id: g for g in groups}, {g.id: g for g in goals})

    def child_group_ids(self, parent_id: str | None) -> list[str]:
        return list(self._child_groups.get(parent_id, ()))

    def child_goal_ids(self, parent_id: str | None) -> list[str]:
        return list(self._child_goals.get(parent_id, ()))

    @property
    def is_empty(self) -> bool:
        return not self.child_group_ids(None) and not self.child_goal_ids(None)


# ── Evaluation ───────────────────────────────────────────────────────────────


def evaluate_goal(goal: Any, progress_by_goal: Mapping[str, int | None]) -> GoalEvaluation:
    current = progress_by_goal.get(goal.id) or 0
    return GoalEvaluation(
        id=goal.id,
        is_complete=current >= goal.target_value,
        current_value=current,
        target_value=goal.target_value,
    )


def evaluate_group(
    tree: TileTree,
    group_id: str,
    progress_by_goal: Mapping[str, int | None],
) -> GroupEvaluation:
    """Post-order evaluation of one group: sub-groups first, then goals."""
    group = tree.groups[group_id]
    children: list[EvaluationNode] = [
        evaluate_group(tree, child_id, progress_by_goal)
        for child_id in tree.child_group_ids(group_id)
    ]
    children.extend(
        evaluate_goal(tree.goals[goal_id], progress_by_goal)
        for goal_id in tree.child_goal_ids(group_id)
    )

    min_required = group.min_required_goals or DEFAULT_MIN_REQUIRED_GOALS
    completed = sum(1 for child in children if child.is_complete)
    if group.logical_operator == "AND":
        is_complete = len(children) > 0 and completed == len(children)
    else:
        is_complete = completed >= min_required

    return GroupEvaluation(
        id=group.id,
        operator=group.logical_operator,
        min_required_goals=min_required,
        children=children,
        is_complete=is_complete,
    )


def evaluate(tree: TileTree, progress_by_goal: Mapping[str, int | None]) -> EvaluationResult:
    """Evaluate the whole tile. Roots are combined with an implicit AND."""
    root_nodes: list[EvaluationNode] = [
        evaluate_group(tree, group_id, progress_by_goal)
        for group_id in tree.child_group_ids(None)
    ]
    root_nodes.extend(
        evaluate_goal(tree.goals[goal_id], progress_by_goal)
        for goal_id in tree.child_goal_ids(None)
    )
    tile_complete = len(root_nodes) > 0 and all(node.is_complete for node in root_nodes)
    return EvaluationResult(root_nodes=root_nodes, tile_complete=tile_complete)
