"""Tests for goal tree mutations.

Coverage:
  1. create_group / create_goal validation and order_index append
  2. Cross-tile parents are reported as not found
  3. Cycle rejection (self, child, deep descendant) leaves the tree unchanged
  4. Promotion delete for root and nested groups
  5. Atomic reorder: mixed parents or unknown ids reject the whole batch
  6. Best-effort batch move with per-item errors
  7. Goal delete cascades item metadata and progress; goal values CRUD
  8. get_goal_tree ordering
"""

import pytest

from bingo.core.exceptions import (
    CircularReferenceError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from bingo.models import db
from bingo.models.goals import Goal, GoalGroup, ItemGoal, TeamGoalProgress
from bingo.services import goal_tree_service as svc


# ── Helpers ─────────────────────────────────────────────────────────────────


def _snapshot(tile_id):
    """(id, parent, order) of every node of a tile, read fresh from the DB."""
    db.session.expire_all()
    groups = db.session.execute(
        db.select(GoalGroup.id, GoalGroup.parent_group_id, GoalGroup.order_index)
        .where(GoalGroup.tile_id == tile_id)
    ).all()
    goals = db.session.execute(
        db.select(Goal.id, Goal.parent_group_id, Goal.order_index)
        .where(Goal.tile_id == tile_id)
    ).all()
    return sorted(map(tuple, groups)), sorted(map(tuple, goals))


def _parent_of(model, node_id):
    db.session.expire_all()
    return db.session.get(model, node_id).parent_group_id


@pytest.fixture()
def chain(tile):
    """root(AND) → mid(OR) → leaf(AND), plus a goal under each."""
    root = svc.create_group(tile.id, "AND")
    mid = svc.create_group(tile.id, "OR", parent_group_id=root.id)
    leaf = svc.create_group(tile.id, "AND", parent_group_id=mid.id)
    goals = [
        svc.create_goal(tile.id, f"goal {i}", 1, parent_group_id=parent.id)
        for i, parent in enumerate((root, mid, leaf))
    ]
    return {"root": root.id, "mid": mid.id, "leaf": leaf.id, "goals": [g.id for g in goals]}


# ── Create ──────────────────────────────────────────────────────────────────


class TestCreate:
    def test_group_order_index_appends(self, tile):
        first = svc.create_group(tile.id, "AND")
        second = svc.create_group(tile.id, "or")
        assert (first.order_index, second.order_index) == (0, 1)
        assert second.logical_operator == "OR"
        assert second.min_required_goals == 1

    def test_unknown_operator_rejected(self, tile):
        with pytest.raises(ValidationError):
            svc.create_group(tile.id, "XOR")

    def test_min_required_below_one_rejected(self, tile):
        with pytest.raises(ValidationError):
            svc.create_group(tile.id, "OR", min_required_goals=0)

    def test_missing_tile(self):
        with pytest.raises(NotFoundError):
            svc.create_group("no-such-tile", "AND")

    def test_parent_on_other_tile_is_not_found(self, tile, make_tile):
        other = make_tile("Other")
        foreign = svc.create_group(other.id, "AND")
        with pytest.raises(NotFoundError):
            svc.create_group(tile.id, "AND", parent_group_id=foreign.id)
        with pytest.raises(NotFoundError):
            svc.create_goal(tile.id, "x", 1, parent_group_id=foreign.id)

    def test_item_goal_requires_item(self, tile):
        with pytest.raises(ValidationError):
            svc.create_goal(tile.id, "Glory", 1, goal_type="item")

    def test_item_goal_created_with_metadata(self, tile):
        goal = svc.create_goal(
            tile.id, "Glory", 5, goal_type="item",
            item={"item_id": 1704, "base_name": " Amulet of glory ", "exact_variant": "(4)"},
        )
        item = db.session.execute(db.select(ItemGoal).where(ItemGoal.goal_id == goal.id)).scalar_one()
        assert item.base_name == "Amulet of glory"
        assert goal.to_dict()["item_goal"]["item_id"] == 1704

    def test_target_value_must_be_positive(self, tile):
        with pytest.raises(ValidationError):
            svc.create_goal(tile.id, "x", 0)

    def test_target_value_must_be_whole(self, tile):
        with pytest.raises(ValidationError):
            svc.create_goal(tile.id, "x", 2.7)
        assert svc.create_goal(tile.id, "y", 3.0).target_value == 3


# ── Update ──────────────────────────────────────────────────────────────────


class TestUpdateGroup:
    def test_partial_update(self, tile):
        group = svc.create_group(tile.id, "AND", name="Bosses")
        svc.update_group(group.id, logical_operator="OR", min_required_goals=2)
        db.session.expire_all()
        group = db.session.get(GoalGroup, group.id)
        assert group.logical_operator == "OR"
        assert group.min_required_goals == 2
        assert group.name == "Bosses"

    def test_blank_name_cleared(self, tile):
        group = svc.create_group(tile.id, "AND", name="Bosses")
        svc.update_group(group.id, name="   ")
        db.session.expire_all()
        assert db.session.get(GoalGroup, group.id).name is None


# ── Cycles ──────────────────────────────────────────────────────────────────


class TestMoveGroupCycles:
    @pytest.mark.parametrize("target", ["root", "mid", "leaf"])
    def test_move_into_self_or_descendant_rejected(self, tile, chain, target):
        before = _snapshot(tile.id)
        with pytest.raises(CircularReferenceError):
            svc.move_group_to_group(chain["root"], chain[target])
        assert _snapshot(tile.id) == before

    def test_would_create_cycle(self, chain):
        assert svc.would_create_cycle(chain["root"], chain["leaf"]) is True
        assert svc.would_create_cycle(chain["leaf"], chain["root"]) is False
        assert svc.would_create_cycle(chain["mid"], None) is False

    def test_pre_existing_cycle_reported(self, tile):
        a = svc.create_group(tile.id, "AND")
        b = svc.create_group(tile.id, "AND", parent_group_id=a.id)
        c = svc.create_group(tile.id, "AND")
        # Corrupt the store directly: a ↔ b
        db.session.get(GoalGroup, a.id).parent_group_id = b.id
        db.session.commit()
        assert svc.would_create_cycle(c.id, a.id) is True

    def test_valid_move(self, chain):
        svc.move_group_to_group(chain["leaf"], chain["root"], order_index=5)
        db.session.expire_all()
        leaf = db.session.get(GoalGroup, chain["leaf"])
        assert leaf.parent_group_id == chain["root"]
        assert leaf.order_index == 5

    def test_move_to_root_level(self, chain):
        svc.move_group_to_group(chain["mid"], None)
        assert _parent_of(GoalGroup, chain["mid"]) is None

    def test_goal_move_to_foreign_group_not_found(self, tile, make_tile, chain):
        foreign = svc.create_group(make_tile("Other").id, "AND")
        with pytest.raises(NotFoundError):
            svc.move_goal_to_group(chain["goals"][0], foreign.id)
        assert _parent_of(Goal, chain["goals"][0]) == chain["root"]

    @pytest.mark.parametrize("order_index", ["abc", 1.5, [2]])
    def test_non_integer_order_index_rejected(self, tile, chain, order_index):
        before = _snapshot(tile.id)
        with pytest.raises(ValidationError):
            svc.move_group_to_group(chain["leaf"], None, order_index=order_index)
        with pytest.raises(ValidationError):
            svc.move_goal_to_group(chain["goals"][0], None, order_index=order_index)
        assert _snapshot(tile.id) == before
        assert svc.get_goal_tree(tile.id)[0]["id"] == chain["root"]

    def test_numeric_string_order_index_stored_as_int(self, chain):
        svc.move_goal_to_group(chain["goals"][2], chain["root"], order_index="3")
        db.session.expire_all()
        assert db.session.get(Goal, chain["goals"][2]).order_index == 3


# ── Promotion delete ────────────────────────────────────────────────────────


class TestDeleteGroup:
    def test_delete_root_promotes_children_to_root(self, tile, chain):
        result = svc.delete_group(chain["root"])
        assert result["promoted_groups"] == 1
        assert result["promoted_goals"] == 1
        assert _parent_of(GoalGroup, chain["mid"]) is None
        assert _parent_of(Goal, chain["goals"][0]) is None
        assert db.session.get(GoalGroup, chain["root"]) is None
        # Grandchildren keep their parent
        assert _parent_of(GoalGroup, chain["leaf"]) == chain["mid"]

    def test_delete_nested_promotes_to_parent(self, chain):
        svc.delete_group(chain["mid"])
        assert _parent_of(GoalGroup, chain["leaf"]) == chain["root"]
        assert _parent_of(Goal, chain["goals"][1]) == chain["root"]
        assert _parent_of(Goal, chain["goals"][2]) == chain["leaf"]

    def test_delete_missing(self):
        with pytest.raises(NotFoundError):
            svc.delete_group("nope")


# ── Reorder ─────────────────────────────────────────────────────────────────


class TestReorder:
    def test_reorder_siblings(self, tile):
        a = svc.create_goal(tile.id, "a", 1)
        b = svc.create_goal(tile.id, "b", 1)
        count = svc.reorder_items([
            {"id": a.id, "type": "goal", "order_index": 1},
            {"id": b.id, "type": "goal", "order_index": 0},
        ])
        assert count == 2
        tree = svc.get_goal_tree(tile.id)
        assert [n["id"] for n in tree] == [b.id, a.id]

    def test_mixed_parents_rejected_atomically(self, tile, chain):
        before = _snapshot(tile.id)
        with pytest.raises(InvalidStateError):
            svc.reorder_items([
                {"id": chain["goals"][0], "type": "goal", "order_index": 9},
                {"id": chain["goals"][1], "type": "goal", "order_index": 8},
            ])
        assert _snapshot(tile.id) == before

    def test_unknown_id_rejected(self, tile):
        a = svc.create_goal(tile.id, "a", 1)
        with pytest.raises(InvalidStateError):
            svc.reorder_items([
                {"id": a.id, "type": "goal", "order_index": 3},
                {"id": "ghost", "type": "goal", "order_index": 4},
            ])
        db.session.expire_all()
        assert db.session.get(Goal, a.id).order_index == 0

    def test_empty_batch(self):
        assert svc.reorder_items([]) == 0


# ── Batch move ──────────────────────────────────────────────────────────────


class TestMoveMultiple:
    def test_partial_failure_reported_per_item(self, tile, chain):
        target = svc.create_group(tile.id, "AND")
        result = svc.move_multiple_items(
            [
                {"id": chain["goals"][2], "type": "goal"},
                {"id": "ghost", "type": "goal"},
                {"id": chain["mid"], "type": "group"},
                {"id": chain["root"], "type": "widget"},
            ],
            target.id,
        )
        assert result["success_count"] == 2
        assert result["failure_count"] == 2
        assert [e["id"] for e in result["errors"]] == ["ghost", chain["root"]]
        assert _parent_of(Goal, chain["goals"][2]) == target.id
        assert _parent_of(GoalGroup, chain["mid"]) == target.id

    def test_cycle_in_batch_only_fails_that_item(self, tile, chain):
        result = svc.move_multiple_items(
            [{"id": chain["root"], "type": "group"}, {"id": chain["goals"][0], "type": "goal"}],
            chain["leaf"],
        )
        assert result["success_count"] == 1
        assert result["errors"][0]["error"] == "Cannot create circular group reference"
        assert _parent_of(GoalGroup, chain["root"]) is None
        assert _parent_of(Goal, chain["goals"][0]) == chain["leaf"]


# ── Goals & values ──────────────────────────────────────────────────────────


class TestGoals:
    def test_delete_goal_cascades(self, tile, team):
        goal = svc.create_goal(
            tile.id, "Glory", 1, goal_type="item",
            item={"item_id": 1, "base_name": "Amulet of glory"},
        )
        db.session.add(TeamGoalProgress(goal_id=goal.id, team_id=team.id, current_value=1))
        db.session.commit()
        goal_id = goal.id

        svc.delete_goal(goal_id)

        assert db.session.get(Goal, goal_id) is None
        assert db.session.execute(db.select(ItemGoal)).scalars().all() == []
        assert db.session.execute(db.select(TeamGoalProgress)).scalars().all() == []

    def test_update_goal(self, tile):
        goal = svc.create_goal(tile.id, "kills", 10)
        svc.update_goal(goal.id, target_value=25)
        db.session.expire_all()
        assert db.session.get(Goal, goal.id).target_value == 25

    def test_goal_values(self, tile):
        goal = svc.create_goal(tile.id, "points", 10)
        svc.add_goal_value(goal.id, 5, "big drop")
        small = svc.add_goal_value(goal.id, "1.5")
        assert [v.value for v in svc.list_goal_values(goal.id)] == [1.5, 5.0]
        svc.delete_goal_value(small.id)
        assert [v.value for v in svc.list_goal_values(goal.id)] == [5.0]
        with pytest.raises(ValidationError):
            svc.add_goal_value(goal.id, "lots")


class TestGetGoalTree:
    def test_nested_groups_first(self, tile, chain):
        extra_goal = svc.create_goal(tile.id, "root goal", 1)
        tree = svc.get_goal_tree(tile.id)
        assert [(n["type"], n["id"]) for n in tree] == [
            ("group", chain["root"]),
            ("goal", extra_goal.id),
        ]
        root_children = tree[0]["children"]
        assert [n["type"] for n in root_children] == ["group", "goal"]
        assert root_children[0]["children"][0]["id"] == chain["leaf"]

    def test_missing_tile(self):
        with pytest.raises(NotFoundError):
            svc.get_goal_tree("missing")
