"""
Bingo Goal Engine
Goal tree models.

Models:
    - GoalGroup:         internal tree node combining children with AND / OR
    - Goal:              leaf requirement with a numeric target
    - ItemGoal:          item metadata for goals of type "item" (1:1 with Goal)
    - GoalValue:         predefined submission values offered for a goal
    - TeamGoalProgress:  a team's accumulated value toward one goal

Architecture:
    Tile ──1:N──▶ GoalGroup ──1:N──▶ GoalGroup   (parent_group_id, self FK)
    Tile ──1:N──▶ Goal       GoalGroup ──1:N──▶ Goal
    Goal ──1:1──▶ ItemGoal
    Goal ──1:N──▶ TeamGoalProgress ◀──N:1── Team

A NULL parent_group_id places the node at the root level of its tile. The
groups of a tile form a forest: no group may be its own ancestor.
"""

import uuid
from datetime import datetime, timezone

from bingo.models import db


# ── Constants ────────────────────────────────────────────────────────────────

LOGICAL_OPERATORS = {"AND", "OR"}

GOAL_TYPES = {"generic", "item"}

# Legacy OR groups created before min_required_goals existed behave as "any one".
DEFAULT_MIN_REQUIRED_GOALS = 1


def _uuid():
    """Generate a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class GoalGroup(db.Model):
    """
    AND / OR node of a tile's goal tree.

    min_required_goals only matters for OR groups: the number of children
    (goals or sub-groups) that must be complete.
    """

    __tablename__ = "goal_groups"
    __table_args__ = (
        db.CheckConstraint("logical_operator IN ('AND','OR')", name="ck_goal_group_operator"),
        db.CheckConstraint("min_required_goals >= 1", name="ck_goal_group_min_required"),
        db.Index("idx_goal_group_tile_parent", "tile_id", "parent_group_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    tile_id = db.Column(
        db.String(36), db.ForeignKey("tiles.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    parent_group_id = db.Column(
        db.String(36), db.ForeignKey("goal_groups.id", ondelete="CASCADE"),
        nullable=True, comment="NULL for root-level groups",
    )
    name = db.Column(db.Text, nullable=True, comment="Optional display label")
    logical_operator = db.Column(db.String(3), nullable=False, comment="AND | OR")
    min_required_goals = db.Column(
        db.Integer, nullable=False, default=DEFAULT_MIN_REQUIRED_GOALS,
        comment="OR groups: minimum number of complete children",
    )
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "tile_id": self.tile_id,
            "parent_group_id": self.parent_group_id,
            "name": self.name,
            "logical_operator": self.logical_operator,
            "min_required_goals": self.min_required_goals,
            "order_index": self.order_index,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Goal(db.Model):
    """Leaf requirement. Complete once a team's progress reaches target_value."""

    __tablename__ = "goals"
    __table_args__ = (
        db.CheckConstraint("goal_type IN ('generic','item')", name="ck_goal_type"),
        db.Index("idx_goal_tile_parent", "tile_id", "parent_group_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    tile_id = db.Column(
        db.String(36), db.ForeignKey("tiles.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    parent_group_id = db.Column(
        db.String(36), db.ForeignKey("goal_groups.id", ondelete="CASCADE"),
        nullable=True, comment="NULL for root-level goals",
    )
    description = db.Column(db.Text, nullable=False, default="")
    target_value = db.Column(db.Integer, nullable=False)
    goal_type = db.Column(db.String(10), nullable=False, default="generic")
    order_index = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    item_goal = db.relationship(
        "ItemGoal", uselist=False, backref="goal",
        cascade="all, delete-orphan",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tile_id": self.tile_id,
            "parent_group_id": self.parent_group_id,
            "description": self.description,
            "target_value": self.target_value,
            "goal_type": self.goal_type,
            "order_index": self.order_index,
            "item_goal": self.item_goal.to_dict() if self.item_goal else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class ItemGoal(db.Model):
    """Item metadata used by item matching; never read by the evaluator."""

    __tablename__ = "item_goals"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    goal_id = db.Column(
        db.String(36), db.ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False, unique=True,
    )
    item_id = db.Column(db.Integer, nullable=False, index=True)
    base_name = db.Column(db.Text, nullable=False, comment="Variant-agnostic item name")
    exact_variant = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "item_id": self.item_id,
            "base_name": self.base_name,
            "exact_variant": self.exact_variant,
            "image_url": self.image_url,
        }


class GoalValue(db.Model):
    """A predefined value a submission toward a goal may be worth."""

    __tablename__ = "goal_values"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    goal_id = db.Column(
        db.String(36), db.ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    value = db.Column(db.Float, nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "goal_id": self.goal_id,
            "value": self.value,
            "description": self.description,
        }


class TeamGoalProgress(db.Model):
    """
    A team's progress toward one goal. One row per (goal, team).

    current_value never decreases through the engine.
    """

    __tablename__ = "team_goal_progress"
    __table_args__ = (
        db.UniqueConstraint("goal_id", "team_id", name="uq_goal_team_progress"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    goal_id = db.Column(
        db.String(36), db.ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    current_value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "goal_id": self.goal_id,
            "team_id": self.team_id,
            "current_value": self.current_value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
