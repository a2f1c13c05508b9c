"""Goal tree engine — tiles, teams, goal groups, goals, progress

Revision ID: a3f1c8d20e47
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "a3f1c8d20e47"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ── Board collaborators ──
    op.create_table(
        "tiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), nullable=False, index=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "teams",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.String(36), nullable=False, index=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    # ── Goal groups (self-referencing forest) ──
    op.create_table(
        "goal_groups",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tile_id", sa.String(36),
                  sa.ForeignKey("tiles.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("parent_group_id", sa.String(36),
                  sa.ForeignKey("goal_groups.id", ondelete="CASCADE"), nullable=True),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("logical_operator", sa.String(3), nullable=False),
        sa.Column("min_required_goals", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("logical_operator IN ('AND','OR')", name="ck_goal_group_operator"),
        sa.CheckConstraint("min_required_goals >= 1", name="ck_goal_group_min_required"),
    )
    op.create_index("idx_goal_group_tile_parent", "goal_groups", ["tile_id", "parent_group_id"])

    # ── Goals ──
    op.create_table(
        "goals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tile_id", sa.String(36),
                  sa.ForeignKey("tiles.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("parent_group_id", sa.String(36),
                  sa.ForeignKey("goal_groups.id", ondelete="CASCADE"), nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("target_value", sa.Integer(), nullable=False),
        sa.Column("goal_type", sa.String(10), nullable=False, server_default="generic"),
        sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("goal_type IN ('generic','item')", name="ck_goal_type"),
    )
    op.create_index("idx_goal_tile_parent", "goals", ["tile_id", "parent_group_id"])

    op.create_table(
        "item_goals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("goal_id", sa.String(36),
                  sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("item_id", sa.Integer(), nullable=False, index=True),
        sa.Column("base_name", sa.Text(), nullable=False),
        sa.Column("exact_variant", sa.Text(), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_table(
        "goal_values",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("goal_id", sa.String(36),
                  sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )

    # ── Team progress ──
    op.create_table(
        "team_goal_progress",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("goal_id", sa.String(36),
                  sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("team_id", sa.String(36),
                  sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("current_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("goal_id", "team_id", name="uq_goal_team_progress"),
    )


def downgrade():
    op.drop_table("team_goal_progress")
    op.drop_table("goal_values")
    op.drop_table("item_goals")
    op.drop_index("idx_goal_tile_parent", table_name="goals")
    op.drop_table("goals")
    op.drop_index("idx_goal_group_tile_parent", table_name="goal_groups")
    op.drop_table("goal_groups")
    op.drop_table("teams")
    op.drop_table("tiles")
