"""Tile submissions & completion notifications

Revision ID: c52e9b7f14a8
Revises: a3f1c8d20e47
Create Date: 2026-10-19 09:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "c52e9b7f14a8"
down_revision = "a3f1c8d20e47"
branch_labels = None
depends_on = None

_STATUS_CHECK = "status IN ('pending','approved','requires_interaction','declined')"


def upgrade():
    op.create_table(
        "team_tile_submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tile_id", sa.String(36),
                  sa.ForeignKey("tiles.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("team_id", sa.String(36),
                  sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("tile_id", "team_id", name="uq_tile_team_submission"),
        sa.CheckConstraint(_STATUS_CHECK, name="ck_team_tile_submission_status"),
    )

    op.create_table(
        "submissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("team_tile_submission_id", sa.String(36),
                  sa.ForeignKey("team_tile_submissions.id", ondelete="CASCADE"),
                  nullable=False, index=True),
        sa.Column("goal_id", sa.String(36),
                  sa.ForeignKey("goals.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("submitted_by", sa.String(36), nullable=True),
        sa.Column("evidence_url", sa.Text(), nullable=True),
        sa.Column("submission_value", sa.Float(), nullable=False, server_default="1.0"),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending"),
        sa.Column("is_auto_submission", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source_name", sa.String(255), nullable=True),
        sa.Column("source_item_id", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint(_STATUS_CHECK, name="ck_submission_status"),
    )

    op.create_table(
        "completion_notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tile_id", sa.String(36),
                  sa.ForeignKey("tiles.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("team_id", sa.String(36),
                  sa.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("tile_title", sa.Text(), nullable=False),
        sa.Column("team_name", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), server_default=""),
        sa.Column("status", sa.String(20), nullable=False, server_default="queued"),
        sa.Column("created_at", sa.DateTime(timezone=True)),
    )


def downgrade():
    op.drop_table("completion_notifications")
    op.drop_table("submissions")
    op.drop_table("team_tile_submissions")
