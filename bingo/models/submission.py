"""
Bingo Goal Engine
Tile submission models.

Models:
    - TeamTileSubmission:  a team's submission state for one tile
    - Submission:          one piece of evidence attached to a TeamTileSubmission

Lifecycle states:
    TeamTileSubmission:  (not_submitted) → pending → approved
                         pending ⇄ requires_interaction | declined
    Submission:          pending → approved | declined | requires_interaction

TeamTileSubmission.status reaches "approved" only through the auto-completion
controller. Evidence intake creates rows in "pending" and never touches the
status of an existing row.
"""

import uuid
from datetime import datetime, timezone

from bingo.models import db


# ── Constants ────────────────────────────────────────────────────────────────

SUBMISSION_STATUSES = {"pending", "approved", "requires_interaction", "declined"}

# Reported when a team has no TeamTileSubmission row for a tile.
NOT_SUBMITTED = "not_submitted"

# Statuses an organizer may set by hand on a TeamTileSubmission.
MANUAL_TILE_STATUSES = {"pending", "requires_interaction", "declined"}


def _uuid():
    """Generate a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class TeamTileSubmission(db.Model):
    """Submission state of one tile for one team. Unique per (tile, team)."""

    __tablename__ = "team_tile_submissions"
    __table_args__ = (
        db.UniqueConstraint("tile_id", "team_id", name="uq_tile_team_submission"),
        db.CheckConstraint(
            "status IN ('pending','approved','requires_interaction','declined')",
            name="ck_team_tile_submission_status",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    tile_id = db.Column(
        db.String(36), db.ForeignKey("tiles.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    status = db.Column(
        db.String(30), nullable=False, default="pending",
        comment="pending | approved | requires_interaction | declined",
    )
    reviewed_by = db.Column(db.String(36), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    submissions = db.relationship(
        "Submission", backref="team_tile_submission", lazy="dynamic",
        cascade="all, delete-orphan", order_by="Submission.created_at",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "tile_id": self.tile_id,
            "team_id": self.team_id,
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_children:
            result["submissions"] = [s.to_dict() for s in self.submissions]
        return result


class Submission(db.Model):
    """Evidence for a tile: screenshot link, plugin drop, manual claim."""

    __tablename__ = "submissions"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('pending','approved','requires_interaction','declined')",
            name="ck_submission_status",
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    team_tile_submission_id = db.Column(
        db.String(36), db.ForeignKey("team_tile_submissions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    goal_id = db.Column(
        db.String(36), db.ForeignKey("goals.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    submitted_by = db.Column(db.String(36), nullable=True)
    evidence_url = db.Column(db.Text, nullable=True)
    submission_value = db.Column(db.Float, nullable=False, default=1.0)
    status = db.Column(db.String(30), nullable=False, default="pending")
    is_auto_submission = db.Column(db.Boolean, nullable=False, default=False)
    source_name = db.Column(db.String(255), nullable=True, comment="NPC / activity name")
    source_item_id = db.Column(db.Integer, nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "team_tile_submission_id": self.team_tile_submission_id,
            "goal_id": self.goal_id,
            "submitted_by": self.submitted_by,
            "evidence_url": self.evidence_url,
            "submission_value": self.submission_value,
            "status": self.status,
            "is_auto_submission": self.is_auto_submission,
            "source_name": self.source_name,
            "source_item_id": self.source_item_id,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
