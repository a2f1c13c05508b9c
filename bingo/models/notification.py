"""
Bingo Goal Engine
Completion notification model.

A CompletionNotification is written after a tile is auto-completed for a
team. Webhook delivery reads these records; the engine only writes them.
"""

import uuid
from datetime import datetime, timezone

from bingo.models import db


def _uuid():
    return str(uuid.uuid4())


class CompletionNotification(db.Model):
    """Tile-completed event for one team."""

    __tablename__ = "completion_notifications"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    tile_id = db.Column(
        db.String(36), db.ForeignKey("tiles.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    team_id = db.Column(
        db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    tile_title = db.Column(db.Text, nullable=False)
    team_name = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, default="")
    status = db.Column(
        db.String(20), nullable=False, default="queued",
        comment="queued | delivered | failed",
    )
    created_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "tile_id": self.tile_id,
            "team_id": self.team_id,
            "tile_title": self.tile_title,
            "team_name": self.team_name,
            "message": self.message,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
