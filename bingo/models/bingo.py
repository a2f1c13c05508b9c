"""
Bingo Goal Engine
Board-side collaborator models.

Models:
    - Tile:  a cell on a bingo board; owns a forest of goals / goal groups
    - Team:  a competing team; owns its own progress and tile submissions

Only the columns the completion engine reads are modelled here. Tiles and
teams are matched to each other through ``event_id``.
"""

import uuid
from datetime import datetime, timezone

from bingo.models import db


def _uuid():
    """Generate a new UUID4 string for primary keys."""
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


class Tile(db.Model):
    """A bingo tile. Completion is decided by its goal tree."""

    __tablename__ = "tiles"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    event_id = db.Column(db.String(36), nullable=False, index=True)
    title = db.Column(db.Text, nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "title": self.title,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Team(db.Model):
    """A team taking part in an event."""

    __tablename__ = "teams"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    event_id = db.Column(db.String(36), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "name": self.name,
        }
