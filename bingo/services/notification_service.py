"""
Completion notifications.

A CompletionNotification is the hand-off record for webhook delivery: it is
written after a tile is auto-completed for a team, in its own transaction, so
a failure here can never undo the completion itself.
"""

import logging

from sqlalchemy import select

from bingo.core.exceptions import NotFoundError
from bingo.models import db
from bingo.models.bingo import Team, Tile
from bingo.models.notification import CompletionNotification

logger = logging.getLogger(__name__)


def notify_tile_completed(tile_id: str, team_id: str) -> CompletionNotification:
    """Record a tile-completed event for a team.

    Args:
        tile_id: Completed tile.
        team_id: Team that completed it.

    Returns:
        The queued CompletionNotification.

    Raises:
        NotFoundError: If the tile or team no longer exists.
    """
    tile = db.session.get(Tile, tile_id)
    if tile is None:
        raise NotFoundError("Tile", tile_id)
    team = db.session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team", team_id)

    notification = CompletionNotification(
        tile_id=tile_id,
        team_id=team_id,
        tile_title=tile.title,
        team_name=team.name,
        message=f"{team.name} completed tile '{tile.title}'",
    )
    db.session.add(notification)
    db.session.commit()
    logger.info(
        "Completion notification queued id=%s tile_id=%s team_id=%s",
        notification.id, tile_id, team_id,
    )
    return notification


def list_notifications(team_id: str | None = None, limit: int = 50) -> list[CompletionNotification]:
    stmt = select(CompletionNotification)
    if team_id is not None:
        stmt = stmt.where(CompletionNotification.team_id == team_id)
    stmt = stmt.order_by(CompletionNotification.created_at.desc()).limit(limit)
    return list(db.session.execute(stmt).scalars())
