"""
Engine-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from bingo.core.exceptions import NotFoundError, CircularReferenceError

    raise NotFoundError(resource="GoalGroup", resource_id=group_id)
    raise CircularReferenceError(group_id, target_parent_id)
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist within the given scope.

    Used for BOTH genuinely missing records AND parents that belong to a
    different tile. Callers cannot tell the two apart, which keeps one tile's
    tree from being grafted onto another's.

    Args:
        resource: Human-readable model/entity name (e.g. "GoalGroup", "Tile").
        resource_id: The PK that was looked up.
        scope: Optional description of the enforced scope (e.g. "tile=...").
    """

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        scope: str | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.scope = scope
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        if scope is not None:
            msg += f" ({scope})"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    The data was well-formed but violated a rule (unknown operator,
    min_required_goals below 1, negative target, ...).

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidStateError(ValidationError):
    """Raised when a batch references nodes that cannot be handled together.

    Example: a reorder batch whose items do not share one parent.
    Maps to HTTP 409.
    """


class CircularReferenceError(InvalidStateError):
    """Raised when moving a group would make it its own ancestor.

    No write has happened when this is raised.

    Args:
        group_id: The group being moved.
        target_parent_id: The requested new parent.
    """

    def __init__(self, group_id: str, target_parent_id: str | None) -> None:
        self.group_id = group_id
        self.target_parent_id = target_parent_id
        super().__init__(
            "Cannot create circular group reference",
            details={"group_id": group_id, "target_parent_id": target_parent_id},
        )
