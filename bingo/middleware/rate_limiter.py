"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in bingo/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from bingo.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

GOAL_TREE_LIMIT = "60/minute"
PROGRESS_LIMIT = "200/minute"

# Endpoint the game client posts item scans to
ITEM_SCAN_ENDPOINT = "progress.check_items"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Goal tree editing:  60/minute
        - Progress & reads:   200/minute
        - Item scans:         ITEM_SCAN_RATE_LIMIT (default 120 per minute)
        - Health check:       exempt

    Rate limiting is disabled in testing mode.
    """

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    bp = app.blueprints.get("goal_tree")
    if bp:
        limiter.limit(GOAL_TREE_LIMIT)(bp)

    bp = app.blueprints.get("progress")
    if bp:
        limiter.limit(PROGRESS_LIMIT)(bp)

    # Route limits are enforced by the wrapper, so swap the registered view
    scan_limit = app.config.get("ITEM_SCAN_RATE_LIMIT")
    view = app.view_functions.get(ITEM_SCAN_ENDPOINT)
    if view is not None and scan_limit:
        app.view_functions[ITEM_SCAN_ENDPOINT] = limiter.limit(scan_limit)(view)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — goal tree: %s, progress: %s, item scan: %s",
        GOAL_TREE_LIMIT, PROGRESS_LIMIT, scan_limit,
    )
