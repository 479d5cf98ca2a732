"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in app/__init__.py with no default limits;
this module applies granular limits per route category.

Usage:
    from app.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

# Blueprints whose routes accept base64 uploads or mutate workflow state.
WRITE_HEAVY_BLUEPRINTS = ("meeting_items", "documents")

# Configuration blueprints, mostly read by the SPA.
CONFIG_BLUEPRINTS = ("decision_boards", "templates")


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Meeting items & documents:  RATELIMIT_WRITE   (default 120/minute)
        - Boards & templates:         RATELIMIT_CONFIG  (default 300/minute)
        - Health check:               exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    write_limit = app.config.get("RATELIMIT_WRITE", "120/minute")
    config_limit = app.config.get("RATELIMIT_CONFIG", "300/minute")

    for bp_name in WRITE_HEAVY_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(write_limit)(bp)

    for bp_name in CONFIG_BLUEPRINTS:
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(config_limit)(bp)

    bp = app.blueprints.get("health_bp")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured — meeting items/documents: %s, boards/templates: %s",
        write_limit, config_limit,
    )
