"""
Meeting Items Platform
Blueprint registry and shared request helpers.
"""

from flask import request

from app.auth import current_user_id, current_user_roles
from app.core.exceptions import UnauthorizedError, ValidationError


def pagination_args(default_limit=200, max_limit=1000):
    """Read limit/offset query params.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (limit, offset)
    """
    try:
        limit = min(max(int(request.args.get("limit", default_limit)), 1), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    return limit, offset


def require_actor():
    """Caller id from X-User, or UnauthorizedError."""
    actor = current_user_id()
    if not actor:
        raise UnauthorizedError("X-User header is required")
    return actor


def actor_roles():
    return current_user_roles()


def json_body():
    """Request JSON object; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
