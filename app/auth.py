"""
Meeting Items Platform
Authentication & caller identity.

Provides:
    - API key authentication via X-API-Key header or ?api_key= query param
    - Caller identity from the X-User header, roles from X-User-Roles
    - Board-role check for status changes (STATUS_ROLES)
    - CSRF protection for state-changing requests (non-GET/HEAD/OPTIONS)

Security model:
    - All /api/* endpoints require a valid API key when API_AUTH_ENABLED
      is true (except /api/health/*)
    - The user behind a request is named by the X-User header; roles are a
      comma-separated X-User-Roles header (e.g. "Secretary,Member")

Configuration (env vars):
    API_KEYS          — comma-separated list of valid API keys
                        e.g. "key1:portal,key2:batch"
                        Format: "<key>:<client-name>"
    API_AUTH_ENABLED  — set to "false" to disable auth (development only)
    STATUS_ROLES      — roles allowed to change meeting item status
                        (default "Secretary,Chair")
"""

import logging
import os
from typing import Optional

from flask import current_app, g, request

from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

USER_HEADER = "X-User"
ROLES_HEADER = "X-User-Roles"
MAX_USER_ID_LENGTH = 50


def _parse_api_keys() -> dict[str, str]:
    """
    Parse API_KEYS into {key: client_name} mapping.

    Format: "key1:portal,key2:batch"
    Keys without a client name map to 'api-client'.
    """
    raw = current_app.config.get("API_KEYS") or os.getenv("API_KEYS", "")
    if not raw.strip():
        return {}

    keys = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        if ":" in entry:
            key, client = entry.rsplit(":", 1)
            keys[key.strip()] = client.strip() or "api-client"
        else:
            keys[entry] = "api-client"
    return keys


def _is_auth_enabled() -> bool:
    """Check whether API key authentication is enabled (env var or app config)."""
    env_val = os.getenv("API_AUTH_ENABLED", "")
    if env_val:
        return env_val.lower() not in ("false", "0", "no", "off")
    return str(current_app.config.get("API_AUTH_ENABLED", "true")).lower() not in (
        "false", "0", "no", "off",
    )


def _get_api_key_from_request() -> Optional[str]:
    """Extract API key from request header or query parameter."""
    key = request.headers.get("X-API-Key", "").strip()
    if key:
        return key
    return request.args.get("api_key", "").strip() or None


# ── Caller identity ──────────────────────────────────────────────────────────

def current_user_id() -> Optional[str]:
    """User id from the X-User header, or None when absent."""
    user = request.headers.get(USER_HEADER, "").strip()
    return user[:MAX_USER_ID_LENGTH] or None


def current_user_roles() -> list[str]:
    """Roles from the comma-separated X-User-Roles header."""
    raw = request.headers.get(ROLES_HEADER, "")
    return [r.strip() for r in raw.split(",") if r.strip()]


def status_roles() -> set[str]:
    configured = current_app.config.get("STATUS_ROLES") or ("Secretary", "Chair")
    return {r.lower() for r in configured}


def has_status_role(roles) -> bool:
    """True when any of *roles* may change a meeting item's status."""
    allowed = status_roles()
    return any(str(r).lower() in allowed for r in roles or ())


# ── CSRF protection for API ──────────────────────────────────────────────────

def _check_content_type():
    """
    For state-changing requests (POST/PUT/PATCH/DELETE) with a body, require
    Content-Type: application/json. HTML forms cannot send that content type.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if "application/json" not in ct and request.content_length and request.content_length > 0:
            return api_error(
                E.VALIDATION_INVALID,
                "Content-Type must be application/json for state-changing requests",
                status=415,
            )
    return None


# ── App-level before_request hook installer ──────────────────────────────────

def init_auth(app):
    """
    Install authentication middleware on the Flask app.

    - Attaches a before_request hook for /api/* routes
    - Skips health checks and CORS pre-flight requests
    """
    @app.before_request
    def _before_request_auth():
        if not request.path.startswith("/api/"):
            return None
        if request.path.startswith("/api/health"):
            return None
        if request.method == "OPTIONS":
            return None

        csrf_error = _check_content_type()
        if csrf_error:
            return csrf_error

        if not _is_auth_enabled():
            g.api_client = "dev-mode"
            return None

        api_key = _get_api_key_from_request()
        if not api_key:
            return api_error(E.UNAUTHORIZED, "Authentication required. Provide X-API-Key header.")

        api_keys = _parse_api_keys()
        if not api_keys:
            logger.error("API_KEYS is not configured but API_AUTH_ENABLED=true")
            return api_error(E.INTERNAL, "Server authentication not configured")

        client = api_keys.get(api_key)
        if client is None:
            logger.warning("Invalid API key attempt: %s...", api_key[:8])
            return api_error(E.UNAUTHORIZED, "Invalid API key")

        g.api_client = client
        return None

    with app.app_context():
        logger.info("Auth middleware installed (enabled=%s)", _is_auth_enabled())
