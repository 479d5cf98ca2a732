"""Standardised API result envelope.

Every endpoint answers with the same wrapper::

    {"success": true,  "data": {...}, "error": null, "status_code": 200}
    {"success": false, "data": null,  "error": "...", "code": "ERR_...",
     "status_code": 404, "details": {...}}

Usage
-----
    from app.utils.errors import api_error, api_success, E

    return api_success({"meeting_item": item}, status=201)
    return api_error(E.NOT_FOUND, "MeetingItem not found")
    return api_error(E.VALIDATION_INVALID, "Validation failed", details={"topic": "..."})
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from app.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StateTransitionError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Auth – HTTP 401 / 403
    UNAUTHORIZED = "ERR_UNAUTHORIZED"
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


@dataclass
class BusinessResult:
    """Outcome of an API operation: success flag, data, error message and status code."""

    success: bool
    status_code: int
    data: Any = None
    error: str | None = None
    code: str | None = None
    details: dict = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, status: int = 200) -> "BusinessResult":
        return cls(success=True, status_code=status, data=data)

    @classmethod
    def failure(cls, code: str, message: str, *, status: int | None = None,
                details: dict | None = None) -> "BusinessResult":
        return cls(
            success=False,
            status_code=status or _DEFAULT_STATUS.get(code, 400),
            error=message,
            code=code,
            details=details or {},
        )

    @classmethod
    def from_exception(cls, exc: Exception) -> "BusinessResult":
        """Map a platform exception to its failure result."""
        if isinstance(exc, ValidationError):
            return cls.failure(E.VALIDATION_INVALID, str(exc), details=exc.details)
        if isinstance(exc, NotFoundError):
            return cls.failure(E.NOT_FOUND, str(exc))
        if isinstance(exc, UnauthorizedError):
            return cls.failure(E.UNAUTHORIZED, str(exc))
        if isinstance(exc, ForbiddenError):
            return cls.failure(E.FORBIDDEN, str(exc))
        if isinstance(exc, StateTransitionError):
            return cls.failure(E.CONFLICT_STATE, str(exc), details={
                "current_status": exc.current_status,
                "target_status": exc.target_status,
            })
        if isinstance(exc, ConflictError):
            return cls.failure(E.CONFLICT_DUPLICATE, str(exc), details={"field": exc.field})
        return cls.failure(E.INTERNAL, "Internal server error")

    def to_body(self) -> dict:
        body: dict = {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "status_code": self.status_code,
        }
        if not self.success:
            body["code"] = self.code
            if self.details:
                body["details"] = self.details
        return body

    def to_response(self):
        return jsonify(self.to_body()), self.status_code


def api_success(data: Any = None, *, status: int = 200):
    """Return a successful envelope – drop-in for Flask views."""
    return BusinessResult.ok(data, status).to_response()


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Field-level messages or other structured payload.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    return BusinessResult.failure(code, message, status=status, details=details).to_response()


def register_error_handlers(bp) -> None:
    """Attach the platform exception → envelope handlers to a blueprint."""

    @bp.errorhandler(ValidationError)
    @bp.errorhandler(NotFoundError)
    @bp.errorhandler(UnauthorizedError)
    @bp.errorhandler(ForbiddenError)
    @bp.errorhandler(StateTransitionError)
    @bp.errorhandler(ConflictError)
    def _handle_platform_error(error):
        result = BusinessResult.from_exception(error)
        logger.info(
            "%s %s → %s %s", request.method, request.path, result.status_code, error,
        )
        return result.to_response()

    @bp.errorhandler(Exception)
    def _handle_unexpected(error):
        if isinstance(error, HTTPException):
            status = error.code or 500
            if status == 404:
                code = E.NOT_FOUND
            elif status >= 500:
                code = E.INTERNAL
            else:
                code = E.VALIDATION_INVALID
            return api_error(code, error.description or error.name, status=status)
        logger.exception("Unexpected error in %s endpoint=%s", bp.name, request.endpoint)
        return api_error(E.INTERNAL, "Internal server error")
