"""Shared utility functions used by the service layer.

get_or_404:          load by primary key or raise NotFoundError
parse_date_input:    ISO / DD.MM.YYYY date parsing, raises ValueError on bad input
db_commit_or_raise:  single commit per operation with rollback + cleanup on failure
"""
import logging
from datetime import date, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.core.exceptions import ConflictError, NotFoundError
from app.models import db

logger = logging.getLogger(__name__)


def get_or_404(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError.

    Usage::

        item = get_or_404(MeetingItem, item_id, "MeetingItem")
    """
    label = label or model.__name__
    obj = db.session.get(model, pk) if pk else None
    if obj is None:
        raise NotFoundError(resource=label, resource_id=pk)
    return obj


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS, DD.MM.YYYY, date objects.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_raise(on_failure=None):
    """Commit the current SQLAlchemy session.

    On failure the session is rolled back and *on_failure* (if given) runs
    before the error propagates, e.g. to remove blobs written during the
    request.

    IntegrityError → ConflictError (409)
    Other SQLAlchemyError → re-raised (500)
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if on_failure:
            on_failure()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError("Record", "constraint", str(exc.orig)) from exc
    except SQLAlchemyError:
        db.session.rollback()
        if on_failure:
            on_failure()
        logger.exception("Database error on commit")
        raise
