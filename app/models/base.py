"""
Shared column defaults and serialisation helpers for all models.

Every table keyed by a string UUID uses ``_uuid`` as the PK default and
``_utcnow`` for timestamps so ids and times are generated the same way
across the schema.
"""

import uuid
from datetime import datetime, timezone


def _uuid():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    """ISO-format a date/datetime column value, passing None through."""
    return value.isoformat() if value else None
