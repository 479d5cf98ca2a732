"""
Shared pytest fixtures for the Meeting Items Platform test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - board / template: Pre-created decision board and its default template
    - make_item: factory creating meeting items through the API
"""

import base64

import pytest

from app import create_app
from app.models import db as _db

REQUESTOR = "alice"
PRESENTER = "bob"
OUTSIDER = "mallory"
SECRETARY = "sam"


def headers(user=REQUESTOR, roles=None):
    """Identity headers as sent by the SPA."""
    h = {"X-User": user}
    if roles:
        h["X-User-Roles"] = roles
    return h


def b64(content: bytes) -> str:
    return base64.b64encode(content).decode("ascii")


def doc_payload(file_name="agenda.pdf", content=b"%PDF-1.4 agenda", content_type=None):
    payload = {"file_name": file_name, "content": b64(content)}
    if content_type:
        payload["content_type"] = content_type
    return payload


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        app.extensions["blob_storage"].clear()
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()
        app.extensions["blob_storage"].clear()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def blobs(app):
    """The in-memory blob store used by the testing config."""
    return app.extensions["blob_storage"]


# ── Convenience fixtures ─────────────────────────────────────────────────


TEMPLATE_FIELDS = [
    {
        "field_name": "business_case",
        "label": "Business case",
        "field_type": "textarea",
        "category": "Business",
        "display_order": 1,
        "is_required": True,
        "validation_rules": {"min_length": 5},
    },
    {
        "field_name": "budget",
        "label": "Budget",
        "field_type": "number",
        "category": "Business",
        "display_order": 2,
        "validation_rules": {"min": 0, "max": 1000},
    },
    {
        "field_name": "priority",
        "label": "Priority",
        "field_type": "dropdown",
        "category": "Planning",
        "display_order": 1,
        "options": ["high", "medium", "low"],
    },
]


@pytest.fixture()
def board(client):
    """Create and return a decision board via the API."""
    res = client.post(
        "/api/decision-boards",
        json={"name": "Architecture Board", "abbreviation": "AB"},
        headers=headers("admin"),
    )
    assert res.status_code == 201
    return res.get_json()["data"]


@pytest.fixture()
def template(client, board):
    """Default template of ``board`` with a required textarea, a number and a dropdown."""
    res = client.post(
        "/api/templates",
        json={
            "decision_board_id": board["id"],
            "name": "Standard",
            "field_definitions": TEMPLATE_FIELDS,
        },
        headers=headers("admin"),
    )
    assert res.status_code == 201
    return res.get_json()["data"]


def item_body(board_id, **overrides):
    body = {
        "decision_board_id": board_id,
        "topic": "Move billing to the cloud",
        "purpose": "Decide whether billing moves to the managed cloud platform.",
        "outcome": "Decision",
        "digital_product": "Billing",
        "duration_minutes": 30,
        "owner_presenter": PRESENTER,
        "field_values": [{"field_name": "business_case", "value": "Saves cost"}],
    }
    body.update(overrides)
    return body


@pytest.fixture()
def make_item(client, board, template):
    """Factory: create a meeting item via the API and return its detail dict."""

    def _make(user=REQUESTOR, **overrides):
        res = client.post(
            "/api/meeting-items", json=item_body(board["id"], **overrides), headers=headers(user),
        )
        assert res.status_code == 201, res.get_json()
        return res.get_json()["data"]

    return _make
