"""
Meeting item API tests.

Covers:
  - Create (static validation, board/template resolution, dynamic fields)
  - Detail / list / by-board queries
  - Update permissions and partial updates
  - Legacy /api/MeetingItems prefix and identity header handling
"""

from conftest import OUTSIDER, PRESENTER, REQUESTOR, doc_payload, headers, item_body

from app.models.audit import AuditLog
from app.models.meeting_item import MeetingItem


def _errors(res):
    return res.get_json()["details"]


# ═══════════════════════════════════════════════════════════════════════════════
# Create
# ═══════════════════════════════════════════════════════════════════════════════


class TestCreateMeetingItem:

    def test_create_returns_draft_with_requestor(self, client, board, template):
        res = client.post("/api/meeting-items", json=item_body(board["id"]), headers=headers())
        assert res.status_code == 201
        body = res.get_json()
        assert body["success"] is True
        item = body["data"]
        assert item["status"] == "Draft"
        assert item["requestor"] == REQUESTOR
        assert item["created_by"] == REQUESTOR
        assert item["template_id"] == template["id"]
        assert item["submission_date"] is None
        assert item["status_history"] == []

    def test_create_stores_typed_field_values(self, make_item):
        item = make_item(field_values=[
            {"field_name": "business_case", "value": "Saves cost"},
            {"field_name": "budget", "value": "250.5"},
            {"field_name": "priority", "value": "high"},
        ])
        by_name = {f["field_name"]: f for f in item["active_fields"]}
        assert by_name["business_case"]["text_value"] == "Saves cost"
        assert by_name["budget"]["number_value"] == 250.5
        assert by_name["priority"]["text_value"] == "high"

    def test_create_accepts_field_value_mapping(self, make_item):
        item = make_item(field_values={"business_case": "Mapping input", "budget": 3})
        names = {f["field_name"] for f in item["active_fields"]}
        assert names == {"business_case", "budget"}

    def test_create_requires_identity(self, client, board, template):
        res = client.post("/api/meeting-items", json=item_body(board["id"]))
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_static_field_errors_are_collected(self, client, board, template):
        body = item_body(
            board["id"], topic="", purpose="short", outcome="Maybe", duration_minutes=481,
        )
        res = client.post("/api/meeting-items", json=body, headers=headers())
        assert res.status_code == 400
        errors = _errors(res)
        assert set(errors) >= {"topic", "purpose", "outcome", "duration_minutes"}

    def test_duration_bounds(self, client, board, template):
        for minutes, expected in ((0, 400), (1, 201), (480, 201), ("x", 400), (True, 400)):
            res = client.post(
                "/api/meeting-items",
                json=item_body(board["id"], duration_minutes=minutes),
                headers=headers(),
            )
            assert res.status_code == expected, minutes

    def test_topic_length_limit(self, client, board, template):
        res = client.post(
            "/api/meeting-items", json=item_body(board["id"], topic="x" * 201), headers=headers(),
        )
        assert res.status_code == 400
        assert "topic" in _errors(res)

    def test_unknown_board_is_validation_error(self, client, template):
        res = client.post("/api/meeting-items", json=item_body("missing"), headers=headers())
        assert res.status_code == 400
        assert _errors(res)["decision_board_id"] == "Decision board not found"

    def test_template_from_other_board_rejected(self, client, board, template):
        other = client.post(
            "/api/decision-boards", json={"name": "Other"}, headers=headers("admin"),
        ).get_json()["data"]
        res = client.post(
            "/api/meeting-items",
            json=item_body(other["id"], template_id=template["id"]),
            headers=headers(),
        )
        assert res.status_code == 400
        assert "template_id" in _errors(res)

    def test_missing_required_dynamic_field(self, client, board, template):
        res = client.post(
            "/api/meeting-items", json=item_body(board["id"], field_values=[]), headers=headers(),
        )
        assert res.status_code == 400
        assert _errors(res)["business_case"] == "This field is required"

    def test_invalid_dynamic_values(self, client, board, template):
        res = client.post(
            "/api/meeting-items",
            json=item_body(board["id"], field_values=[
                {"field_name": "business_case", "value": "ok"},
                {"field_name": "budget", "value": 5000},
                {"field_name": "priority", "value": "urgent"},
                {"field_name": "nope", "value": "x"},
            ]),
            headers=headers(),
        )
        assert res.status_code == 400
        errors = _errors(res)
        assert "business_case" in errors  # min_length 5
        assert "budget" in errors
        assert "priority" in errors
        assert errors["nope"] == "Unknown field"

    def test_non_string_field_name_is_validation_error(self, client, board, template):
        res = client.post(
            "/api/meeting-items",
            json=item_body(board["id"], field_values=[{"field_name": 5, "value": "x"}]),
            headers=headers(),
        )
        assert res.status_code == 400
        assert _errors(res) == {"field_values[0]": "field_name is required"}

    def test_create_with_documents(self, client, board, template, blobs):
        res = client.post(
            "/api/meeting-items",
            json=item_body(board["id"], documents=[doc_payload(), doc_payload("notes.txt", b"hi")]),
            headers=headers(),
        )
        assert res.status_code == 201
        item = res.get_json()["data"]
        assert item["document_count"] == 2
        assert len(blobs) == 2
        assert all(d["version"] == 1 for d in item["documents"])

    def test_inline_document_count_is_capped(self, client, app, board, template, blobs, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_DOCUMENTS_PER_REQUEST", 1)
        res = client.post(
            "/api/meeting-items",
            json=item_body(board["id"], documents=[doc_payload("a.txt", b"a"), doc_payload("b.txt", b"b")]),
            headers=headers(),
        )
        assert res.status_code == 400
        assert _errors(res) == {"documents": "At most 1 documents per request"}
        assert len(blobs) == 0

    def test_invalid_document_rolls_back_item_and_blobs(self, client, board, template, blobs):
        res = client.post(
            "/api/meeting-items",
            json=item_body(board["id"], documents=[doc_payload(), {"file_name": "bad.pdf", "content": "!!"}]),
            headers=headers(),
        )
        assert res.status_code == 400
        assert MeetingItem.query.count() == 0
        assert len(blobs) == 0

    def test_create_writes_audit_row(self, make_item):
        item = make_item()
        log = AuditLog.query.filter_by(entity_id=item["id"], action="meeting_item.create").one()
        assert log.actor == REQUESTOR


# ═══════════════════════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════════════════════


class TestQueries:

    def test_get_detail(self, client, make_item):
        item = make_item()
        res = client.get(f"/api/meeting-items/{item['id']}")
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["decision_board_name"] == "Architecture Board"
        assert data["template_name"] == "Standard"
        assert data["historical_fields"] == []

    def test_get_missing_is_404(self, client):
        res = client.get("/api/meeting-items/does-not-exist")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_list_with_filters_and_pagination(self, client, make_item, board):
        for n in range(3):
            make_item(topic=f"Topic {n}")
        res = client.get(f"/api/meeting-items?decision_board_id={board['id']}&limit=2")
        data = res.get_json()["data"]
        assert data["total"] == 3
        assert len(data["items"]) == 2
        assert data["limit"] == 2

        res = client.get("/api/meeting-items?status=Submitted")
        assert res.get_json()["data"]["total"] == 0

    def test_list_rejects_unknown_status(self, client):
        res = client.get("/api/meeting-items?status=Archived")
        assert res.status_code == 400

    def test_list_by_decision_board(self, client, make_item, board):
        make_item()
        res = client.get(f"/api/meeting-items/decision-board/{board['id']}")
        assert res.status_code == 200
        assert len(res.get_json()["data"]) == 1

    def test_list_by_missing_board_is_404(self, client):
        res = client.get("/api/meeting-items/decision-board/nope")
        assert res.status_code == 404

    def test_legacy_prefix_serves_same_routes(self, client, make_item):
        item = make_item()
        res = client.get(f"/api/MeetingItems/{item['id']}")
        assert res.status_code == 200
        assert res.get_json()["data"]["id"] == item["id"]


# ═══════════════════════════════════════════════════════════════════════════════
# Update
# ═══════════════════════════════════════════════════════════════════════════════


class TestUpdateMeetingItem:

    def _put(self, client, item_id, body, user=REQUESTOR):
        return client.put(f"/api/meeting-items/{item_id}", json=body, headers=headers(user))

    def test_partial_update_by_requestor(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"topic": "New topic"})
        assert res.status_code == 200
        updated = res.get_json()["data"]["meeting_item"]
        assert updated["topic"] == "New topic"
        assert updated["purpose"] == item["purpose"]
        assert updated["updated_by"] == REQUESTOR

    def test_owner_presenter_may_update(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"duration_minutes": 45}, user=PRESENTER)
        assert res.status_code == 200
        assert res.get_json()["data"]["meeting_item"]["duration_minutes"] == 45

    def test_outsider_is_forbidden(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"topic": "Hijack"}, user=OUTSIDER)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_body_id_must_match(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"id": "other", "topic": "x"})
        assert res.status_code == 400

    def test_invalid_static_value(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"purpose": "tiny"})
        assert res.status_code == 400
        assert "purpose" in _errors(res)

    def test_update_field_values_without_resending_required(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"field_values": [{"field_name": "budget", "value": 10}]})
        assert res.status_code == 200
        fields = {f["field_name"]: f for f in res.get_json()["data"]["meeting_item"]["active_fields"]}
        assert fields["budget"]["number_value"] == 10
        assert fields["business_case"]["text_value"] == "Saves cost"

    def test_update_with_document_operations(self, client, make_item, blobs):
        item = make_item(documents=[doc_payload("plan.pdf", b"v1"), doc_payload("old.txt", b"old")])
        plan, old = sorted(item["documents"], key=lambda d: d["original_file_name"])[::-1]
        res = self._put(client, item["id"], {
            "documents_to_delete": [old["id"]],
            "document_versions": [{"base_document_id": plan["id"],
                                   "document": doc_payload("plan.pdf", b"v2")}],
            "new_documents": [doc_payload("extra.csv", b"a,b")],
        })
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["deleted_document_ids"] == [old["id"]]
        assert len(data["versioned_document_ids"]) == 1
        assert len(data["uploaded_document_ids"]) == 1

        docs = {d["id"]: d for d in data["meeting_item"]["documents"]}
        assert old["id"] not in docs
        new_version = docs[data["versioned_document_ids"][0]]
        assert new_version["version"] == 2
        assert new_version["base_document_id"] == plan["id"]
        assert docs[plan["id"]]["is_latest_version"] is False
        assert not blobs.exists(old["storage_path"])

    def test_version_entry_requires_base(self, client, make_item):
        item = make_item()
        res = self._put(client, item["id"], {"document_versions": [{"document": doc_payload()}]})
        assert res.status_code == 400

    def test_closed_item_cannot_be_updated(self, client, make_item):
        item = make_item()
        client.post(f"/api/meeting-items/{item['id']}/submit", headers=headers())
        client.patch(
            f"/api/meeting-items/{item['id']}/status",
            json={"status": "Denied", "denial_reason": "Out of scope"},
            headers=headers("sam", "Chair"),
        )
        res = self._put(client, item["id"], {"topic": "Too late"})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_update_missing_is_404(self, client):
        res = self._put(client, "missing", {"topic": "x"})
        assert res.status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# Form template endpoint
# ═══════════════════════════════════════════════════════════════════════════════


class TestFormTemplate:

    def test_template_for_board(self, client, board, template):
        res = client.get(f"/api/meeting-items/template/{board['id']}")
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["id"] == template["id"]
        names = [f["field_name"] for f in data["field_definitions"]]
        # category, then display order
        assert names == ["business_case", "budget", "priority"]

    def test_board_without_template_is_404(self, client, board):
        res = client.get(f"/api/meeting-items/template/{board['id']}")
        assert res.status_code == 404
