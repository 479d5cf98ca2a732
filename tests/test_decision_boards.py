"""Decision board API tests."""

from conftest import headers


def _create(client, body, user="admin"):
    return client.post("/api/decision-boards", json=body, headers=headers(user))


class TestDecisionBoards:

    def test_create_defaults(self, client):
        res = _create(client, {"name": "Steering Committee"})
        assert res.status_code == 201
        board = res.get_json()["data"]
        assert board["abbreviation"] == "DB"
        assert board["is_active"] is True
        assert board["default_template_id"] is None

    def test_name_required(self, client):
        res = _create(client, {"abbreviation": "SC"})
        assert res.status_code == 400
        assert res.get_json()["details"]["name"] == "This field is required"

    def test_duplicate_name_is_conflict(self, client, board):
        res = _create(client, {"name": board["name"]})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_list_active_only(self, client, board):
        inactive = _create(client, {"name": "Retired", "is_active": False}).get_json()["data"]
        all_boards = client.get("/api/decision-boards").get_json()["data"]
        active = client.get("/api/decision-boards?active_only=true").get_json()["data"]
        assert {b["id"] for b in all_boards} == {board["id"], inactive["id"]}
        assert [b["id"] for b in active] == [board["id"]]

    def test_get_missing_is_404(self, client):
        assert client.get("/api/decision-boards/nope").status_code == 404

    def test_update_board(self, client, board):
        res = client.put(
            f"/api/decision-boards/{board['id']}",
            json={"description": "Reviews architecture", "abbreviation": "ARB"},
            headers=headers("admin"),
        )
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["abbreviation"] == "ARB"
        assert data["description"] == "Reviews architecture"

    def test_rename_to_existing_name_is_conflict(self, client, board):
        other = _create(client, {"name": "Other"}).get_json()["data"]
        res = client.put(
            f"/api/decision-boards/{other['id']}", json={"name": board["name"]},
            headers=headers("admin"),
        )
        assert res.status_code == 409

    def test_default_template_must_belong_to_board(self, client, board, template):
        other = _create(client, {"name": "Other"}).get_json()["data"]
        res = client.put(
            f"/api/decision-boards/{other['id']}",
            json={"default_template_id": template["id"]},
            headers=headers("admin"),
        )
        assert res.status_code == 400

    def test_inactive_board_rejects_new_items(self, client, board, template, make_item):
        client.put(
            f"/api/decision-boards/{board['id']}", json={"is_active": False}, headers=headers("admin"),
        )
        res = client.post(
            "/api/meeting-items",
            json={"decision_board_id": board["id"], "topic": "T", "purpose": "Long enough text",
                  "outcome": "Discussion", "digital_product": "P", "duration_minutes": 5,
                  "owner_presenter": "bob",
                  "field_values": [{"field_name": "business_case", "value": "Because"}]},
            headers=headers("alice"),
        )
        assert res.status_code == 400
        assert res.get_json()["details"]["decision_board_id"] == "Decision board is not active"
