"""
Template & field definition API tests.

Covers template CRUD, board default selection, field add/update rules,
option upserts, and deactivation with historical values on meeting items.
"""

from conftest import headers

from app.models.audit import AuditLog


def _post(client, url, body, user="admin"):
    return client.post(url, json=body, headers=headers(user))


def _put(client, url, body, user="admin"):
    return client.put(url, json=body, headers=headers(user))


def _field(template, name):
    return next(f for f in template["field_definitions"] if f["field_name"] == name)


class TestTemplates:

    def test_first_template_becomes_board_default(self, client, board, template):
        res = client.get(f"/api/decision-boards/{board['id']}")
        assert res.get_json()["data"]["default_template_id"] == template["id"]

    def test_second_template_only_default_when_requested(self, client, board, template):
        second = _post(client, "/api/templates", {
            "decision_board_id": board["id"], "name": "Light",
        }).get_json()["data"]
        res = client.get(f"/api/decision-boards/{board['id']}")
        assert res.get_json()["data"]["default_template_id"] == template["id"]

        third = _post(client, "/api/templates", {
            "decision_board_id": board["id"], "name": "Heavy", "set_as_default": True,
        }).get_json()["data"]
        res = client.get(f"/api/decision-boards/{board['id']}")
        assert res.get_json()["data"]["default_template_id"] == third["id"]
        assert second["id"] != third["id"]

    def test_duplicate_template_name_is_conflict(self, client, board, template):
        res = _post(client, "/api/templates", {"decision_board_id": board["id"], "name": "Standard"})
        assert res.status_code == 409

    def test_template_for_missing_board_is_404(self, client):
        res = _post(client, "/api/templates", {"decision_board_id": "nope", "name": "X"})
        assert res.status_code == 404

    def test_nested_field_errors_are_prefixed(self, client, board):
        res = _post(client, "/api/templates", {
            "decision_board_id": board["id"],
            "name": "Broken",
            "field_definitions": [
                {"field_name": "a", "field_type": "colour"},
                {"field_name": "b", "field_type": "dropdown"},
                {"field_name": "c", "field_type": "number", "validation_rules": {"min_length": 2}},
            ],
        })
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert "field_definitions[0].field_type" in details
        assert "field_definitions[1].options" in details
        assert "field_definitions[2].min_length" in details

    def test_non_string_field_type_rejected(self, client, board):
        res = _post(client, "/api/templates", {
            "decision_board_id": board["id"],
            "name": "Typed",
            "field_definitions": [
                {"field_name": "a", "field_type": ["text"]},
                {"field_name": "b", "field_type": {"t": "dropdown"}, "options": ["x"]},
            ],
        })
        assert res.status_code == 400
        details = res.get_json()["details"]
        assert "field_definitions[0].field_type" in details
        assert "field_definitions[1].field_type" in details

    def test_duplicate_field_names_rejected(self, client, board):
        res = _post(client, "/api/templates", {
            "decision_board_id": board["id"],
            "name": "Dupes",
            "field_definitions": [{"field_name": "x"}, {"field_name": "x"}],
        })
        assert res.status_code == 400

    def test_list_and_get(self, client, board, template):
        listed = client.get(f"/api/templates?decision_board_id={board['id']}").get_json()["data"]
        assert [t["id"] for t in listed] == [template["id"]]
        assert "field_definitions" not in listed[0]
        detail = client.get(f"/api/templates/{template['id']}").get_json()["data"]
        assert len(detail["field_definitions"]) == 3

    def test_update_template(self, client, template):
        res = _put(client, f"/api/templates/{template['id']}", {"description": "Updated"})
        assert res.status_code == 200
        assert res.get_json()["data"]["description"] == "Updated"
        assert res.get_json()["data"]["updated_by"] == "admin"

    def test_inactive_default_falls_back_to_oldest_active(self, client, board, template):
        other = _post(client, "/api/templates", {
            "decision_board_id": board["id"], "name": "Fallback",
        }).get_json()["data"]
        _put(client, f"/api/templates/{template['id']}", {"is_active": False})
        res = client.get(f"/api/meeting-items/template/{board['id']}")
        assert res.status_code == 200
        assert res.get_json()["data"]["id"] == other["id"]


class TestFieldDefinitions:

    def test_add_field(self, client, template):
        res = _post(client, f"/api/templates/{template['id']}/fields", {
            "field_name": "go_live", "field_type": "date", "label": "Go-live",
        })
        assert res.status_code == 201
        assert res.get_json()["data"]["field_type"] == "date"

    def test_add_existing_field_name_is_conflict(self, client, template):
        res = _post(client, f"/api/templates/{template['id']}/fields", {"field_name": "budget"})
        assert res.status_code == 409

    def test_field_name_and_type_are_immutable(self, client, template):
        budget = _field(template, "budget")
        res = _put(client, f"/api/field-definitions/{budget['id']}", {
            "field_name": "cost", "field_type": "text",
        })
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"field_name", "field_type"}

    def test_update_label_and_rules(self, client, template):
        budget = _field(template, "budget")
        res = _put(client, f"/api/field-definitions/{budget['id']}", {
            "label": "Budget (kEUR)", "validation_rules": {"min": 10},
        })
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["label"] == "Budget (kEUR)"
        assert data["validation_rules"] == {"min": 10}

    def test_invalid_pattern_rejected(self, client, template):
        case = _field(template, "business_case")
        res = _put(client, f"/api/field-definitions/{case['id']}", {
            "validation_rules": {"pattern": "("},
        })
        assert res.status_code == 400

    def test_options_are_upserted_and_missing_ones_deactivated(self, client, template):
        priority = _field(template, "priority")
        res = _put(client, f"/api/field-definitions/{priority['id']}", {
            "options": [{"value": "high", "label": "HIGH"}, "critical"],
        })
        assert res.status_code == 200
        options = {o["value"]: o for o in res.get_json()["data"]["options"]}
        assert options["high"]["label"] == "HIGH"
        assert options["critical"]["is_active"] is True
        assert options["low"]["is_active"] is False
        assert options["medium"]["is_active"] is False

    def test_deactivated_option_no_longer_accepted(self, client, template, make_item):
        priority = _field(template, "priority")
        _put(client, f"/api/field-definitions/{priority['id']}", {"options": ["high"]})
        form = client.get(f"/api/meeting-items/template/{template['decision_board_id']}").get_json()["data"]
        assert [o["value"] for o in _field(form, "priority")["options"]] == ["high"]

        res = client.post(
            "/api/meeting-items",
            json={
                "decision_board_id": template["decision_board_id"],
                "topic": "T", "purpose": "A long enough purpose", "outcome": "Information",
                "digital_product": "P", "duration_minutes": 10, "owner_presenter": "bob",
                "field_values": {"business_case": "Because", "priority": "low"},
            },
            headers=headers("alice"),
        )
        assert res.status_code == 400
        assert "priority" in res.get_json()["details"]


class TestDeactivation:

    def test_deactivated_field_becomes_historical(self, client, template, make_item):
        item = make_item(field_values=[
            {"field_name": "business_case", "value": "Saves cost"},
            {"field_name": "budget", "value": 42},
        ])
        budget = _field(template, "budget")
        res = _post(client, f"/api/field-definitions/{budget['id']}/deactivate", {"reason": "Not used"})
        assert res.status_code == 200
        assert res.get_json()["data"]["is_active"] is False
        assert res.get_json()["data"]["deactivation_reason"] == "Not used"

        detail = client.get(f"/api/meeting-items/{item['id']}").get_json()["data"]
        assert "budget" not in {f["field_name"] for f in detail["active_fields"]}
        historical = detail["historical_fields"]
        assert historical[0]["field_name"] == "budget"
        assert historical[0]["value"] == "42"
        assert historical[0]["deactivation_reason"] == "Not used"

        form = client.get(f"/api/meeting-items/template/{template['decision_board_id']}").get_json()["data"]
        assert "budget" not in {f["field_name"] for f in form["field_definitions"]}

    def test_deactivated_field_rejects_new_values(self, client, template, make_item):
        item = make_item()
        budget = _field(template, "budget")
        _post(client, f"/api/field-definitions/{budget['id']}/deactivate", {})
        res = client.put(
            f"/api/meeting-items/{item['id']}",
            json={"field_values": [{"field_name": "budget", "value": 1}]},
            headers=headers("alice"),
        )
        assert res.status_code == 400
        assert res.get_json()["details"]["budget"].startswith("Field is deactivated")

    def test_deactivated_required_field_no_longer_required(self, client, template, make_item):
        case = _field(template, "business_case")
        _post(client, f"/api/field-definitions/{case['id']}/deactivate", {})
        item = make_item(field_values=[])
        res = client.post(f"/api/meeting-items/{item['id']}/submit", headers=headers("alice"))
        assert res.status_code == 200

    def test_double_deactivation_rejected(self, client, template):
        budget = _field(template, "budget")
        _post(client, f"/api/field-definitions/{budget['id']}/deactivate", {})
        res = _post(client, f"/api/field-definitions/{budget['id']}/deactivate", {})
        assert res.status_code == 400

    def test_reason_length_limit(self, client, template):
        budget = _field(template, "budget")
        res = _post(client, f"/api/field-definitions/{budget['id']}/deactivate", {"reason": "x" * 501})
        assert res.status_code == 400

    def test_reactivate(self, client, template):
        budget = _field(template, "budget")
        _post(client, f"/api/field-definitions/{budget['id']}/deactivate", {"reason": "tmp"})
        res = _post(client, f"/api/field-definitions/{budget['id']}/reactivate", {})
        assert res.status_code == 200
        data = res.get_json()["data"]
        assert data["is_active"] is True
        assert data["deactivation_reason"] is None
        actions = [a.action for a in AuditLog.query.filter_by(entity_id=budget["id"]).all()]
        assert "field_definition.deactivate" in actions
        assert "field_definition.reactivate" in actions

    def test_unknown_field_is_404(self, client):
        assert _post(client, "/api/field-definitions/nope/deactivate", {}).status_code == 404
