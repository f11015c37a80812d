"""Tests for the workflow validator and auto-fix."""

import copy

from clixen.services.workflow_validator import (
    PLACEHOLDER_EMAIL,
    PLACEHOLDER_URL,
    auto_fix,
    reliability_score,
    validate_workflow,
)
from conftest import make_workflow_json


def _types(issues):
    return [i.type for i in issues]


def _node(name, node_type, **params):
    return {
        "id": name.lower().replace(" ", "_"),
        "name": name,
        "type": node_type,
        "position": [0, 0],
        "parameters": params,
    }


class TestStructure:

    def test_valid_workflow_scores_100(self):
        report = validate_workflow(make_workflow_json())
        assert report.is_valid
        assert report.errors == []
        assert report.warnings == []
        assert report.score == 100

    def test_not_an_object(self):
        report = validate_workflow(["nodes"])
        assert _types(report.errors) == ["INVALID_STRUCTURE"]
        assert report.score == 80

    def test_missing_nodes_and_connections(self):
        report = validate_workflow({"name": "x"})
        assert "MISSING_NODES" in _types(report.errors)
        assert "MISSING_CONNECTIONS" in _types(report.errors)

    def test_no_trigger(self):
        workflow = {
            "nodes": [_node("Fetch", "n8n-nodes-base.httpRequest", url="https://x")],
            "connections": {},
        }
        assert "NO_TRIGGER" in _types(validate_workflow(workflow).errors)


class TestNodes:

    def test_incomplete_node(self):
        workflow = make_workflow_json()
        workflow["nodes"].append({"name": "Broken"})
        report = validate_workflow(workflow)
        assert "INCOMPLETE_NODE" in _types(report.errors)

    def test_blocked_node_with_alternative(self):
        workflow = make_workflow_json()
        workflow["nodes"].append(_node("Gmail", "n8n-nodes-base.gmail"))
        report = validate_workflow(workflow)
        assert "BLOCKED_NODE" in _types(report.errors)
        assert "ALTERNATIVE_AVAILABLE" in _types(report.warnings)

    def test_unknown_node_is_warning(self):
        workflow = make_workflow_json()
        workflow["nodes"].append(_node("Custom", "n8n-nodes-custom.thing"))
        workflow["connections"]["Send Email"] = {"main": [[{"node": "Custom", "type": "main", "index": 0}]]}
        report = validate_workflow(workflow)
        assert report.is_valid
        assert _types(report.warnings) == ["UNKNOWN_NODE"]
        assert report.score == 95

    def test_parameter_checks(self):
        workflow = {
            "nodes": [
                _node("Trigger", "n8n-nodes-base.webhook"),
                _node("Call", "n8n-nodes-base.httpRequest"),
                _node("Mail", "n8n-nodes-base.emailSend"),
                _node("Code", "n8n-nodes-base.code"),
            ],
            "connections": {},
        }
        report = validate_workflow(workflow)
        errors = _types(report.errors)
        assert "MISSING_URL" in errors
        assert "MISSING_EMAIL" in errors
        assert "MISSING_CODE" in errors
        assert "MISSING_WEBHOOK_CONFIG" in _types(report.warnings)

    def test_missing_position(self):
        workflow = make_workflow_json()
        del workflow["nodes"][1]["position"]
        assert "MISSING_POSITION" in _types(validate_workflow(workflow).warnings)


class TestConnections:

    def test_invalid_target(self):
        workflow = make_workflow_json()
        workflow["connections"]["Send Email"] = {"main": [[{"node": "Ghost", "type": "main", "index": 0}]]}
        report = validate_workflow(workflow)
        assert "INVALID_CONNECTION_TARGET" in _types(report.errors)

    def test_invalid_source(self):
        workflow = make_workflow_json()
        workflow["connections"]["Ghost"] = {"main": [[{"node": "Send Email", "type": "main", "index": 0}]]}
        assert "INVALID_CONNECTION_SOURCE" in _types(validate_workflow(workflow).errors)

    def test_orphaned_node(self):
        workflow = make_workflow_json()
        workflow["connections"].pop("Fetch Weather")
        report = validate_workflow(workflow)
        assert report.is_valid
        assert "ORPHANED_NODE" in _types(report.warnings)


class TestCompleteness:

    def test_single_trigger_is_too_simple(self):
        workflow = {"nodes": [_node("Start", "n8n-nodes-base.manualTrigger")], "connections": {}}
        report = validate_workflow(workflow)
        assert "TOO_SIMPLE" in _types(report.warnings)
        assert "NO_OUTPUT" in _types(report.warnings)
        assert len(report.suggestions) == 2


class TestScore:

    def test_arithmetic(self):
        assert reliability_score(0, 0) == 100
        assert reliability_score(1, 2) == 70
        assert reliability_score(2, 3) == 45

    def test_clamped(self):
        assert reliability_score(10, 0) == 0
        assert reliability_score(0, 0) <= 100

    def test_to_dict(self):
        data = validate_workflow({"name": "x"}).to_dict()
        assert data["is_valid"] is False
        assert data["score"] == 100 - 20 * len(data["errors"]) - 5 * len(data["warnings"])
        assert {"type", "message", "node", "parameter"} <= set(data["errors"][0])


class TestAutoFix:

    def test_does_not_mutate_input(self):
        workflow = make_workflow_json()
        workflow["nodes"][1]["parameters"] = {}
        snapshot = copy.deepcopy(workflow)
        auto_fix(workflow, validate_workflow(workflow).errors)
        assert workflow == snapshot

    def test_fills_placeholders(self):
        workflow = make_workflow_json()
        workflow["nodes"][1]["parameters"] = {}
        workflow["nodes"][2]["parameters"] = {}
        fixed = auto_fix(workflow, validate_workflow(workflow).errors)
        assert fixed["nodes"][1]["parameters"]["url"] == PLACEHOLDER_URL
        assert fixed["nodes"][2]["parameters"]["toEmail"] == PLACEHOLDER_EMAIL
        assert validate_workflow(fixed).is_valid

    def test_replaces_gmail_with_email_send(self):
        workflow = make_workflow_json()
        workflow["nodes"][2] = _node("Send Email", "n8n-nodes-base.gmail", subject="Hi")
        fixed = auto_fix(workflow, validate_workflow(workflow).errors)
        node = fixed["nodes"][2]
        assert node["type"] == "n8n-nodes-base.emailSend"
        assert node["name"] == "Send Email"
        assert node["parameters"]["subject"] == "Hi"
        assert validate_workflow(fixed).is_valid

    def test_replaces_slack_with_http_request(self):
        workflow = make_workflow_json()
        workflow["nodes"][2] = _node("Send Email", "n8n-nodes-base.slack", text="Done")
        fixed = auto_fix(workflow, validate_workflow(workflow).errors)
        assert fixed["nodes"][2]["type"] == "n8n-nodes-base.httpRequest"
        assert '"Done"' in fixed["nodes"][2]["parameters"]["bodyParametersJson"]

    def test_prepends_manual_trigger(self):
        workflow = make_workflow_json()
        workflow["nodes"] = workflow["nodes"][1:]
        workflow["connections"].pop("Webhook")
        fixed = auto_fix(workflow, validate_workflow(workflow).errors)

        assert fixed["nodes"][0]["type"] == "n8n-nodes-base.manualTrigger"
        assert fixed["connections"]["Manual Trigger"]["main"][0][0]["node"] == "Fetch Weather"
        report = validate_workflow(fixed)
        assert report.is_valid
        assert "ORPHANED_NODE" not in _types(report.warnings)

    def test_drops_dangling_connections(self):
        workflow = make_workflow_json()
        workflow["connections"]["Ghost"] = {"main": [[{"node": "Send Email", "type": "main", "index": 0}]]}
        workflow["connections"]["Send Email"] = {"main": [[{"node": "Nowhere", "type": "main", "index": 0}]]}
        fixed = auto_fix(workflow, validate_workflow(workflow).errors)
        assert "Ghost" not in fixed["connections"]
        assert validate_workflow(fixed).is_valid
