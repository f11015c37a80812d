"""Static checks for generated n8n workflow JSON.

A list of ``if`` statements over the workflow dict: structure, per-node
fields and parameters, connections, and a completeness heuristic. Nodes that
need per-user OAuth credentials are blocked because every user shares one
n8n instance. The score starts at 100 and loses 20 per error and 5 per
warning.

``auto_fix`` repairs the errors it knows how to repair and returns a new
dict; the input is never mutated.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field, asdict
from typing import Any

logger = logging.getLogger(__name__)

TRIGGER_NODES = (
    "n8n-nodes-base.webhook",
    "n8n-nodes-base.scheduleTrigger",
    "n8n-nodes-base.manualTrigger",
    "n8n-nodes-base.errorTrigger",
    "n8n-nodes-base.interval",
)

# Node types known to run on the shared instance without per-user OAuth.
COMPATIBLE_NODES: dict[str, tuple[str, ...]] = {
    "triggers": TRIGGER_NODES,
    "dataProcessing": (
        "n8n-nodes-base.set",
        "n8n-nodes-base.function",
        "n8n-nodes-base.code",
        "n8n-nodes-base.if",
        "n8n-nodes-base.switch",
        "n8n-nodes-base.merge",
        "n8n-nodes-base.splitInBatches",
        "n8n-nodes-base.itemLists",
        "n8n-nodes-base.aggregate",
        "n8n-nodes-base.limit",
        "n8n-nodes-base.sort",
        "n8n-nodes-base.removeDuplicates",
    ),
    "communication": (
        "n8n-nodes-base.httpRequest",
        "n8n-nodes-base.emailSend",
        "n8n-nodes-base.webhook",
        "n8n-nodes-base.respondToWebhook",
        "n8n-nodes-base.mqtt",
        "n8n-nodes-base.redis",
    ),
    "filesAndData": (
        "n8n-nodes-base.readBinaryFile",
        "n8n-nodes-base.writeBinaryFile",
        "n8n-nodes-base.moveBinaryData",
        "n8n-nodes-base.csv",
        "n8n-nodes-base.xml",
        "n8n-nodes-base.html",
        "n8n-nodes-base.markdown",
        "n8n-nodes-base.spreadsheetFile",
    ),
    "utilities": (
        "n8n-nodes-base.crypto",
        "n8n-nodes-base.dateTime",
        "n8n-nodes-base.wait",
        "n8n-nodes-base.noOp",
        "n8n-nodes-base.stopAndError",
    ),
    "ai": (
        "n8n-nodes-base.openAi",
        "@n8n/n8n-nodes-langchain.openAi",
        "n8n-nodes-firecrawl",
    ),
    "databases": (
        "n8n-nodes-base.postgres",
        "n8n-nodes-base.redis",
        "n8n-nodes-base.supabase",
    ),
}

ALLOWED_NODES = frozenset(t for group in COMPATIBLE_NODES.values() for t in group)

# Require per-user OAuth credentials.
BLOCKED_NODES = frozenset({
    "n8n-nodes-base.googleSheets",
    "n8n-nodes-base.gmail",
    "n8n-nodes-base.googleDrive",
    "n8n-nodes-base.slack",
    "n8n-nodes-base.discord",
    "n8n-nodes-base.twitter",
    "n8n-nodes-base.github",
    "n8n-nodes-base.notion",
    "n8n-nodes-base.airtable",
    "n8n-nodes-base.hubspot",
    "n8n-nodes-base.salesforce",
    "n8n-nodes-base.microsoftTeams",
    "n8n-nodes-base.zoom",
})

SUGGESTED_ALTERNATIVES = {
    "n8n-nodes-base.googleSheets": "n8n-nodes-base.spreadsheetFile",
    "n8n-nodes-base.gmail": "n8n-nodes-base.emailSend",
    "n8n-nodes-base.slack": "n8n-nodes-base.httpRequest (with webhook URL)",
    "n8n-nodes-base.discord": "n8n-nodes-base.httpRequest (with webhook URL)",
    "n8n-nodes-base.github": "n8n-nodes-base.httpRequest (with API)",
    "n8n-nodes-base.notion": "n8n-nodes-base.httpRequest (with API)",
}

OUTPUT_NODES = frozenset({
    "n8n-nodes-base.respondToWebhook",
    "n8n-nodes-base.emailSend",
    "n8n-nodes-base.httpRequest",
    "n8n-nodes-base.writeBinaryFile",
})

PLACEHOLDER_URL = "https://api.example.com/endpoint"
PLACEHOLDER_EMAIL = '={{$json["email"]}}'

ERROR_PENALTY = 20
WARNING_PENALTY = 5


@dataclass(frozen=True)
class Issue:
    """One validation error or warning."""

    type: str
    message: str
    node: str | None = None
    parameter: str | None = None


@dataclass
class ValidationReport:
    errors: list[Issue] = field(default_factory=list)
    warnings: list[Issue] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def score(self) -> int:
        return reliability_score(len(self.errors), len(self.warnings))

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "score": self.score,
            "errors": [asdict(e) for e in self.errors],
            "warnings": [asdict(w) for w in self.warnings],
            "suggestions": list(self.suggestions),
        }


def reliability_score(error_count: int, warning_count: int) -> int:
    score = 100 - ERROR_PENALTY * error_count - WARNING_PENALTY * warning_count
    return max(0, min(100, score))


def is_trigger(node: Any) -> bool:
    return isinstance(node, dict) and node.get("type") in TRIGGER_NODES


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def validate_workflow(workflow: Any) -> ValidationReport:
    """Run every check and collect the findings."""
    report = ValidationReport()

    if not isinstance(workflow, dict):
        report.errors.append(Issue("INVALID_STRUCTURE", "Workflow must be a valid object"))
        return report

    nodes = workflow.get("nodes")
    connections = workflow.get("connections")

    _check_structure(nodes, connections, report)

    node_list = nodes if isinstance(nodes, list) else []
    for node in node_list:
        _check_node(node, report)

    if isinstance(connections, dict):
        _check_connections(node_list, connections, report)

    _check_completeness(node_list, report)
    return report


def _check_structure(nodes: Any, connections: Any, report: ValidationReport) -> None:
    if not isinstance(nodes, list):
        report.errors.append(Issue("MISSING_NODES", "Workflow must have a nodes array"))
    if not isinstance(connections, dict):
        report.errors.append(Issue("MISSING_CONNECTIONS", "Workflow must have a connections object"))
    if isinstance(nodes, list) and not any(is_trigger(n) for n in nodes):
        report.errors.append(Issue("NO_TRIGGER", "Workflow must have at least one trigger node"))


def _check_node(node: Any, report: ValidationReport) -> None:
    if not isinstance(node, dict) or not (node.get("id") and node.get("name") and node.get("type")):
        name = node.get("name") if isinstance(node, dict) else None
        report.errors.append(Issue(
            "INCOMPLETE_NODE",
            "Node missing required fields (id, name, or type)",
            node=name or "unknown",
        ))
        return

    name = node["name"]
    node_type = node["type"]

    if node_type in BLOCKED_NODES:
        report.errors.append(Issue(
            "BLOCKED_NODE",
            f"Node type '{node_type}' requires OAuth and is not supported",
            node=name,
        ))
        alternative = SUGGESTED_ALTERNATIVES.get(node_type)
        if alternative:
            report.warnings.append(Issue(
                "ALTERNATIVE_AVAILABLE",
                f"Consider using '{alternative}' instead of '{node_type}'",
                node=name,
            ))
    elif node_type not in ALLOWED_NODES:
        report.warnings.append(Issue(
            "UNKNOWN_NODE",
            f"Node type '{node_type}' is not in the verified list",
            node=name,
        ))

    _check_parameters(node, report)

    position = node.get("position")
    if not isinstance(position, list) or len(position) != 2:
        report.warnings.append(Issue(
            "MISSING_POSITION", "Node should have a position array [x, y]", node=name,
        ))


def _check_parameters(node: dict, report: ValidationReport) -> None:
    params = node.get("parameters") or {}
    name = node["name"]
    node_type = node["type"]

    if node_type == "n8n-nodes-base.webhook":
        if not params.get("path") and not params.get("httpMethod"):
            report.warnings.append(Issue(
                "MISSING_WEBHOOK_CONFIG", "Webhook node should have path and httpMethod", node=name,
            ))
    elif node_type == "n8n-nodes-base.httpRequest":
        if not params.get("url"):
            report.errors.append(Issue(
                "MISSING_URL", "HTTP Request node requires a URL", node=name, parameter="url",
            ))
    elif node_type == "n8n-nodes-base.emailSend":
        if not params.get("toEmail"):
            report.errors.append(Issue(
                "MISSING_EMAIL", "Email Send node requires toEmail parameter", node=name, parameter="toEmail",
            ))
    elif node_type in ("n8n-nodes-base.code", "n8n-nodes-base.function"):
        if not params.get("jsCode") and not params.get("functionCode"):
            report.errors.append(Issue(
                "MISSING_CODE", "Code node requires jsCode or functionCode", node=name, parameter="jsCode",
            ))


def _iter_targets(outputs: Any):
    """Yield every connection dict under ``{"main": [[...], ...]}``."""
    if not isinstance(outputs, dict):
        return
    main = outputs.get("main")
    if not isinstance(main, list):
        return
    for group in main:
        if isinstance(group, list):
            for connection in group:
                yield connection


def _check_connections(nodes: list, connections: dict, report: ValidationReport) -> None:
    names = {n.get("name") for n in nodes if isinstance(n, dict)}

    for source, outputs in connections.items():
        if source not in names:
            report.errors.append(Issue(
                "INVALID_CONNECTION_SOURCE", f"Connection source '{source}' does not exist",
            ))
            continue
        if not isinstance(outputs, dict):
            report.errors.append(Issue(
                "INVALID_CONNECTION_STRUCTURE", f"Invalid connection structure for '{source}'",
            ))
            continue
        for connection in _iter_targets(outputs):
            target = connection.get("node") if isinstance(connection, dict) else None
            if not target or target not in names:
                report.errors.append(Issue(
                    "INVALID_CONNECTION_TARGET",
                    f"Connection target '{target}' does not exist",
                    node=source,
                ))

    connected = set()
    first_trigger = next((n for n in nodes if is_trigger(n)), None)
    if first_trigger:
        connected.add(first_trigger.get("name"))
    for outputs in connections.values():
        for connection in _iter_targets(outputs):
            if isinstance(connection, dict):
                connected.add(connection.get("node"))

    for node in nodes:
        if not isinstance(node, dict):
            continue
        if node.get("name") not in connected and not is_trigger(node):
            report.warnings.append(Issue(
                "ORPHANED_NODE", f"Node '{node.get('name')}' is not connected", node=node.get("name"),
            ))


def _check_completeness(nodes: list, report: ValidationReport) -> None:
    if len(nodes) < 2:
        report.warnings.append(Issue("TOO_SIMPLE", "Workflow has less than 2 nodes"))
        report.suggestions.append("Consider adding more nodes to create a meaningful workflow")

    if not any(isinstance(n, dict) and n.get("type") in OUTPUT_NODES for n in nodes):
        report.warnings.append(Issue("NO_OUTPUT", "Workflow has no apparent output action"))
        report.suggestions.append("Add an output node like Email Send, HTTP Request, or Respond to Webhook")


# ---------------------------------------------------------------------------
# Auto-fix
# ---------------------------------------------------------------------------

def auto_fix(workflow: dict, errors: list[Issue]) -> dict:
    """Return a copy of *workflow* with the fixable *errors* repaired."""
    fixed = copy.deepcopy(workflow)
    fixed.setdefault("nodes", [])
    if not isinstance(fixed.get("connections"), dict):
        fixed["connections"] = {}

    error_types = {e.type for e in errors}

    for error in errors:
        if error.type == "BLOCKED_NODE":
            _replace_blocked(fixed, error.node)
        elif error.type == "MISSING_URL":
            node = _find_node(fixed, error.node)
            if node is not None:
                node.setdefault("parameters", {})["url"] = PLACEHOLDER_URL
        elif error.type == "MISSING_EMAIL":
            node = _find_node(fixed, error.node)
            if node is not None:
                node.setdefault("parameters", {})["toEmail"] = PLACEHOLDER_EMAIL

    if "NO_TRIGGER" in error_types:
        _prepend_manual_trigger(fixed)

    if error_types & {"INVALID_CONNECTION_TARGET", "INVALID_CONNECTION_SOURCE"}:
        _drop_dangling_connections(fixed)

    return fixed


def _find_node(workflow: dict, name: str | None) -> dict | None:
    for node in workflow["nodes"]:
        if isinstance(node, dict) and node.get("name") == name:
            return node
    return None


def _alternative_node(node: dict) -> dict | None:
    params = node.get("parameters") or {}
    node_type = node.get("type")
    if node_type == "n8n-nodes-base.googleSheets":
        return {
            **node,
            "type": "n8n-nodes-base.spreadsheetFile",
            "parameters": {"operation": "read", "fileFormat": "csv"},
        }
    if node_type == "n8n-nodes-base.gmail":
        return {
            **node,
            "type": "n8n-nodes-base.emailSend",
            "parameters": {
                "fromEmail": "{{$credentials.smtp.user}}",
                "toEmail": params.get("toEmail") or PLACEHOLDER_EMAIL,
                "subject": params.get("subject") or "Notification from n8n",
                "text": params.get("message") or '={{$json["message"]}}',
            },
        }
    if node_type == "n8n-nodes-base.slack":
        return {
            **node,
            "type": "n8n-nodes-base.httpRequest",
            "parameters": {
                "url": "={{$credentials.slack.webhookUrl}}",
                "method": "POST",
                "bodyParametersJson": json.dumps({"text": params.get("text") or "Message from n8n"}),
                "options": {"headers": {"Content-Type": "application/json"}},
            },
        }
    return None


def _replace_blocked(workflow: dict, name: str | None) -> None:
    nodes = workflow["nodes"]
    for index, node in enumerate(nodes):
        if isinstance(node, dict) and node.get("name") == name:
            alternative = _alternative_node(node)
            if alternative is not None:
                nodes[index] = alternative
                logger.debug("Replaced blocked node %s with %s", name, alternative["type"])
            return


def _prepend_manual_trigger(workflow: dict) -> None:
    nodes = workflow["nodes"]
    if any(is_trigger(n) for n in nodes):
        return
    first = next((n for n in nodes if isinstance(n, dict) and n.get("name")), None)
    nodes.insert(0, {
        "id": "manual_trigger",
        "name": "Manual Trigger",
        "type": "n8n-nodes-base.manualTrigger",
        "typeVersion": 1,
        "position": [250, 300],
        "parameters": {},
    })
    if first is not None and "Manual Trigger" not in workflow["connections"]:
        workflow["connections"]["Manual Trigger"] = {
            "main": [[{"node": first["name"], "type": "main", "index": 0}]]
        }


def _drop_dangling_connections(workflow: dict) -> None:
    names = {n.get("name") for n in workflow["nodes"] if isinstance(n, dict)}
    cleaned = {}
    for source, outputs in workflow["connections"].items():
        if source not in names or not isinstance(outputs, dict):
            continue
        main = outputs.get("main")
        if isinstance(main, list):
            outputs = {
                **outputs,
                "main": [
                    [c for c in group if isinstance(c, dict) and c.get("node") in names]
                    if isinstance(group, list) else group
                    for group in main
                ],
            }
        cleaned[source] = outputs
    workflow["connections"] = cleaned
