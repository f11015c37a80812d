"""Tests for the n8n REST client: retry policy, pagination, payloads.

``requests.request`` is patched to return real ``requests.Response`` objects,
and ``time.sleep`` is patched so retries run instantly.
"""

import json
from unittest.mock import patch

import pytest
import requests

from clixen.clients.circuit_breaker import get_breaker, CircuitState
from clixen.clients.n8n_client import N8nClient, N8nClientError


def _response(status: int, body=None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response.reason = "test"
    response.url = "http://n8n.test/api/v1/workflows"
    response._content = json.dumps(body).encode() if body is not None else b""
    response.headers["content-type"] = "application/json"
    return response


@pytest.fixture()
def n8n():
    return N8nClient("http://n8n.test/api/v1", "key-123", timeout=5, max_retries=3)


@pytest.fixture(autouse=True)
def _no_sleep():
    with patch("clixen.clients.n8n_client.time.sleep"):
        yield


class TestConstruction:

    def test_requires_key(self):
        with pytest.raises(N8nClientError):
            N8nClient("http://n8n.test/api/v1", "")

    def test_base_url_strips_api_suffix(self, n8n):
        assert n8n.base_url == "http://n8n.test"

    def test_editor_and_webhook_urls(self, n8n):
        workflow = {
            "nodes": [
                {"type": "n8n-nodes-base.webhook", "parameters": {"path": "orders"}},
                {"type": "n8n-nodes-base.webhook", "parameters": {"path": "/refunds"}},
                {"type": "n8n-nodes-base.webhook", "parameters": {}},
                {"type": "n8n-nodes-base.httpRequest", "parameters": {"path": "ignored"}},
            ]
        }
        assert n8n.webhook_urls(workflow) == [
            "http://n8n.test/webhook/orders",
            "http://n8n.test/webhook/refunds",
        ]
        assert n8n.editor_url("42") == "http://n8n.test/workflow/42"


class TestRequests:

    def test_sends_api_key_header(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(200, {"id": "1"})) as req:
            n8n.get_workflow("1")
        headers = req.call_args.kwargs["headers"]
        assert headers["X-N8N-API-KEY"] == "key-123"
        assert req.call_args.args == ("GET", "http://n8n.test/api/v1/workflows/1")

    def test_list_follows_cursor(self, n8n):
        pages = [
            _response(200, {"data": [{"id": "1"}, {"id": "2"}], "nextCursor": "abc"}),
            _response(200, {"data": [{"id": "3"}], "nextCursor": None}),
        ]
        with patch("clixen.clients.n8n_client.requests.request", side_effect=pages) as req:
            workflows = n8n.list_workflows()
        assert [w["id"] for w in workflows] == ["1", "2", "3"]
        assert req.call_args.kwargs["params"]["cursor"] == "abc"

    def test_create_strips_read_only_fields(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(200, {"id": "9"})) as req:
            n8n.create_workflow({
                "id": "old", "name": "W", "nodes": [], "connections": {}, "active": True, "tags": [],
            })
        sent = req.call_args.kwargs["json"]
        assert sent == {"name": "W", "nodes": [], "connections": {}, "settings": {}}

    def test_create_without_id_raises(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(200, {})):
            with pytest.raises(N8nClientError):
                n8n.create_workflow({"name": "W", "nodes": [], "connections": {}})

    def test_list_executions_unwraps_data(self, n8n):
        body = {"data": [{"id": "e1", "status": "success"}]}
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(200, body)) as req:
            executions = n8n.list_executions("wf-1", limit=10)
        assert executions == [{"id": "e1", "status": "success"}]
        assert req.call_args.kwargs["params"] == {"limit": 10, "workflowId": "wf-1"}


class TestRetryPolicy:

    def test_404_returns_none_without_retry(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(404, {"message": "Not Found"})) as req:
            assert n8n.get_workflow("missing") is None
        assert req.call_count == 1

    def test_delete_missing_returns_false(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(404)):
            assert n8n.delete_workflow("missing") is False

    def test_400_is_not_retried(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(400, {"message": "bad nodes"})) as req:
            with pytest.raises(N8nClientError) as exc:
                n8n.create_workflow({"name": "W"})
        assert req.call_count == 1
        assert exc.value.status_code == 400
        assert "bad nodes" in str(exc.value)

    def test_500_is_retried_then_raised(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", return_value=_response(500, {"message": "boom"})) as req:
            with pytest.raises(N8nClientError) as exc:
                n8n.list_workflows()
        assert req.call_count == 3
        assert exc.value.status_code == 500

    def test_429_then_success(self, n8n):
        responses = [_response(429), _response(200, {"data": []})]
        with patch("clixen.clients.n8n_client.requests.request", side_effect=responses) as req:
            assert n8n.list_workflows() == []
        assert req.call_count == 2

    def test_network_error_then_success(self, n8n):
        responses = [requests.exceptions.ConnectionError("refused"), _response(200, {"id": "1"})]
        with patch("clixen.clients.n8n_client.requests.request", side_effect=responses):
            assert n8n.get_workflow("1") == {"id": "1"}

    def test_exhausted_retries_open_circuit(self, n8n):
        with patch("clixen.clients.n8n_client.requests.request", side_effect=requests.exceptions.Timeout("slow")):
            for _ in range(3):
                with pytest.raises(N8nClientError):
                    n8n.list_workflows()
        assert get_breaker("n8n").state == CircuitState.OPEN

        with patch("clixen.clients.n8n_client.requests.request") as req:
            with pytest.raises(N8nClientError) as exc:
                n8n.list_workflows()
        req.assert_not_called()
        assert exc.value.status_code == 503
