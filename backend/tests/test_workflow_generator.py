"""Tests for workflow generation: JSON extraction and the LiteLLM call.

LiteLLM is patched; no request leaves the process.
"""

import json
from unittest.mock import patch, MagicMock

import pytest

from clixen.clients.circuit_breaker import get_breaker
from clixen.exceptions import GenerationError, ServiceNotConfiguredError, UpstreamServiceError
from clixen.services.workflow_generator import WorkflowGenerator, extract_workflow_json
from conftest import make_workflow_json


def _reply(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestExtractWorkflowJson:

    def test_plain_json(self):
        assert extract_workflow_json('{"name": "A", "nodes": []}') == {"name": "A", "nodes": []}

    def test_fenced_block(self):
        text = 'Here you go:\n```json\n{"name": "A"}\n```\nEnjoy!'
        assert extract_workflow_json(text) == {"name": "A"}

    def test_fence_without_language(self):
        assert extract_workflow_json('```\n{"name": "A"}\n```') == {"name": "A"}

    def test_embedded_object(self):
        text = 'Sure! The workflow is {"name": "A", "connections": {}} and that is all.'
        assert extract_workflow_json(text) == {"name": "A", "connections": {}}

    def test_repairs_truncated_json(self):
        result = extract_workflow_json('{"name": "A", "nodes": [{"id": "1", "name": "Start"}')
        assert result["name"] == "A"
        assert result["nodes"][0]["name"] == "Start"

    def test_repairs_trailing_comma(self):
        assert extract_workflow_json('{"name": "A",}')["name"] == "A"

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            extract_workflow_json("   ")

    def test_no_object_raises(self):
        with pytest.raises(ValueError):
            extract_workflow_json("I cannot help with that.")


class TestWorkflowGenerator:

    def test_not_configured(self):
        generator = WorkflowGenerator()
        assert generator.is_configured() is False
        with pytest.raises(ServiceNotConfiguredError):
            generator.generate("anything")

    def test_generates_workflow(self):
        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion", return_value=_reply(json.dumps(make_workflow_json()))) as completion:
            result = generator.generate("Send me the weather", name="Weather")

        assert result.name == "Weather"
        assert result.workflow_json["name"] == "Weather"
        assert len(result.workflow_json["nodes"]) == 3
        assert result.description == "Auto-generated workflow: Send me the weather"
        assert result.model == "gpt-4o-mini"

        kwargs = completion.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0]["role"] == "system"
        assert "Send me the weather" in kwargs["messages"][1]["content"]

    def test_uses_meta_description(self):
        workflow = make_workflow_json(meta={"description": "Fetches the weather"})
        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion", return_value=_reply(json.dumps(workflow))):
            assert generator.generate("weather").description == "Fetches the weather"

    def test_missing_fields(self):
        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion", return_value=_reply('{"name": "A"}')):
            with pytest.raises(GenerationError) as exc:
                generator.generate("weather")
        assert "nodes" in exc.value.message

    def test_unparseable_reply(self):
        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion", return_value=_reply("Sorry, I can't do that.")):
            with pytest.raises(GenerationError):
                generator.generate("weather")

    def test_empty_reply(self):
        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion", return_value=_reply(None)):
            with pytest.raises(GenerationError):
                generator.generate("weather")

    def test_provider_error_becomes_upstream_error(self):
        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion", side_effect=RuntimeError("rate limited")):
            with pytest.raises(UpstreamServiceError) as exc:
                generator.generate("weather")
        assert exc.value.status_code == 502
        assert exc.value.details["service"] == "OpenAI"

    def test_open_circuit_skips_call(self):
        breaker = get_breaker("openai")
        for _ in range(3):
            breaker.record_failure()

        generator = WorkflowGenerator(model="gpt-4o-mini", api_key="sk-test")
        with patch("litellm.completion") as completion:
            with pytest.raises(UpstreamServiceError) as exc:
                generator.generate("weather")
        completion.assert_not_called()
        assert exc.value.details["upstream_status"] == 503
