"""Natural language -> n8n workflow JSON via a chat completion.

One system prompt, one user prompt, one call through LiteLLM. The reply is
parsed leniently: plain JSON, a fenced block, the outermost ``{...}`` span,
and finally ``json_repair`` for truncated or slightly malformed output.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..clients.circuit_breaker import CircuitBreakerOpen, run_with_timeout
from ..core.config import settings
from ..exceptions import GenerationError, ServiceNotConfiguredError, UpstreamServiceError
from .workflow_validator import BLOCKED_NODES, TRIGGER_NODES

logger = logging.getLogger(__name__)

BREAKER_LABEL = "openai"

SYSTEM_PROMPT = (
    "You are an expert n8n workflow designer. Given a user's natural language description, "
    "create a complete, valid n8n workflow JSON structure.\n\n"
    "CRITICAL REQUIREMENTS:\n"
    "1. Return ONLY a valid JSON object - no markdown, no explanations\n"
    "2. Include ALL required fields: name, nodes, connections, settings\n"
    "3. Every node needs id, name, type, typeVersion, position [x, y] and parameters\n"
    "4. Start with a trigger node: " + ", ".join(TRIGGER_NODES) + "\n"
    "5. Never use nodes that need OAuth credentials: " + ", ".join(sorted(BLOCKED_NODES)) + ". "
    "Use n8n-nodes-base.httpRequest or n8n-nodes-base.emailSend instead\n"
    "6. Ensure nodes are properly connected with valid connection objects keyed by node name\n\n"
    "The workflow should be immediately deployable to n8n without modification."
)

USER_PROMPT_TEMPLATE = """Create an n8n workflow for: {prompt}

Requirements:
- Make it production-ready with error handling
- Use appropriate trigger nodes (Webhook, Schedule, or Manual)
- Include descriptive names for all nodes
- Add proper data transformations where needed
- Ensure all connections are valid

Return the complete workflow JSON:"""

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")

REQUIRED_FIELDS = ("name", "nodes", "connections")


@dataclass(frozen=True)
class GeneratedWorkflow:
    workflow_json: Dict[str, Any]
    name: str
    description: str
    model: str


def extract_workflow_json(text: str) -> Dict[str, Any]:
    """Pull a JSON object out of a model reply.

    Raises:
        ValueError: when nothing object-shaped can be recovered.
    """
    text = (text or "").strip()
    if not text:
        raise ValueError("Empty response")

    candidates = [text]
    fenced = _FENCE_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    from json_repair import repair_json

    source = candidates[-1] if start != -1 else text
    repaired = repair_json(source, return_objects=True)
    if isinstance(repaired, dict) and repaired:
        logger.info("Recovered workflow JSON with json_repair")
        return repaired
    raise ValueError("Could not extract valid JSON from AI response")


class WorkflowGenerator:
    """Turns a prompt into workflow JSON. Stateless apart from settings."""

    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None):
        self.model = model or settings.chat_model
        self.api_key = api_key or settings.chat_api_key

    def is_configured(self) -> bool:
        return bool(self.model and self.api_key)

    def generate(self, prompt: str, name: Optional[str] = None) -> GeneratedWorkflow:
        """Generate workflow JSON for *prompt*.

        Raises:
            ServiceNotConfiguredError: no model or API key.
            UpstreamServiceError: the completion call failed or timed out.
            GenerationError: the reply was not a usable workflow.
        """
        if not self.is_configured():
            raise ServiceNotConfiguredError("OpenAI", "Set CHAT_MODEL and CHAT_API_KEY.")

        raw = self._complete(prompt)
        if not raw:
            raise GenerationError("No response generated from OpenAI")

        try:
            workflow = extract_workflow_json(raw)
        except ValueError as e:
            logger.warning("Unparseable model reply (%d chars): %s", len(raw), e)
            raise GenerationError(str(e))

        missing = [f for f in REQUIRED_FIELDS if not workflow.get(f)]
        if missing:
            raise GenerationError(
                f"Generated workflow missing required fields ({', '.join(missing)})"
            )
        if not isinstance(workflow["nodes"], list) or not isinstance(workflow["connections"], dict):
            raise GenerationError("Generated workflow has malformed nodes or connections")

        if name:
            workflow["name"] = name
        description = (workflow.get("meta") or {}).get("description") or f"Auto-generated workflow: {prompt}"
        return GeneratedWorkflow(
            workflow_json=workflow,
            name=workflow["name"],
            description=description,
            model=self.model,
        )

    def _complete(self, prompt: str) -> str:
        import litellm

        chat_kwargs: dict = {
            "model": self.model,
            "api_key": self.api_key,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(prompt=prompt)},
            ],
            "max_tokens": 4000,
            "temperature": 0.7,
            "timeout": settings.chat_timeout,
        }
        if settings.chat_api_base:
            chat_kwargs["api_base"] = settings.chat_api_base

        try:
            response = run_with_timeout(
                lambda: litellm.completion(**chat_kwargs),
                timeout=settings.chat_timeout,
                label=BREAKER_LABEL,
            )
        except CircuitBreakerOpen as e:
            raise UpstreamServiceError("OpenAI", str(e), upstream_status=503)
        except TimeoutError as e:
            raise UpstreamServiceError("OpenAI", str(e), upstream_status=504)
        except Exception as e:
            logger.exception("Workflow generation completion failed")
            raise UpstreamServiceError("OpenAI", f"{type(e).__name__}: {e}")

        return response.choices[0].message.content or ""
