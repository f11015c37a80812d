"""REST client for the n8n public API (v1).

Deep module: callers pass workflow dicts in and get parsed JSON back.
Retry logic, auth headers, pagination and circuit breaking are handled
internally. Every request carries the ``X-N8N-API-KEY`` header.
"""

import logging
import time
from typing import Dict, Any, List, Optional

import requests

from .circuit_breaker import get_breaker, CircuitBreakerOpen

logger = logging.getLogger(__name__)

BREAKER_LABEL = "n8n"

# Fields the public API accepts on create/update. Anything else
# (id, active, tags, createdAt, ...) is rejected with 400.
WRITABLE_FIELDS = ("name", "nodes", "connections", "settings", "staticData")


class N8nClientError(Exception):
    """Raised when n8n returns an unrecoverable error or is unreachable."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class N8nClient:
    """Client for a hosted n8n instance.

    Args:
        api_url: Base URL including ``/api/v1``.
        api_key: n8n API key.
        timeout: Per-request timeout in seconds.
        max_retries: Attempts for network errors, 5xx and 429.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: int = 30,
        max_retries: int = 3,
    ):
        if not api_url:
            raise N8nClientError("n8n API URL is empty. Set N8N_API_URL.")
        if not api_key:
            raise N8nClientError("n8n API key is empty. Set N8N_API_KEY.")
        self.api_url = api_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

    @classmethod
    def from_settings(cls, settings) -> "N8nClient":
        return cls(
            api_url=settings.n8n_api_url,
            api_key=settings.n8n_api_key,
            timeout=settings.n8n_timeout,
            max_retries=settings.n8n_max_retries,
        )

    @property
    def base_url(self) -> str:
        """Instance root without the ``/api/v1`` suffix."""
        if self.api_url.endswith("/api/v1"):
            return self.api_url[: -len("/api/v1")]
        return self.api_url

    def _headers(self) -> Dict[str, str]:
        return {
            "X-N8N-API-KEY": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    # ----- workflows -------------------------------------------------------

    def list_workflows(self, active: Optional[bool] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Return every workflow, following ``nextCursor`` pagination."""
        params: Dict[str, Any] = {"limit": limit}
        if active is not None:
            params["active"] = "true" if active else "false"

        workflows: List[Dict[str, Any]] = []
        while True:
            page = self._request("GET", "/workflows", params=params)
            if isinstance(page, list):
                workflows.extend(page)
                break
            workflows.extend(page.get("data", []))
            cursor = page.get("nextCursor")
            if not cursor:
                break
            params["cursor"] = cursor
        return workflows

    def get_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        """Get a workflow by ID. Returns None on 404."""
        try:
            return self._request("GET", f"/workflows/{workflow_id}")
        except N8nClientError as exc:
            if exc.status_code == 404:
                return None
            raise

    def create_workflow(self, workflow: Dict[str, Any]) -> Dict[str, Any]:
        """Create a workflow. Returns the n8n record including its ``id``."""
        result = self._request("POST", "/workflows", json=self.writable_payload(workflow))
        if not isinstance(result, dict) or not result.get("id"):
            raise N8nClientError("n8n did not return workflow ID")
        logger.info("n8n workflow created", extra={"n8n_workflow_id": result["id"]})
        return result

    def update_workflow(self, workflow_id: str, workflow: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/workflows/{workflow_id}", json=self.writable_payload(workflow))

    def delete_workflow(self, workflow_id: str) -> bool:
        """Delete a workflow. Returns False when it was already gone."""
        try:
            self._request("DELETE", f"/workflows/{workflow_id}")
            return True
        except N8nClientError as exc:
            if exc.status_code == 404:
                return False
            raise

    def activate_workflow(self, workflow_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/workflows/{workflow_id}/activate")

    def deactivate_workflow(self, workflow_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/workflows/{workflow_id}/deactivate")

    # ----- executions ------------------------------------------------------

    def list_executions(
        self,
        workflow_id: Optional[str] = None,
        limit: int = 20,
        status: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Most recent executions first. ``status`` is success, error or waiting."""
        params: Dict[str, Any] = {"limit": limit}
        if workflow_id:
            params["workflowId"] = workflow_id
        if status:
            params["status"] = status
        result = self._request("GET", "/executions", params=params)
        if isinstance(result, list):
            return result
        return result.get("data", [])

    # ----- health ----------------------------------------------------------

    def health_check(self) -> bool:
        """Check the instance liveness endpoint. Never raises."""
        try:
            response = requests.get(f"{self.base_url}/healthz", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    # ----- helpers ---------------------------------------------------------

    def webhook_urls(self, workflow: Dict[str, Any]) -> List[str]:
        """Production webhook URLs for every webhook node with a path."""
        urls = []
        for node in workflow.get("nodes") or []:
            if node.get("type") != "n8n-nodes-base.webhook":
                continue
            path = (node.get("parameters") or {}).get("path")
            if not path:
                continue
            if not path.startswith("/"):
                path = f"/{path}"
            urls.append(f"{self.base_url}/webhook{path}")
        return urls

    def editor_url(self, n8n_workflow_id: str) -> str:
        return f"{self.base_url}/workflow/{n8n_workflow_id}"

    @staticmethod
    def writable_payload(workflow: Dict[str, Any]) -> Dict[str, Any]:
        """Strip fields the public API refuses on create/update."""
        payload = {k: workflow[k] for k in WRITABLE_FIELDS if k in workflow}
        payload.setdefault("settings", {})
        return payload

    # ----- internal --------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request with retry and circuit breaking.

        Client errors (4xx except 429) are raised immediately. Network
        errors, 5xx and 429 are retried with exponential backoff.
        """
        breaker = get_breaker(BREAKER_LABEL)
        try:
            breaker.check()
        except CircuitBreakerOpen as exc:
            raise N8nClientError(str(exc), status_code=503) from exc

        url = f"{self.api_url}{path}"
        last_error: Optional[N8nClientError] = None

        for attempt in range(self.max_retries):
            try:
                logger.debug("%s %s (attempt %d/%d)", method, url, attempt + 1, self.max_retries)
                response = requests.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self._headers(),
                    timeout=self.timeout,
                )
                response.raise_for_status()
                breaker.record_success()
                if not response.content:
                    return {}
                content_type = response.headers.get("content-type", "")
                if "application/json" in content_type:
                    return response.json()
                return response.text

            except requests.exceptions.HTTPError as exc:
                status = exc.response.status_code if exc.response is not None else 0
                message = self._error_message(exc.response)
                logger.warning("n8n %s %s -> HTTP %d: %s", method, path, status, message)

                if 400 <= status < 500 and status != 429:
                    # The service answered; the request itself was wrong.
                    breaker.record_success()
                    raise N8nClientError(f"n8n API Error {status}: {message}", status_code=status)

                last_error = N8nClientError(f"n8n API Error {status}: {message}", status_code=status)
                if attempt < self.max_retries - 1:
                    wait = (2 ** attempt) * (5 if status == 429 else 1)
                    logger.info("Retrying in %ds", wait)
                    time.sleep(wait)

            except requests.exceptions.RequestException as exc:
                logger.warning("n8n request failed: %s: %s", type(exc).__name__, exc)
                last_error = N8nClientError(f"n8n unreachable: {exc}")
                if attempt < self.max_retries - 1:
                    wait = 2 ** attempt
                    logger.info("Retrying in %ds", wait)
                    time.sleep(wait)

        breaker.record_failure()
        logger.error("All %d attempts failed for %s %s", self.max_retries, method, path)
        raise last_error

    @staticmethod
    def _error_message(response: Optional[requests.Response]) -> str:
        if response is None:
            return "no response"
        try:
            body = response.json()
            if isinstance(body, dict) and body.get("message"):
                return str(body["message"])
        except ValueError:
            pass
        return response.text[:500]
