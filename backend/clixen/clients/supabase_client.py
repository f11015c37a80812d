"""Client for the Supabase Auth (GoTrue) REST API.

Only the handful of calls this service needs: resolve a user from an access
token, and the admin endpoints used by the ops CLI (create, list and delete
users). The admin calls require the service role key.
"""

import logging
from typing import Dict, Any, List, Optional

import requests

logger = logging.getLogger(__name__)


class SupabaseClientError(Exception):
    """Raised when Supabase returns an error or is unreachable."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class SupabaseAuthClient:
    """Thin wrapper around ``{supabase_url}/auth/v1``.

    Args:
        supabase_url: Project URL, e.g. ``https://abc.supabase.co``.
        api_key: anon key for user-scoped calls, service role key for admin calls.
        service_role_key: Optional separate key used for ``/admin`` endpoints.
    """

    def __init__(
        self,
        supabase_url: str,
        api_key: str,
        service_role_key: Optional[str] = None,
        timeout: int = 10,
    ):
        if not supabase_url:
            raise SupabaseClientError("SUPABASE_URL is not set")
        if not api_key:
            raise SupabaseClientError("No Supabase API key provided")
        self.auth_url = f"{supabase_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.service_role_key = service_role_key or ""
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "SupabaseAuthClient":
        return cls(
            supabase_url=settings.supabase_url,
            api_key=settings.supabase_anon_key or settings.supabase_service_role_key,
            service_role_key=settings.supabase_service_role_key,
        )

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {bearer or self.api_key}",
            "Content-Type": "application/json",
        }

    def _admin_headers(self) -> Dict[str, str]:
        if not self.service_role_key:
            raise SupabaseClientError("Admin operations require SUPABASE_SERVICE_ROLE_KEY")
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    # ----- user-scoped -----------------------------------------------------

    def get_user(self, access_token: str) -> Optional[Dict[str, Any]]:
        """Resolve the user behind an access token. None if the token is rejected."""
        try:
            response = requests.get(
                f"{self.auth_url}/user",
                headers=self._headers(bearer=access_token),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise SupabaseClientError(f"Supabase unreachable: {exc}") from exc

        if response.status_code in (401, 403):
            return None
        self._raise_for_status(response, "get user")
        return response.json()

    # ----- admin -----------------------------------------------------------

    def create_user(
        self,
        email: str,
        password: str,
        email_confirm: bool = True,
        user_metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Create a user with the admin API. Confirmed immediately by default."""
        payload: Dict[str, Any] = {
            "email": email,
            "password": password,
            "email_confirm": email_confirm,
        }
        if user_metadata:
            payload["user_metadata"] = user_metadata
        response = self._admin("POST", "/admin/users", json=payload)
        user = response.json()
        logger.info("Supabase user created", extra={"user_id": user.get("id")})
        return user

    def list_users(self, page: int = 1, per_page: int = 50) -> List[Dict[str, Any]]:
        response = self._admin("GET", "/admin/users", params={"page": page, "per_page": per_page})
        body = response.json()
        if isinstance(body, dict):
            return body.get("users", [])
        return body

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        """Linear scan over admin user pages. Fine for the small user base."""
        target = email.strip().lower()
        page = 1
        while True:
            users = self.list_users(page=page, per_page=100)
            for user in users:
                if (user.get("email") or "").lower() == target:
                    return user
            if len(users) < 100:
                return None
            page += 1

    def delete_user(self, user_id: str) -> bool:
        try:
            self._admin("DELETE", f"/admin/users/{user_id}")
            return True
        except SupabaseClientError as exc:
            if exc.status_code == 404:
                return False
            raise

    # ----- health ----------------------------------------------------------

    def health_check(self) -> bool:
        """Check the auth service. Never raises."""
        try:
            response = requests.get(
                f"{self.auth_url}/health",
                headers={"apikey": self.api_key},
                timeout=5,
            )
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    # ----- internal --------------------------------------------------------

    def _admin(self, method: str, path: str, **kwargs) -> requests.Response:
        try:
            response = requests.request(
                method,
                f"{self.auth_url}{path}",
                headers=self._admin_headers(),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.RequestException as exc:
            raise SupabaseClientError(f"Supabase unreachable: {exc}") from exc
        self._raise_for_status(response, f"{method} {path}")
        return response

    @staticmethod
    def _raise_for_status(response: requests.Response, action: str) -> None:
        if response.status_code < 400:
            return
        try:
            body = response.json()
            message = body.get("msg") or body.get("message") or body.get("error_description") or str(body)
        except ValueError:
            message = response.text[:500]
        logger.warning("Supabase %s failed: HTTP %d %s", action, response.status_code, message)
        raise SupabaseClientError(
            f"Supabase {action} failed ({response.status_code}): {message}",
            status_code=response.status_code,
        )
