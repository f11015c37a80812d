"""Clients for the external platforms: n8n, Supabase Auth, OpenAI.

The ``get_*`` functions double as FastAPI dependencies so tests can swap
in fakes with ``app.dependency_overrides``.
"""

from ..core.config import settings
from ..exceptions import ServiceNotConfiguredError
from .n8n_client import N8nClient, N8nClientError
from .supabase_client import SupabaseAuthClient, SupabaseClientError


def get_n8n_client() -> N8nClient:
    if not settings.n8n_configured:
        raise ServiceNotConfiguredError("n8n", "Set N8N_API_URL and N8N_API_KEY.")
    return N8nClient.from_settings(settings)


def get_supabase_client() -> SupabaseAuthClient:
    if not settings.supabase_configured:
        raise ServiceNotConfiguredError("Supabase", "Set SUPABASE_URL and a Supabase API key.")
    return SupabaseAuthClient.from_settings(settings)


__all__ = [
    "N8nClient",
    "N8nClientError",
    "SupabaseAuthClient",
    "SupabaseClientError",
    "get_n8n_client",
    "get_supabase_client",
]
