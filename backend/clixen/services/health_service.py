"""Health probes for the API and the platforms behind it.

Nothing here raises: every probe turns its failure into a status string so
load balancers and the CLI always get an answer.
"""

import logging
import time
from typing import Any, Dict

from sqlalchemy import text
from sqlalchemy.orm import Session

from .. import __version__
from ..clients.circuit_breaker import breaker_states
from ..clients.n8n_client import N8nClient, N8nClientError
from ..clients.supabase_client import SupabaseAuthClient, SupabaseClientError
from ..core.config import settings

logger = logging.getLogger(__name__)

_started = time.monotonic()


def uptime_seconds() -> int:
    return round(time.monotonic() - _started)


def check_database(db: Session) -> str:
    try:
        db.execute(text("SELECT 1"))
        return "ok"
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return "error"


def check_n8n() -> str:
    if not settings.n8n_configured:
        return "not_configured"
    try:
        client = N8nClient.from_settings(settings)
    except N8nClientError:
        return "not_configured"
    return "ok" if client.health_check() else "unreachable"


def check_supabase() -> str:
    if not settings.supabase_configured:
        return "not_configured"
    try:
        client = SupabaseAuthClient.from_settings(settings)
    except SupabaseClientError:
        return "not_configured"
    return "ok" if client.health_check() else "unreachable"


def basic_health(db: Session) -> Dict[str, Any]:
    db_status = check_database(db)
    return {
        "status": "healthy" if db_status == "ok" else "degraded",
        "db": db_status,
        "uptime_seconds": uptime_seconds(),
        "version": __version__,
    }


def deep_health(db: Session) -> Dict[str, Any]:
    """Probe every dependency.

    ``down`` when the database is unreachable, ``degraded`` when an
    external service is unreachable or not configured, or a circuit is open.
    """
    checks = {
        "database": check_database(db),
        "n8n": check_n8n(),
        "supabase": check_supabase(),
        "openai": "configured" if settings.chat_configured else "not_configured",
    }
    breakers = breaker_states()

    if checks["database"] != "ok":
        status = "down"
    elif (
        checks["n8n"] != "ok"
        or checks["supabase"] == "unreachable"
        or any(state == "open" for state in breakers.values())
    ):
        status = "degraded"
    else:
        status = "healthy"

    return {
        "status": status,
        "checks": checks,
        "circuit_breakers": breakers,
        "uptime_seconds": uptime_seconds(),
        "version": __version__,
    }
