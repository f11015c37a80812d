"""Sync and cleanup triggers.

The worker runs the same operations on a schedule; these routes let a user
refresh their own workflows and an admin run a full pass on demand.
"""

import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..clients import get_n8n_client
from ..clients.n8n_client import N8nClient, N8nClientError
from ..core.auth import AuthContext, require_auth, require_admin
from ..database import get_db
from ..exceptions import UpstreamServiceError
from ..schemas.sync import CleanupResult, SyncResult
from ..services import telemetry_service
from ..services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sync", tags=["sync"])


@router.post("/workflows", response_model=SyncResult)
def sync_my_workflows(
    db: Session = Depends(get_db),
    n8n: N8nClient = Depends(get_n8n_client),
    auth: AuthContext = Depends(require_auth),
):
    """Refresh status and execution counters of the caller's deployed workflows."""
    result = SyncService(db, n8n).sync_all(user_id=auth.user_id)
    telemetry_service.log(
        db, auth.user_id, "workflows_synced", "sync",
        data={"processed": result.workflows_processed, "failed": result.failed_syncs},
        success=result.status != "error",
        duration_ms=result.duration_ms,
    )
    return result


@router.post("/all", response_model=SyncResult)
def sync_all_workflows(
    db: Session = Depends(get_db),
    n8n: N8nClient = Depends(get_n8n_client),
    auth: AuthContext = Depends(require_admin),
):
    """Sync every user's deployed workflows. Admin only."""
    return SyncService(db, n8n).sync_all()


@router.post("/cleanup", response_model=CleanupResult)
def cleanup(
    legacy: bool = Query(False, description="Remove n8n workflows without a [USR-] prefix instead"),
    dry_run: bool = Query(True, description="Only count legacy workflows"),
    max_age_hours: int = Query(24, ge=0),
    db: Session = Depends(get_db),
    n8n: N8nClient = Depends(get_n8n_client),
    auth: AuthContext = Depends(require_admin),
):
    """Delete archived workflows past the grace period, or legacy n8n workflows. Admin only."""
    service = SyncService(db, n8n)
    if not legacy:
        return service.cleanup_inactive(max_age_hours=max_age_hours)

    try:
        result = service.cleanup_legacy(dry_run=dry_run)
    except N8nClientError as e:
        raise UpstreamServiceError("n8n", str(e), upstream_status=e.status_code)
    logger.info(
        "Legacy cleanup requested by %s: %d candidate(s), dry_run=%s",
        auth.user_id, result.candidates, dry_run,
    )
    return result
