"""Folder assignment and workspace quota endpoints."""

import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.auth import AuthContext, require_auth, require_admin
from ..database import get_db
from ..exceptions import AssignmentNotFoundError
from ..schemas.assignment import AssignmentResponse, CapacityResponse, QuotaResponse
from ..services.assignment_service import AssignmentService
from ..services.workspace_service import WorkspaceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assignments", tags=["assignments"])

# Kept at /api/workspace/quota, outside the assignments prefix.
workspace_router = APIRouter(prefix="/api/workspace", tags=["workspace"])


@router.get("/me", response_model=AssignmentResponse)
def get_my_assignment(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    assignment = AssignmentService(db).get_assignment(auth.user_id)
    if assignment is None:
        raise AssignmentNotFoundError(auth.user_id)
    return assignment


@router.post("/me", response_model=AssignmentResponse)
def assign_me(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    """Assign the caller a folder. Idempotent; 503 when the pool is full.

    Normally done by the signup webhook; this covers users created before it
    was installed.
    """
    assignment = AssignmentService(db).assign_user(auth.user_id)
    WorkspaceService(db).ensure_workspace(auth.user_id, email=auth.email)
    return assignment


@router.delete("/me", status_code=204)
def release_me(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    if not AssignmentService(db).release_user(auth.user_id):
        raise AssignmentNotFoundError(auth.user_id)


@router.get("/capacity", response_model=CapacityResponse)
def get_capacity(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_admin),
):
    """Folder pool occupancy. Admin only."""
    return AssignmentService(db).capacity()


@workspace_router.get("/quota", response_model=QuotaResponse)
def get_quota(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(require_auth),
):
    return WorkspaceService(db).quota(auth.user_id)
