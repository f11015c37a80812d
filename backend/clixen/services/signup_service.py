"""New-user provisioning, driven by the Supabase ``auth.users`` insert webhook."""

import logging

import sqlalchemy.exc
from sqlalchemy.orm import Session

from ..exceptions import ValidationError
from ..schemas.webhook import SignupWebhookPayload, WebhookResponse
from . import telemetry_service
from .assignment_service import AssignmentService
from .workspace_service import WorkspaceService

logger = logging.getLogger(__name__)


class SignupService:

    def __init__(self, db: Session):
        self.db = db
        self.assignments = AssignmentService(db)
        self.workspaces = WorkspaceService(db)

    def handle(self, payload: SignupWebhookPayload) -> WebhookResponse:
        """Assign a folder and create the workspace. Only INSERT events are processed."""
        if payload.type != "INSERT":
            return WebhookResponse(
                status="ignored",
                message=f"Event type '{payload.type}' ignored, only 'INSERT' is processed",
            )

        record = payload.record or {}
        user_id = record.get("id")
        email = record.get("email") or ""
        if not user_id:
            raise ValidationError("Webhook record has no user id", field="record.id")

        logger.info("Processing signup", extra={"user_id": user_id})

        assignment = self.assignments.assign_user(user_id)

        try:
            self.workspaces.ensure_workspace(user_id, email=email)
        except sqlalchemy.exc.SQLAlchemyError as e:
            # Quotas fall back to defaults on first use; signup still succeeds.
            self.db.rollback()
            logger.warning("Failed to initialize workspace for %s: %s", user_id, e)

        telemetry_service.log(
            self.db, user_id, "user_signup", "assignment",
            data={"project_id": assignment.project_id, "folder_id": assignment.folder_id},
        )
        logger.info(
            "User assignment complete: %s -> %s", assignment.project_id, assignment.folder_id,
            extra={"user_id": user_id},
        )
        return WebhookResponse(
            status="assigned",
            message="User successfully assigned to project and folder",
            project_id=assignment.project_id,
            folder_id=assignment.folder_id,
        )
