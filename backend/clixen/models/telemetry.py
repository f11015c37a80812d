"""TelemetryEvent and SyncLog models.

Both tables are append-only. Telemetry is written by the service layer for
every user-visible action; SyncLog records one row per sync pass.
"""

from sqlalchemy import Column, String, Integer, DateTime, Boolean, Text
from sqlalchemy.sql import func
from ..database import Base


class TelemetryEvent(Base):
    """Immutable record of a user action or error.

    event_category: workflow, deployment, project, assignment, chat, error
    """

    __tablename__ = "telemetry_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), nullable=True, index=True)
    event_type = Column(String(50), nullable=False)
    event_category = Column(String(50), nullable=False)
    project_id = Column(String(50), nullable=True)
    workflow_id = Column(String(50), nullable=True)
    event_data = Column(Text, nullable=True)  # JSON string
    success = Column(Boolean, nullable=False, default=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)


class SyncLog(Base):
    """Outcome of one n8n -> database sync pass.

    status: success, partial_success, error
    """

    __tablename__ = "sync_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sync_type = Column(String(50), nullable=False, default="workflow_sync")
    user_id = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False)
    workflows_processed = Column(Integer, nullable=False, default=0)
    successful_syncs = Column(Integer, nullable=False, default=0)
    failed_syncs = Column(Integer, nullable=False, default=0)
    executions_updated = Column(Integer, nullable=False, default=0)
    duration_ms = Column(Integer, nullable=False, default=0)
    errors = Column(Text, nullable=True)  # JSON list
    created_at = Column(DateTime(timezone=True), server_default=func.now())
